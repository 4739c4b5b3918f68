"""Output generation for histogram, growth, coverage and distance tables."""

import io
import logging
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from graphgrowth.core.types import CountType
from graphgrowth.core.exceptions import ConfigurationError, ValidationError
from graphgrowth.modules.growth import GrowthCurve
from graphgrowth.modules.histogram import Histogram

logger = logging.getLogger(__name__)

TABLE_TAG = "graphgrowth"
HEADER_ROWS = ("count", "coverage", "quorum")


def _write_header(f, columns: Sequence[Tuple[str, str, str, str]],
                  comments: Optional[List[str]]) -> None:
    for comment in comments or []:
        f.write(comment if comment.startswith("#") else f"# {comment}")
        f.write("\n")
    f.write("\t".join([TABLE_TAG] + [c[0] for c in columns]) + "\n")
    for row, name in enumerate(HEADER_ROWS, start=1):
        f.write("\t".join([name] + [c[row] for c in columns]) + "\n")


def write_histogram_table(
    histograms: Sequence[Histogram],
    output_file: Union[str, Path],
    comments: Optional[List[str]] = None
) -> Path:
    """
    Write coverage histograms as TSV, one column per count type.

    Args:
        histograms: Histograms over the same number of groups
        output_file: Output file path
        comments: Lines written as '#' comments before the header

    Returns:
        Path to generated file
    """
    output_file = Path(output_file)
    if not histograms:
        raise ValueError("No histograms to write")
    sizes = {len(h.coverage) for h in histograms}
    if len(sizes) != 1:
        raise ValueError("Histograms cover different numbers of groups")

    columns = [("hist", h.count_type.value, "", "") for h in histograms]
    body = pd.DataFrame({i: h.coverage for i, h in enumerate(histograms)})

    with open(output_file, "w") as f:
        _write_header(f, columns, comments)
        body.to_csv(f, sep="\t", header=False)

    logger.info(f"Generated histogram table: {output_file}")
    return output_file


def read_histogram_table(input_file: Union[str, Path]) -> Tuple[List[Histogram], List[str]]:
    """
    Read histograms written by write_histogram_table.

    Args:
        input_file: Histogram TSV

    Returns:
        Tuple of (histograms, comment lines)

    Raises:
        ValidationError: The table is malformed
    """
    input_file = Path(input_file)
    if not input_file.exists():
        raise FileNotFoundError(f"Histogram table not found: {input_file}")

    with open(input_file, "r") as f:
        lines = f.read().splitlines()

    comments = []
    while lines and lines[0].startswith("#"):
        comments.append(lines.pop(0))

    if len(lines) < len(HEADER_ROWS) + 2:
        raise ValidationError(f"Histogram table {input_file} is truncated", stage="input")

    header = [line.split("\t") for line in lines[:len(HEADER_ROWS) + 1]]
    if header[0][0] != TABLE_TAG or any(tag != "hist" for tag in header[0][1:]) \
            or len(header[0]) < 2:
        raise ValidationError(
            f"{input_file} is not a histogram table (header {header[0]})", stage="input"
        )
    if header[1][0] != "count" or len(header[1]) != len(header[0]):
        raise ValidationError(f"{input_file} has a malformed count row", stage="input")

    try:
        count_types = [CountType.parse(name) for name in header[1][1:]]
    except ConfigurationError as e:
        raise ValidationError(f"{input_file}: {e}", stage="input")

    body = "\n".join(lines[len(HEADER_ROWS) + 1:])
    table = pd.read_csv(io.StringIO(body), sep="\t", header=None, index_col=0)
    if table.shape[1] != len(count_types):
        raise ValidationError(f"{input_file} has rows of inconsistent width", stage="input")
    if not np.array_equal(table.index.to_numpy(), np.arange(len(table))):
        raise ValidationError(
            f"{input_file} coverage column is not contiguous from 0", stage="input"
        )
    if not all(np.issubdtype(dtype, np.integer) for dtype in table.dtypes):
        raise ValidationError(f"{input_file} holds non-integer weights", stage="input")

    histograms = [
        Histogram(count_type, table.iloc[:, i].to_numpy(dtype=np.int64))
        for i, count_type in enumerate(count_types)
    ]
    logger.info(
        f"Read {len(histograms)} histograms over {len(table) - 1} groups from {input_file}"
    )
    return histograms, comments


def write_growth_table(
    curves: Sequence[GrowthCurve],
    output_file: Union[str, Path],
    histograms: Optional[Sequence[Histogram]] = None,
    comments: Optional[List[str]] = None
) -> Path:
    """
    Write growth curves as TSV, one column per (count type, threshold spec).

    Rows are sample sizes 1..n; when histograms are given their columns are
    prepended and rows start at coverage 0. Cells without a value are blank.

    Args:
        curves: Growth curves of equal length
        output_file: Output file path
        histograms: Optional histograms to include
        comments: Lines written as '#' comments before the header

    Returns:
        Path to generated file
    """
    output_file = Path(output_file)
    lengths = {len(c) for c in curves}
    if len(lengths) > 1:
        raise ValueError("Growth curves have different lengths")
    n = lengths.pop() if lengths else 0

    columns = []
    data = {}
    start = 1
    last = n
    if histograms:
        start = 0
        last = max([n] + [h.n_groups for h in histograms])
        for h in histograms:
            columns.append(("hist", h.count_type.value, "", ""))
            data[len(data)] = pd.Series(h.coverage, index=range(len(h.coverage)))
    for curve in curves:
        columns.append((
            "growth" if curve.mode == "averaged" else "ordered-growth",
            curve.count_type.value,
            str(curve.spec.coverage),
            curve.spec.quorum_label
        ))
        data[len(data)] = pd.Series(curve.values, index=range(1, n + 1))

    body = pd.DataFrame(data, index=range(start, last + 1))

    with open(output_file, "w") as f:
        _write_header(f, columns, comments)
        body.to_csv(f, sep="\t", header=False, na_rep="")

    logger.info(f"Generated growth table: {output_file}")
    return output_file


def write_coverage_table(table: pd.DataFrame, output_file: Union[str, Path]) -> Path:
    """Write the items x groups coverage table."""
    output_file = Path(output_file)
    table.to_csv(output_file, sep="\t")
    logger.info(f"Generated coverage table: {output_file}")
    return output_file


def write_dissimilarity_table(
    matrix: pd.DataFrame,
    output_file: Union[str, Path],
    order: Optional[Sequence[str]] = None
) -> Path:
    """Write the group dissimilarity matrix, optionally reordered."""
    output_file = Path(output_file)
    if order is not None:
        matrix = matrix.loc[list(order), list(order)]
    matrix.to_csv(output_file, sep="\t")
    logger.info(f"Generated dissimilarity table: {output_file}")
    return output_file
