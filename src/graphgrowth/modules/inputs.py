"""Loading of tabular graph records and selection, grouping and order files."""

import logging
from pathlib import Path
from typing import Dict, List, Tuple, Union

import pandas as pd

from graphgrowth.core.exceptions import ValidationError
from graphgrowth.modules.graph import GraphModel

logger = logging.getLogger(__name__)

NODE_COLUMNS = ["name", "length"]
LINK_COLUMNS = ["from", "from_orient", "to", "to_orient"]
PATH_COLUMNS = ["name", "steps"]


def parse_steps(steps: str) -> List[Tuple[str, str]]:
    """
    Parse a comma separated step list such as 's1+,s2-'.

    Args:
        steps: Steps, each a node name followed by '+' or '-'

    Returns:
        List of (node, orientation) pairs
    """
    parsed = []
    for step in str(steps).split(","):
        step = step.strip()
        if not step:
            continue
        if len(step) < 2 or step[-1] not in "+-":
            raise ValidationError(f"Malformed path step: {step!r}")
        parsed.append((step[:-1], step[-1]))
    return parsed


def _drop_comments(table: pd.DataFrame) -> pd.DataFrame:
    # whole-line comments only, names may contain '#'
    first = table.iloc[:, 0]
    return table.loc[~first.str.startswith("#")].reset_index(drop=True)


def _read_table(path: Path, columns: List[str]) -> pd.DataFrame:
    table = _drop_comments(pd.read_csv(path, sep="\t", dtype=str, keep_default_na=False))
    missing = [c for c in columns if c not in table.columns]
    if missing:
        raise ValidationError(
            f"{path} lacks columns: {', '.join(missing)}",
            errors=[f"missing column {c}" for c in missing],
            stage="input"
        )
    return table


def read_graph_tables(graph_dir: Union[str, Path]) -> GraphModel:
    """
    Load a graph from pre-extracted record tables.

    The directory holds nodes.tsv (name, length), paths.tsv (name, steps)
    and optionally links.tsv (from, from_orient, to, to_orient).

    Args:
        graph_dir: Directory containing the tables

    Returns:
        GraphModel
    """
    graph_dir = Path(graph_dir)
    nodes_file = graph_dir / "nodes.tsv"
    links_file = graph_dir / "links.tsv"
    paths_file = graph_dir / "paths.tsv"

    for required in (nodes_file, paths_file):
        if not required.exists():
            raise FileNotFoundError(f"Graph table not found: {required}")

    nodes = _read_table(nodes_file, NODE_COLUMNS)
    try:
        node_records = [(row.name, int(row.length)) for row in
                        nodes[NODE_COLUMNS].itertuples(index=False)]
    except ValueError as e:
        raise ValidationError(f"Invalid node length in {nodes_file}: {e}", stage="input")

    link_records = []
    if links_file.exists():
        links = _read_table(links_file, LINK_COLUMNS)
        link_records = list(links[LINK_COLUMNS].itertuples(index=False, name=None))
    else:
        logger.warning(f"No links table in {graph_dir}; edge counting will fail on any path")

    paths = _read_table(paths_file, PATH_COLUMNS)
    path_records = [(row.name, parse_steps(row.steps)) for row in
                    paths[PATH_COLUMNS].itertuples(index=False)]

    return GraphModel.from_records(node_records, link_records, path_records)


def read_name_list(path: Union[str, Path]) -> List[str]:
    """
    Read one name per line; blank lines and '#' comments are skipped.

    Only the first tab separated column is used.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Name list not found: {path}")

    names = []
    with open(path, "r") as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            names.append(line.split("\t")[0])
    logger.info(f"Read {len(names)} names from {path}")
    return names


def read_grouping(path: Union[str, Path]) -> Dict[str, str]:
    """
    Read a path to group mapping (two tab separated columns).

    Args:
        path: Grouping file

    Returns:
        Dictionary path name -> group label
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Grouping file not found: {path}")

    table = _drop_comments(pd.read_csv(path, sep="\t", header=None, dtype=str,
                                       keep_default_na=False))
    if table.shape[1] < 2:
        raise ValidationError(f"Grouping file {path} needs two columns", stage="input")

    grouping = {}
    for path_name, label in table.iloc[:, :2].itertuples(index=False, name=None):
        previous = grouping.setdefault(path_name, label)
        if previous != label:
            raise ValidationError(
                f"Path {path_name} is assigned to groups {previous} and {label}",
                stage="input"
            )
    logger.info(f"Read grouping of {len(grouping)} paths into {len(set(grouping.values()))} groups")
    return grouping
