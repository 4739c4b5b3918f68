"""Per-item, per-group coverage table."""

import logging
from typing import Literal

import pandas as pd

from graphgrowth.core.types import CountType
from graphgrowth.modules.coverage import count_coverage, count_occurrences
from graphgrowth.modules.graph import GraphModel
from graphgrowth.modules.grouping import GroupIndex

logger = logging.getLogger(__name__)


def build_coverage_table(
    graph: GraphModel,
    groups: GroupIndex,
    count_type: CountType,
    mode: Literal["presence", "count"] = "presence",
    include_uncovered: bool = True,
    add_total: bool = False,
    threads: int = 0
) -> pd.DataFrame:
    """
    Items x groups matrix of presence (0/1) or traversal counts.

    Args:
        graph: Graph model
        groups: Group assignment
        count_type: NODE, EDGE or BP (BP reports node rows)
        mode: 'presence' or 'count'
        include_uncovered: Keep items covered by no group
        add_total: Append a 'total' column with the row sums
        threads: Parallelism hint

    Returns:
        DataFrame indexed by item name with one column per group label
    """
    coverage = count_coverage(graph, groups, count_type, threads)
    if mode == "presence":
        values = coverage.presence_matrix().astype(int)
    elif mode == "count":
        values = count_occurrences(graph, groups, count_type)
    else:
        raise ValueError(f"Unknown table mode: {mode}")

    table = pd.DataFrame(values, index=graph.item_names(count_type), columns=groups.labels)
    table.index.name = count_type.value

    if not include_uncovered:
        table = table.loc[coverage.coverage_counts() > 0]

    if add_total:
        table["total"] = table.sum(axis=1)

    logger.info(f"Coverage table shape: {table.shape}")
    return table
