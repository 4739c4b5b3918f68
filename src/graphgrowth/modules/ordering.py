"""Similarity based group ordering by hierarchical clustering."""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy import sparse
from scipy.cluster.hierarchy import linkage, optimal_leaf_ordering
from scipy.spatial.distance import squareform

from graphgrowth.core.exceptions import ConfigurationError
from graphgrowth.modules.coverage import CoverageSets

logger = logging.getLogger(__name__)

# methods that are valid on arbitrary (non euclidean) distances
LINKAGE_METHODS = ("single", "complete", "average", "weighted")


def incidence_matrix(
    coverage: CoverageSets,
    weighted: bool = False
) -> sparse.csc_matrix:
    """Sparse items x groups matrix of the coverage sets, 0/1 or item weights."""
    rows = []
    cols = []
    for group_id in range(coverage.n_groups):
        items = np.flatnonzero(coverage.group_mask(group_id))
        rows.append(items)
        cols.append(np.full(len(items), group_id, dtype=np.int64))
    if rows:
        rows = np.concatenate(rows)
        cols = np.concatenate(cols)
    else:
        rows = np.zeros(0, dtype=np.int64)
        cols = np.zeros(0, dtype=np.int64)
    if weighted:
        data = coverage.weights[rows].astype(np.float64)
    else:
        data = np.ones(len(rows), dtype=np.float64)
    return sparse.csc_matrix((data, (rows, cols)), shape=(coverage.n_items, coverage.n_groups))


def dissimilarity_matrix(
    coverage: CoverageSets,
    labels: Optional[Sequence[str]] = None
) -> pd.DataFrame:
    """
    Weighted Jaccard distance between the covered item sets of all groups.

    ``d(A, B) = w(A xor B) / w(A or B)`` with items weighted by their
    count type weight; two groups covering nothing have distance 0.

    Args:
        coverage: Coverage sets
        labels: Group labels by group id (default: group ids)

    Returns:
        Symmetric n x n DataFrame
    """
    n = coverage.n_groups
    if labels is None:
        labels = [str(i) for i in range(n)]
    if len(labels) != n:
        raise ValueError(f"Expected {n} labels, got {len(labels)}")

    if n == 0:
        return pd.DataFrame(np.zeros((0, 0)), index=[], columns=[])

    incidence = incidence_matrix(coverage)
    weighted = incidence_matrix(coverage, weighted=True)
    shared = np.asarray((incidence.T @ weighted).todense(), dtype=np.float64)
    sizes = np.diag(shared)
    union = sizes[:, None] + sizes[None, :] - shared

    with np.errstate(divide="ignore", invalid="ignore"):
        distance = np.where(union > 0, (union - shared) / union, 0.0)
    distance = (distance + distance.T) / 2
    np.fill_diagonal(distance, 0.0)

    if n > 1:
        condensed = squareform(distance, checks=False)
        logger.info(
            f"Distance matrix: {distance.shape}, mean distance {np.mean(condensed):.3f}"
        )

    return pd.DataFrame(distance, index=list(labels), columns=list(labels))


@dataclass
class MergeNode:
    """One merge of the cluster tree; children address leaves or merges."""
    left: int
    right: int
    distance: float
    size: int


@dataclass
class ClusterTree:
    """
    Binary merge tree stored as an arena.

    Ids below ``n_leaves`` are leaves, id ``n_leaves + i`` is ``merges[i]``.
    """
    n_leaves: int
    merges: List[MergeNode] = field(default_factory=list)

    @classmethod
    def from_linkage(cls, Z: np.ndarray) -> "ClusterTree":
        """Wrap a scipy linkage matrix."""
        merges = [MergeNode(int(row[0]), int(row[1]), float(row[2]), int(row[3])) for row in Z]
        return cls(n_leaves=len(merges) + 1, merges=merges)

    @property
    def root(self) -> Optional[int]:
        if self.n_leaves == 0:
            return None
        return self.n_leaves + len(self.merges) - 1

    def leaf_order(self) -> List[int]:
        """Leaves from left to right."""
        root = self.root
        if root is None:
            return []
        order = []
        stack = [root]
        while stack:
            node = stack.pop()
            if node < self.n_leaves:
                order.append(node)
            else:
                merge = self.merges[node - self.n_leaves]
                stack.append(merge.right)
                stack.append(merge.left)
        return order


def cluster_groups(
    distance: np.ndarray,
    method: str = "average",
    optimal: bool = False
) -> ClusterTree:
    """
    Hierarchical clustering of groups.

    Args:
        distance: Square symmetric distance matrix
        method: Linkage policy
        optimal: Reorder leaves so that adjacent leaves are most similar

    Returns:
        ClusterTree over all groups
    """
    if method not in LINKAGE_METHODS:
        raise ConfigurationError(
            f"Unknown linkage '{method}' (choose from {', '.join(LINKAGE_METHODS)})"
        )
    distance = np.asarray(distance, dtype=np.float64)
    n = distance.shape[0]
    if n < 2:
        return ClusterTree(n_leaves=n)

    condensed = squareform(distance, checks=False)
    Z = linkage(condensed, method=method)
    if optimal:
        Z = optimal_leaf_ordering(Z, condensed)
    return ClusterTree.from_linkage(Z)


def optimize_order(
    coverage: CoverageSets,
    method: str = "average",
    optimal: bool = False,
    labels: Optional[Sequence[str]] = None
) -> Tuple[List[int], pd.DataFrame]:
    """
    Order groups so that groups with similar coverage profiles are adjacent.

    Args:
        coverage: Coverage sets of all groups
        method: Linkage policy
        optimal: Use optimal leaf ordering
        labels: Group labels for the returned matrix

    Returns:
        Tuple of (group ids in order, dissimilarity matrix)
    """
    logger.info(f"Deriving group order by {method} linkage over {coverage.n_groups} groups")
    matrix = dissimilarity_matrix(coverage, labels)
    tree = cluster_groups(matrix.to_numpy(), method=method, optimal=optimal)
    order = tree.leaf_order()

    if sorted(order) != list(range(coverage.n_groups)):
        raise RuntimeError("Cluster tree leaf order is not a permutation of the groups")

    return order, matrix
