"""Per-item group coverage sets and their aggregation into histograms."""

import logging
import multiprocessing
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from graphgrowth.core.types import CountType
from graphgrowth.core.exceptions import ValidationError
from graphgrowth.modules.graph import GraphModel
from graphgrowth.modules.grouping import GroupIndex
from graphgrowth.modules.histogram import Histogram

logger = logging.getLogger(__name__)

# number of set bits of every byte value
POPCOUNT = np.array([bin(i).count("1") for i in range(256)], dtype=np.uint8)


def resolve_threads(threads: Optional[int]) -> int:
    """Thread hint of 0 or None means all CPUs."""
    if not threads or threads < 0:
        return multiprocessing.cpu_count()
    return threads


@dataclass
class CoverageSets:
    """
    Coverage set of every item as a row of a bit arena.

    Bit ``g`` of row ``i`` (byte ``g >> 3``, bit ``g & 7``) is set when group
    ``g`` traverses item ``i``.
    """
    count_type: CountType
    n_groups: int
    bits: np.ndarray
    weights: np.ndarray

    @property
    def n_items(self) -> int:
        return self.bits.shape[0]

    def coverage_counts(self) -> np.ndarray:
        """Number of distinct covering groups per item."""
        if self.bits.shape[1] == 0:
            return np.zeros(self.n_items, dtype=np.int64)
        return POPCOUNT[self.bits].sum(axis=1, dtype=np.int64)

    def members(self, item_id: int) -> List[int]:
        """Ids of the groups covering an item."""
        row = np.unpackbits(self.bits[item_id], count=self.n_groups, bitorder="little")
        return np.flatnonzero(row).tolist()

    def group_mask(self, group_id: int) -> np.ndarray:
        """Boolean mask of the items covered by one group."""
        if not 0 <= group_id < self.n_groups:
            raise IndexError(f"Group id {group_id} out of range")
        column = self.bits[:, group_id >> 3]
        return ((column >> (group_id & 7)) & 1).astype(bool)

    def select_groups(self, group_ids: Sequence[int]) -> "CoverageSets":
        """
        Coverage sets restricted to some groups.

        group_ids[i] becomes group i of the result; other groups are dropped.
        """
        n_groups = len(group_ids)
        bits = np.zeros((self.n_items, (n_groups + 7) // 8), dtype=np.uint8)
        for new_id, group_id in enumerate(group_ids):
            bits[self.group_mask(group_id), new_id >> 3] |= np.uint8(1 << (new_id & 7))
        return CoverageSets(self.count_type, n_groups, bits, self.weights)

    def presence_matrix(self) -> np.ndarray:
        """Dense items x groups boolean matrix."""
        if self.n_groups == 0:
            return np.zeros((self.n_items, 0), dtype=bool)
        return np.unpackbits(
            self.bits, axis=1, count=self.n_groups, bitorder="little"
        ).astype(bool)

    def histogram(self, include_uncovered: bool = False) -> Histogram:
        """
        Aggregate item weights by coverage count.

        Args:
            include_uncovered: Keep items covered by no group in bucket 0

        Returns:
            Histogram with buckets 0..n_groups
        """
        counts = self.coverage_counts()
        coverage = np.zeros(self.n_groups + 1, dtype=np.int64)
        np.add.at(coverage, counts, self.weights)

        uncovered = int(coverage[0])
        if not include_uncovered:
            coverage[0] = 0
        else:
            uncovered = 0

        hist = Histogram(self.count_type, coverage, uncovered_weight=uncovered)
        logger.debug(
            f"Histogram ({self.count_type.value}): total weight {hist.total_weight}, "
            f"uncovered {uncovered}"
        )
        return hist


def byte_chunks(n_groups: int, n_chunks: int) -> List[Tuple[int, int]]:
    """
    Split the byte columns of a bit arena into at most n_chunks ranges.

    Every range holds whole bytes, so each group id (bit) belongs to exactly
    one range and chunks never share a column.

    Returns:
        (first_byte, end_byte) pairs covering all columns in order
    """
    n_bytes = (n_groups + 7) // 8
    n_chunks = max(1, min(n_chunks, n_bytes))
    bounds = np.linspace(0, n_bytes, n_chunks + 1).astype(int)
    return [(int(a), int(b)) for a, b in zip(bounds[:-1], bounds[1:]) if b > a]


def _chunk_coverage(
    graph: GraphModel,
    groups: GroupIndex,
    first_byte: int,
    end_byte: int,
    count_type: CountType,
    n_items: int
) -> Tuple[int, np.ndarray]:
    """
    Bit arena columns first_byte..end_byte for the groups stored in them.
    Designed for thread pool workers; reads graph and groups only.
    """
    bits = np.zeros((n_items, end_byte - first_byte), dtype=np.uint8)
    touched = np.zeros(n_items, dtype=bool)
    for group_id in range(first_byte * 8, min(end_byte * 8, len(groups))):
        touched[:] = False
        # revisits set the same flag again
        for path in groups.group_paths(group_id):
            touched[graph.path_occurrences(path, count_type)] = True
        bits[touched, (group_id >> 3) - first_byte] |= np.uint8(1 << (group_id & 7))
    return first_byte, bits


def count_coverage(
    graph: GraphModel,
    groups: GroupIndex,
    count_type: CountType,
    threads: Optional[int] = None
) -> CoverageSets:
    """
    Compute the coverage set of every item.

    Groups are split on byte boundaries of the bit arena; each chunk fills
    its own columns, which are ORed into one arena as chunks finish, so the
    result does not depend on the number of threads.

    Args:
        graph: Validated graph model
        groups: Group assignment of the selected paths
        count_type: NODE, EDGE or BP
        threads: Parallelism hint (0 or None: all CPUs)

    Returns:
        CoverageSets of the count type

    Raises:
        ValidationError: The graph has inconsistent traversals
    """
    if count_type is CountType.ALL:
        raise ValueError("count_coverage needs a concrete count type")

    validation = graph.validate([count_type])
    if not validation.is_valid:
        raise ValidationError(
            f"Graph validation failed: {validation.errors[0]}",
            errors=validation.errors,
            stage="coverage"
        )

    n_items = graph.n_items(count_type)
    n_groups = len(groups)
    n_bytes = (n_groups + 7) // 8
    weights = graph.item_weights(count_type)

    chunks = byte_chunks(n_groups, resolve_threads(threads))
    if len(chunks) <= 1 or n_items == 0:
        _, bits = _chunk_coverage(graph, groups, 0, n_bytes, count_type, n_items)
    else:
        logger.info(
            f"Counting {count_type.value} coverage of {n_groups} groups "
            f"in {len(chunks)} chunks"
        )
        bits = np.zeros((n_items, n_bytes), dtype=np.uint8)
        done = 0
        with ThreadPoolExecutor(max_workers=len(chunks)) as executor:
            futures = [
                executor.submit(_chunk_coverage, graph, groups, first_byte, end_byte,
                                count_type, n_items)
                for first_byte, end_byte in chunks
            ]
            for future in as_completed(futures):
                first_byte, block = future.result()
                bits[:, first_byte:first_byte + block.shape[1]] |= block
                done += 1
                logger.debug(f"Collected {done}/{len(chunks)} coverage chunks")

    coverage = CoverageSets(count_type, n_groups, bits, weights)
    logger.info(
        f"Computed {count_type.value} coverage of {n_items} items over {n_groups} groups"
    )
    return coverage


def count_occurrences(
    graph: GraphModel,
    groups: GroupIndex,
    count_type: CountType
) -> np.ndarray:
    """
    Number of traversals of every item by every group, repeats included.

    Returns:
        Integer matrix of shape (items, groups)
    """
    n_items = graph.n_items(count_type)
    counts = np.zeros((n_items, len(groups)), dtype=np.int64)
    for group in groups.groups:
        for path in group.paths:
            counts[:, group.id] += np.bincount(
                graph.path_occurrences(path, count_type), minlength=n_items
            )
    return counts


def calc_histograms(
    graph: GraphModel,
    groups: GroupIndex,
    count_types: List[CountType],
    threads: Optional[int] = None,
    include_uncovered: bool = False
) -> Dict[CountType, Histogram]:
    """
    Coverage histogram for each requested count type.

    Args:
        graph: Graph model
        groups: Group assignment
        count_types: Count types, ALL is expanded
        threads: Parallelism hint
        include_uncovered: Keep zero-coverage items in bucket 0

    Returns:
        Histograms keyed by count type
    """
    histograms = {}
    for requested in count_types:
        for count_type in requested.expand():
            if count_type in histograms:
                continue
            coverage = count_coverage(graph, groups, count_type, threads)
            histograms[count_type] = coverage.histogram(include_uncovered)
    return histograms
