"""Tests for coverage sets and histograms."""

import numpy as np
import pytest

from graphgrowth.core.types import CountType
from graphgrowth.core.exceptions import ValidationError
from graphgrowth.modules.coverage import (
    byte_chunks, calc_histograms, count_coverage, count_occurrences
)
from graphgrowth.modules.graph import GraphModel
from graphgrowth.modules.grouping import GroupIndex
from graphgrowth.modules.histogram import Histogram


class TestCoverageSets:
    """Coverage sets of individual items."""

    def test_node_members(self, small_graph):
        """Each node knows which groups traverse it."""
        groups = GroupIndex(small_graph.path_names)
        coverage = count_coverage(small_graph, groups, CountType.NODE, threads=1)
        assert coverage.coverage_counts().tolist() == [4, 2, 4, 2, 0]
        assert coverage.members(1) == [0, 2]
        assert coverage.members(3) == [1, 2]
        assert coverage.members(4) == []

    def test_edge_members(self, small_graph):
        """A reverse traversal covers the forward edge."""
        groups = GroupIndex(small_graph.path_names)
        coverage = count_coverage(small_graph, groups, CountType.EDGE, threads=1)
        # s1+,s3+ is walked forward by HG1#2 and backward by HG3#1
        assert coverage.members(2) == [1, 3]
        assert coverage.coverage_counts().tolist() == [2, 2, 2, 2]

    def test_revisits_count_once(self):
        """A group traversing an item many times covers it once."""
        graph = GraphModel.from_records(
            [("a", 4), ("b", 1)],
            [("a", "+", "b", "+"), ("b", "+", "a", "+")],
            [("p1", [("a", "+"), ("b", "+"), ("a", "+"), ("b", "+")]),
             ("p2", [("a", "+")])]
        )
        groups = GroupIndex(graph.path_names)
        coverage = count_coverage(graph, groups, CountType.NODE, threads=1)
        assert coverage.coverage_counts().tolist() == [2, 1]
        assert count_occurrences(graph, groups, CountType.NODE).tolist() == [[2, 1], [2, 0]]

    def test_paths_of_a_group_merge(self, small_graph):
        """Coverage counts distinct groups, not paths."""
        groups = GroupIndex(small_graph.path_names, group_by="sample")
        coverage = count_coverage(small_graph, groups, CountType.NODE, threads=1)
        assert coverage.coverage_counts().tolist() == [3, 2, 3, 2, 0]

    @pytest.mark.parametrize("threads", [2, 3, 4, 8])
    def test_thread_count_does_not_matter(self, small_graph, threads):
        """Chunked counting equals sequential counting bit for bit."""
        groups = GroupIndex(small_graph.path_names)
        for count_type in (CountType.NODE, CountType.EDGE, CountType.BP):
            sequential = count_coverage(small_graph, groups, count_type, threads=1)
            parallel = count_coverage(small_graph, groups, count_type, threads=threads)
            assert np.array_equal(sequential.bits, parallel.bits)

    def test_many_groups(self):
        """Group ids beyond one byte land in the right bit."""
        names = [f"p{i}" for i in range(20)]
        graph = GraphModel.from_records(
            [("a", 1), ("b", 1)], [],
            [(name, [("a", "+")] if i % 3 else [("b", "+")]) for i, name in enumerate(names)]
        )
        groups = GroupIndex(graph.path_names)
        coverage = count_coverage(graph, groups, CountType.NODE, threads=3)
        assert coverage.bits.shape == (2, 3)
        assert coverage.members(1) == [0, 3, 6, 9, 12, 15, 18]
        assert coverage.presence_matrix()[:, 18].tolist() == [False, True]
        assert coverage.group_mask(19).tolist() == [True, False]

    @pytest.mark.parametrize("n_chunks", [1, 2, 3, 5, 64])
    def test_byte_chunks(self, n_chunks):
        """Chunks hold whole bytes and cover every column once."""
        chunks = byte_chunks(20, n_chunks)
        assert chunks[0][0] == 0
        assert chunks[-1][1] == 3
        for (_, end), (start, _) in zip(chunks, chunks[1:]):
            assert end == start
        assert all(end > start for start, end in chunks)
        assert len(chunks) == min(n_chunks, 3)
        assert byte_chunks(0, 4) == []

    @pytest.mark.parametrize("threads", [2, 3, 5, 16])
    def test_groups_not_a_multiple_of_eight(self, threads):
        """Chunked counting of 21 groups equals sequential counting."""
        rng = np.random.default_rng(3)
        nodes = [(f"n{i}", int(rng.integers(1, 9))) for i in range(12)]
        paths = []
        for p in range(21):
            visited = rng.choice(12, size=int(rng.integers(1, 6)), replace=False)
            paths.append((f"p{p}", [(f"n{i}", "+") for i in visited]))
        graph = GraphModel.from_records(nodes, [], paths)
        groups = GroupIndex(graph.path_names)
        sequential = count_coverage(graph, groups, CountType.NODE, threads=1)
        parallel = count_coverage(graph, groups, CountType.NODE, threads=threads)
        assert parallel.bits.shape == (12, 3)
        assert np.array_equal(sequential.bits, parallel.bits)

    def test_select_groups(self, small_graph):
        """Restricting to some groups renumbers them in the given order."""
        groups = GroupIndex(small_graph.path_names)
        coverage = count_coverage(small_graph, groups, CountType.NODE, threads=1)
        selected = coverage.select_groups([3, 0])
        assert selected.n_groups == 2
        assert selected.coverage_counts().tolist() == [2, 1, 2, 0, 0]
        assert selected.members(1) == [1]
        assert selected.histogram().coverage.tolist() == [0, 1, 2]
        assert selected.histogram().uncovered_weight == 2

    def test_inconsistent_graph_is_rejected(self):
        """Counting edges over a missing link fails before counting."""
        graph = GraphModel.from_records(
            [("a", 1), ("b", 1)], [], [("p", [("a", "+"), ("b", "+")])]
        )
        groups = GroupIndex(graph.path_names)
        with pytest.raises(ValidationError):
            count_coverage(graph, groups, CountType.EDGE)


class TestHistogram:
    """Aggregation into coverage histograms."""

    def test_node_histogram(self, small_graph):
        """Uncovered items are kept out of bucket 0 by default."""
        groups = GroupIndex(small_graph.path_names)
        hists = calc_histograms(small_graph, groups, [CountType.ALL], threads=1)
        assert hists[CountType.NODE].coverage.tolist() == [0, 0, 2, 0, 2]
        assert hists[CountType.NODE].uncovered_weight == 1
        assert hists[CountType.EDGE].coverage.tolist() == [0, 0, 4, 0, 0]
        assert hists[CountType.BP].coverage.tolist() == [0, 0, 7, 0, 30]
        assert hists[CountType.BP].uncovered_weight == 7

    def test_include_uncovered(self, small_graph):
        """Bucket 0 holds uncovered weight on request."""
        groups = GroupIndex(small_graph.path_names)
        hists = calc_histograms(small_graph, groups, [CountType.BP], threads=1,
                                include_uncovered=True)
        assert hists[CountType.BP].coverage.tolist() == [7, 0, 7, 0, 30]
        assert hists[CountType.BP].uncovered_weight == 0

    @pytest.mark.parametrize("count_type", [CountType.NODE, CountType.EDGE, CountType.BP])
    def test_conservation(self, small_graph, count_type):
        """The histogram accounts for the weight of every item."""
        for group_by in ("path", "sample", "haplotype"):
            groups = GroupIndex(small_graph.path_names, group_by=group_by)
            hist = count_coverage(small_graph, groups, count_type, threads=2).histogram()
            assert hist.n_groups == len(groups)
            assert hist.universe_weight == int(small_graph.item_weights(count_type).sum())

    def test_random_conservation(self, random_coverage):
        """Histogram buckets match coverage counts."""
        hist = random_coverage.histogram(include_uncovered=True)
        counts = random_coverage.coverage_counts()
        for c in range(hist.n_groups + 1):
            assert hist.coverage[c] == random_coverage.weights[counts == c].sum()
        assert hist.total_weight == random_coverage.weights.sum()

    def test_no_groups(self, small_graph):
        """Selecting no paths yields the histogram [0]."""
        groups = GroupIndex(small_graph.path_names, subset=[])
        hist = count_coverage(small_graph, groups, CountType.NODE).histogram()
        assert hist.coverage.tolist() == [0]
        assert hist.uncovered_weight == 5

    def test_weight_at_least(self):
        """Suffix sums of the buckets."""
        hist = Histogram(CountType.NODE, [1, 2, 3, 4])
        assert hist.weight_at_least(0) == 10
        assert hist.weight_at_least(2) == 7
        assert hist.weight_at_least(4) == 0
        with pytest.raises(ValueError):
            Histogram(CountType.NODE, [])
