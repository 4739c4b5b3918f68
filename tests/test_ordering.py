"""Tests for dissimilarity matrices and cluster based group orders."""

import numpy as np
import pytest
from scipy.cluster.hierarchy import leaves_list, linkage
from scipy.spatial.distance import squareform

from graphgrowth.core.types import CountType
from graphgrowth.core.exceptions import ConfigurationError
from graphgrowth.modules.coverage import count_coverage
from graphgrowth.modules.grouping import GroupIndex
from graphgrowth.modules.ordering import (
    LINKAGE_METHODS, ClusterTree, cluster_groups, dissimilarity_matrix,
    incidence_matrix, optimize_order
)


class TestDissimilarity:
    """Weighted Jaccard distances between groups."""

    def test_node_distances(self, small_graph):
        """Distances follow shared and total covered items."""
        groups = GroupIndex(small_graph.path_names)
        coverage = count_coverage(small_graph, groups, CountType.NODE)
        matrix = dissimilarity_matrix(coverage, groups.labels)
        assert list(matrix.index) == groups.labels
        d = matrix.to_numpy()
        assert d[0, 1] == pytest.approx(0.5)
        assert d[0, 2] == pytest.approx(0.25)
        assert d[0, 3] == pytest.approx(1 / 3)
        assert d[2, 3] == pytest.approx(0.5)
        assert np.allclose(d, d.T)
        assert np.all(np.diag(d) == 0)

    def test_basepair_weights(self, small_graph):
        """Basepair distances weigh items by length."""
        groups = GroupIndex(small_graph.path_names)
        coverage = count_coverage(small_graph, groups, CountType.BP)
        d = dissimilarity_matrix(coverage).to_numpy()
        # HG1#1 {s1, s2, s3} = 35 bp, HG3 {s1, s3} = 30 bp
        assert d[0, 3] == pytest.approx(5 / 35)

    def test_empty_groups(self, make_coverage):
        """Two groups covering nothing are identical."""
        coverage = make_coverage(np.array([[1, 0, 0], [1, 0, 0]], dtype=bool))
        d = dissimilarity_matrix(coverage).to_numpy()
        assert d[1, 2] == 0.0
        assert d[0, 1] == 1.0

    def test_incidence(self, random_coverage):
        """The sparse incidence matrix equals the presence matrix."""
        dense = incidence_matrix(random_coverage).toarray()
        assert np.array_equal(dense.astype(bool), random_coverage.presence_matrix())


class TestClusterTree:
    """Merge tree and leaf order."""

    def test_leaf_order_matches_scipy(self, random_coverage):
        """The left to right leaf order equals scipy's."""
        matrix = dissimilarity_matrix(random_coverage).to_numpy()
        Z = linkage(squareform(matrix, checks=False), method="average")
        tree = ClusterTree.from_linkage(Z)
        assert tree.leaf_order() == leaves_list(Z).tolist()
        assert tree.root == 2 * random_coverage.n_groups - 2
        assert tree.merges[-1].size == random_coverage.n_groups

    def test_small_trees(self):
        """Zero or one group need no merges."""
        assert cluster_groups(np.zeros((0, 0))).leaf_order() == []
        assert cluster_groups(np.zeros((1, 1))).leaf_order() == [0]

    def test_unknown_linkage(self):
        """Only linkages valid on arbitrary distances are accepted."""
        with pytest.raises(ConfigurationError):
            cluster_groups(np.zeros((3, 3)), method="ward")


class TestOptimizeOrder:
    """Cluster based group orders."""

    @pytest.mark.parametrize("method", LINKAGE_METHODS)
    @pytest.mark.parametrize("optimal", [False, True])
    def test_order_is_permutation(self, random_coverage, method, optimal):
        """Every group appears exactly once."""
        order, matrix = optimize_order(random_coverage, method=method, optimal=optimal)
        assert sorted(order) == list(range(random_coverage.n_groups))
        assert matrix.shape == (random_coverage.n_groups, random_coverage.n_groups)

    def test_similar_groups_are_adjacent(self, make_coverage):
        """Two pairs of identical groups end up next to each other."""
        presence = np.array([
            [1, 0, 1, 0],
            [1, 0, 1, 0],
            [0, 1, 0, 1],
            [0, 1, 0, 1],
            [1, 1, 1, 1],
        ], dtype=bool)
        order, _ = optimize_order(make_coverage(presence))
        position = {g: i for i, g in enumerate(order)}
        assert abs(position[0] - position[2]) == 1
        assert abs(position[1] - position[3]) == 1

    def test_no_groups(self, small_graph):
        """An empty selection yields an empty order."""
        groups = GroupIndex(small_graph.path_names, subset=[])
        coverage = count_coverage(small_graph, groups, CountType.NODE)
        order, matrix = optimize_order(coverage)
        assert order == []
        assert matrix.shape == (0, 0)
