"""Tests for path grouping and group orders."""

import logging

import pytest

from graphgrowth.core.exceptions import ConfigurationError
from graphgrowth.modules.grouping import GroupIndex, pansn_label


class TestPansn:
    """Labels derived from PanSN path names."""

    def test_labels(self):
        """sample#haplotype#contig splits into sample and haplotype labels."""
        assert pansn_label("HG1#2#chr1", "path") == "HG1#2#chr1"
        assert pansn_label("HG1#2#chr1", "sample") == "HG1"
        assert pansn_label("HG1#2#chr1", "haplotype") == "HG1#2"

    def test_plain_names(self):
        """Names without separators are their own label."""
        assert pansn_label("chr1", "sample") == "chr1"


class TestGroupIndex:
    """Group creation, selection and ordering."""

    def test_one_group_per_path(self, small_graph):
        """By default every path is a group, in order of appearance."""
        groups = GroupIndex(small_graph.path_names)
        assert len(groups) == 4
        assert groups.labels == small_graph.path_names
        assert [g.id for g in groups.groups] == [0, 1, 2, 3]

    def test_group_by_sample(self, small_graph):
        """Haplotypes of one sample form one group."""
        groups = GroupIndex(small_graph.path_names, group_by="sample")
        assert groups.labels == ["HG1", "HG2", "HG3"]
        assert groups.by_label("HG1").paths == ["HG1#1#chr1", "HG1#2#chr1"]

    def test_group_by_haplotype(self, small_graph):
        """Haplotype labels keep sample and haplotype."""
        groups = GroupIndex(small_graph.path_names, group_by="haplotype")
        assert groups.labels == ["HG1#1", "HG1#2", "HG2#1", "HG3#1"]

    def test_subset_by_label(self, small_graph):
        """Subset entries may name groups."""
        groups = GroupIndex(small_graph.path_names, group_by="sample", subset=["HG1", "HG3"])
        assert groups.labels == ["HG1", "HG3"]
        assert "HG2#1#chr1" not in groups.path_to_group

    def test_exclude_by_path(self, small_graph):
        """Exclusion applies to paths before groups are formed."""
        groups = GroupIndex(small_graph.path_names, group_by="sample",
                            exclude=["HG1#2#chr1"])
        assert groups.by_label("HG1").paths == ["HG1#1#chr1"]

    def test_grouping_file(self, small_graph, caplog):
        """Unmapped paths fall back to their own group with a warning."""
        grouping = {"HG1#1#chr1": "X", "HG2#1#chr1": "X", "HG3#1#chr1": "Y"}
        with caplog.at_level(logging.WARNING):
            groups = GroupIndex(small_graph.path_names, grouping=grouping)
        assert groups.labels == ["X", "HG1#2#chr1", "Y"]
        assert "missing from the grouping" in caplog.text

    def test_grouping_excludes_pansn(self, small_graph):
        """A grouping file and PanSN grouping are exclusive."""
        with pytest.raises(ConfigurationError):
            GroupIndex(small_graph.path_names, grouping={}, group_by="sample")

    def test_unknown_group_by(self, small_graph):
        """Only known grouping modes are accepted."""
        with pytest.raises(ConfigurationError):
            GroupIndex(small_graph.path_names, group_by="contig")


class TestOrderBinding:
    """Binding external orders to loaded groups."""

    def test_mismatches_are_reported(self, small_graph, caplog):
        """Unknown names and unlisted groups are returned, not raised."""
        groups = GroupIndex(small_graph.path_names)
        with caplog.at_level(logging.WARNING):
            binding = groups.bind_order(["HG3#1#chr1", "HG1#1#chr1", "nope", "HG3#1#chr1"])
        assert binding.group_ids == [3, 0]
        assert binding.unknown_labels == ["nope"]
        assert binding.unordered_labels == ["HG1#2#chr1", "HG2#1#chr1"]
        assert not binding.is_complete
        assert "not in the graph" in caplog.text

    def test_path_names_resolve_to_groups(self, small_graph):
        """A path name in the order stands for its group."""
        groups = GroupIndex(small_graph.path_names, group_by="sample")
        binding = groups.bind_order(["HG3", "HG1#2#chr1", "HG2"])
        assert binding.group_ids == [2, 0, 1]
        assert binding.is_complete

    def test_apply_order(self, small_graph):
        """Ordinals change, identities do not."""
        groups = GroupIndex(small_graph.path_names)
        groups.apply_order([2, 0])
        assert [g.id for g in groups.ordered()] == [2, 0, 1, 3]
        assert groups.groups[2].label == "HG2#1#chr1"
        with pytest.raises(ConfigurationError):
            groups.apply_order([1, 1])
        with pytest.raises(ConfigurationError):
            groups.apply_order([7])
