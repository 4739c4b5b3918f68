"""Pytest configuration and shared fixtures."""

import pytest
import numpy as np

from graphgrowth.modules.graph import GraphModel
from graphgrowth.modules.coverage import CoverageSets
from graphgrowth.core.types import CountType


SMALL_NODES = [("s1", 10), ("s2", 5), ("s3", 20), ("s4", 2), ("s5", 7)]
SMALL_LINKS = [
    ("s1", "+", "s2", "+"),
    ("s2", "+", "s3", "+"),
    ("s1", "+", "s3", "+"),
    ("s3", "+", "s4", "+"),
]
SMALL_PATHS = [
    ("HG1#1#chr1", "s1+,s2+,s3+"),
    ("HG1#2#chr1", "s1+,s3+,s4+"),
    ("HG2#1#chr1", "s1+,s2+,s3+,s4+"),
    ("HG3#1#chr1", "s3-,s1-"),
]


def _steps(text):
    return [(step[:-1], step[-1]) for step in text.split(",")]


@pytest.fixture
def small_graph():
    """
    Four PanSN paths over five nodes; s5 is on no path.

    Node coverage: s1 and s3 by all four paths, s2 and s4 by two.
    """
    return GraphModel.from_records(
        SMALL_NODES,
        SMALL_LINKS,
        [(name, _steps(steps)) for name, steps in SMALL_PATHS]
    )


@pytest.fixture
def scenario_graph():
    """One node x traversed by groups A and B; group C covers nothing."""
    return GraphModel.from_records(
        [("x", 5)],
        [],
        [("A", [("x", "+")]), ("B", [("x", "+")]), ("C", [])]
    )


@pytest.fixture
def graph_dir(tmp_path):
    """The small graph written as record tables."""
    directory = tmp_path / "graph"
    directory.mkdir()
    with open(directory / "nodes.tsv", "w") as f:
        f.write("name\tlength\n")
        for name, length in SMALL_NODES:
            f.write(f"{name}\t{length}\n")
    with open(directory / "links.tsv", "w") as f:
        f.write("from\tfrom_orient\tto\tto_orient\n")
        for link in SMALL_LINKS:
            f.write("\t".join(link) + "\n")
    with open(directory / "paths.tsv", "w") as f:
        f.write("name\tsteps\n")
        for name, steps in SMALL_PATHS:
            f.write(f"{name}\t{steps}\n")
    return directory


def coverage_from_presence(presence, weights=None, count_type=CountType.NODE):
    """Build coverage sets from a dense items x groups boolean matrix."""
    presence = np.asarray(presence, dtype=bool)
    n_items, n_groups = presence.shape
    if weights is None:
        weights = np.ones(n_items, dtype=np.int64)
    bits = np.packbits(presence, axis=1, bitorder="little")
    return CoverageSets(count_type, n_groups, bits, np.asarray(weights, dtype=np.int64))


@pytest.fixture
def random_coverage():
    """Seeded random coverage of 40 items over 12 groups."""
    rng = np.random.default_rng(7)
    presence = rng.random((40, 12)) < 0.4
    weights = rng.integers(1, 50, size=40)
    return coverage_from_presence(presence, weights)


@pytest.fixture
def make_coverage():
    """Factory for coverage sets from a presence matrix."""
    return coverage_from_presence
