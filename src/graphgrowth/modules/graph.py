"""Structural graph model: nodes, links and path traversals."""

import logging
from typing import Dict, List, Tuple, Iterable, Optional, Any

import numpy as np

from graphgrowth.core.types import CountType, ValidationResult
from graphgrowth.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

# (node id, reverse) of both link ends
EdgeKey = Tuple[int, bool, int, bool]

ORIENTATIONS = {"+": False, ">": False, "-": True, "<": True}


def parse_orientation(orient: str) -> bool:
    """Return True for reverse orientation ('-' or '<')."""
    try:
        return ORIENTATIONS[orient]
    except KeyError:
        raise ValidationError(f"Invalid orientation: {orient!r}")


def canonical_edge(u: int, u_rev: bool, v: int, v_rev: bool) -> EdgeKey:
    """A link and its reverse complement map to the same key."""
    forward = (u, u_rev, v, v_rev)
    backward = (v, not v_rev, u, not u_rev)
    return min(forward, backward)


class GraphModel:
    """
    Nodes, links and paths of a pangenome graph.

    Items are addressed by dense integer ids per count type: node ids serve
    both node and basepair counting, link ids serve edge counting.
    """

    def __init__(self) -> None:
        self.node_names: List[str] = []
        self.node_lengths: List[int] = []
        self.node_index: Dict[str, int] = {}
        self.edge_keys: List[EdgeKey] = []
        self.edge_index: Dict[EdgeKey, int] = {}
        self.path_names: List[str] = []
        self._path_nodes: Dict[str, np.ndarray] = {}
        self._path_reverse: Dict[str, np.ndarray] = {}
        self._edge_occurrences: Dict[str, np.ndarray] = {}

    @classmethod
    def from_records(
        cls,
        nodes: Iterable[Tuple[str, int]],
        links: Iterable[Tuple[str, str, str, str]],
        paths: Iterable[Tuple[str, Iterable[Tuple[str, str]]]]
    ) -> "GraphModel":
        """
        Build a graph from already parsed records.

        Args:
            nodes: (name, length) pairs
            links: (from, from_orient, to, to_orient) tuples
            paths: (name, steps) pairs, steps being (node, orient) pairs

        Returns:
            Populated GraphModel
        """
        graph = cls()
        for name, length in nodes:
            graph.add_node(name, length)
        for u, u_orient, v, v_orient in links:
            graph.add_link(u, u_orient, v, v_orient)
        for name, steps in paths:
            graph.add_path(name, steps)
        logger.info(
            f"Loaded graph with {graph.node_count} nodes, {graph.edge_count} edges "
            f"and {len(graph.path_names)} paths"
        )
        return graph

    @property
    def node_count(self) -> int:
        return len(self.node_names)

    @property
    def edge_count(self) -> int:
        return len(self.edge_keys)

    def add_node(self, name: str, length: int) -> int:
        """Register a segment and return its id."""
        if name in self.node_index:
            raise ValidationError(f"Duplicate node: {name}")
        length = int(length)
        if length <= 0:
            raise ValidationError(f"Node {name} has non-positive length {length}")
        node_id = len(self.node_names)
        self.node_index[name] = node_id
        self.node_names.append(name)
        self.node_lengths.append(length)
        return node_id

    def _node_id(self, name: str, context: str) -> int:
        try:
            return self.node_index[name]
        except KeyError:
            raise ValidationError(f"{context} references unknown node {name}")

    def add_link(self, u: str, u_orient: str, v: str, v_orient: str) -> int:
        """Register a link; a link and its reverse complement share one id."""
        key = canonical_edge(
            self._node_id(u, "Link"), parse_orientation(u_orient),
            self._node_id(v, "Link"), parse_orientation(v_orient)
        )
        edge_id = self.edge_index.get(key)
        if edge_id is None:
            edge_id = len(self.edge_keys)
            self.edge_index[key] = edge_id
            self.edge_keys.append(key)
            self._edge_occurrences.clear()
        return edge_id

    def add_path(self, name: str, steps: Iterable[Tuple[str, str]]) -> None:
        """Register a path as a sequence of oriented node steps."""
        if name in self._path_nodes:
            raise ValidationError(f"Duplicate path: {name}")
        node_ids = []
        reverse = []
        for node, orient in steps:
            node_ids.append(self._node_id(node, f"Path {name}"))
            reverse.append(parse_orientation(orient))
        self.path_names.append(name)
        self._path_nodes[name] = np.asarray(node_ids, dtype=np.int64)
        self._path_reverse[name] = np.asarray(reverse, dtype=bool)

    def n_items(self, count_type: CountType) -> int:
        """Size of the item universe for a count type."""
        if count_type is CountType.EDGE:
            return self.edge_count
        if count_type in (CountType.NODE, CountType.BP):
            return self.node_count
        raise ValueError(f"No item universe for count type {count_type.value}")

    def item_weights(self, count_type: CountType) -> np.ndarray:
        """Weight of every item: 1 for nodes and edges, length for basepairs."""
        if count_type is CountType.BP:
            return np.asarray(self.node_lengths, dtype=np.int64)
        return np.ones(self.n_items(count_type), dtype=np.int64)

    def item_names(self, count_type: CountType) -> List[str]:
        """Human readable names: node names, or 'u+,v-' for links."""
        if count_type is CountType.EDGE:
            names = []
            for u, u_rev, v, v_rev in self.edge_keys:
                names.append(
                    f"{self.node_names[u]}{'-' if u_rev else '+'},"
                    f"{self.node_names[v]}{'-' if v_rev else '+'}"
                )
            return names
        return list(self.node_names)

    def _edges_of_path(self, name: str) -> np.ndarray:
        cached = self._edge_occurrences.get(name)
        if cached is not None:
            return cached
        nodes = self._path_nodes[name]
        reverse = self._path_reverse[name]
        edges = np.empty(max(len(nodes) - 1, 0), dtype=np.int64)
        for i in range(len(edges)):
            key = canonical_edge(int(nodes[i]), bool(reverse[i]),
                                 int(nodes[i + 1]), bool(reverse[i + 1]))
            edge_id = self.edge_index.get(key)
            if edge_id is None:
                u, u_rev, v, v_rev = key
                raise ValidationError(
                    f"Path {name} traverses unknown link "
                    f"{self.node_names[u]}{'-' if u_rev else '+'} -> "
                    f"{self.node_names[v]}{'-' if v_rev else '+'}"
                )
            edges[i] = edge_id
        self._edge_occurrences[name] = edges
        return edges

    def path_occurrences(self, name: str, count_type: CountType) -> np.ndarray:
        """
        Item ids traversed by a path, in traversal order and with repeats.

        Args:
            name: Path name
            count_type: Item kind to report

        Returns:
            Array of item ids
        """
        if name not in self._path_nodes:
            raise ValidationError(f"Unknown path: {name}")
        if count_type is CountType.EDGE:
            return self._edges_of_path(name)
        if count_type in (CountType.NODE, CountType.BP):
            return self._path_nodes[name]
        raise ValueError(f"No item universe for count type {count_type.value}")

    def validate(self, count_types: Optional[List[CountType]] = None) -> ValidationResult:
        """
        Check that every traversal refers to known items.

        Args:
            count_types: Count types that will be used; edges are only
                checked when EDGE is among them (default: all)

        Returns:
            ValidationResult with one error per inconsistent path
        """
        errors = []
        warnings = []
        check_edges = count_types is None or CountType.EDGE in count_types

        for name in self.path_names:
            if len(self._path_nodes[name]) == 0:
                warnings.append(f"Path {name} is empty")
                continue
            if check_edges:
                try:
                    self._edges_of_path(name)
                except ValidationError as e:
                    errors.append(str(e))

        return ValidationResult(
            is_valid=len(errors) == 0,
            errors=errors,
            warnings=warnings,
            details={"n_paths": len(self.path_names), "n_nodes": self.node_count}
        )

    def info(self) -> Dict[str, Any]:
        """Summary statistics of the graph."""
        lengths = np.sort(np.asarray(self.node_lengths, dtype=np.int64))[::-1]
        total = int(lengths.sum())
        n50 = 0
        if total > 0:
            cumulative = np.cumsum(lengths)
            n50 = int(lengths[np.searchsorted(cumulative * 2, total)])
        return {
            "node_count": self.node_count,
            "edge_count": self.edge_count,
            "path_count": len(self.path_names),
            "total_length": total,
            "mean_node_length": float(lengths.mean()) if len(lengths) else 0.0,
            "median_node_length": float(np.median(lengths)) if len(lengths) else 0.0,
            "n50_node_length": n50
        }
