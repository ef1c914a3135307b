import operator
from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple


class ConstructionError(ValueError):
    """Malformed graph input (bad node count or edge endpoint)."""

    def __init__(self, message: str, node_count: Optional[int] = None, edge_index: Optional[int] = None):
        super().__init__(message)
        self.node_count = node_count
        self.edge_index = edge_index


class OutOfRange(ConstructionError, IndexError):
    pass


def _as_int(value) -> int:
    # numpy integers are fine, bools and floats are not
    if isinstance(value, bool):
        raise TypeError(f"bool is not an integer id: {value!r}")
    return operator.index(value)


@dataclass
class Node:
    id: int
    score: float = 1.0
    out_edges: List[int] = field(default_factory=list)
    in_edges: List[int] = field(default_factory=list)

    @property
    def name(self) -> str:
        return str(self.id)

    @property
    def out_degree(self) -> int:
        return len(self.out_edges)

    @property
    def in_degree(self) -> int:
        return len(self.in_edges)


class Graph:
    """
    Directed graph stored as an arena of nodes.

    Node ids run 1..N in creation order. Edges are kept as plain id pairs and
    mirrored into each node's out/in adjacency, so a node never holds a
    reference to another node.
    """

    def __init__(self) -> None:
        self._nodes: List[Node] = []
        self._edges: List[Tuple[int, int]] = []

    def add_node(self, node_id: Optional[int] = None) -> Node:
        expected = len(self._nodes) + 1
        if node_id is not None and node_id != expected:
            raise ConstructionError(
                f"node ids are assigned sequentially: expected {expected}, got {node_id}",
                node_count=len(self._nodes),
            )
        node = Node(id=expected)
        self._nodes.append(node)
        return node

    def add_edge(self, source_id: int, target_id: int) -> None:
        source = self.node(source_id)
        target = self.node(target_id)
        source.out_edges.append(target.id)
        target.in_edges.append(source.id)
        self._edges.append((source.id, target.id))

    def node(self, node_id: int) -> Node:
        try:
            node_id = _as_int(node_id)
        except TypeError as e:
            raise OutOfRange(f"node id must be an int, got {node_id!r}", node_count=len(self._nodes)) from e
        if not 1 <= node_id <= len(self._nodes):
            raise OutOfRange(
                f"node id {node_id} outside [1, {len(self._nodes)}]",
                node_count=len(self._nodes),
            )
        return self._nodes[node_id - 1]

    def node_count(self) -> int:
        return len(self._nodes)

    def edge_count(self) -> int:
        return len(self._edges)

    def nodes(self) -> List[Node]:
        return list(self._nodes)

    def edges(self) -> Iterator[Tuple[int, int]]:
        return iter(self._edges)

    def out_degree(self, node_id: int) -> int:
        return self.node(node_id).out_degree

    def in_neighbors(self, node_id: int) -> List[int]:
        return list(self.node(node_id).in_edges)

    def scores(self) -> List[float]:
        return [node.score for node in self._nodes]

    def reset_scores(self, value: float = 1.0) -> None:
        for node in self._nodes:
            node.score = value

    def __len__(self) -> int:
        return len(self._nodes)

    def __repr__(self) -> str:
        return f"Graph(nodes={len(self._nodes)}, edges={len(self._edges)})"


def build_graph(node_count: int, edges: Iterable[Sequence[int]]) -> Graph:
    """
    Build a graph with nodes 1..node_count and the given 1-indexed edges.

    Raises ConstructionError for a negative node count and OutOfRange for an
    edge endpoint outside [1, node_count]. Duplicate edges and self-loops are
    kept as given.
    """
    try:
        node_count = _as_int(node_count)
    except TypeError as e:
        raise ConstructionError(f"node count must be an int, got {node_count!r}") from e
    if node_count < 0:
        raise ConstructionError(f"node count must be >= 0, got {node_count}", node_count=node_count)

    graph = Graph()
    for _ in range(node_count):
        graph.add_node()

    for i, edge in enumerate(edges):
        if len(edge) != 2:
            raise ConstructionError(
                f"edge {i + 1} must be a (source, target) pair, got {edge!r}",
                node_count=node_count,
                edge_index=i,
            )
        u, v = edge
        try:
            graph.add_edge(u, v)
        except OutOfRange as e:
            raise OutOfRange(
                f"edge {i + 1} ({u}, {v}): {e}",
                node_count=node_count,
                edge_index=i,
            ) from e

    return graph
