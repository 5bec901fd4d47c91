"""Dependency graph: nodes, edges, topological sort, and cycle detection.

An edge ``(dependent, dependency)`` means the dependency must run strictly
before the dependent. Edges may only reference nodes that were already added.
"""

from __future__ import annotations

import heapq
import re
from dataclasses import dataclass, field
from typing import Any, Iterable

from dagsql.errors import CycleError, GraphError

# Matches {{ ref('name') }} and {{ ref("name") }} inside raw template text
REF_PATTERN = re.compile(r"""\bref\s*\(\s*["']([^"']+)["']\s*\)""")


@dataclass
class Node:
    """A single node in the dependency graph (usually a model)."""

    id: str
    name: str = ""
    kind: str = "model"  # "model", "seed", "source"
    dependencies: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.name:
            self.name = self.id


class Graph:
    """Directed graph stored as adjacency lists keyed by node id."""

    def __init__(self) -> None:
        self._nodes: dict[str, Node] = {}
        # dependent -> [dependency, ...], in the order edges were added
        self._edges: dict[str, list[str]] = {}
        # dependency -> [dependent, ...]
        self._reverse: dict[str, list[str]] = {}

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def add_node(self, node: Node) -> None:
        """Add a node. Raises GraphError if the id is already present."""
        if node is None:
            raise GraphError("cannot add a None node")
        if node.id in self._nodes:
            raise GraphError(f"node with ID '{node.id}' already exists")
        self._nodes[node.id] = node
        self._edges[node.id] = []
        self._reverse[node.id] = []

    def add_edge(self, dependent: str, dependency: str) -> None:
        """Record that ``dependent`` depends on ``dependency``.

        Both ids must already be nodes. Adding an existing edge is a no-op.
        """
        if dependent not in self._nodes:
            raise GraphError(f"node '{dependent}' does not exist")
        if dependency not in self._nodes:
            raise GraphError(f"node '{dependency}' does not exist")
        if dependency in self._edges[dependent]:
            return
        self._edges[dependent].append(dependency)
        self._reverse[dependency].append(dependent)

    def get_node(self, node_id: str) -> Node | None:
        return self._nodes.get(node_id)

    def nodes(self) -> list[Node]:
        """All nodes in insertion order."""
        return list(self._nodes.values())

    def get_dependencies(self, node_id: str) -> list[str]:
        return list(self._edges.get(node_id, []))

    def get_dependents(self, node_id: str) -> list[str]:
        return list(self._reverse.get(node_id, []))

    def has_edge(self, dependent: str, dependency: str) -> bool:
        return dependency in self._edges.get(dependent, [])


def topological_sort(graph: Graph) -> list[Node]:
    """Order nodes so every dependency precedes its dependents.

    Kahn's algorithm. When several nodes are ready at once, the one added to
    the graph first wins, so the order is stable across runs for the same input.
    Raises CycleError if the graph is not acyclic.
    """
    if graph is None:
        raise GraphError("cannot sort a None graph")

    nodes = graph.nodes()
    position = {node.id: idx for idx, node in enumerate(nodes)}
    in_degree = {node.id: len(graph.get_dependencies(node.id)) for node in nodes}

    ready = [position[node_id] for node_id, degree in in_degree.items() if degree == 0]
    heapq.heapify(ready)

    result: list[Node] = []
    while ready:
        node = nodes[heapq.heappop(ready)]
        result.append(node)
        for dependent in graph.get_dependents(node.id):
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                heapq.heappush(ready, position[dependent])

    if len(result) != len(nodes):
        done = {node.id for node in result}
        remaining = [node.id for node in nodes if node.id not in done]
        cycle = detect_cycles(graph) or remaining
        raise CycleError(
            f"cycle detected in graph: processed {len(result)} of {len(nodes)} nodes "
            f"({' -> '.join(cycle)})",
            cycle=cycle,
        )
    return result


def detect_cycles(graph: Graph) -> list[str] | None:
    """Return the first cycle found as a path (first id repeated at the end), or None."""
    white, gray, black = 0, 1, 2
    color = {node.id: white for node in graph.nodes()}

    def visit(node_id: str, path: list[str]) -> list[str] | None:
        color[node_id] = gray
        path.append(node_id)
        for dep in graph.get_dependencies(node_id):
            if color[dep] == gray:
                return path[path.index(dep):] + [dep]
            if color[dep] == white:
                cycle = visit(dep, path)
                if cycle:
                    return cycle
        path.pop()
        color[node_id] = black
        return None

    for node in graph.nodes():
        if color[node.id] == white:
            cycle = visit(node.id, [])
            if cycle:
                return cycle
    return None


def validate(graph: Graph) -> None:
    """Check a graph for cycles and for declared dependencies that are not nodes."""
    if graph is None:
        raise GraphError("cannot validate a None graph")

    cycle = detect_cycles(graph)
    if cycle:
        raise CycleError(f"validation failed: cycle detected: {' -> '.join(cycle)}", cycle=cycle)

    for node in graph.nodes():
        for dep in node.dependencies:
            if dep not in graph:
                raise GraphError(
                    f"node '{node.id}' references dependency '{dep}' which does not exist in the graph"
                )


def extract_refs(content: str) -> list[str]:
    """Extract model names referenced via ref() in raw template text. Sorted, unique."""
    return sorted({match.strip() for match in REF_PATTERN.findall(content)})


def build_graph(entries: Iterable[tuple[str, Iterable[str]]], kind: str = "model") -> Graph:
    """Build a graph from ``(id, dependency ids)`` pairs.

    Unknown dependency ids are an error: every edge must point at a node.
    """
    entries = [(node_id, list(deps)) for node_id, deps in entries]
    graph = Graph()
    for node_id, deps in entries:
        graph.add_node(Node(id=node_id, kind=kind, dependencies=deps))
    for node_id, deps in entries:
        for dep in deps:
            graph.add_edge(node_id, dep)
    return graph
