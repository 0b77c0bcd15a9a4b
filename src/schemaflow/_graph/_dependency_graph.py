"""Dependency graph between node paths."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from ._algorithms import strongly_connected_components, topological_sort

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class DependencyGraph(Generic[T]):
    """A directed graph of "depends on" relationships, cycles allowed.

    Computed options may read each other in a loop, so unlike a build graph
    this one tolerates cycles and offers an evaluation order that places
    every cycle as a block after everything upstream of it.

    - predecessors[b] = {a} means "b depends on a"
    - successors[a] = {b} means "a is depended on by b"

    """

    _predecessors: dict[T, frozenset[T]] = field(default_factory=dict)
    _successors: dict[T, frozenset[T]] = field(default_factory=dict)
    _order: tuple[T, ...] = ()

    @classmethod
    def from_edges(cls, edges: list[tuple[T, T]]) -> DependencyGraph[T]:
        """Build a graph from (source, target) edges, "target depends on source".

        Example:
            >>> graph = DependencyGraph.from_edges([("/a", "/b"), ("/b", "/c")])
            >>> graph.predecessors("/b")
            frozenset({'/a'})

        """
        predecessors: defaultdict[T, set[T]] = defaultdict(set)
        successors: defaultdict[T, set[T]] = defaultdict(set)
        # Insertion order of first appearance, for deterministic ordering
        seen: dict[T, None] = {}

        for src, dst in edges:
            predecessors[dst].add(src)
            successors[src].add(dst)
            predecessors.setdefault(src, set())
            successors.setdefault(dst, set())
            seen.setdefault(src, None)
            seen.setdefault(dst, None)

        position = {node: i for i, node in enumerate(seen)}
        ordered_successors = {node: sorted(successors[node], key=position.__getitem__) for node in seen}
        order = tuple(node for component in strongly_connected_components(ordered_successors) for node in component)

        return cls(
            _predecessors={k: frozenset(v) for k, v in predecessors.items()},
            _successors={k: frozenset(v) for k, v in successors.items()},
            _order=order,
        )

    @property
    def nodes(self) -> frozenset[T]:
        """All nodes in the graph."""
        return frozenset(self._predecessors.keys()) | frozenset(self._successors.keys())

    def predecessors(self, node: T) -> frozenset[T]:
        """Get direct dependencies of a node."""
        return self._predecessors.get(node, frozenset())

    def successors(self, node: T) -> frozenset[T]:
        """Get direct dependents of a node."""
        return self._successors.get(node, frozenset())

    def descendants(self, node: T) -> frozenset[T]:
        """Get all transitive dependents of a node.

        A node on a cycle is its own descendant.
        """
        visited: set[T] = set()
        stack = list(self.successors(node))
        while stack:
            current = stack.pop()
            if current not in visited:
                visited.add(current)
                stack.extend(self.successors(current))
        return frozenset(visited)

    def evaluation_order(self) -> tuple[T, ...]:
        """Return every node, upstream before downstream.

        Members of a cycle are kept together, in order of first appearance
        among the edges.

        Example:
            >>> graph = DependencyGraph.from_edges([("/x", "/a"), ("/a", "/b"), ("/b", "/a")])
            >>> graph.evaluation_order()
            ('/x', '/a', '/b')

        """
        return self._order

    def rank(self) -> dict[T, int]:
        """Map each node to its position in :meth:`evaluation_order`."""
        return {node: i for i, node in enumerate(self._order)}

    def _ordered_successors(self) -> dict[T, list[T]]:
        rank = self.rank()
        return {node: sorted(self.successors(node), key=rank.__getitem__) for node in self._order}

    def topological_order(self) -> list[T]:
        """Return nodes in strict topological order.

        Raises:
            ValueError: If the graph contains a cycle.

        """
        return topological_sort(self._ordered_successors())

    def has_cycle(self) -> bool:
        """Check if the graph contains a cycle."""
        try:
            self.topological_order()
        except ValueError:
            return True
        return False

    def cycles(self) -> list[list[T]]:
        """Return the groups of nodes that depend on each other in a loop."""
        return [
            component
            for component in strongly_connected_components(self._ordered_successors())
            if len(component) > 1 or component[0] in self.successors(component[0])
        ]

    def __len__(self) -> int:
        """Return the number of nodes in the graph."""
        return len(self.nodes)

    def __contains__(self, node: T) -> bool:
        """Check if a node is in the graph."""
        return node in self._predecessors or node in self._successors
