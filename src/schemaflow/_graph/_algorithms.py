"""Ordering algorithms over dependency graphs that may contain cycles."""

from collections.abc import Collection, Hashable, Mapping
from typing import TypeVar

T = TypeVar("T", bound=Hashable)


def strongly_connected_components(successors: Mapping[T, Collection[T]]) -> list[list[T]]:
    """Group the graph into strongly connected components, upstream first.

    Components come out in topological order of the condensed graph, so
    every edge between two components points from an earlier component to
    a later one. Members of a component keep the order in which they appear
    in ``successors``.

    Args:
        successors: Mapping from node to the nodes that depend on it.

    Returns:
        List of components; acyclic nodes form singleton components.

    Example:
        >>> strongly_connected_components({"a": ["b"], "b": ["c"], "c": ["b"]})
        [['a'], ['b', 'c']]

    """
    nodes: dict[T, None] = {}
    for node, targets in successors.items():
        nodes[node] = None
        for target in targets:
            nodes.setdefault(target, None)
    position = {node: i for i, node in enumerate(nodes)}

    index: dict[T, int] = {}
    lowlink: dict[T, int] = {}
    on_stack: set[T] = set()
    stack: list[T] = []
    components: list[list[T]] = []

    for start in nodes:
        if start in index:
            continue
        # Iterative Tarjan: each frame is (node, iterator over its successors)
        index[start] = lowlink[start] = len(index)
        stack.append(start)
        on_stack.add(start)
        frames = [(start, iter(successors.get(start, ())))]
        while frames:
            node, children = frames[-1]
            for child in children:
                if child not in index:
                    index[child] = lowlink[child] = len(index)
                    stack.append(child)
                    on_stack.add(child)
                    frames.append((child, iter(successors.get(child, ()))))
                    break
                if child in on_stack:
                    lowlink[node] = min(lowlink[node], index[child])
            else:
                frames.pop()
                if frames:
                    parent = frames[-1][0]
                    lowlink[parent] = min(lowlink[parent], lowlink[node])
                if lowlink[node] == index[node]:
                    component: list[T] = []
                    while True:
                        member = stack.pop()
                        on_stack.discard(member)
                        component.append(member)
                        if member == node:
                            break
                    components.append(sorted(component, key=position.__getitem__))

    # Tarjan emits downstream components first
    components.reverse()
    return components


def topological_sort(successors: Mapping[T, Collection[T]]) -> list[T]:
    """Sort a graph topologically (dependencies before dependents).

    Raises:
        ValueError: If the graph contains a cycle.

    Example:
        >>> topological_sort({"a": ["b"], "b": ["c"], "c": []})
        ['a', 'b', 'c']

    """
    order: list[T] = []
    for component in strongly_connected_components(successors):
        node = component[0]
        if len(component) > 1 or node in successors.get(node, ()):
            msg = "Cycle detected in graph"
            raise ValueError(msg)
        order.append(node)
    return order
