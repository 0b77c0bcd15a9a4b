"""Graph module providing dependency graph abstractions.

This module contains:
- DependencyGraph[T]: A generic, immutable directed graph that tolerates cycles
- strongly_connected_components: Cycle grouping in upstream-first order
- topological_sort: Strict ordering for acyclic graphs
"""

from ._algorithms import strongly_connected_components, topological_sort
from ._dependency_graph import DependencyGraph

__all__ = ["DependencyGraph", "strongly_connected_components", "topological_sort"]
