"""Reactive computed properties for schema-driven node trees."""

__all__ = [
    "GATE_OPTIONS",
    "UNCHANGED",
    "BranchResolutionError",
    "CompilationError",
    "ComputedFunction",
    "ComputedProperties",
    "ConfigError",
    "ContextView",
    "DependencyGraph",
    "DivergenceError",
    "EventKind",
    "NodeEvent",
    "NodeHost",
    "PathCatalog",
    "PropagationResult",
    "Propagator",
    "SchemaTree",
    "SchemaflowConfig",
    "SchemaflowError",
    "compile_expression",
    "compile_gate",
    "compile_value",
    "compile_watch",
    "deep_equal",
    "extract_paths",
    "get_config",
    "load_config",
    "resolve_branch_index",
    "resolve_branch_indices",
    "substitute_paths",
]

from ._branch import resolve_branch_index, resolve_branch_indices
from ._catalog import PathCatalog
from ._compiler import UNCHANGED, ComputedFunction, compile_expression
from ._computed import ComputedProperties
from ._config import ConfigError, SchemaflowConfig, get_config, load_config
from ._equality import deep_equal
from ._errors import BranchResolutionError, CompilationError, DivergenceError, SchemaflowError
from ._extract import extract_paths, substitute_paths
from ._graph import DependencyGraph
from ._options import GATE_OPTIONS, compile_gate, compile_value, compile_watch
from ._propagate import NodeHost, PropagationResult, Propagator
from ._tree import ContextView, EventKind, NodeEvent, SchemaTree
