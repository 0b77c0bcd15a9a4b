"""Compile the computed options declared on a schema node.

An option is read from the structured ``computed`` map or from its alias
key prefixed with ``&``; the structured form takes priority::

    {"type": "string", "computed": {"visible": "../mode == 'advanced'"}}
    {"type": "string", "&visible": "../mode == 'advanced'"}
"""

import logging
from collections.abc import Mapping, Sequence
from typing import Any, Final

from ._catalog import PathCatalog
from ._compiler import ComputedFunction, compile_expression
from ._errors import CompilationError
from ._extract import substitute_paths
from ._path import PATH_TOKEN_PATTERN

logger = logging.getLogger(__name__)

ALIAS_PREFIX: Final = "&"

GATE_OPTIONS: Final = ("visible", "disabled", "readOnly", "active", "required", "pristine")
GATE_DEFAULTS: Final[Mapping[str, bool]] = {
    "visible": True,
    "active": True,
    "disabled": False,
    "readOnly": False,
    "required": False,
}


def get_option_source(schema: Mapping[str, Any], option: str) -> Any:
    """Return the raw source of ``option``, or ``None`` if the node has none.

    >>> get_option_source({"computed": {"visible": "a"}, "&visible": "b"}, "visible")
    'a'
    >>> get_option_source({"&visible": "b"}, "visible")
    'b'

    """
    computed = schema.get("computed")
    if isinstance(computed, Mapping):
        value = computed.get(option)
        if value is not None:
            return value
    return schema.get(f"{ALIAS_PREFIX}{option}")


def _constant(value: Any) -> ComputedFunction:
    def computed(dependencies: Sequence[Any]) -> Any:  # noqa: ARG001
        return value

    return computed


def compile_gate(
    schema: Mapping[str, Any],
    option: str,
    catalog: PathCatalog,
    root_schema: Mapping[str, Any] | None = None,
) -> ComputedFunction | None:
    """Compile a boolean gate such as ``visible`` or ``readOnly``.

    A literal boolean wins over any expression: first the keyword on the
    root schema, which applies to every node of the tree, then the plain
    schema keyword (``readOnly: true``), then a boolean given in the
    computed map or alias. Expressions are coerced to ``bool``.

    Returns:
        The compiled function, or ``None`` if the node defines no such gate.

    Raises:
        CompilationError: If the expression does not compile.

    """
    for owner in (root_schema or {}, schema):
        literal = owner.get(option)
        if isinstance(literal, bool):
            return _constant(literal)

    source = get_option_source(schema, option)
    if isinstance(source, bool):
        return _constant(source)
    if not isinstance(source, str):
        return None

    text = substitute_paths(source, catalog)
    if not text:
        return None
    return compile_expression(text, coerce_to_boolean=True, field_name=option, expression=source)


def compile_value(schema: Mapping[str, Any], option: str, catalog: PathCatalog) -> ComputedFunction | None:
    """Compile a value computation such as ``derived``.

    The result is returned as the expression produces it. Only string
    sources define a computation.

    Raises:
        CompilationError: If the expression does not compile.

    """
    source = get_option_source(schema, option)
    if not isinstance(source, str):
        return None
    text = substitute_paths(source, catalog)
    if not text:
        return None
    return compile_expression(text, field_name=option, expression=source)


def compile_watch(schema: Mapping[str, Any], catalog: PathCatalog, option: str = "watch") -> ComputedFunction | None:
    """Compile a watch list into a function returning the watched values.

    ``watch`` holds one path or a list of paths. The compiled function
    returns the current values in declaration order.

    Raises:
        CompilationError: If an entry is not a path token.

    """
    source = get_option_source(schema, option)
    if isinstance(source, str):
        entries: list[Any] = [source]
    elif isinstance(source, list | tuple):
        entries = list(source)
    else:
        return None

    tokens = [entry.strip() for entry in entries if isinstance(entry, str) and entry.strip()]
    for token in tokens:
        if not PATH_TOKEN_PATTERN.fullmatch(token):
            raise CompilationError(option, token, token, "watch entries must be path tokens")
    indices = [catalog.set(token) for token in tokens]
    if not indices:
        return None

    def computed(dependencies: Sequence[Any]) -> list[Any]:
        return [dependencies[index] for index in indices]

    return computed
