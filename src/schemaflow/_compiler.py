"""Compile path-substituted expressions into Python functions.

An expression is either a bare Python expression::

    dependencies[0] > 10 and dependencies[1] == "on"

or a brace-delimited statement block whose value is whatever it returns::

    {
        if dependencies[0] is None:
            return 0
        return dependencies[0] * 2
    }

Both forms compile to ``computed(dependencies)``. With boolean coercion the
result of a bare expression is passed through ``bool()``, and inside a block
every ``return x`` becomes ``return bool(x)`` and a bare ``return`` becomes
``return False``. Returns inside nested functions are left untouched.
"""

import ast
import builtins
import inspect
import logging
import math
import textwrap
from collections.abc import Callable, Sequence
from enum import Enum
from typing import Any, Final

from ._errors import CompilationError
from ._extract import DEPENDENCIES

logger = logging.getLogger(__name__)

ComputedFunction = Callable[[Sequence[Any]], Any]


class _Unchanged(Enum):
    UNCHANGED = "UNCHANGED"

    def __repr__(self) -> str:
        return "UNCHANGED"


UNCHANGED: Final = _Unchanged.UNCHANGED
"""Returned by a derived expression to leave the current value as it is."""

FUNCTION_NAME: Final = "computed"

_SAFE_BUILTIN_NAMES = (
    "abs",
    "all",
    "any",
    "bool",
    "dict",
    "divmod",
    "enumerate",
    "filter",
    "float",
    "format",
    "int",
    "isinstance",
    "len",
    "list",
    "map",
    "max",
    "min",
    "range",
    "reversed",
    "round",
    "set",
    "sorted",
    "str",
    "sum",
    "tuple",
    "zip",
)

# Expressions come from the schema author; this only keeps I/O and imports out of reach.
SAFE_BUILTINS: Final = {name: getattr(builtins, name) for name in _SAFE_BUILTIN_NAMES}

_FORBIDDEN_STATEMENTS: Final = (ast.Import, ast.ImportFrom, ast.Global, ast.Nonlocal)


class _BooleanReturns(ast.NodeTransformer):
    """Coerce every return of the outermost function body to a bool."""

    def visit_FunctionDef(self, node: ast.FunctionDef) -> ast.FunctionDef:  # noqa: N802
        return node

    def visit_AsyncFunctionDef(self, node: ast.AsyncFunctionDef) -> ast.AsyncFunctionDef:  # noqa: N802
        return node

    def visit_ClassDef(self, node: ast.ClassDef) -> ast.ClassDef:  # noqa: N802
        return node

    def visit_Lambda(self, node: ast.Lambda) -> ast.Lambda:  # noqa: N802
        return node

    def visit_Return(self, node: ast.Return) -> ast.Return:  # noqa: N802
        if node.value is None:
            value: ast.expr = ast.Constant(value=False)
        else:
            value = ast.Call(func=ast.Name(id="bool", ctx=ast.Load()), args=[node.value], keywords=[])
        return ast.copy_location(ast.Return(value=value), node)


def _find_forbidden(module: ast.Module) -> str | None:
    """Describe the first private attribute, dunder name or import in ``module``."""
    for node in ast.walk(module):
        if isinstance(node, ast.Attribute) and node.attr.startswith("_"):
            return f"access to attribute {node.attr!r} is not allowed"
        if isinstance(node, ast.Name) and node.id.startswith("__"):
            return f"name {node.id!r} is not allowed"
        if isinstance(node, _FORBIDDEN_STATEMENTS):
            return f"{type(node).__name__} statements are not allowed"
    return None


def is_block(text: str) -> bool:
    text = text.strip()
    return text.startswith("{") and text.endswith("}")


def _function_source(body: str) -> str:
    return f"def {FUNCTION_NAME}({DEPENDENCIES}):\n" + textwrap.indent(body, "    ")


def wrap_return_statements(body: str) -> str:
    """Rewrite the returns of a statement block so they yield booleans.

    >>> print(wrap_return_statements("if dependencies[0]:\\n    return 1\\nreturn"))
    if dependencies[0]:
        return bool(1)
    return False

    Raises:
        SyntaxError: If ``body`` is not a valid statement block.

    """
    module = ast.parse(_function_source(body))
    function = module.body[0]
    if not isinstance(function, ast.FunctionDef):
        msg = "Expected a single function definition"
        raise TypeError(msg)
    transformer = _BooleanReturns()
    statements = [transformer.visit(statement) for statement in function.body]
    return "\n".join(ast.unparse(ast.fix_missing_locations(statement)) for statement in statements)


def get_function_body(text: str, *, coerce_to_boolean: bool = False) -> str:
    """Produce the body of the generated function for ``text``.

    >>> get_function_body("dependencies[0] + 1")
    'return dependencies[0] + 1'
    >>> get_function_body("dependencies[0]", coerce_to_boolean=True)
    'return bool(dependencies[0])'

    """
    text = text.strip()
    if is_block(text):
        body = inspect.cleandoc(text[1:-1])
        if not body.strip():
            return "pass"
        return wrap_return_statements(body) if coerce_to_boolean else body
    if coerce_to_boolean:
        return f"return bool({text})"
    return f"return {text}"


def compile_expression(
    text: str,
    *,
    coerce_to_boolean: bool = False,
    field_name: str = FUNCTION_NAME,
    expression: str | None = None,
) -> ComputedFunction:
    """Compile path-substituted ``text`` into a function of the dependency list.

    Args:
        text: Expression or brace-delimited block, already path-substituted.
        coerce_to_boolean: Whether every result is passed through ``bool()``.
        field_name: Option name, used in error messages.
        expression: Expression as written in the schema, used in error messages.

    Returns:
        A function taking the dependency list and returning the computed result.

    Raises:
        CompilationError: If the generated source is not valid Python or
            touches a private attribute, a dunder name or an import.

    """
    written = expression if expression is not None else text
    source = text
    try:
        source = _function_source(get_function_body(text, coerce_to_boolean=coerce_to_boolean))
        module = ast.parse(source, f"<computed:{field_name}>")
    except SyntaxError as e:
        raise CompilationError(field_name, written, source, e.msg) from e

    reason = _find_forbidden(module)
    if reason is not None:
        raise CompilationError(field_name, written, source, reason)
    code = compile(module, f"<computed:{field_name}>", "exec")

    namespace: dict[str, Any] = {"__builtins__": SAFE_BUILTINS, "math": math, "UNCHANGED": UNCHANGED}
    exec(code, namespace)  # noqa: S102
    logger.debug("Compiled %s:\n%s", field_name, source)
    return namespace[FUNCTION_NAME]
