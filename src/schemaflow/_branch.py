"""Resolve which branches of a ``oneOf``/``anyOf``/``allOf`` union apply.

Each branch may carry a condition (``computed.if`` or ``&if``) and may pin
properties with ``const`` or ``enum``. Pinned properties become implicit
discriminators that are ANDed with the explicit condition::

    {
        "type": "object",
        "oneOf": [
            {"properties": {"kind": {"const": "a"}}},
            {"properties": {"kind": {"const": "b"}}, "&if": "../enabled"},
        ],
    }

When every branch reduces to ``dependencies[n] == "<string>"`` on the same
dependency, the resolver is a dictionary lookup instead of generated code.
"""

import ast
import logging
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final

from ._catalog import PathCatalog
from ._compiler import ComputedFunction, compile_expression
from ._errors import BranchResolutionError, CompilationError
from ._extract import substitute_paths
from ._options import get_option_source
from ._path import escape_segment

logger = logging.getLogger(__name__)

SIMPLE_EQUALITY_PATTERN: Final = re.compile(
    r"""^\s*\(?\s*dependencies\[(\d+)\]\s*\)?\s*==\s*((['"])[^'"\\]+\3)\s*$""",
)


@dataclass(slots=True, frozen=True)
class BranchCondition:
    """Effective condition of one participating branch.

    Attributes:
        index: Position of the branch in the union.
        expression: Condition before path substitution.
        text: Condition after path substitution.

    """

    index: int
    expression: str
    text: str


def _literal_comparison(reference: str, value: Any) -> str:
    if value is None or isinstance(value, bool):
        return f"{reference} is {value!r}"
    return f"{reference} == {value!r}"


def discriminator_expression(branch: Mapping[str, Any]) -> str | None:
    """Build the implicit condition pinned by ``const``/``enum`` properties.

    Properties that declare ``type`` or ``$ref`` are ignored.

    >>> discriminator_expression({"properties": {"kind": {"const": "a"}}})
    "(./kind) == 'a'"
    >>> discriminator_expression({"properties": {"kind": {"enum": ["a", None]}}})
    "((./kind) == 'a' or (./kind) is None)"

    """
    properties = branch.get("properties")
    if not isinstance(properties, Mapping):
        return None

    clauses: list[str] = []
    for name, prop in properties.items():
        if not isinstance(prop, Mapping) or "type" in prop or "$ref" in prop:
            continue
        if "const" in prop:
            values = [prop["const"]]
        elif isinstance(prop.get("enum"), list) and prop["enum"]:
            values = prop["enum"]
        else:
            continue
        reference = f"(./{escape_segment(name)})"
        comparisons = [_literal_comparison(reference, value) for value in values]
        clauses.append(comparisons[0] if len(comparisons) == 1 else f"({' or '.join(comparisons)})")

    if not clauses:
        return None
    if len(clauses) == 1:
        return clauses[0]
    return " and ".join(f"({clause})" for clause in clauses)


def _effective_expression(branch: Any, condition_field: str) -> str | None:
    """Combine the explicit condition of ``branch`` with its discriminators.

    Returns ``None`` when the branch can never match.
    """
    if not isinstance(branch, Mapping):
        return None
    explicit = get_option_source(branch, condition_field)
    if explicit is False:
        return None
    discriminator = discriminator_expression(branch)

    if isinstance(explicit, str) and explicit.strip():
        condition = explicit.strip()
        if condition.endswith(";"):
            condition = condition[:-1].rstrip()
        return f"({condition}) and ({discriminator})" if discriminator else condition
    if discriminator:
        return discriminator
    if explicit is True:
        return "True"
    return None


def collect_branch_conditions(
    schema: Mapping[str, Any],
    union_field: str,
    catalog: PathCatalog,
    condition_field: str = "if",
) -> list[BranchCondition] | None:
    """Return the effective condition of every branch that can match.

    Returns ``None`` if the schema is not an object schema, the union is
    missing or not a list, or no branch can ever match.
    """
    if schema.get("type") != "object":
        return None
    branches = schema.get(union_field)
    if not isinstance(branches, list):
        return None

    conditions: list[BranchCondition] = []
    for index, branch in enumerate(branches):
        expression = _effective_expression(branch, condition_field)
        if expression is None:
            continue
        conditions.append(BranchCondition(index, expression, substitute_paths(expression, catalog)))

    if not conditions:
        logger.debug("No branch of %s can match", union_field)
        return None
    return conditions


def _equality_table(conditions: Sequence[BranchCondition]) -> tuple[int, list[tuple[str, int]]] | None:
    """Detect the case where every branch compares one dependency to a string.

    Returns the dependency index and the ``(literal, branch index)`` pairs.
    """
    dependency: int | None = None
    pairs: list[tuple[str, int]] = []
    for condition in conditions:
        match = SIMPLE_EQUALITY_PATTERN.match(condition.text)
        if match is None:
            return None
        index = int(match.group(1))
        if dependency is None:
            dependency = index
        elif index != dependency:
            return None
        pairs.append((ast.literal_eval(match.group(2)), condition.index))
    if dependency is None:
        return None
    return dependency, pairs


def _compile_branches(
    union_field: str,
    conditions: Sequence[BranchCondition],
    *,
    collect_all: bool,
) -> ComputedFunction:
    lines: list[str] = ["indices = []"] if collect_all else []
    for condition in conditions:
        lines.append(f"if ({condition.text}):")
        lines.append(f"    indices.append({condition.index})" if collect_all else f"    return {condition.index}")
    lines.append("return indices" if collect_all else "return -1")
    body = "\n".join(lines)

    try:
        return compile_expression(
            "{\n" + body + "\n}",
            field_name=union_field,
            expression=" | ".join(condition.expression for condition in conditions),
        )
    except CompilationError as e:
        raise BranchResolutionError(
            union_field,
            [condition.expression for condition in conditions],
            e.source,
            str(e.__cause__ or e),
        ) from e


def resolve_branch_index(
    schema: Mapping[str, Any],
    union_field: str,
    catalog: PathCatalog,
    condition_field: str = "if",
) -> ComputedFunction | None:
    """Build ``dependencies -> index of the first matching branch, or -1``.

    Raises:
        BranchResolutionError: If a branch condition does not compile.

    """
    conditions = collect_branch_conditions(schema, union_field, catalog, condition_field)
    if conditions is None:
        return None

    table = _equality_table(conditions)
    if table is not None:
        dependency, pairs = table
        lookup: dict[str, int] = {}
        for literal, index in pairs:
            lookup.setdefault(literal, index)
        logger.debug("Resolving %s by lookup on dependency %d", union_field, dependency)

        def by_lookup(dependencies: Sequence[Any]) -> int:
            value = dependencies[dependency]
            if not isinstance(value, str):
                return -1
            return lookup.get(value, -1)

        return by_lookup

    return _compile_branches(union_field, conditions, collect_all=False)


def resolve_branch_indices(
    schema: Mapping[str, Any],
    union_field: str,
    catalog: PathCatalog,
    condition_field: str = "if",
) -> ComputedFunction | None:
    """Build ``dependencies -> ascending indices of every matching branch``.

    Raises:
        BranchResolutionError: If a branch condition does not compile.

    """
    conditions = collect_branch_conditions(schema, union_field, catalog, condition_field)
    if conditions is None:
        return None

    table = _equality_table(conditions)
    if table is not None:
        dependency, pairs = table
        lookup: dict[str, list[int]] = {}
        for literal, index in pairs:
            lookup.setdefault(literal, []).append(index)
        logger.debug("Resolving %s by lookup on dependency %d", union_field, dependency)

        def by_lookup(dependencies: Sequence[Any]) -> list[int]:
            value = dependencies[dependency]
            if not isinstance(value, str):
                return []
            return list(lookup.get(value, ()))

        return by_lookup

    return _compile_branches(union_field, conditions, collect_all=True)
