"""Exceptions raised while compiling and propagating computed properties."""

from collections.abc import Sequence


class SchemaflowError(Exception):
    """Base class for all schemaflow errors."""


class CompilationError(SchemaflowError):
    """A computed expression could not be compiled.

    Raised synchronously while a schema is being processed, never while
    values propagate.

    Attributes:
        field_name: Name of the computed option (e.g. ``visible``).
        expression: The expression as written in the schema.
        source: The generated Python source that failed to compile.

    """

    def __init__(self, field_name: str, expression: str, source: str, reason: str) -> None:
        self.field_name = field_name
        self.expression = expression
        self.source = source
        msg = (
            f"Failed to compile computed expression for '{field_name}': {reason}\n"
            f"  expression: {expression!r}\n"
            f"  generated source:\n{source}"
        )
        super().__init__(msg)


class BranchResolutionError(SchemaflowError):
    """The condition resolver for a schema union could not be built.

    Attributes:
        field_name: Name of the union field (``oneOf``, ``anyOf`` or ``allOf``).
        expressions: Effective condition of every participating branch.
        source: The generated Python source, if one was produced.

    """

    def __init__(self, field_name: str, expressions: Sequence[str], source: str, reason: str) -> None:
        self.field_name = field_name
        self.expressions = tuple(expressions)
        self.source = source
        listing = "\n".join(f"  [{i}] {expression}" for i, expression in enumerate(self.expressions))
        msg = f"Failed to build branch resolver for '{field_name}': {reason}\n{listing}"
        super().__init__(msg)


class DivergenceError(SchemaflowError):
    """A chain of updates kept producing new values past the batch ceiling.

    Attributes:
        paths: Nodes still changing when the ceiling was reached.
        dependencies: Dependency paths of those nodes.
        batch_count: Number of batches processed before aborting.
        ceiling: The configured batch ceiling.

    """

    def __init__(
        self,
        paths: Sequence[str],
        dependencies: Sequence[str],
        batch_count: int,
        ceiling: int,
    ) -> None:
        self.paths = tuple(paths)
        self.dependencies = tuple(dependencies)
        self.batch_count = batch_count
        self.ceiling = ceiling
        msg = (
            f"Update propagation did not settle after {batch_count} batches (ceiling {ceiling}). "
            f"Nodes still changing: {', '.join(self.paths)}; "
            f"dependencies: {', '.join(self.dependencies) or '-'}"
        )
        super().__init__(msg)
