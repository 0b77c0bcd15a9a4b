"""Per-node bundle of compiled computed options."""

import copy
import logging
from collections.abc import Callable, Mapping
from typing import Any, Final

from ._branch import resolve_branch_index, resolve_branch_indices
from ._catalog import PathCatalog
from ._compiler import UNCHANGED, ComputedFunction
from ._equality import deep_equal
from ._options import GATE_DEFAULTS, compile_gate, compile_value, compile_watch

logger = logging.getLogger(__name__)

EVALUATION_ERRORS: Final = (
    ArithmeticError,
    AttributeError,
    LookupError,
    NameError,
    TypeError,
    ValueError,
)

ONE_OF_INDEX: Final = "oneOfIndex"
ANY_OF_INDICES: Final = "anyOfIndices"
ALL_OF_INDICES: Final = "allOfIndices"
WATCH_VALUES: Final = "watchValues"

_STATE_DEFAULTS: Final[Mapping[str, Any]] = {
    **GATE_DEFAULTS,
    ONE_OF_INDEX: -1,
    ANY_OF_INDICES: [],
    ALL_OF_INDICES: [],
    WATCH_VALUES: [],
}


class ComputedProperties:
    """Compiled computed options of one schema node.

    All options share one :class:`PathCatalog`, so ``dependencies`` holds the
    current value of each catalog path in catalog order. The host fills
    ``dependencies`` (see :meth:`load`) and calls :meth:`recalculate` to refresh
    the gates, branch indices and watch values. ``derived`` and ``pristine``
    are evaluated on demand because they act on the node's value.
    A boolean gate keyword on ``root_schema`` applies to this node as well.

    Example:
        >>> computed = ComputedProperties({"type": "string", "&visible": "../mode == 'on'"})
        >>> computed.dependency_paths
        ('../mode',)
        >>> computed.dependencies = ["on"]
        >>> computed.recalculate()
        {}
        >>> computed.dependencies = ["off"]
        >>> computed.recalculate()
        {'visible': False}

    """

    def __init__(self, schema: Mapping[str, Any], root_schema: Mapping[str, Any] | None = None) -> None:
        catalog = PathCatalog()
        functions: dict[str, ComputedFunction | None] = {
            "active": compile_gate(schema, "active", catalog, root_schema),
            "visible": compile_gate(schema, "visible", catalog, root_schema),
            "readOnly": compile_gate(schema, "readOnly", catalog, root_schema),
            "disabled": compile_gate(schema, "disabled", catalog, root_schema),
            "required": compile_gate(schema, "required", catalog, root_schema),
            ONE_OF_INDEX: resolve_branch_index(schema, "oneOf", catalog),
            ANY_OF_INDICES: resolve_branch_indices(schema, "anyOf", catalog),
            ALL_OF_INDICES: resolve_branch_indices(schema, "allOf", catalog),
            WATCH_VALUES: compile_watch(schema, catalog),
        }
        self._derived = compile_value(schema, "derived", catalog)
        self._pristine = compile_gate(schema, "pristine", catalog, root_schema)
        catalog.freeze()

        self.schema = schema
        self.catalog = catalog
        self._functions = {option: function for option, function in functions.items() if function is not None}
        self._state: dict[str, Any] = {option: copy.deepcopy(default) for option, default in _STATE_DEFAULTS.items()}
        self.dependencies: list[Any] = [None] * len(catalog)

    @property
    def dependency_paths(self) -> tuple[str, ...]:
        return self.catalog.paths

    @property
    def enabled(self) -> bool:
        """Whether any option reads a dependency."""
        return len(self.catalog) > 0

    @property
    def options(self) -> tuple[str, ...]:
        """Names of every option this node computes."""
        names = list(self._functions)
        if self._derived is not None:
            names.append("derived")
        if self._pristine is not None:
            names.append("pristine")
        return tuple(names)

    @property
    def has_derived(self) -> bool:
        return self._derived is not None

    @property
    def has_pristine(self) -> bool:
        return self._pristine is not None

    def load(self, resolve: Callable[[str], Any]) -> None:
        """Refresh ``dependencies`` by resolving each catalog path."""
        self.dependencies = [resolve(path) for path in self.catalog.paths]

    def recalculate(self, on_error: Callable[[str, Exception], None] | None = None) -> dict[str, Any]:
        """Re-evaluate every gate, branch index and watch list.

        Args:
            on_error: Called with the option name and the exception when an
                expression fails at runtime; the option keeps its value. If
                omitted, the exception propagates.

        Returns:
            The options whose value changed, with their new values.

        """
        changed: dict[str, Any] = {}
        for option, function in self._functions.items():
            try:
                value = function(self.dependencies)
            except EVALUATION_ERRORS as e:
                if on_error is None:
                    raise
                on_error(option, e)
                continue
            if not deep_equal(value, self._state[option]):
                self._state[option] = copy.deepcopy(value)
                changed[option] = value
        return changed

    def derived_value(self) -> Any:
        """Evaluate ``derived``; returns ``UNCHANGED`` if the node has none."""
        if self._derived is None:
            return UNCHANGED
        return self._derived(self.dependencies)

    def is_pristine(self) -> bool | None:
        """Evaluate ``pristine``; returns ``None`` if the node has none."""
        if self._pristine is None:
            return None
        return self._pristine(self.dependencies)

    def get(self, option: str) -> Any:
        """Current value of a recalculated option."""
        return self._state[option]

    @property
    def active(self) -> bool:
        return self._state["active"]

    @property
    def visible(self) -> bool:
        return self._state["visible"]

    @property
    def read_only(self) -> bool:
        return self._state["readOnly"]

    @property
    def disabled(self) -> bool:
        return self._state["disabled"]

    @property
    def required(self) -> bool:
        return self._state["required"]

    @property
    def one_of_index(self) -> int:
        return self._state[ONE_OF_INDEX]

    @property
    def any_of_indices(self) -> list[int]:
        return self._state[ANY_OF_INDICES]

    @property
    def all_of_indices(self) -> list[int]:
        return self._state[ALL_OF_INDICES]

    @property
    def watch_values(self) -> list[Any]:
        return self._state[WATCH_VALUES]
