"""In-memory node tree that hosts computed properties.

The tree turns a JSON schema's nested ``properties`` into nodes addressed by
absolute JSON Pointers, keeps the document value, and wires every node's
:class:`ComputedProperties` to a :class:`Propagator`.
"""

import copy
import logging
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass
from enum import StrEnum, auto
from typing import Any

from ._computed import ComputedProperties
from ._config import SchemaflowConfig
from ._path import CONTEXT, join_pointer, normalize_token, resolve_pointer, split_pointer
from ._propagate import PropagationResult, Propagator

logger = logging.getLogger(__name__)


class EventKind(StrEnum):
    VALUE = auto()
    COMPUTED = auto()


@dataclass(frozen=True, slots=True)
class NodeEvent:
    """Notification sent to tree subscribers.

    Attributes:
        kind: ``VALUE`` when the node's value was written, ``COMPUTED`` when
            one of its computed options changed.
        path: Absolute pointer of the node.
        payload: The new value, or the mapping of changed options.

    """

    kind: EventKind
    path: str
    payload: Any


Listener = Callable[[NodeEvent], None]


class ContextView(Mapping[str, Any]):
    """Read-only view of the external context whose keys read as attributes.

    Expressions reach the context through ``@``, so both ``@.locale`` and
    ``@["locale"]`` work.
    """

    __slots__ = ("_data",)

    def __init__(self, data: Mapping[str, Any] | None = None) -> None:
        self._data = dict(data or {})

    def __getitem__(self, key: str) -> Any:
        value = self._data[key]
        return ContextView(value) if isinstance(value, Mapping) else value

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self[name]
        except KeyError as e:
            raise AttributeError(name) from e

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"ContextView({self._data!r})"


@dataclass(slots=True)
class SchemaNode:
    path: str
    schema: Mapping[str, Any]
    computed: ComputedProperties
    dirty: bool = False


def default_value(schema: Mapping[str, Any]) -> Any:
    """Build the initial value of a schema from its ``default`` keywords.

    >>> default_value({"type": "object", "properties": {"a": {"default": 1}, "b": {}}})
    {'a': 1, 'b': None}

    """
    if "default" in schema:
        return copy.deepcopy(schema["default"])
    properties = schema.get("properties")
    if schema.get("type") == "object" and isinstance(properties, Mapping):
        return {name: default_value(prop) for name, prop in properties.items() if isinstance(prop, Mapping)}
    return None


def _child(container: Any, segment: str) -> Any:
    if isinstance(container, Mapping):
        return container.get(segment)
    if isinstance(container, list) and segment.isdigit():
        index = int(segment)
        return container[index] if index < len(container) else None
    return None


class SchemaTree:
    """A document value plus the computed state of every schema node.

    Writes through :meth:`set_value` only schedule re-evaluation; call
    :meth:`flush` to propagate. A fresh tree has every computed node
    scheduled so the first flush computes the initial state.

    Example:
        >>> tree = SchemaTree({
        ...     "type": "object",
        ...     "properties": {
        ...         "price": {"type": "number", "default": 10},
        ...         "total": {"type": "number", "&derived": "../price * 2"},
        ...     },
        ... })
        >>> tree.flush().changes
        [('/total', 20)]
        >>> tree.set_value("/price", 4)
        >>> tree.flush().changes
        [('/total', 8)]

    """

    def __init__(
        self,
        schema: Mapping[str, Any],
        *,
        value: Any = None,
        context: Mapping[str, Any] | None = None,
        config: SchemaflowConfig | None = None,
    ) -> None:
        config = config or SchemaflowConfig()
        self.schema = schema
        self.nodes: dict[str, SchemaNode] = {}
        self._build(schema, ())
        self._value = copy.deepcopy(value) if value is not None else default_value(schema)
        self._context = ContextView(context)
        self._listeners: list[tuple[str | None, Listener]] = []

        self.propagator = Propagator(
            self,
            max_batches=config.max_batches,
            float_tolerance=config.float_tolerance,
            clear_hidden_values=config.clear_hidden_values,
        )
        self.propagator.schedule_all()
        logger.debug("Built tree with %d nodes", len(self.nodes))

    def _build(self, schema: Mapping[str, Any], parts: tuple[str, ...]) -> None:
        path = join_pointer(parts)
        self.nodes[path] = SchemaNode(path=path, schema=schema, computed=ComputedProperties(schema, self.schema))
        properties = schema.get("properties")
        if schema.get("type") == "object" and isinstance(properties, Mapping):
            for name, prop in properties.items():
                if isinstance(prop, Mapping):
                    self._build(prop, (*parts, name))

    @property
    def value(self) -> Any:
        return self._value

    @property
    def context(self) -> ContextView:
        return self._context

    def computed(self, path: str) -> ComputedProperties:
        return self.nodes[path].computed

    # --- host interface used by the propagator ---

    def computed_nodes(self) -> Iterable[tuple[str, ComputedProperties]]:
        return [(path, node.computed) for path, node in self.nodes.items() if node.computed.options]

    def resolve(self, node_path: str, token: str) -> Any:
        target = resolve_pointer(node_path, token)
        if target is None:
            return self._context
        return self.get_value(target)

    def get_value(self, path: str) -> Any:
        """Copy of the value at ``path``, or ``None`` if it is missing."""
        current = self._value
        for segment in split_pointer(path):
            current = _child(current, segment)
            if current is None:
                return None
        return copy.deepcopy(current)

    def commit(self, path: str, value: Any) -> None:
        self._store(path, copy.deepcopy(value))
        self._emit(NodeEvent(EventKind.VALUE, path, value))

    def publish(self, path: str, changes: Mapping[str, Any]) -> None:
        node = self.nodes.get(path)
        if node is not None and changes.get("pristine") is True:
            node.dirty = False
        self._emit(NodeEvent(EventKind.COMPUTED, path, dict(changes)))

    # --- public API ---

    def set_value(self, path: str, value: Any) -> None:
        """Write the value of a node and schedule everything that reads it.

        Raises:
            KeyError: If no node exists at ``path``.

        """
        path = join_pointer(split_pointer(normalize_token(path)))
        node = self.nodes.get(path)
        if node is None:
            msg = f"No node at {path!r}"
            raise KeyError(msg)
        node.dirty = True
        self.commit(path, value)
        self.propagator.notify(path)

    def set_context(self, context: Mapping[str, Any]) -> None:
        """Replace the external context and schedule every node reading ``@``."""
        self._context = ContextView(context)
        self.propagator.notify(CONTEXT)

    def flush(self) -> PropagationResult:
        return self.propagator.flush()

    def subscribe(self, listener: Listener, path: str | None = None) -> Callable[[], None]:
        """Call ``listener`` for events on ``path``, or on every node if omitted.

        Returns:
            A function that removes the subscription.

        """
        entry = (path, listener)
        self._listeners.append(entry)

        def unsubscribe() -> None:
            if entry in self._listeners:
                self._listeners.remove(entry)

        return unsubscribe

    def _emit(self, event: NodeEvent) -> None:
        for path, listener in list(self._listeners):
            if path is None or path == event.path:
                listener(event)

    def _store(self, path: str, value: Any) -> None:
        parts = split_pointer(path)
        if not parts:
            self._value = value
            return
        if not isinstance(self._value, dict):
            self._value = {}
        container = self._value
        for segment in parts[:-1]:
            child = _child(container, segment)
            if not isinstance(child, dict | list):
                child = {}
                self._assign(container, segment, child)
            container = child
        self._assign(container, parts[-1], value)

    @staticmethod
    def _assign(container: Any, segment: str, value: Any) -> None:
        if isinstance(container, list) and segment.isdigit():
            index = int(segment)
            if index >= len(container):
                container.extend([None] * (index + 1 - len(container)))
            container[index] = value
        else:
            container[segment] = value

