"""Propagate value changes through the computed options of a node tree.

Writes never evaluate anything inline. A change only schedules the nodes
whose computed options read the changed path; :meth:`Propagator.flush`
then drains the schedule in batches. Within a batch nodes run upstream
first, so a node scheduled by an earlier node of the same batch runs in
that batch. A node scheduled after it already ran waits for the next batch.

A derived value equal to the current one is dropped without notifying
anyone, which is what lets convergent cycles settle. A chain that keeps
changing values after ``max_batches`` batches is aborted with
:class:`DivergenceError`.
"""

import heapq
import logging
from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Final, Protocol

from ._compiler import UNCHANGED
from ._computed import EVALUATION_ERRORS, ComputedProperties
from ._equality import deep_equal
from ._errors import DivergenceError
from ._graph import DependencyGraph
from ._path import CONTEXT, is_related, resolve_pointer

logger = logging.getLogger(__name__)

DEFAULT_MAX_BATCHES: Final = 100
DEFAULT_FLOAT_TOLERANCE: Final = 1e-9


class NodeHost(Protocol):
    """The node tree a :class:`Propagator` works on."""

    def computed_nodes(self) -> Iterable[tuple[str, ComputedProperties]]:
        """Every node carrying computed options, keyed by absolute path."""
        ...

    def resolve(self, node_path: str, token: str) -> Any:
        """Current value of ``token`` as read by the node at ``node_path``."""
        ...

    def get_value(self, path: str) -> Any:
        """Current value of the node at ``path``."""
        ...

    def commit(self, path: str, value: Any) -> None:
        """Store a value produced by propagation."""
        ...

    def publish(self, path: str, changes: Mapping[str, Any]) -> None:
        """Receive the computed options of a node that changed."""
        ...


@dataclass(frozen=True, slots=True)
class PropagationResult:
    """Outcome of one :meth:`Propagator.flush`.

    Attributes:
        batches: Number of batches processed.
        changes: (path, value) for every value committed, in commit order.
        errors: (node_path, option, error_message) for every expression that
            raised while being evaluated.

    """

    batches: int = 0
    changes: list[tuple[str, Any]] = field(default_factory=list)
    errors: list[tuple[str, str, str]] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """Check if propagation completed without expression errors."""
        return len(self.errors) == 0


def _reads(target: str, path: str) -> bool:
    if CONTEXT in (target, path):
        return target == path
    return is_related(target, path)


class Propagator:
    """Schedules and evaluates computed options when values change."""

    def __init__(
        self,
        host: NodeHost,
        *,
        max_batches: int = DEFAULT_MAX_BATCHES,
        float_tolerance: float = DEFAULT_FLOAT_TOLERANCE,
        clear_hidden_values: bool = True,
    ) -> None:
        if max_batches < 1:
            msg = f"max_batches must be positive, got {max_batches}"
            raise ValueError(msg)
        self._host = host
        self._max_batches = max_batches
        self._float_tolerance = float_tolerance
        self._clear_hidden_values = clear_hidden_values

        self._nodes: dict[str, ComputedProperties] = dict(host.computed_nodes())
        self._watched: dict[str, tuple[str, ...]] = {}
        for node_path, computed in self._nodes.items():
            targets = (resolve_pointer(node_path, token) for token in computed.dependency_paths)
            self._watched[node_path] = tuple(dict.fromkeys(CONTEXT if t is None else t for t in targets))

        self.graph = self._build_graph()
        order = [path for path in self.graph.evaluation_order() if path in self._nodes]
        order.extend(path for path in self._nodes if path not in self.graph)
        self._rank = {path: i for i, path in enumerate(order)}

        self._pending: dict[str, None] = {}
        self._heap: list[tuple[int, str]] = []
        self._queued: set[str] = set()
        self._processed: set[str] = set()
        self._in_batch = False
        self._current_rank = -1
        self._flushing = False
        self._changed_in_batch: set[str] = set()
        self._changes: list[tuple[str, Any]] = []
        self._errors: list[tuple[str, str, str]] = []
        self._pristine: dict[str, bool] = {}

        self.evaluations: Counter[str] = Counter()
        self.errors: list[tuple[str, str, str]] = []

    def _build_graph(self) -> DependencyGraph[str]:
        """Connect each node to the computed nodes whose values it reads."""
        edges: list[tuple[str, str]] = []
        for node_path, targets in self._watched.items():
            for target in targets:
                edges.extend(
                    (producer, node_path)
                    for producer in self._nodes
                    if target != CONTEXT and is_related(producer, target)
                )
        return DependencyGraph.from_edges(edges)

    @property
    def max_batches(self) -> int:
        return self._max_batches

    @property
    def pending(self) -> tuple[str, ...]:
        """Nodes scheduled for the next flush."""
        return tuple(self._pending)

    def dependencies_of(self, node_path: str) -> tuple[str, ...]:
        """Absolute paths read by a node; ``@`` stands for the context."""
        return self._watched.get(node_path, ())

    def schedule_all(self) -> None:
        """Schedule every computed node, e.g. to compute initial state."""
        for node_path in self._rank:
            self._schedule(node_path)

    def notify(self, path: str) -> None:
        """Schedule every node that reads ``path`` (``@`` for the context)."""
        for node_path, targets in self._watched.items():
            if any(_reads(target, path) for target in targets):
                self._schedule(node_path)

    def _schedule(self, node_path: str) -> None:
        if self._in_batch and node_path not in self._processed:
            if node_path in self._queued:
                return
            rank = self._rank[node_path]
            if rank > self._current_rank:
                heapq.heappush(self._heap, (rank, node_path))
                self._queued.add(node_path)
                return
        self._pending[node_path] = None

    def flush(self) -> PropagationResult:
        """Evaluate everything scheduled until nothing changes.

        Returns:
            The batches run, values committed and expression errors.

        Raises:
            DivergenceError: If values are still changing after ``max_batches``
                batches. The schedule is cleared first.

        """
        if self._flushing:
            msg = "flush() called while already flushing"
            raise RuntimeError(msg)

        self._flushing = True
        self._changes = []
        self._errors = []
        batches = 0
        try:
            while self._pending:
                if batches >= self._max_batches:
                    self._diverged(batches)
                batches += 1
                self._run_batch(batches)
        finally:
            self._flushing = False
            self._in_batch = False

        logger.debug("Flush settled after %d batches with %d changes", batches, len(self._changes))
        return PropagationResult(batches=batches, changes=self._changes, errors=self._errors)

    def _run_batch(self, number: int) -> None:
        self._heap = [(self._rank[path], path) for path in self._pending]
        heapq.heapify(self._heap)
        self._queued = set(self._pending)
        self._pending = {}
        self._processed = set()
        self._changed_in_batch = set()
        self._in_batch = True
        logger.debug("Batch %d: %s", number, ", ".join(path for _, path in sorted(self._heap)))

        while self._heap:
            rank, node_path = heapq.heappop(self._heap)
            self._current_rank = rank
            self._processed.add(node_path)
            self._evaluate(node_path)

        self._in_batch = False
        self._current_rank = -1

    def _diverged(self, batches: int) -> None:
        paths = sorted(self._changed_in_batch | set(self._pending))
        dependencies = sorted({target for path in paths for target in self._watched.get(path, ())})
        self._pending = {}
        logger.error("Propagation diverged after %d batches: %s", batches, ", ".join(paths))
        raise DivergenceError(paths, dependencies, batches, self._max_batches)

    def _record_error(self, node_path: str, option: str, error: Exception) -> None:
        logger.warning("Error evaluating %s of %s: %s", option, node_path, error)
        entry = (node_path, option, f"{type(error).__name__}: {error}")
        self._errors.append(entry)
        self.errors.append(entry)

    def _evaluate(self, node_path: str) -> None:
        computed = self._nodes[node_path]
        computed.load(lambda token: self._host.resolve(node_path, token))
        self.evaluations[node_path] += 1

        changed = computed.recalculate(on_error=lambda option, e: self._record_error(node_path, option, e))

        if computed.has_pristine:
            try:
                pristine = bool(computed.is_pristine())
            except EVALUATION_ERRORS as e:
                self._record_error(node_path, "pristine", e)
            else:
                if self._pristine.get(node_path) != pristine:
                    self._pristine[node_path] = pristine
                    changed["pristine"] = pristine

        if changed:
            logger.debug("Computed options of %s changed: %s", node_path, changed)
            self._host.publish(node_path, changed)

        hidden = self._clear_hidden_values and not computed.visible
        if hidden and changed.get("visible") is False:
            self._commit(node_path, None)

        if not computed.has_derived or hidden:
            return
        try:
            value = computed.derived_value()
        except EVALUATION_ERRORS as e:
            self._record_error(node_path, "derived", e)
            return
        if value is UNCHANGED:
            return
        self._commit(node_path, value)

    def _commit(self, path: str, value: Any) -> None:
        if deep_equal(value, self._host.get_value(path), float_tolerance=self._float_tolerance):
            logger.debug("Suppressed unchanged value at %s", path)
            return
        self._host.commit(path, value)
        self._changes.append((path, value))
        self._changed_in_batch.add(path)
        self.notify(path)
