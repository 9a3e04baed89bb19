"""Event bus infrastructure for the pharma-assurance engine.

A synchronous pub-sub bus for run events plus an in-memory store that can
record them for audit and debugging.  Handler errors are caught and logged
so that a failing subscriber never interrupts a research run.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from collections.abc import Callable, Sequence

from pharma_assurance.domain.events import DomainEvent

logger = logging.getLogger(__name__)

Handler = Callable[[DomainEvent], None]


# ===================================================================== #
#  Event Bus                                                             #
# ===================================================================== #

class EventBus:
    """Thread-safe synchronous pub-sub for domain events.

    Handlers run in registration order, global handlers first.  A handler
    that raises is logged and skipped.

    Usage::

        bus = EventBus()
        bus.subscribe(RunAccepted, on_accepted)
        orchestrator = RetryOrchestrator(..., event_bus=bus)
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._handlers: dict[type[DomainEvent], list[Handler]] = defaultdict(list)
        self._global_handlers: list[Handler] = []

    def subscribe(self, event_type: type[DomainEvent], handler: Handler) -> None:
        """Register *handler* for a specific *event_type*."""
        with self._lock:
            self._handlers[event_type].append(handler)

    def subscribe_all(self, handler: Handler) -> None:
        """Register *handler* to receive every published event."""
        with self._lock:
            self._global_handlers.append(handler)

    def unsubscribe(self, event_type: type[DomainEvent], handler: Handler) -> bool:
        """Remove *handler* from *event_type*. Returns ``True`` if found."""
        with self._lock:
            handlers = self._handlers.get(event_type, [])
            try:
                handlers.remove(handler)
                return True
            except ValueError:
                return False

    def publish(self, event: DomainEvent) -> None:
        """Publish *event* to all matching handlers."""
        with self._lock:
            global_snapshot = list(self._global_handlers)
            typed_snapshot = list(self._handlers.get(type(event), []))

        for handler in global_snapshot:
            try:
                handler(event)
            except Exception:
                logger.exception("Error in global event handler %r", handler)

        for handler in typed_snapshot:
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Error in handler %r for %s", handler, type(event).__name__
                )

    def handler_count(self, event_type: type[DomainEvent] | None = None) -> int:
        with self._lock:
            if event_type is not None:
                return len(self._handlers.get(event_type, []))
            total = sum(len(hs) for hs in self._handlers.values())
            return total + len(self._global_handlers)


# ===================================================================== #
#  Event Store                                                           #
# ===================================================================== #

class EventStore:
    """Append-only in-memory record of run events.

    Wire it to a bus with ``bus.subscribe_all(store.append)``.
    """

    def __init__(self, max_size: int = 0) -> None:
        self._events: list[DomainEvent] = []
        self._max_size = max_size
        self._lock = threading.Lock()

    def append(self, event: DomainEvent) -> None:
        with self._lock:
            self._events.append(event)
            if self._max_size > 0 and len(self._events) > self._max_size:
                self._events = self._events[-self._max_size:]

    def query(
        self,
        event_type: type[DomainEvent] | None = None,
        trace_id: str | None = None,
    ) -> Sequence[DomainEvent]:
        """Events of *event_type* (any if ``None``), optionally for one run."""
        with self._lock:
            result = list(self._events)
        if event_type is not None:
            result = [e for e in result if isinstance(e, event_type)]
        if trace_id is not None:
            result = [e for e in result if e.trace_id == trace_id]
        return result

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
