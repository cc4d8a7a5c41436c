"""Event log — bounded store for adapt-pass events.

Keeps the most recent ``StackEvent`` objects of one or more adapt passes
and answers the questions asked after a pass: which steps ran and how long
they took, which modules failed to resolve, which ISR settings were dropped.

Thread Safety:
    Bundle workers record events concurrently.  Every read and write takes
    the internal ``threading.Lock``; readers work on a snapshot.

"""

import threading
from collections import deque
from collections.abc import Iterable
from typing import Any

from tabby.observability.events import BuildEvent, ResolutionWarning, StackEvent

# Attributes searched by the ``path`` filter, across event types
_PATH_FIELDS = ("source", "target", "importer", "route_id")


class EventLog:
    """Ring buffer of adapt-pass events.

    Once ``max_events`` is reached the oldest events are dropped.

    Args:
        max_events: Maximum number of events to retain.

    """

    __slots__ = ("_events", "_lock", "_max_events")

    def __init__(self, max_events: int = 10_000) -> None:
        self._max_events = max_events
        self._events: deque[StackEvent] = deque(maxlen=max_events)
        self._lock = threading.Lock()

    def append(self, event: StackEvent) -> None:
        """Record one event."""
        with self._lock:
            self._events.append(event)

    def append_many(self, events: Iterable[StackEvent]) -> None:
        """Record several events under one lock acquisition."""
        with self._lock:
            self._events.extend(events)

    def _snapshot(self) -> list[StackEvent]:
        with self._lock:
            return list(self._events)

    def query(
        self,
        *,
        event_type: type | None = None,
        kind: str | None = None,
        since_ns: int = 0,
        path: str | None = None,
        limit: int = 100,
    ) -> list[StackEvent]:
        """Return matching events, most recent first.

        Args:
            event_type: Only events of this class.
            kind: Only ``BuildEvent`` objects of this kind (``"trace"``, ...).
            since_ns: Only events stamped at or after this monotonic time.
            path: Substring matched against source, target, importer and
                route id.
            limit: Maximum number of events returned.

        """
        results: list[StackEvent] = []
        for event in reversed(self._snapshot()):
            if len(results) >= limit:
                break
            if event_type is not None and not isinstance(event, event_type):
                continue
            if kind is not None and getattr(event, "kind", None) != kind:
                continue
            if event.timestamp_ns < since_ns:
                continue
            if path is not None and not any(
                path in str(getattr(event, name, "") or "") for name in _PATH_FIELDS
            ):
                continue
            results.append(event)
        return results

    def recent(self, n: int = 20) -> list[StackEvent]:
        """Return the *n* most recent events, oldest first."""
        return self._snapshot()[-n:]

    def unresolved(self) -> dict[str, tuple[str, ...]]:
        """Missing modules per importer, merged across all recorded passes."""
        merged: dict[str, dict[str, None]] = {}
        for event in self._snapshot():
            if isinstance(event, ResolutionWarning):
                merged.setdefault(event.importer, {}).update(dict.fromkeys(event.modules))
        return {importer: tuple(modules) for importer, modules in merged.items()}

    def clear(self) -> int:
        """Drop all events and return how many there were."""
        with self._lock:
            count = len(self._events)
            self._events.clear()
        return count

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def stats(self) -> dict[str, Any]:
        """Summarize stored events.

        ``by_type`` counts events per class; ``build_ms`` sums the duration
        of build events per kind.
        """
        events = self._snapshot()
        by_type: dict[str, int] = {}
        build_ms: dict[str, float] = {}
        for event in events:
            name = type(event).__name__
            by_type[name] = by_type.get(name, 0) + 1
            if isinstance(event, BuildEvent):
                build_ms[event.kind] = build_ms.get(event.kind, 0.0) + event.duration_ms

        return {
            "total": len(events),
            "max_events": self._max_events,
            "by_type": by_type,
            "build_ms": build_ms,
        }
