"""Build collector — records adapt-pass events into an event log.

Thread Safety:
    The collector delegates to ``EventLog`` which is internally locked.
    Safe for concurrent use from bundle worker threads.

"""

from collections.abc import Sequence

from tabby.observability.events import BuildEvent, IsrIgnored, ResolutionWarning, now_ns
from tabby.observability.log import EventLog


class BuildCollector:
    """Event collector for one or more adapt passes.

    Args:
        log: The EventLog to store events in.

    """

    __slots__ = ("_log",)

    def __init__(self, log: EventLog | None = None) -> None:
        self._log = log if log is not None else EventLog()

    @property
    def log(self) -> EventLog:
        """The underlying event log."""
        return self._log

    def record_build(
        self,
        kind: str,
        source: str,
        target: str,
        *,
        duration_ms: float = 0.0,
    ) -> None:
        """Record a build pipeline event."""
        self._log.append(
            BuildEvent(
                kind=kind,  # type: ignore[arg-type]
                source=source,
                target=target,
                duration_ms=duration_ms,
                timestamp_ns=now_ns(),
            )
        )

    def record_resolution_failure(self, importer: str, modules: Sequence[str]) -> None:
        """Record modules an importer failed to resolve."""
        self._log.append(
            ResolutionWarning(
                importer=importer,
                modules=tuple(modules),
                timestamp_ns=now_ns(),
            )
        )

    def record_isr_ignored(self, route_id: str) -> None:
        """Record ISR settings ignored on a prerendered route."""
        self._log.append(IsrIgnored(route_id=route_id, timestamp_ns=now_ns()))
