"""Event model for adapt-pass observability.

All events are frozen dataclasses with:
- ``timestamp_ns``: Monotonic nanosecond timestamp
- Descriptive fields for the specific event type

Thread Safety:
    All events are frozen (immutable) and safe to share across threads.

"""

import time
from dataclasses import dataclass
from typing import Literal, TypeAlias


@dataclass(frozen=True, slots=True)
class BuildEvent:
    """An adapt-pass action occurred.

    Attributes:
        kind: The type of build action.
        source: Source path (or description).
        target: Output path (or description).
        duration_ms: Time taken in milliseconds.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    kind: Literal["group", "trace", "materialize", "copy_asset", "write_config"]
    source: str
    target: str
    duration_ms: float
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class ResolutionWarning:
    """A traced module failed to locate some of its dependencies.

    Attributes:
        importer: File that imports the missing modules.
        modules: Module names that could not be resolved.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    importer: str
    modules: tuple[str, ...]
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class IsrIgnored:
    """A prerendered route declared ISR settings, which were ignored."""

    route_id: str
    timestamp_ns: int


StackEvent: TypeAlias = BuildEvent | ResolutionWarning | IsrIgnored


def now_ns() -> int:
    """Return the current monotonic clock value in nanoseconds."""
    return time.monotonic_ns()
