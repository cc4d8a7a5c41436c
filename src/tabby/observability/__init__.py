"""Adapt-pass observability — frozen events in a bounded log.

Quick Start:
    >>> from tabby.observability import BuildCollector, EventLog
    >>> log = EventLog()
    >>> collector = BuildCollector(log)
    >>> # Pass collector to tabby.adapt(..., collector=collector)

"""

from tabby.observability.collector import BuildCollector
from tabby.observability.events import (
    BuildEvent,
    IsrIgnored,
    ResolutionWarning,
    StackEvent,
    now_ns,
)
from tabby.observability.log import EventLog

__all__ = [
    "BuildCollector",
    "BuildEvent",
    "EventLog",
    "IsrIgnored",
    "ResolutionWarning",
    "StackEvent",
    "now_ns",
]
