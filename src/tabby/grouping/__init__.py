"""Route grouping — config hashing and the route grouper."""

from tabby.grouping.grouper import Group, GroupingResult, IsrDescriptor, RouteGrouper
from tabby.grouping.hasher import hash_config

__all__ = [
    "Group",
    "GroupingResult",
    "IsrDescriptor",
    "RouteGrouper",
    "hash_config",
]
