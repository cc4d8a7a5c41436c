"""Shared type definitions for tabby."""

from typing import Literal, TypeAlias

# Prerender mode declared by a route module
PrerenderMode: TypeAlias = bool | Literal["auto"]

# Route identifier (e.g., "/blog/{slug}")
RouteId: TypeAlias = str

# Dispatch pattern source string (e.g., "^/blog/([^/]+?)/?$")
PatternKey: TypeAlias = str

# Deployment runtime identifier (e.g., "python3.12")
Runtime: TypeAlias = str

# Name of a deployable unit (e.g., "fn-0", "__tabby")
UnitName: TypeAlias = str

# Host interpreter version as (major, minor)
HostVersion: TypeAlias = tuple[int, int]
