"""Route discovery and dispatch patterns.

Public API::

    from tabby.routes import discover_routes

    definitions = discover_routes(Path("my-site/routes"))
"""

from tabby.routes.loader import RouteDefinition, discover_routes, make_route
from tabby.routes.pattern import RouteSegment, compile_pattern, parse_route_id

__all__ = [
    "RouteDefinition",
    "RouteSegment",
    "compile_pattern",
    "discover_routes",
    "make_route",
    "parse_route_id",
]
