"""Route id parsing and dispatch pattern compilation.

Route ids use the file-path convention of ``routes/``::

    /about               -> static segment "about"
    /blog/{slug}         -> dynamic segment "slug"
    /items/{id:int}      -> dynamic segment with the ``int`` converter
    /docs/{rest:path}    -> catch-all, consumes the rest of the path
    /(marketing)/about   -> layout group, kept in the id, dropped from the pattern

Two ids can compile to the same dispatch pattern (``/(app)/about`` and
``/(site)/about``, or ``/blog/{slug}`` and ``/blog/{id}``).  Such routes must
be served by the same function.
"""

import re
from dataclasses import dataclass

from tabby._errors import ConfigError

# Regex fragment for each supported segment converter
CONVERTERS: dict[str, str] = {
    "str": r"[^/]+?",
    "int": r"\d+",
    "float": r"\d+(?:\.\d+)?",
    "path": r".+?",
}


@dataclass(frozen=True, slots=True)
class RouteSegment:
    """A parsed segment of a route id.

    Static:  ``about``      (dynamic=False)
    Param:   ``{id}``       (dynamic=True, param_name="id")
    Typed:   ``{id:int}``   (dynamic=True, param_name="id", param_type="int")
    Group:   ``(app)``      (group=True, never part of the pattern)
    """

    value: str
    dynamic: bool = False
    param_name: str | None = None
    param_type: str = "str"
    group: bool = False


def parse_route_id(route_id: str) -> tuple[RouteSegment, ...]:
    """Parse a route id into segments.

    Raises:
        ConfigError: On an unknown converter or a ``path`` param that is not last.

    """
    segments: list[RouteSegment] = []
    parts = [part for part in route_id.strip("/").split("/") if part]
    for i, part in enumerate(parts):
        if part.startswith("(") and part.endswith(")"):
            segments.append(RouteSegment(value=part, group=True))
            continue

        if not (part.startswith("{") and part.endswith("}")):
            segments.append(RouteSegment(value=part))
            continue

        inner = part[1:-1]
        if ":" in inner:
            param_name, param_type = inner.split(":", 1)
        else:
            param_name, param_type = inner, "str"

        if param_type not in CONVERTERS:
            msg = f"Route {route_id!r}: unknown converter {param_type!r} in {part!r}"
            raise ConfigError(msg)
        if param_type == "path" and i != len(parts) - 1:
            msg = f"Route {route_id!r}: {part!r} must be the last segment"
            raise ConfigError(msg)

        segments.append(RouteSegment(
            value=part,
            dynamic=True,
            param_name=param_name,
            param_type=param_type,
        ))
    return tuple(segments)


def compile_pattern(segments: tuple[RouteSegment, ...]) -> re.Pattern[str]:
    """Compile segments into the dispatch pattern for a route.

    Param names do not appear in the pattern, only their converters, so
    routes that differ only in param names compile identically.

    ``()``                     -> ``^/$``
    ``(about)``                -> ``^/about/?$``
    ``(blog, {slug})``         -> ``^/blog/([^/]+?)/?$``
    """
    parts: list[str] = []
    for segment in segments:
        if segment.group:
            continue
        if segment.dynamic:
            parts.append(f"({CONVERTERS[segment.param_type]})")
        else:
            parts.append(re.escape(segment.value))

    if not parts:
        return re.compile(r"^/$")
    return re.compile("^/" + "/".join(parts) + "/?$")
