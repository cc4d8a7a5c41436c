"""Route loader — discover and import route modules.

Scans a ``routes/`` directory for Python modules and extracts route
definitions using a file-path convention:

    routes/index.py              -> /
    routes/about.py              -> /about
    routes/blog/index.py         -> /blog
    routes/blog/{slug}.py        -> /blog/{slug}
    routes/(marketing)/team.py   -> /(marketing)/team

Modules may export optional metadata:

    prerender: bool | "auto"  — prerender at build time (default: False)
    config: dict              — deployment config override for this route
    assets: list[str]         — server assets (relative to the server dir)
                                copied next to the function that serves it
"""

import importlib.util
import re
import sys
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from tabby._errors import ConfigError
from tabby._types import PrerenderMode, RouteId
from tabby.routes.pattern import RouteSegment, compile_pattern, parse_route_id

_INDEX_NAME = "index"


@dataclass(frozen=True, slots=True)
class RouteDefinition:
    """A single route with its deployment metadata.

    Attributes:
        id: Route id derived from the file path (e.g., ``/blog/{slug}``).
        pattern: Compiled dispatch pattern.
        segments: Parsed segments of ``id``.
        prerender: ``True``, ``False``, or ``"auto"`` (prerendered when no
            segment is dynamic).
        config: Raw config override declared by the module, or *None*.
        source: Filesystem path to the originating ``.py`` file.
        assets: Server asset paths the route needs at runtime.

    """

    id: RouteId
    pattern: re.Pattern[str]
    segments: tuple[RouteSegment, ...]
    prerender: PrerenderMode = False
    config: Mapping[str, object] | None = None
    source: Path | None = None
    assets: tuple[str, ...] = ()

    @property
    def is_prerendered(self) -> bool:
        """True when the route is fully static output."""
        if self.prerender is True:
            return True
        if self.prerender == "auto":
            return not any(segment.dynamic for segment in self.segments)
        return False


def make_route(
    route_id: RouteId,
    *,
    prerender: PrerenderMode = False,
    config: Mapping[str, object] | None = None,
    source: Path | None = None,
    assets: tuple[str, ...] = (),
) -> RouteDefinition:
    """Build a RouteDefinition from a route id, compiling its pattern."""
    segments = parse_route_id(route_id)
    return RouteDefinition(
        id="/" + route_id.strip("/") if route_id.strip("/") else "/",
        pattern=compile_pattern(segments),
        segments=segments,
        prerender=prerender,
        config=config,
        source=source,
        assets=assets,
    )


def discover_routes(routes_dir: Path) -> tuple[RouteDefinition, ...]:
    """Scan *routes_dir* for Python modules and return route definitions.

    Skips ``__pycache__`` directories and files whose names start with ``_``.
    Returns an empty tuple when *routes_dir* does not exist.  Routes are
    returned in sorted file order so downstream grouping is reproducible.

    Raises:
        ConfigError: On duplicate route ids or invalid module metadata.

    """
    if not routes_dir.is_dir():
        return ()

    definitions: list[RouteDefinition] = []
    seen_ids: dict[str, Path] = {}

    for py_file in sorted(routes_dir.rglob("*.py")):
        if py_file.name.startswith("_"):
            continue
        if "__pycache__" in py_file.parts:
            continue

        module = _load_module(py_file, routes_dir)
        defn = _extract_definition(module, py_file, routes_dir)

        if defn.id in seen_ids:
            msg = (
                f"Duplicate route id {defn.id!r}: "
                f"defined in {seen_ids[defn.id]} and {py_file}"
            )
            raise ConfigError(msg)
        seen_ids[defn.id] = py_file
        definitions.append(defn)

    return tuple(definitions)


def _load_module(py_file: Path, routes_dir: Path) -> object:
    """Import a Python file as a module without touching ``sys.path``."""
    relative = py_file.relative_to(routes_dir)
    parts = list(relative.with_suffix("").parts)
    module_name = "tabby_routes." + ".".join(parts)

    spec = importlib.util.spec_from_file_location(module_name, py_file)
    if spec is None or spec.loader is None:
        msg = f"Cannot load route module {py_file}"
        raise ConfigError(msg)

    try:
        module = importlib.util.module_from_spec(spec)
        # Registered only while executing; metadata is read from the object
        sys.modules[module_name] = module
        spec.loader.exec_module(module)
    except Exception as exc:
        msg = f"Failed to load route module {py_file}: {exc}"
        raise ConfigError(msg) from exc
    finally:
        sys.modules.pop(module_name, None)

    return module


def _derive_id(py_file: Path, routes_dir: Path) -> str:
    """Derive a route id from a file's position relative to *routes_dir*.

    ``routes/index.py``        -> ``/``
    ``routes/blog/index.py``   -> ``/blog``
    ``routes/blog/{slug}.py``  -> ``/blog/{slug}``

    """
    parts = list(py_file.relative_to(routes_dir).with_suffix("").parts)
    if parts and parts[-1] == _INDEX_NAME:
        parts.pop()
    return "/" + "/".join(parts)


def _extract_definition(
    module: object,
    py_file: Path,
    routes_dir: Path,
) -> RouteDefinition:
    """Read route metadata from a loaded module."""
    prerender = getattr(module, "prerender", False)
    if not (isinstance(prerender, bool) or prerender == "auto"):
        msg = f"Route module {py_file}: 'prerender' must be True, False or 'auto', got {prerender!r}"
        raise ConfigError(msg)

    config = getattr(module, "config", None)
    if config is not None and not isinstance(config, Mapping):
        msg = f"Route module {py_file}: 'config' must be a dict, got {type(config).__name__}"
        raise ConfigError(msg)

    assets = getattr(module, "assets", ())
    if isinstance(assets, str) or not all(isinstance(a, str) for a in assets):
        msg = f"Route module {py_file}: 'assets' must be a list of str"
        raise ConfigError(msg)

    return make_route(
        _derive_id(py_file, routes_dir),
        prerender=prerender,
        config=config,
        source=py_file,
        assets=tuple(assets),
    )
