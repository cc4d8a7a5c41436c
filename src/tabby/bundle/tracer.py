"""Dependency tracing — which files does an entry module need at runtime?

The materializer only needs a ``Tracer``: anything that maps an entry file to
the set of files it transitively imports plus free-text diagnostics.  The
default implementation walks the static import graph with the standard
library's ``modulefinder``.

Diagnostics are plain strings, categorized later by prefix:

    Failed to resolve dependency <module>: Cannot find module '<module>' loaded from <importer>
    Failed to parse <path>: <reason>
"""

from __future__ import annotations

import os
import sys
import sysconfig
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from modulefinder import Module, ModuleFinder
from pathlib import Path
from typing import Protocol


@dataclass(frozen=True, slots=True)
class TracedFileSet:
    """Files one entry transitively requires.

    Attributes:
        files: Absolute, deduplicated file paths (the entry included).
        warnings: Raw diagnostics reported while tracing.
        search_roots: Import roots that contributed files, in search order.
            The bundled entry puts these on ``sys.path``.

    """

    files: frozenset[Path]
    warnings: tuple[str, ...] = ()
    search_roots: tuple[Path, ...] = ()


class Tracer(Protocol):
    """Computes the transitive file closure of an entry file."""

    def trace(self, entry: Path, base: Path) -> TracedFileSet: ...


class _TracingFinder(ModuleFinder):
    """ModuleFinder that keeps unparsable files instead of aborting."""

    def __init__(self, path: list[str], excludes: list[str]) -> None:
        super().__init__(path=path, excludes=excludes)
        self.parse_failures: list[str] = []

    def load_module(self, fqname, fp, pathname, file_info):  # noqa: ANN001, ANN201
        try:
            return super().load_module(fqname, fp, pathname, file_info)
        except SyntaxError as exc:
            self.parse_failures.append(f"Failed to parse {pathname}: {exc.msg}")
            module = self.add_module(fqname)
            module.__file__ = pathname
            return module


class ModuleGraphTracer:
    """Trace Python imports statically.

    Standard library modules are never traced or bundled: the deployment
    runtime provides them.  Unresolvable stdlib imports (platform modules
    such as ``winreg`` on Linux) are still reported so the materializer can
    drop them.

    Args:
        search_paths: Extra import roots searched after the entry's directory
            and before ``sys.path``.

    """

    def __init__(self, search_paths: Iterable[Path] = ()) -> None:
        self._search_paths = tuple(Path(p) for p in search_paths)

    def trace(self, entry: Path, base: Path) -> TracedFileSet:
        """Trace *entry*, keeping only files under *base*."""
        entry = Path(os.path.abspath(entry))
        path = [str(entry.parent), *(str(p) for p in self._search_paths), *sys.path]
        finder = _TracingFinder(path=path, excludes=sorted(sys.stdlib_module_names))
        finder.run_script(str(entry))

        stdlib_dirs, site_dirs = _interpreter_dirs()
        files: set[Path] = set()
        for module in finder.modules.values():
            filename = getattr(module, "__file__", None)
            if not filename:
                continue
            source = Path(os.path.abspath(filename))
            if _is_stdlib(source, stdlib_dirs, site_dirs):
                continue
            for candidate in (source, Path(os.path.realpath(source))):
                if candidate.is_relative_to(base):
                    files.add(candidate)

        return TracedFileSet(
            files=frozenset(files),
            warnings=(*_missing_diagnostics(finder), *finder.parse_failures),
            search_roots=_search_roots(files, path, stdlib_dirs, site_dirs),
        )


def _interpreter_dirs() -> tuple[tuple[Path, ...], tuple[Path, ...]]:
    """Return (stdlib dirs, site-packages dirs) of the running interpreter."""
    paths = sysconfig.get_paths()
    stdlib = tuple(Path(paths[key]) for key in ("stdlib", "platstdlib") if key in paths)
    site = tuple(Path(paths[key]) for key in ("purelib", "platlib") if key in paths)
    return stdlib, site


def _is_stdlib(path: Path, stdlib_dirs: Sequence[Path], site_dirs: Sequence[Path]) -> bool:
    if any(path.is_relative_to(site) for site in site_dirs):
        return False
    return any(path.is_relative_to(std) for std in stdlib_dirs)


def _missing_diagnostics(finder: ModuleFinder) -> list[str]:
    """Format one diagnostic per (missing module, importer) pair."""
    missing, _maybe = finder.any_missing_maybe()
    diagnostics: list[str] = []
    for name in missing:
        for importer in sorted(finder.badmodules.get(name, {})):
            module: Module | None = finder.modules.get(importer)
            location = getattr(module, "__file__", None) or "(unknown)"
            diagnostics.append(
                f"Failed to resolve dependency {name}: "
                f"Cannot find module '{name}' loaded from {location}"
            )
    return diagnostics


def _search_roots(
    files: set[Path],
    path: Sequence[str],
    stdlib_dirs: Sequence[Path],
    site_dirs: Sequence[Path],
) -> tuple[Path, ...]:
    """Import roots (in search order) that hold at least one traced file."""
    roots: list[Path] = []
    for entry in path:
        if not entry:
            continue
        root = Path(os.path.abspath(entry))
        if root in roots or _is_stdlib(root, stdlib_dirs, site_dirs):
            continue
        if any(f.parent == root or _top_package(f, root) for f in files):
            roots.append(root)
    return tuple(roots)


def _top_package(file: Path, root: Path) -> bool:
    """True if *file* sits in a package directly below *root*."""
    if not file.is_relative_to(root):
        return False
    top = root / file.relative_to(root).parts[0]
    return (top / "__init__.py").is_file()
