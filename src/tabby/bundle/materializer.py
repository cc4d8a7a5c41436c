"""Bundle materializer — copy an entry's file closure into a function directory.

Given the traced files of one entry, the bundle is rooted at their deepest
common ancestor directory so that relative structure below it is preserved
and nothing above it leaks into the output.  Symlinks are recreated as
relative links, never followed, and never pointed at absolute host paths.

Thread Safety:
    Per-file work runs on a bounded thread pool.  Every entry writes a
    distinct destination path; directory creation is idempotent.

"""

from __future__ import annotations

import os
import re
import sys
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from tabby._errors import BundleError
from tabby.bundle.companion import write_companions
from tabby.bundle.entries import (
    Directory,
    FileEntry,
    RegularFile,
    SymbolicLink,
    classify,
    common_ancestor,
)
from tabby.bundle.fs import FileSystem, LocalFileSystem
from tabby.report import print_resolution_failures

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from tabby.bundle.tracer import TracedFileSet
    from tabby.observability.collector import BuildCollector

_RESOLVE_PREFIX = "Failed to resolve dependency"
_PARSE_PREFIX = "Failed to parse"
_RESOLVE_RE = re.compile(r"Cannot find module '(.+?)' loaded from (.+)")


@dataclass(frozen=True, slots=True)
class BundleResult:
    """Outcome of materializing one bundle.

    Attributes:
        dest: Bundle directory.
        ancestor: Common ancestor the bundle is rooted at (None if nothing
            was traced).
        file_count: Number of traced paths written (files, dirs and links).
        failures: Reportable resolution failures, importer -> missing modules.
        duration_ms: Wall-clock time for the whole materialization.

    """

    dest: Path
    ancestor: Path | None
    file_count: int
    failures: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    duration_ms: float = 0.0


def classify_warnings(warnings: Iterable[str]) -> dict[str, tuple[str, ...]]:
    """Group reportable resolution failures by importer.

    Dropped silently:
        - parse failures (the file is likely not Python, e.g. a template
          shipped inside a package);
        - unresolvable standard library modules (platform modules that do
          not exist on this host, such as ``winreg`` on Linux).

    Raises:
        BundleError: On a diagnostic that is neither of the above nor a
            resolution failure.

    """
    failures: dict[str, list[str]] = {}
    for message in warnings:
        if message.startswith(_PARSE_PREFIX):
            continue
        if not message.startswith(_RESOLVE_PREFIX):
            msg = f"Unexpected dependency tracer diagnostic: {message}"
            raise BundleError(msg)

        match = _RESOLVE_RE.search(message)
        if match is None:
            module, importer = message, "(unknown)"
        else:
            module, importer = match.group(1), match.group(2)
            if module.split(".", 1)[0] in sys.stdlib_module_names:
                continue

        failures.setdefault(importer, []).append(module)

    return {importer: tuple(modules) for importer, modules in failures.items()}


class BundleMaterializer:
    """Writes traced file sets into function bundles.

    Args:
        fs: File primitives (default: local disk).
        workers: Max per-file worker threads (0 = auto-detect).
        collector: Optional event collector.

    """

    def __init__(
        self,
        fs: FileSystem | None = None,
        *,
        workers: int = 0,
        collector: BuildCollector | None = None,
    ) -> None:
        self._fs = fs if fs is not None else LocalFileSystem()
        self._workers = workers or min(32, (os.cpu_count() or 1) + 4)
        self._collector = collector

    def materialize(
        self,
        entry: Path,
        traced: TracedFileSet,
        dest: Path,
        *,
        runtime: str | None = None,
    ) -> BundleResult:
        """Materialize *traced* into *dest*, replacing anything already there.

        Returns:
            BundleResult with the file count and reportable failures.

        Raises:
            BundleError: On any I/O failure or an unknown tracer diagnostic.

        """
        t0 = time.perf_counter()

        failures = classify_warnings(traced.warnings)
        if failures:
            print_resolution_failures(failures)
            if self._collector is not None:
                for importer, modules in failures.items():
                    self._collector.record_resolution_failure(importer, modules)

        try:
            # Link targets travel with their links even when not traced
            files = sorted({*traced.files, *(self._fs.real_path(f) for f in traced.files)})
        except OSError as exc:
            msg = f"Failed to resolve traced files for {dest}: {exc}"
            raise BundleError(msg) from exc
        ancestor = common_ancestor(files)

        try:
            self._fs.remove_tree(dest)
            self._fs.make_dirs(dest)
            entries = [classify(f, ancestor, dest, self._fs) for f in files] if ancestor else []
        except OSError as exc:
            msg = f"Failed to prepare bundle {dest}: {exc}"
            raise BundleError(msg) from exc

        self._write_entries(entries)

        try:
            write_companions(
                self._fs,
                dest,
                entry=entry,
                ancestor=ancestor or entry.parent,
                search_roots=traced.search_roots,
                runtime=runtime,
            )
        except OSError as exc:
            msg = f"Failed to write entry files into {dest}: {exc}"
            raise BundleError(msg) from exc

        elapsed = (time.perf_counter() - t0) * 1000
        if self._collector is not None:
            self._collector.record_build(
                "materialize", str(entry), str(dest), duration_ms=elapsed,
            )

        return BundleResult(
            dest=dest,
            ancestor=ancestor,
            file_count=len(entries),
            failures=failures,
            duration_ms=elapsed,
        )

    def _write_entries(self, entries: list[FileEntry]) -> None:
        """Write all entries; the first failure cancels the rest."""
        with ThreadPoolExecutor(max_workers=self._workers) as pool:
            futures = {pool.submit(self._write_entry, entry): entry for entry in entries}
            for future in as_completed(futures):
                try:
                    future.result()
                except OSError as exc:
                    for pending in futures:
                        pending.cancel()
                    entry = futures[future]
                    msg = f"Failed to write {entry.dest} from {entry.source}: {exc}"
                    raise BundleError(msg) from exc

    def _write_entry(self, entry: FileEntry) -> None:
        if isinstance(entry, Directory):
            self._fs.make_dirs(entry.dest)
            return

        self._fs.make_dirs(entry.dest.parent)
        if isinstance(entry, SymbolicLink):
            self._fs.symlink(entry.target, entry.dest, is_dir=entry.is_dir)
        elif isinstance(entry, RegularFile):
            self._fs.copy_file(entry.source, entry.dest)
