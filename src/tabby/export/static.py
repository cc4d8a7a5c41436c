"""Static export — client assets, prerendered pages, and the routing document.

Copies files from the build's client and prerendered directories into
``<output>/static/<base-path>/`` verbatim, preserving directory structure.
Grouping has no influence on this tree.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Literal

from tabby._errors import ExportError

if TYPE_CHECKING:
    from tabby.bundle.fs import FileSystem
    from tabby.observability.collector import BuildCollector

# Files/directories skipped during asset copying
_SKIPPED_NAMES = frozenset({".DS_Store", "__pycache__"})


@dataclass(frozen=True, slots=True)
class ExportedFile:
    """Record of a single file written during export.

    Attributes:
        source_path: Path relative to the static root (e.g., ``"/app.css"``).
        output_path: Absolute filesystem path to the written file.
        source_type: Category of the exported file.
        size_bytes: Size of the written file in bytes.
        duration_ms: Time taken to copy this file.

    """

    source_path: str
    output_path: Path
    source_type: Literal["client", "prerendered", "config"]
    size_bytes: int
    duration_ms: float


def copy_static(
    fs: FileSystem,
    source_dir: Path,
    static_root: Path,
    source_type: Literal["client", "prerendered"],
    *,
    collector: BuildCollector | None = None,
) -> tuple[ExportedFile, ...]:
    """Recursively copy *source_dir* into *static_root*.

    Skips ``__pycache__`` directories and ``.DS_Store`` files.  Returns an
    empty tuple when *source_dir* does not exist.

    Raises:
        ExportError: If a file cannot be copied.

    """
    if not source_dir.is_dir():
        return ()

    results: list[ExportedFile] = []

    for src_file in sorted(source_dir.rglob("*")):
        if not src_file.is_file():
            continue
        relative = src_file.relative_to(source_dir)
        if _SKIPPED_NAMES.intersection(relative.parts):
            continue

        t0 = time.perf_counter()

        dest_file = static_root / relative
        try:
            fs.make_dirs(dest_file.parent)
            fs.copy_file(src_file, dest_file)
            size = dest_file.stat().st_size
        except OSError as exc:
            msg = f"Failed to copy {src_file} to {dest_file}: {exc}"
            raise ExportError(msg) from exc

        elapsed = (time.perf_counter() - t0) * 1000
        if collector is not None:
            collector.record_build(
                "copy_asset", str(src_file), str(dest_file), duration_ms=elapsed,
            )

        results.append(ExportedFile(
            source_path=f"/{relative.as_posix()}",
            output_path=dest_file,
            source_type=source_type,
            size_bytes=size,
            duration_ms=elapsed,
        ))

    return tuple(results)


def build_routing_config(default_unit: str) -> dict[str, object]:
    """Build the routing document.  All traffic is funneled to *default_unit*."""
    return {
        "routes": [{"src": ".*", "dest": f"/{default_unit}"}],
        "containerized": False,
    }


def write_routing_config(
    fs: FileSystem,
    output_dir: Path,
    default_unit: str,
    *,
    collector: BuildCollector | None = None,
) -> ExportedFile:
    """Write ``<output>/config.json``.

    Raises:
        ExportError: If the file cannot be written.

    """
    t0 = time.perf_counter()
    config_path = output_dir / "config.json"
    data = json.dumps(build_routing_config(default_unit), indent="\t")
    try:
        fs.write_text(config_path, data)
    except OSError as exc:
        msg = f"Failed to write routing config {config_path}: {exc}"
        raise ExportError(msg) from exc

    elapsed = (time.perf_counter() - t0) * 1000
    if collector is not None:
        collector.record_build("write_config", "routes", str(config_path), duration_ms=elapsed)

    return ExportedFile(
        source_path="/config.json",
        output_path=config_path,
        source_type="config",
        size_bytes=len(data.encode("utf-8")),
        duration_ms=elapsed,
    )
