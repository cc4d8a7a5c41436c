"""Generated files: handler, manifest and per-bundle companions.

Templates live in ``tabby/templates`` and are filled by plain token
replacement, the same way for every bundle.
"""

from __future__ import annotations

import json
import os
import pprint
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tabby.bundle.fs import FileSystem

# Module file created at the root of every bundle
BOOTSTRAP_NAME = "index.py"

# Descriptor file created at the root of every bundle
DESCRIPTOR_NAME = "function.json"


def _templates_path() -> Path:
    """Return the absolute path to the bundled templates."""
    return Path(__file__).parent.parent / "templates"


def render_template(name: str, replace: Mapping[str, str]) -> str:
    """Read template *name* and substitute each token in *replace*."""
    text = (_templates_path() / name).read_text(encoding="utf-8")
    for token, value in replace.items():
        text = text.replace(token, value)
    return text


def render_manifest(manifest: Mapping[str, object]) -> str:
    """Render the route manifest as an importable Python module."""
    return (
        '"""Route manifest generated by tabby."""\n\n'
        f"MANIFEST = {pprint.pformat(dict(manifest), sort_dicts=False)}\n"
    )


def write_companions(
    fs: FileSystem,
    dest: Path,
    *,
    entry: Path,
    ancestor: Path,
    search_roots: Sequence[Path],
    runtime: str | None,
) -> None:
    """Write ``index.py`` and ``function.json`` into the bundle root.

    Import roots that are not inside the bundle are skipped: nothing under
    them was copied.
    """
    search_paths = [
        Path(os.path.relpath(root, ancestor)).as_posix()
        for root in search_roots
        if root.is_relative_to(ancestor)
    ]
    entry_path = Path(os.path.relpath(entry, ancestor)).as_posix()

    fs.write_text(
        dest / BOOTSTRAP_NAME,
        render_template("bootstrap.py.tmpl", {
            "SEARCH_PATHS": repr(search_paths),
            "ENTRY": repr(entry_path),
        }),
    )
    fs.write_text(
        dest / DESCRIPTOR_NAME,
        json.dumps({"handler": "index.app", "runtime": runtime}, indent="\t") + "\n",
    )
