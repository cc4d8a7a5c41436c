"""Bundle entries — what each traced path becomes in the bundle.

Every traced path is classified once into one of three variants, so the
copy loop never re-derives symlink or directory status:

    RegularFile   -> bytes copied verbatim
    Directory     -> created, no content
    SymbolicLink  -> recreated as a relative link inside the bundle
"""

import os
from dataclasses import dataclass
from typing import TypeAlias
from pathlib import Path

from tabby.bundle.fs import FileSystem


@dataclass(frozen=True, slots=True)
class RegularFile:
    """A plain file copied into the bundle."""

    source: Path
    dest: Path


@dataclass(frozen=True, slots=True)
class Directory:
    """A directory that only needs to exist in the bundle."""

    source: Path
    dest: Path


@dataclass(frozen=True, slots=True)
class SymbolicLink:
    """A link recreated in the bundle.

    Attributes:
        source: Nominal traced path.
        dest: Where the link is created.
        target: Path of the real file's bundle location, relative to
            ``dest.parent``.  Never absolute, so the bundle stays relocatable.
        is_dir: True if the link points at a directory.

    """

    source: Path
    dest: Path
    target: str
    is_dir: bool


FileEntry: TypeAlias = RegularFile | Directory | SymbolicLink


def common_ancestor(files: list[Path]) -> Path | None:
    """Return the deepest directory containing every path in *files*.

    Starts from the first file's directory and truncates at the first
    segment where each later file's directory diverges.  Returns *None* for
    an empty list.

        /a/b/c.py + /a/b/d.py  -> /a/b
        /a/b/c.py + /a/x/d.py  -> /a
        /a/b/c.py              -> /a/b

    """
    if not files:
        return None

    common = list(files[0].parent.parts)
    for file in files[1:]:
        parts = file.parent.parts
        for i, part in enumerate(common):
            if i >= len(parts) or parts[i] != part:
                common = common[:i]
                break

    return Path(*common) if common else Path(files[0].anchor)


def classify(source: Path, ancestor: Path, dest_root: Path, fs: FileSystem) -> FileEntry:
    """Classify a traced path and compute where it lands in the bundle."""
    dest = dest_root / os.path.relpath(source, ancestor)
    is_dir = fs.is_dir(source)
    real = fs.real_path(source)

    if real != source:
        real_dest = dest_root / os.path.relpath(real, ancestor)
        target = os.path.relpath(real_dest, dest.parent)
        return SymbolicLink(source=source, dest=dest, target=target, is_dir=is_dir)
    if is_dir:
        return Directory(source=source, dest=dest)
    return RegularFile(source=source, dest=dest)
