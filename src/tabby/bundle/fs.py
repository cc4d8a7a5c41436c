"""File primitives used by the materializer and the static export.

``FileSystem`` is the seam: the adapter only touches disk through it, so
tests and alternative hosts can substitute their own implementation.
"""

import os
import shutil
from pathlib import Path
from typing import Protocol


class FileSystem(Protocol):
    """Primitive filesystem operations."""

    def remove_tree(self, path: Path) -> None: ...

    def make_dirs(self, path: Path) -> None: ...

    def copy_file(self, source: Path, dest: Path) -> None: ...

    def real_path(self, path: Path) -> Path: ...

    def symlink(self, target: str, link: Path, *, is_dir: bool) -> None: ...

    def is_dir(self, path: Path) -> bool: ...

    def write_text(self, path: Path, data: str) -> None: ...


class LocalFileSystem:
    """FileSystem backed by ``os`` and ``shutil``."""

    def remove_tree(self, path: Path) -> None:
        """Remove *path* recursively.  Missing paths are not an error."""
        if path.is_symlink() or path.is_file():
            path.unlink()
        elif path.exists():
            shutil.rmtree(path)

    def make_dirs(self, path: Path) -> None:
        """Create *path* and its parents.  Existing directories are not an error."""
        path.mkdir(parents=True, exist_ok=True)

    def copy_file(self, source: Path, dest: Path) -> None:
        """Copy file bytes and permission bits."""
        shutil.copyfile(source, dest)
        shutil.copymode(source, dest)

    def real_path(self, path: Path) -> Path:
        """Resolve every symlink in *path*."""
        return Path(os.path.realpath(path))

    def symlink(self, target: str, link: Path, *, is_dir: bool) -> None:
        """Create *link* pointing at the (relative) *target*."""
        os.symlink(target, link, target_is_directory=is_dir)

    def is_dir(self, path: Path) -> bool:
        """True if *path* is a directory (following symlinks)."""
        return path.is_dir()

    def write_text(self, path: Path, data: str) -> None:
        """Write *data* to *path*, creating parent directories as needed."""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(data, encoding="utf-8")
