"""Function bundles — trace an entry, then materialize its file closure.

Public API::

    from tabby.bundle import BundleMaterializer, ModuleGraphTracer

    traced = ModuleGraphTracer([server_dir]).trace(entry, Path("/"))
    result = BundleMaterializer().materialize(entry, traced, dest)
"""

from tabby.bundle.entries import (
    Directory,
    FileEntry,
    RegularFile,
    SymbolicLink,
    classify,
    common_ancestor,
)
from tabby.bundle.fs import FileSystem, LocalFileSystem
from tabby.bundle.materializer import BundleMaterializer, BundleResult, classify_warnings
from tabby.bundle.tracer import ModuleGraphTracer, TracedFileSet, Tracer

__all__ = [
    "BundleMaterializer",
    "BundleResult",
    "Directory",
    "FileEntry",
    "FileSystem",
    "LocalFileSystem",
    "ModuleGraphTracer",
    "RegularFile",
    "SymbolicLink",
    "TracedFileSet",
    "Tracer",
    "classify",
    "classify_warnings",
    "common_ancestor",
]
