"""Tests for tabby.bundle.materializer — bundle copying and warnings."""

import json
import os
from pathlib import Path

import pytest

from tabby._errors import BundleError
from tabby.bundle import BundleMaterializer, LocalFileSystem, TracedFileSet, classify_warnings
from tabby.observability import BuildCollector, BuildEvent, ResolutionWarning

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _snapshot(directory: Path) -> dict[str, tuple[str, str | bytes]]:
    """Describe a tree: relative path -> ("link", target) | ("dir", "") | ("file", bytes)."""
    result: dict[str, tuple[str, str | bytes]] = {}
    for path in sorted(directory.rglob("*")):
        rel = path.relative_to(directory).as_posix()
        if path.is_symlink():
            result[rel] = ("link", str(path.readlink()))
        elif path.is_dir():
            result[rel] = ("dir", "")
        else:
            result[rel] = ("file", path.read_bytes())
    return result


@pytest.fixture
def app(root: Path) -> Path:
    """A small application tree with a package, a data file and a symlink.

    Layout::

        app/handler.py
        app/lib/__init__.py
        app/lib/util.py
        app/lib/alias.py -> ../shared/helper.py
        app/shared/helper.py
    """
    app = root / "app"
    (app / "lib").mkdir(parents=True)
    (app / "shared").mkdir()
    (app / "handler.py").write_text("from lib import util\napp = util.VALUE\n")
    (app / "lib" / "__init__.py").write_text("")
    (app / "lib" / "util.py").write_text("VALUE = 42\n")
    (app / "shared" / "helper.py").write_text("HELPER = True\n")
    (app / "lib" / "alias.py").symlink_to(Path("..") / "shared" / "helper.py")
    return app


def _traced(app: Path, *, warnings: tuple[str, ...] = ()) -> TracedFileSet:
    return TracedFileSet(
        files=frozenset({
            app / "handler.py",
            app / "lib" / "__init__.py",
            app / "lib" / "util.py",
            app / "lib" / "alias.py",
            app / "shared" / "helper.py",
        }),
        warnings=warnings,
        search_roots=(app,),
    )


class _FailingCopyFileSystem(LocalFileSystem):
    def copy_file(self, source: Path, dest: Path) -> None:
        msg = f"denied: {dest}"
        raise PermissionError(msg)


# ---------------------------------------------------------------------------
# classify_warnings
# ---------------------------------------------------------------------------


class TestClassifyWarnings:
    """classify_warnings — drop, group, or fail."""

    def test_empty(self) -> None:
        assert classify_warnings([]) == {}

    def test_parse_failures_dropped(self) -> None:
        assert classify_warnings(["Failed to parse /app/tpl.py: invalid syntax"]) == {}

    def test_stdlib_modules_dropped(self) -> None:
        warnings = [
            "Failed to resolve dependency winreg: Cannot find module 'winreg' loaded from /app/a.py",
            "Failed to resolve dependency _winapi: Cannot find module '_winapi' loaded from /app/a.py",
        ]
        assert classify_warnings(warnings) == {}

    def test_grouped_by_importer(self) -> None:
        warnings = [
            "Failed to resolve dependency psycopg: Cannot find module 'psycopg' loaded from /app/db.py",
            "Failed to resolve dependency redis: Cannot find module 'redis' loaded from /app/db.py",
            "Failed to resolve dependency boto3: Cannot find module 'boto3' loaded from /app/s3.py",
        ]
        assert classify_warnings(warnings) == {
            "/app/db.py": ("psycopg", "redis"),
            "/app/s3.py": ("boto3",),
        }

    def test_unparsable_resolution_message(self) -> None:
        message = "Failed to resolve dependency something odd"
        assert classify_warnings([message]) == {"(unknown)": (message,)}

    def test_unknown_diagnostic_is_fatal(self) -> None:
        with pytest.raises(BundleError, match="Unexpected dependency tracer diagnostic"):
            classify_warnings(["Tracer crashed"])


# ---------------------------------------------------------------------------
# Materialization
# ---------------------------------------------------------------------------


class TestMaterialize:
    """BundleMaterializer — completeness, links, idempotence."""

    def test_completeness(self, app: Path, root: Path) -> None:
        traced = _traced(app)
        dest = root / "out" / "fn.func"
        result = BundleMaterializer().materialize(app / "handler.py", traced, dest)

        assert result.ancestor == app
        assert result.file_count == len(traced.files)
        for source in traced.files:
            written = dest / source.relative_to(app)
            assert written.exists()
            assert written.read_bytes() == Path(os.path.realpath(source)).read_bytes()

    def test_symlink_recreated_relative(self, app: Path, root: Path) -> None:
        dest = root / "out" / "fn.func"
        BundleMaterializer().materialize(app / "handler.py", _traced(app), dest)

        link = dest / "lib" / "alias.py"
        assert link.is_symlink()
        assert not os.path.isabs(link.readlink())
        assert link.resolve() == (dest / "shared" / "helper.py").resolve()

    def test_untraced_link_target_included(self, app: Path, root: Path) -> None:
        traced = TracedFileSet(files=frozenset({app / "lib" / "alias.py", app / "lib" / "util.py"}))
        dest = root / "out" / "fn.func"
        result = BundleMaterializer().materialize(app / "lib" / "util.py", traced, dest)

        assert result.ancestor == app
        assert result.file_count == 3
        link = dest / "lib" / "alias.py"
        assert link.is_symlink()
        assert link.resolve().is_relative_to(dest.resolve())
        assert link.read_text() == "HELPER = True\n"
        assert (dest / "shared" / "helper.py").is_file()

    def test_idempotent(self, app: Path, root: Path) -> None:
        dest = root / "out" / "fn.func"
        materializer = BundleMaterializer(workers=2)
        materializer.materialize(app / "handler.py", _traced(app), dest)
        first = _snapshot(dest)
        materializer.materialize(app / "handler.py", _traced(app), dest)
        assert _snapshot(dest) == first

    def test_stale_files_removed(self, app: Path, root: Path) -> None:
        dest = root / "out" / "fn.func"
        dest.mkdir(parents=True)
        (dest / "stale.txt").write_text("old")
        BundleMaterializer().materialize(app / "handler.py", _traced(app), dest)
        assert not (dest / "stale.txt").exists()

    def test_directory_entry(self, app: Path, root: Path) -> None:
        (app / "static").mkdir()
        traced = TracedFileSet(files=frozenset({app / "handler.py", app / "static"}))
        dest = root / "out" / "fn.func"
        BundleMaterializer().materialize(app / "handler.py", traced, dest)
        assert (dest / "static").is_dir()

    def test_empty_trace(self, app: Path, root: Path) -> None:
        dest = root / "out" / "fn.func"
        result = BundleMaterializer().materialize(
            app / "handler.py", TracedFileSet(files=frozenset()), dest,
        )
        assert result.ancestor is None
        assert result.file_count == 0
        assert (dest / "index.py").is_file()

    def test_missing_file_raises(self, app: Path, root: Path) -> None:
        traced = TracedFileSet(files=frozenset({app / "handler.py", app / "gone.py"}))
        with pytest.raises(BundleError, match="gone.py"):
            BundleMaterializer().materialize(app / "handler.py", traced, root / "out")

    def test_failing_filesystem_raises(self, app: Path, root: Path) -> None:
        materializer = BundleMaterializer(_FailingCopyFileSystem())
        with pytest.raises(BundleError, match="denied"):
            materializer.materialize(app / "handler.py", _traced(app), root / "out")

    def test_unknown_diagnostic_aborts_before_writing(self, app: Path, root: Path) -> None:
        dest = root / "out" / "fn.func"
        traced = _traced(app, warnings=("Tracer crashed",))
        with pytest.raises(BundleError):
            BundleMaterializer().materialize(app / "handler.py", traced, dest)
        assert not dest.exists()


# ---------------------------------------------------------------------------
# Companions
# ---------------------------------------------------------------------------


class TestCompanions:
    """index.py and function.json at the bundle root."""

    def test_descriptor(self, app: Path, root: Path) -> None:
        dest = root / "out" / "fn.func"
        BundleMaterializer().materialize(
            app / "handler.py", _traced(app), dest, runtime="python3.12",
        )
        descriptor = json.loads((dest / "function.json").read_text())
        assert descriptor == {"handler": "index.app", "runtime": "python3.12"}

    def test_bootstrap_paths_are_relative(self, app: Path, root: Path) -> None:
        dest = root / "out" / "fn.func"
        BundleMaterializer().materialize(app / "handler.py", _traced(app), dest)
        bootstrap = (dest / "index.py").read_text()
        assert "['.']" in bootstrap
        assert "'handler.py'" in bootstrap
        assert str(root) not in bootstrap

    def test_search_roots_outside_bundle_skipped(self, app: Path, root: Path) -> None:
        traced = TracedFileSet(
            files=_traced(app).files,
            search_roots=(app / "lib", root / "elsewhere"),
        )
        dest = root / "out" / "fn.func"
        BundleMaterializer().materialize(app / "handler.py", traced, dest)
        bootstrap = (dest / "index.py").read_text()
        assert "['lib']" in bootstrap
        assert "elsewhere" not in bootstrap


# ---------------------------------------------------------------------------
# Warnings and events
# ---------------------------------------------------------------------------


class TestReporting:
    """Resolution failures are printed and recorded but never fatal."""

    def test_failures_printed(
        self, app: Path, root: Path, capsys: pytest.CaptureFixture[str],
    ) -> None:
        warning = (
            "Failed to resolve dependency psycopg: "
            f"Cannot find module 'psycopg' loaded from {app / 'handler.py'}"
        )
        result = BundleMaterializer().materialize(
            app / "handler.py", _traced(app, warnings=(warning,)), root / "out",
        )
        assert result.failures == {str(app / "handler.py"): ("psycopg",)}
        err = capsys.readouterr().err
        assert "failed to locate dependencies" in err
        assert "psycopg" in err

    def test_no_output_without_failures(
        self, app: Path, root: Path, capsys: pytest.CaptureFixture[str],
    ) -> None:
        BundleMaterializer().materialize(app / "handler.py", _traced(app), root / "out")
        assert capsys.readouterr().err == ""

    def test_events(self, app: Path, root: Path) -> None:
        collector = BuildCollector()
        warning = (
            "Failed to resolve dependency redis: "
            f"Cannot find module 'redis' loaded from {app / 'handler.py'}"
        )
        BundleMaterializer(collector=collector).materialize(
            app / "handler.py", _traced(app, warnings=(warning,)), root / "out",
        )
        (resolution,) = collector.log.query(event_type=ResolutionWarning)
        assert resolution.modules == ("redis",)
        (build,) = collector.log.query(event_type=BuildEvent)
        assert build.kind == "materialize"
