"""Shared test fixtures for tabby."""

from __future__ import annotations

import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

# Module names imported by the generated handler and the fixture server
_GENERATED_MODULES = ("manifest", "server", "tabby_fixture_helpers")


@pytest.fixture
def root(tmp_path: Path) -> Path:
    """tmp_path with symlinks resolved, so nominal and real paths agree."""
    return tmp_path.resolve()


@pytest.fixture
def project(root: Path) -> Path:
    """Create a minimal built project for adapt tests.

    Layout::

        routes/                      (empty; tests add route modules)
        build/server/server.py       create_app(manifest) -> manifest
        build/server/tabby_fixture_helpers.py
        build/server/data/posts.json server asset
        build/client/app.css
        build/client/_app/immutable/start.js
        build/prerendered/about/index.html
    """
    (root / "routes").mkdir()

    server = root / "build" / "server"
    server.mkdir(parents=True)
    (server / "server.py").write_text(
        "from tabby_fixture_helpers import echo\n\n\n"
        "def create_app(manifest):\n"
        "    return echo(manifest)\n"
    )
    (server / "tabby_fixture_helpers.py").write_text(
        "def echo(value):\n    return value\n"
    )
    (server / "data").mkdir()
    (server / "data" / "posts.json").write_text('["hello"]\n')

    client = root / "build" / "client"
    (client / "_app" / "immutable").mkdir(parents=True)
    (client / "app.css").write_text("body { margin: 0; }\n")
    (client / "_app" / "immutable" / "start.js").write_text("console.log('start');\n")

    prerendered = root / "build" / "prerendered" / "about"
    prerendered.mkdir(parents=True)
    (prerendered / "index.html").write_text("<h1>About</h1>\n")

    return root


@pytest.fixture
def clean_modules() -> Iterator[None]:
    """Drop modules a generated handler imports, before and after the test."""
    saved_path = list(sys.path)
    for name in _GENERATED_MODULES:
        sys.modules.pop(name, None)
    yield
    sys.path[:] = saved_path
    for name in _GENERATED_MODULES:
        sys.modules.pop(name, None)
