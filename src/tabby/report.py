"""Terminal reporting — warnings and the adapt summary on stderr.

Detects ``NO_COLOR`` / ``TERM`` for safe fallback to plain text.
"""

from __future__ import annotations

import os
import sys
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tabby.adapter import AdaptResult, UnitPlan


# ---------------------------------------------------------------------------
# ANSI helpers: respect NO_COLOR (https://no-color.org)
# ---------------------------------------------------------------------------

def _supports_color() -> bool:
    """Return True if the terminal supports ANSI colors."""
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("TERM") == "dumb":
        return False
    return hasattr(sys.stderr, "isatty") and sys.stderr.isatty()


_COLOR = _supports_color()

_RESET = "\033[0m" if _COLOR else ""
_BOLD = "\033[1m" if _COLOR else ""
_DIM = "\033[2m" if _COLOR else ""
_CYAN = "\033[36m" if _COLOR else ""
_GREEN = "\033[32m" if _COLOR else ""
_YELLOW = "\033[33m" if _COLOR else ""


def _relative(path: str) -> str:
    """Show *path* relative to the cwd when possible."""
    try:
        return os.path.relpath(path)
    except ValueError:
        return path


# ---------------------------------------------------------------------------
# Warnings
# ---------------------------------------------------------------------------

def print_ignored_isr(route_ids: Iterable[str]) -> None:
    """Warn about prerendered routes whose ISR config is ignored."""
    ids = list(route_ids)
    if not ids:
        return
    lines = [
        "",
        f"{_YELLOW}Warning: The following routes have an ISR config which is "
        f"ignored because the route is prerendered:{_RESET}",
    ]
    lines.extend(f"    - {route_id}" for route_id in ids)
    lines.append(
        'Either remove the "prerender" option from these routes to use ISR, '
        "or remove the ISR config.\n"
    )
    print("\n".join(lines), file=sys.stderr)


def print_resolution_failures(failures: Mapping[str, Iterable[str]]) -> None:
    """Warn about modules whose dependencies could not be located."""
    if not failures:
        return
    lines = [
        f"{_YELLOW}Warning: The following modules failed to locate dependencies "
        f"that may (or may not) be required for your app to work:{_RESET}",
    ]
    for importer, modules in failures.items():
        lines.append(f"  {_relative(importer)}")
        lines.extend(f"    - {_BOLD}{_CYAN}{module}{_RESET}" for module in modules)
    print("\n".join(lines), file=sys.stderr)


# ---------------------------------------------------------------------------
# Summaries
# ---------------------------------------------------------------------------

def print_plan(plans: Iterable[UnitPlan]) -> None:
    """Print which routes each planned unit serves."""
    lines: list[str] = []
    for plan in plans:
        routes = ", ".join(route.id for route in plan.routes) or f"{_DIM}(catch-all){_RESET}"
        runtime = plan.config.runtime if plan.config is not None else "default"
        lines.append(f"  {_BOLD}{plan.name}{_RESET} {_DIM}[{runtime}]{_RESET}  {routes}")
    print("\n".join(lines), file=sys.stderr)


def print_summary(result: AdaptResult) -> None:
    """Print the outcome of an adapt pass."""
    unit_word = "function" if len(result.units) == 1 else "functions"
    lines = [
        "",
        f"  {_GREEN}✓{_RESET} {len(result.units)} {unit_word}, "
        f"{len(result.static_files)} static files "
        f"{_DIM}({result.duration_ms:.0f}ms){_RESET}",
    ]
    for unit in result.units:
        lines.append(
            f"    {_BOLD}{unit.name}{_RESET}  {unit.bundle.file_count} files  "
            f"{_DIM}{_relative(str(unit.bundle.dest))}{_RESET}"
        )
    lines.append(f"  Output: {_CYAN}{_relative(str(result.output_dir))}{_RESET}")
    lines.append("")
    print("\n".join(lines), file=sys.stderr)
