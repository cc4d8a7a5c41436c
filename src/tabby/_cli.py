"""Tabby CLI — tabby adapt / tabby plan.

Entry point for the ``tabby`` command-line interface.
"""

from __future__ import annotations

import argparse
import sys

from tabby._errors import TabbyError


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the tabby CLI."""
    parser = argparse.ArgumentParser(
        prog="tabby",
        description="Split a route-based site into deployable function bundles.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # tabby adapt
    adapt_parser = subparsers.add_parser(
        "adapt",
        help="Write the deployment output tree",
    )
    adapt_parser.add_argument("root", nargs="?", default=".", help="Project root directory")
    adapt_parser.add_argument("--output", default=None, help="Output directory")
    adapt_parser.add_argument("--base-path", default=None, help="Base path for static assets")
    adapt_parser.add_argument(
        "--workers", type=int, default=None, help="Copy workers per bundle (0=auto)",
    )

    # tabby plan
    plan_parser = subparsers.add_parser(
        "plan",
        help="Show how routes are grouped into functions, without writing files",
    )
    plan_parser.add_argument("root", nargs="?", default=".", help="Project root directory")

    return parser


def _get_version() -> str:
    """Get the package version."""
    from tabby import __version__

    return __version__


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    from tabby.adapter import run

    try:
        if args.command == "adapt":
            run(
                args.root,
                output=args.output,
                base_path=args.base_path,
                workers=args.workers,
            )
        elif args.command == "plan":
            run(args.root, dry_run=True)
    except TabbyError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
