"""Perch CLI: run an application's console commands.

Entry point registered as ``perch`` in ``pyproject.toml``::

    [project.scripts]
    perch = "perch.cli:main"

Usage::

    perch --app myapp:app components
    perch --config app.toml state --clear perch.security.secret_key
"""

import argparse
import sys

from perch.cli.runner import Command, CommandRunner

__all__ = ["Command", "CommandRunner", "main"]


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the ``perch`` command."""
    from perch.app import Application
    from perch.cli._resolve import resolve_app

    parser = argparse.ArgumentParser(
        prog="perch",
        description="Perch: run application console commands.",
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--app", help="Import string (e.g. myapp:app)")
    source.add_argument("--config", help="Configuration file (.toml or .json)")
    parser.add_argument("command", nargs=argparse.REMAINDER, help="Command and its arguments")

    args = parser.parse_args(argv)

    app = resolve_app(args.app) if args.app else Application(args.config)
    app.console = True
    app.argv = ["perch", *args.command]

    try:
        app.run()
    except Exception as exc:
        handler = app.error_handler
        if handler is None:
            app.display_error(exc)
        else:
            handler.report(exc)
        sys.exit(1)
