"""Command runner: the ``command_runner`` component used in command mode.

Commands are small classes with an argparse sub-parser each::

    class Greet(Command):
        help = "Print a greeting"

        def add_arguments(self, parser):
            parser.add_argument("name")

        def handle(self, args):
            print(f"Hello, {args.name}")
            return 0

    app = Application({"console": True, "command_map": {"greet": Greet}})
    app.argv = ["manage", "greet", "Ada"]
    app.run()   # prints "Hello, Ada" and exits with status 0

``handle()`` returning an ``int`` ends the process with that status;
returning ``None`` lets the run finish normally.
"""

from __future__ import annotations

import argparse
import logging
import os
from collections.abc import Mapping, Sequence
from typing import Any

from perch._internal.factory import class_name, create_object, resolve_class
from perch.component import Component

logger = logging.getLogger("perch.cli")


class Command:
    """Base class for console commands."""

    help: str = ""

    def __init__(self, name: str, runner: CommandRunner | None = None, *, app: Any = None) -> None:
        self.name = name
        self.runner = runner
        self.app = app

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        """Declare the command's arguments on its sub-parser."""

    def handle(self, args: argparse.Namespace) -> int | None:
        raise NotImplementedError


class ComponentsCommand(Command):
    """List application components and whether they are loaded."""

    help = "List configured components"

    def handle(self, args: argparse.Namespace) -> int:
        loaded = self.app.get_components(loaded_only=True)
        configured = self.app.get_components(loaded_only=False)
        for id in sorted(configured):
            value = configured[id]
            if id in loaded:
                state, target = "loaded", type(value).__name__
            else:
                state, target = "pending", class_name(value["class"]) if "class" in value else "?"
            print(f"{id:<20} {state:<8} {target}")
        return 0


class StateCommand(Command):
    """Inspect or clear persisted global state."""

    help = "Show or clear global state"

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--clear", metavar="KEY", action="append", default=[])

    def handle(self, args: argparse.Namespace) -> int:
        for key in args.clear:
            self.app.clear_global_state(key)
            print(f"cleared {key}")
        if not args.clear:
            for key, value in sorted(self.app.global_state.all().items()):
                print(f"{key} = {value!r}")
        return 0


BUILTIN_COMMANDS: dict[str, type[Command]] = {
    "components": ComponentsCommand,
    "state": StateCommand,
}


class CommandRunner(Component):
    """Dispatch process arguments to a named command.

    Options:
        commands: Mapping of command name to a ``Command`` subclass, an
            import string, or a config mapping with a ``class`` key.
        prog: Program name shown in help. Defaults to ``argv[0]``.
        builtins: Register the built-in ``components`` and ``state``
            commands.
    """

    commands: Mapping[str, Any] = {}
    prog: str | None = None
    builtins: bool = True

    def __init__(self, **options: Any) -> None:
        super().__init__(**options)
        self._commands: dict[str, Any] = dict(BUILTIN_COMMANDS) if self.builtins else {}
        self._commands.update(self.commands)
        self.command: Command | None = None

    @property
    def names(self) -> list[str]:
        return sorted(self._commands)

    def add_commands(self, commands: Mapping[str, Any]) -> None:
        self._commands.update(commands)

    def create_command(self, name: str) -> Command:
        entry = self._commands[name]
        if isinstance(entry, Mapping):
            return create_object(entry, name, self, app=self.app)
        return create_object({"class": resolve_class(entry)}, name, self, app=self.app)

    def build_parser(self, prog: str) -> tuple[argparse.ArgumentParser, dict[str, Command]]:
        parser = argparse.ArgumentParser(prog=prog)
        subparsers = parser.add_subparsers(dest="command", metavar="command")
        commands: dict[str, Command] = {}
        for name in self.names:
            command = self.create_command(name)
            sub = subparsers.add_parser(name, help=command.help)
            command.add_arguments(sub)
            commands[name] = command
        return parser, commands

    def run(self, argv: Sequence[str]) -> int | None:
        """Parse *argv* (``argv[0]`` is the program) and run the command.

        Returns the command's exit status, ``1`` when no command was
        given. Argument errors exit through argparse with status 2.
        """
        prog = self.prog or (os.path.basename(argv[0]) if argv else "perch")
        parser, commands = self.build_parser(prog)
        args = parser.parse_args(list(argv[1:]))
        if args.command is None:
            parser.print_help()
            return 1

        self.command = commands[args.command]
        logger.debug("Running command %r", args.command)
        return self.command.handle(args)
