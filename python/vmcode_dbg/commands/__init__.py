"""Command model, registry and dispatch for vmcode-dbg."""

from __future__ import annotations

import logging
import shlex
from typing import Dict, Iterable, List, Optional, Sequence

from ..context import InspectorContext

LOGGER = logging.getLogger("vmcode_dbg.commands")


class Command:
    """One shell command; subclasses implement ``run``."""

    def __init__(self, name: str, description: str, aliases: Sequence[str] = ()) -> None:
        self.name = name
        self.description = description
        self.aliases = tuple(aliases)

    def run(self, ctx: InspectorContext, argv: List[str]) -> int:
        raise NotImplementedError(f"{type(self).__name__}.run")

    def format_help(self) -> str:
        names = ", ".join((self.name,) + self.aliases)
        return f"  {names:<16} {self.description}"


class CommandRegistry:
    """Stores the known commands, resolves aliases and runs command lines."""

    def __init__(self) -> None:
        self._commands: Dict[str, Command] = {}
        self._ordered: List[Command] = []

    def register(self, command: Command) -> None:
        self._ordered.append(command)
        self._commands[command.name] = command
        for alias in command.aliases:
            self._commands[alias] = command

    def get(self, name: str) -> Optional[Command]:
        return self._commands.get(name)

    def list_commands(self) -> Iterable[Command]:
        return self._ordered

    def names(self) -> List[str]:
        return sorted(self._commands)

    def execute(self, ctx: InspectorContext, line: str) -> Optional[int]:
        """
        Tokenize ``line`` with shell quoting and run the matching command.

        Returns None for blank input, otherwise the command status. ``exit``
        propagates SystemExit so the caller decides how to leave.
        """
        try:
            argv = shlex.split(line, posix=True)
        except ValueError as exc:
            print(f"Parse error: {exc}")
            return 1
        if not argv:
            return None
        name, *args = argv
        command = self.get(ctx.resolve_alias(name))
        if command is None:
            print(f"Unknown command: {name}")
            return 1
        try:
            return command.run(ctx, args)
        except SystemExit:
            raise
        except Exception as exc:
            LOGGER.exception("command %s failed", command.name)
            print(f"Command '{command.name}' failed: {exc}")
            return 1


class HelpCommand(Command):
    def __init__(self, registry: CommandRegistry) -> None:
        super().__init__("help", "Show commands and the current inspector state", aliases=("?",))
        self.registry = registry

    def run(self, ctx: InspectorContext, argv: List[str]) -> int:
        if argv:
            command = self.registry.get(ctx.resolve_alias(argv[0]))
            if command is None:
                print(f"Unknown command: {argv[0]}")
                return 1
            print(command.format_help())
            return 0
        print("Commands:")
        for command in self.registry.list_commands():
            print(command.format_help())
        document = ctx.document
        config = ctx.config
        print()
        print(f"  source     {document.path if document else '(none, use open <file.asm>)'}")
        if document is not None:
            print(f"  side-car   {ctx.expected_sidecar(document.path)}")
        print(
            f"  variant    {config.key_scheme.value} / {config.merge_policy.value} / "
            f"{config.path_convention.value}{' / headers' if config.recognize_headers else ''}"
        )
        return 0


class ExitCommand(Command):
    def __init__(self) -> None:
        super().__init__("exit", "Close the open source and leave the inspector", aliases=("quit", "q"))

    def run(self, ctx: InspectorContext, argv: List[str]) -> int:
        status = 0
        if argv:
            try:
                status = int(argv[0])
            except ValueError:
                print(f"exit status must be an integer, got {argv[0]!r}")
                return 1
        ctx.close()
        raise SystemExit(status)


def build_registry() -> CommandRegistry:
    from .config import ConfigCommand
    from .query import AnnotateCommand, HoverCommand, ListCommand, LookupCommand
    from .sidecar import LoadCommand, OpenCommand, ReloadCommand, ResolveCommand

    registry = CommandRegistry()
    for command in (
        HelpCommand(registry),
        OpenCommand(),
        LoadCommand(),
        ResolveCommand(),
        ReloadCommand(),
        LookupCommand(),
        HoverCommand(),
        AnnotateCommand(),
        ListCommand(),
        ConfigCommand(),
        ExitCommand(),
    ):
        registry.register(command)
    return registry


__all__ = ["Command", "CommandRegistry", "HelpCommand", "ExitCommand", "build_registry"]
