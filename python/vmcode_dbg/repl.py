"""Interactive REPL for vmcode-dbg."""

from __future__ import annotations

from typing import Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.history import InMemoryHistory
from prompt_toolkit.patch_stdout import patch_stdout

from .commands import CommandRegistry
from .completion import InspectorCompleter
from .context import InspectorContext


class InspectorREPL:
    """prompt_toolkit REPL over the command registry; history lives for the session only."""

    def __init__(self, ctx: InspectorContext, registry: CommandRegistry) -> None:
        self.ctx = ctx
        self.registry = registry

    def prompt_text(self) -> str:
        document = self.ctx.document
        return f"vmcode [{document.path.name}]> " if document else "vmcode> "

    def run(self) -> int:
        completer = InspectorCompleter(self.ctx, self.registry)
        session = PromptSession(history=InMemoryHistory(), completer=completer, complete_while_typing=True)
        buffer: list[str] = []
        while True:
            try:
                with patch_stdout():
                    line = session.prompt(self.prompt_text())
            except (EOFError, KeyboardInterrupt):
                print()
                self.ctx.close()
                return 0
            if self.handle_multiline(buffer, line):
                continue
            payload = " ".join(buffer) if buffer else line
            buffer.clear()
            try:
                self.dispatch(payload)
            except SystemExit as exc:
                return int(exc.code or 0)

    def dispatch(self, line: str) -> Optional[int]:
        return self.registry.execute(self.ctx, line.strip())

    @staticmethod
    def handle_multiline(buffer: list[str], line: str) -> bool:
        stripped = line.rstrip()
        if stripped.endswith("\\"):
            buffer.append(stripped[:-1])
            return True
        if buffer:
            buffer.append(stripped)
        return False
