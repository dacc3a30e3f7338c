"""prompt_toolkit completer for vmcode-dbg."""

from __future__ import annotations

import shlex
from typing import Iterable, List

from prompt_toolkit.completion import Completer, Completion, PathCompleter
from prompt_toolkit.document import Document

from .commands import CommandRegistry
from .context import InspectorContext

PATH_COMMANDS = {"open", "load", "resolve"}
CONFIG_KEYS = ("keyScheme=", "mergePolicy=", "pathConvention=", "recognizeHeaders=", "headerMarker=")


def _normalise_tokens(text: str) -> List[str]:
    if not text:
        return []
    try:
        tokens = shlex.split(text, posix=True)
        trailing = text[-1].isspace()
    except ValueError:
        tokens = text.strip().split()
        trailing = text.endswith((" ", "\t"))
    if trailing:
        tokens.append("")
    return tokens


class InspectorCompleter(Completer):
    """Command names, source paths and config keys."""

    def __init__(self, ctx: InspectorContext, registry: CommandRegistry) -> None:
        self.ctx = ctx
        self.registry = registry
        self._path = PathCompleter(expanduser=True)

    def get_completions(self, document: Document, complete_event) -> Iterable[Completion]:
        tokens = _normalise_tokens(document.text_before_cursor)
        if not tokens:
            yield from self._completions(self._command_names(), "")
            return
        prefix = tokens[-1]
        if len(tokens) == 1:
            yield from self._completions(self._command_names(), prefix)
            return
        command = self.ctx.resolve_alias(tokens[0])
        resolved = self.registry.get(command)
        name = resolved.name if resolved else command
        if name in PATH_COMMANDS and len(tokens) == 2:
            path_document = Document(prefix, cursor_position=len(prefix))
            yield from self._path.get_completions(path_document, complete_event)
            return
        if name == "config":
            yield from self._completions(CONFIG_KEYS, prefix)

    def _command_names(self) -> List[str]:
        return self.registry.names()

    @staticmethod
    def _completions(candidates: Iterable[str], prefix: str) -> Iterable[Completion]:
        needle = prefix.lower()
        for entry in sorted(dict.fromkeys(candidates)):
            if entry.lower().startswith(needle):
                yield Completion(entry, start_position=-len(prefix))
