"""Config command."""

from __future__ import annotations

from typing import List

from . import Command
from ..context import InspectorContext, InspectorError
from ..output import emit_error, emit_result


class ConfigCommand(Command):
    def __init__(self) -> None:
        super().__init__("config", "Show or change provider options (config keyScheme=unqualified ...)")

    def run(self, ctx: InspectorContext, argv: List[str]) -> int:
        options = {}
        for token in argv:
            if "=" not in token:
                emit_error(ctx, message=f"expected key=value, got {token!r}")
                return 1
            key, value = token.split("=", 1)
            options[key.strip()] = value.strip()
        if options:
            try:
                ctx.reconfigure(options)
            except (ValueError, InspectorError) as exc:
                emit_error(ctx, message=str(exc))
                return 1
        data = ctx.config.describe()
        message = "\n".join(f"{key:<17} {value}" for key, value in data.items())
        emit_result(ctx, message=message, data=data)
        return 0
