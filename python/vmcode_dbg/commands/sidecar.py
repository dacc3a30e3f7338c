"""Side-car commands: open, load, resolve, reload."""

from __future__ import annotations

import argparse
from typing import List

from . import Command
from ..context import InspectorContext, InspectorError
from ..output import emit_error, emit_result


class OpenCommand(Command):
    def __init__(self) -> None:
        super().__init__("open", "Activate an assembly source and load its side-car", aliases=("o",))
        parser = argparse.ArgumentParser(prog="open", add_help=False)
        parser.add_argument("source", help="Path to the .asm file")
        self._parser = parser

    def run(self, ctx: InspectorContext, argv: List[str]) -> int:
        try:
            args = self._parser.parse_args(argv)
        except SystemExit:
            return 1
        try:
            document = ctx.open_source(args.source)
        except InspectorError as exc:
            emit_error(ctx, message=str(exc))
            return 1
        sidecar = ctx.provider.sidecar_path
        loaded = sidecar is not None and sidecar.is_file()
        data = {
            "source": str(document.path),
            "sidecar": str(sidecar) if sidecar else None,
            "loaded": loaded,
            "records": len(ctx.provider.table),
        }
        if loaded:
            message = f"{document.path}: {data['records']} records from {sidecar}"
        else:
            message = f"{document.path}: no side-car yet (expected {sidecar})"
        emit_result(ctx, message=message, data=data)
        return 0


class LoadCommand(Command):
    def __init__(self) -> None:
        super().__init__("load", "Load a side-car file directly")
        parser = argparse.ArgumentParser(prog="load", add_help=False)
        parser.add_argument("path", help="Path to the side-car text file")
        self._parser = parser

    def run(self, ctx: InspectorContext, argv: List[str]) -> int:
        try:
            args = self._parser.parse_args(argv)
        except SystemExit:
            return 1
        try:
            count = ctx.load_sidecar(args.path)
        except InspectorError as exc:
            emit_error(ctx, message=str(exc))
            return 1
        emit_result(ctx, message=f"Loaded {count} rows ({len(ctx.provider.table)} records)", data={"rows": count, "records": len(ctx.provider.table)})
        return 0


class ResolveCommand(Command):
    def __init__(self) -> None:
        super().__init__("resolve", "Show where the side-car of a source is expected")
        parser = argparse.ArgumentParser(prog="resolve", add_help=False)
        parser.add_argument("source", help="Path to the .asm file")
        self._parser = parser

    def run(self, ctx: InspectorContext, argv: List[str]) -> int:
        try:
            args = self._parser.parse_args(argv)
        except SystemExit:
            return 1
        expected = ctx.expected_sidecar(args.source)
        found = ctx.resolve_sidecar(args.source)
        data = {"expected": str(expected), "exists": found is not None}
        state = "found" if found else "missing"
        emit_result(ctx, message=f"{expected} ({state})", data=data)
        return 0


class ReloadCommand(Command):
    def __init__(self) -> None:
        super().__init__("reload", "Re-read the side-car of the open source")

    def run(self, ctx: InspectorContext, argv: List[str]) -> int:
        try:
            count = ctx.reload()
        except InspectorError as exc:
            emit_error(ctx, message=str(exc))
            return 1
        emit_result(ctx, message=f"Reloaded {count} rows", data={"rows": count})
        return 0
