"""Query commands: lookup, hover, annotate, list."""

from __future__ import annotations

import argparse
from typing import List

from . import Command
from ..context import InspectorContext, InspectorError
from ..output import emit_error, emit_result, format_record_table, record_to_dict


def _line_parser(prog: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=prog, add_help=False)
    parser.add_argument("line", type=int, help="1-based source line")
    return parser


class LookupCommand(Command):
    def __init__(self) -> None:
        super().__init__("lookup", "Show the record for a line", aliases=("l",))
        parser = _line_parser("lookup")
        parser.add_argument("--file", help="Source file name for file-qualified tables")
        self._parser = parser

    def run(self, ctx: InspectorContext, argv: List[str]) -> int:
        try:
            args = self._parser.parse_args(argv)
        except SystemExit:
            return 1
        record = ctx.lookup(args.line, args.file)
        if record is None:
            emit_error(ctx, message=f"no record for line {args.line}")
            return 1
        data = record_to_dict(record)
        emit_result(
            ctx,
            message=f"line {record.line}: pc={data['pc']} inpc={data['inpc']} instruction={data['instruction']!r}",
            data=data,
        )
        return 0


class HoverCommand(Command):
    def __init__(self) -> None:
        super().__init__("hover", "Show hover text for a line of the open source")
        self._parser = _line_parser("hover")

    def run(self, ctx: InspectorContext, argv: List[str]) -> int:
        try:
            args = self._parser.parse_args(argv)
        except SystemExit:
            return 1
        try:
            text = ctx.hover_text(args.line)
        except InspectorError as exc:
            emit_error(ctx, message=str(exc))
            return 1
        if text is None:
            emit_result(ctx, message="(no hover)", data={"line": args.line, "hover": None})
            return 0
        emit_result(ctx, message=text, data={"line": args.line, "hover": text})
        return 0


class AnnotateCommand(Command):
    def __init__(self) -> None:
        super().__init__("annotate", "Show the inline annotation for a caret line", aliases=("a",))
        self._parser = _line_parser("annotate")

    def run(self, ctx: InspectorContext, argv: List[str]) -> int:
        try:
            args = self._parser.parse_args(argv)
        except SystemExit:
            return 1
        try:
            text = ctx.annotation(args.line)
        except InspectorError as exc:
            emit_error(ctx, message=str(exc))
            return 1
        emit_result(ctx, message=text or "(no annotation)", data={"line": args.line, "annotation": text})
        return 0


class ListCommand(Command):
    def __init__(self) -> None:
        super().__init__("list", "List loaded records", aliases=("ls",))
        parser = argparse.ArgumentParser(prog="list", add_help=False)
        parser.add_argument("--limit", type=int, default=50)
        self._parser = parser

    def run(self, ctx: InspectorContext, argv: List[str]) -> int:
        try:
            args = self._parser.parse_args(argv)
        except SystemExit:
            return 1
        records = ctx.records(args.limit)
        total = len(ctx.provider.table)
        data = {"total": total, "records": [record_to_dict(record) for record in records]}
        message = format_record_table(records)
        if total > len(records):
            message += f"\n  ... {total - len(records)} more"
        emit_result(ctx, message=message, data=data)
        return 0
