"""Output helpers for vmcode-dbg."""

from __future__ import annotations

import json
from typing import Any, Dict, Mapping, Optional, Sequence

from mcode.table import InstructionRecord

from .context import InspectorContext


def _json_dump(payload: Mapping[str, Any]) -> str:
    return json.dumps(payload, indent=2, sort_keys=True)


def emit_result(ctx: InspectorContext, *, message: str, data: Optional[Mapping[str, Any]] = None) -> None:
    """Emit a successful command result."""
    if ctx.json_output:
        payload: Dict[str, Any] = {"status": "ok"}
        if data is not None:
            payload["result"] = data
        else:
            payload["message"] = message
        print(_json_dump(payload))
    else:
        print(message)


def emit_error(ctx: InspectorContext, *, message: str, data: Optional[Mapping[str, Any]] = None) -> None:
    """Emit an error message respecting JSON mode."""
    payload: Dict[str, Any] = {"status": "error", "error": message}
    if data:
        payload["details"] = dict(data)
    if ctx.json_output:
        print(_json_dump(payload))
    else:
        print(f"error: {message}")


def record_to_dict(record: InstructionRecord) -> Dict[str, Any]:
    return {
        "file": record.source_file_name,
        "line": record.line,
        "pc": record.program_counter,
        "inpc": record.in_pc,
        "instruction": record.instruction_text,
    }


def format_record_table(records: Sequence[InstructionRecord]) -> str:
    """Render records as a fixed-width table."""
    if not records:
        return "  records: (none)"
    show_file = any(record.source_file_name for record in records)
    prefix = f"{'File':<20}  " if show_file else ""
    header = f"  {prefix}{'Line':>5}  {'PC':<12}  {'INPC':<12}  Instruction"
    rows = [header, "  " + "-" * (len(header) - 2)]
    for record in records:
        file_column = f"{(record.source_file_name or '-')[-20:]:<20}  " if show_file else ""
        rows.append(
            f"  {file_column}{record.line:>5}  {record.program_counter or '-':<12}  "
            f"{record.in_pc or '-':<12}  {record.instruction_text or ''}"
        )
    return "\n".join(rows)
