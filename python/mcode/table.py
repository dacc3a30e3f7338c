"""Per-line machine-code metadata table and side-car loader."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional

LOGGER = logging.getLogger("mcode.table")

FIELD_SEPARATOR = ", "


class KeyScheme(str, Enum):
    UNQUALIFIED = "unqualified"
    FILE_QUALIFIED = "file-qualified"


class MergePolicy(str, Enum):
    OVERWRITE = "overwrite"
    ACCUMULATE = "accumulate"


def canonical_file_key(value: str) -> str:
    return str(value).replace("\\", "/").lower()


@dataclass
class InstructionRecord:
    """One side-car row: pc/inpc/instruction emitted for a source line."""

    line: int
    program_counter: Optional[str] = None
    in_pc: Optional[str] = None
    instruction_text: Optional[str] = None
    source_file_name: Optional[str] = None

    @property
    def key(self) -> str:
        return make_key(self.line, self.source_file_name)

    def merged_with(self, other: "InstructionRecord") -> "InstructionRecord":
        """Return a record carrying both pc/inpc values joined by ', '."""
        return InstructionRecord(
            line=self.line,
            program_counter=_join(self.program_counter, other.program_counter),
            in_pc=_join(self.in_pc, other.in_pc),
            instruction_text=self.instruction_text or other.instruction_text,
            source_file_name=self.source_file_name,
        )


def _join(first: Optional[str], second: Optional[str]) -> Optional[str]:
    if first is None:
        return second
    if second is None:
        return first
    return f"{first}{FIELD_SEPARATOR}{second}"


def make_key(line: int, source_file_name: Optional[str] = None) -> str:
    if source_file_name is None:
        return str(int(line))
    return f"{canonical_file_key(source_file_name)}:{int(line)}"


def _column(parts: List[str], index: int) -> Optional[str]:
    if index >= len(parts):
        return None
    return parts[index].strip()


def parse_sidecar_line(text: str, key_scheme: KeyScheme = KeyScheme.FILE_QUALIFIED) -> Optional[InstructionRecord]:
    """
    Parse one side-car row.

    The instruction is the last column and may itself contain ", ", so the
    split is bounded. Rows without the key column(s) or with a non-numeric
    line number return None.
    """
    stripped = text.strip()
    if not stripped:
        return None
    qualified = KeyScheme(key_scheme) is KeyScheme.FILE_QUALIFIED
    columns = 5 if qualified else 4
    parts = stripped.split(FIELD_SEPARATOR, columns - 1)
    offset = 1 if qualified else 0
    file_name = _column(parts, 0) if qualified else None
    line_value = _column(parts, offset)
    if qualified and not file_name:
        return None
    if not line_value or not (line_value.isascii() and line_value.isdigit()):
        return None
    line = int(line_value)
    return InstructionRecord(
        line=line,
        program_counter=_column(parts, offset + 1),
        in_pc=_column(parts, offset + 2),
        instruction_text=_column(parts, offset + 3),
        source_file_name=file_name,
    )


class MetadataTable:
    """Lookup table keyed by ``line`` or ``file:line`` depending on the scheme."""

    def __init__(
        self,
        key_scheme: KeyScheme = KeyScheme.FILE_QUALIFIED,
        merge_policy: MergePolicy = MergePolicy.OVERWRITE,
    ) -> None:
        self.key_scheme = KeyScheme(key_scheme)
        self.merge_policy = MergePolicy(merge_policy)
        self._records: Dict[str, InstructionRecord] = {}
        self.source_path: Optional[Path] = None

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[InstructionRecord]:
        return iter(list(self._records.values()))

    def clear(self) -> None:
        self._records.clear()
        self.source_path = None

    def insert(self, record: InstructionRecord) -> InstructionRecord:
        key = record.key
        existing = self._records.get(key)
        if existing is not None and self.merge_policy is MergePolicy.ACCUMULATE:
            record = existing.merged_with(record)
        self._records[key] = record
        return record

    def extend(self, records: Iterable[InstructionRecord]) -> int:
        count = 0
        for record in records:
            self.insert(record)
            count += 1
        return count

    def load_text(self, text: str) -> int:
        """Parse side-car content into the table. Returns accepted row count."""
        accepted = 0
        skipped = 0
        for raw in text.splitlines():
            if not raw.strip():
                continue
            record = parse_sidecar_line(raw, self.key_scheme)
            if record is None:
                skipped += 1
                continue
            self.insert(record)
            accepted += 1
        if skipped:
            LOGGER.debug("skipped %d malformed side-car rows", skipped)
        return accepted

    def load_file(self, path: Path) -> int:
        """Rebuild the table from ``path``. OSError propagates to the caller."""
        text = Path(path).read_text(encoding="utf-8", errors="replace")
        self._records.clear()
        accepted = self.load_text(text)
        self.source_path = Path(path)
        return accepted

    def get(self, line: int, source_file_name: Optional[str] = None) -> Optional[InstructionRecord]:
        """Look up a 1-based line. ``source_file_name`` is ignored for unqualified tables."""
        if self.key_scheme is KeyScheme.UNQUALIFIED:
            return self._records.get(make_key(line))
        if not source_file_name:
            return None
        for candidate in _file_candidates(source_file_name):
            record = self._records.get(make_key(line, candidate))
            if record is not None:
                return record
        return None

    def records(self) -> List[InstructionRecord]:
        return sorted(self._records.values(), key=lambda rec: (rec.source_file_name or "", rec.line))


def _file_candidates(source_file_name: str) -> List[str]:
    candidates = [source_file_name]
    try:
        candidates.append(str(Path(source_file_name).resolve(strict=False)))
    except (OSError, RuntimeError):
        pass
    candidates.append(Path(source_file_name.replace("\\", "/")).name)
    return list(dict.fromkeys(candidates))
