"""
Metadata provider: side-car resolution, hover and caret-line decoration.

The provider owns one MetadataTable. The host feeds it three event streams
(active editor, selection, hover) and the SidecarWatcher feeds it file
changes; all of them are serialized by the provider lock.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import ProviderConfig
from .paths import expected_sidecar_path, is_recognized, path_to_uri
from .table import InstructionRecord, KeyScheme, MetadataTable
from .watch import SidecarWatcher

JsonDict = Dict[str, Any]

DECORATION_TYPE = "vmcode.pc"
DECORATION_STYLE: JsonDict = {
    "light": {
        "after": {
            "color": "rgba(0, 0, 0, 0.5)",
            "fontStyle": "italic",
            "margin": "0 0 0 10px",
        }
    },
    "dark": {
        "after": {
            "color": "rgba(255, 255, 255, 0.5)",
            "fontStyle": "italic",
            "margin": "0 0 0 10px",
        }
    },
}


@dataclass
class DocumentInfo:
    """What the provider needs to know about an open editor document."""

    path: Path
    language_id: Optional[str] = None
    lines: List[str] = field(default_factory=list)
    uri: Optional[str] = None

    def __post_init__(self) -> None:
        self.path = Path(self.path)
        if not self.uri:
            self.uri = path_to_uri(self.path)

    def set_text(self, text: str) -> None:
        self.lines = text.splitlines()

    def line_length(self, line: int) -> int:
        if 0 <= line < len(self.lines):
            return len(self.lines[line])
        return 0


class RecordingDecorationChannel:
    """Decoration channel that keeps the current decorations per document."""

    def __init__(self) -> None:
        self.types: Dict[str, JsonDict] = {}
        self.decorations: Dict[str, List[JsonDict]] = {}

    def create_type(self, decoration_type: str, style: JsonDict) -> None:
        self.types[decoration_type] = style

    def set_decorations(self, uri: str, decoration_type: str, decorations: List[JsonDict]) -> None:
        if decorations:
            self.decorations[uri] = list(decorations)
        else:
            self.decorations.pop(uri, None)

    def dispose_type(self, decoration_type: str) -> None:
        self.types.pop(decoration_type, None)
        self.decorations.clear()

    def visible(self) -> List[JsonDict]:
        return [item for items in self.decorations.values() for item in items]


def format_hover_text(record: InstructionRecord) -> str:
    return (
        "```\n"
        f"PC:     {record.program_counter or ''}\n"
        f"INPC:   {record.in_pc or ''}\n"
        f"Instruction: {record.instruction_text or ''}\n"
        "```"
    )


def format_annotation(record: InstructionRecord, line: int) -> str:
    return f"Line: {line + 1} pc: {record.program_counter or ''}"


class MetadataProvider:
    """Answers hover/decoration queries from the side-car of the active document."""

    def __init__(
        self,
        config: Optional[ProviderConfig] = None,
        *,
        channel: Any = None,
        table: Optional[MetadataTable] = None,
        watch: bool = True,
    ) -> None:
        self.config = config or ProviderConfig()
        self.table = table or MetadataTable(self.config.key_scheme, self.config.merge_policy)
        self.channel = channel if channel is not None else RecordingDecorationChannel()
        self.logger = logging.getLogger("mcode.provider")
        self.watch_enabled = watch
        self._lock = threading.RLock()
        self._started = False
        self._active: Optional[DocumentInfo] = None
        self._caret_line: Optional[int] = None
        self._sidecar_path: Optional[Path] = None
        self._watcher: Optional[SidecarWatcher] = None
        self._decorated_uri: Optional[str] = None

    # Lifecycle ---------------------------------------------------------
    def start(self) -> None:
        with self._lock:
            if self._started:
                return
            self.channel.create_type(DECORATION_TYPE, DECORATION_STYLE)
            self._started = True
            self.logger.info(
                "metadata provider started (key=%s merge=%s paths=%s)",
                self.config.key_scheme.value,
                self.config.merge_policy.value,
                self.config.path_convention.value,
            )

    def stop(self) -> None:
        with self._lock:
            self._unwatch()
            self._clear_decorations()
            if self._started:
                self.channel.dispose_type(DECORATION_TYPE)
            self._started = False
            self.table.clear()
            self._active = None
            self._caret_line = None
            self._sidecar_path = None
            self.logger.info("metadata provider stopped")

    @property
    def active_document(self) -> Optional[DocumentInfo]:
        return self._active

    @property
    def sidecar_path(self) -> Optional[Path]:
        return self._sidecar_path

    @property
    def watcher(self) -> Optional[SidecarWatcher]:
        return self._watcher

    def is_recognized(self, document: Optional[DocumentInfo]) -> bool:
        if document is None:
            return False
        return is_recognized(
            document.path,
            document.language_id,
            recognize_headers=self.config.recognize_headers,
            header_marker=self.config.header_marker,
        )

    # Host events -------------------------------------------------------
    def on_active_editor_changed(self, document: Optional[DocumentInfo]) -> None:
        with self._lock:
            previous = self._active
            self._clear_decorations()
            self._caret_line = None
            if not self.is_recognized(document):
                self._active = None
                self._unwatch()
                self.table.clear()
                self._sidecar_path = None
                return
            self._active = document
            expected = expected_sidecar_path(document.path, self.config.path_convention)
            switched = previous is None or previous.path != document.path
            if expected != self._sidecar_path:
                self._sidecar_path = expected
                self._watch(expected)
                self._load(expected)
            elif switched:
                self._load(expected)

    def on_selection_changed(self, document: Optional[DocumentInfo], line: int) -> Optional[JsonDict]:
        with self._lock:
            if document is not None and (self._active is None or self._active.path != document.path):
                self.on_active_editor_changed(document)
            self._caret_line = int(line) if line is not None else None
            return self.update_decorations()

    def update_decorations(self) -> Optional[JsonDict]:
        """Clear the previous caret annotation and render the one for the current caret line."""
        with self._lock:
            self._clear_decorations()
            document = self._active
            line = self._caret_line
            if document is None or line is None or line < 0:
                return None
            record = self.lookup(document, line)
            if record is None:
                return None
            column = document.line_length(line)
            decoration: JsonDict = {
                "range": {
                    "start": {"line": line, "character": column},
                    "end": {"line": line, "character": column},
                },
                "renderOptions": {
                    "after": {
                        "contentText": f" [{format_annotation(record, line)}]",
                        "color": "rgba(0, 0, 0, 0.5)",
                    }
                },
            }
            self.channel.set_decorations(document.uri, DECORATION_TYPE, [decoration])
            self._decorated_uri = document.uri
            return decoration

    def provide_hover(self, document: Optional[DocumentInfo], line: int) -> Optional[JsonDict]:
        with self._lock:
            if not self.is_recognized(document):
                return None
            record = self.lookup(document, line)
            if record is None:
                return None
            return {
                "contents": {"kind": "markdown", "value": format_hover_text(record)},
                "range": {
                    "start": {"line": line, "character": 0},
                    "end": {"line": line, "character": document.line_length(line)},
                },
            }

    def lookup(self, document: DocumentInfo, line: int) -> Optional[InstructionRecord]:
        """Record for a zero-based editor line of ``document``."""
        if not self._owns_table(document):
            return None
        return self.table.get(int(line) + 1, str(document.path))

    def _owns_table(self, document: DocumentInfo) -> bool:
        # unqualified keys carry no file name, so only the document whose
        # side-car filled the table may read it
        if self.table.key_scheme is not KeyScheme.UNQUALIFIED:
            return True
        if self._active is not None and self._active.path == document.path:
            return True
        if self._sidecar_path is None:
            return False
        return expected_sidecar_path(document.path, self.config.path_convention) == self._sidecar_path

    def reload(self) -> int:
        with self._lock:
            if self._sidecar_path is None:
                return 0
            return self._load(self._sidecar_path)

    # Side-car handling ---------------------------------------------------
    def _load(self, path: Path) -> int:
        if not path.is_file():
            self.logger.debug("no side-car at %s", path)
            self.table.clear()
            return 0
        try:
            count = self.table.load_file(path)
        except OSError as exc:
            self.logger.warning("failed to read side-car %s: %s", path, exc)
            self.table.clear()
            return 0
        self.logger.info("loaded %d records from %s", count, path)
        return count

    def _watch(self, path: Path) -> None:
        self._unwatch()
        if not self.watch_enabled:
            return
        watcher = SidecarWatcher(
            path,
            on_changed=self._on_sidecar_changed,
            on_removed=self._on_sidecar_removed,
            interval=self.config.poll_interval,
        )
        self._watcher = watcher
        watcher.start()

    def _unwatch(self) -> None:
        watcher = self._watcher
        self._watcher = None
        if watcher is not None:
            watcher.stop()

    def _on_sidecar_changed(self, path: Path) -> None:
        with self._lock:
            if path != self._sidecar_path:
                return
            self._load(path)
            self.update_decorations()

    def _on_sidecar_removed(self, path: Path) -> None:
        with self._lock:
            if path != self._sidecar_path:
                return
            self.table.clear()
            self._clear_decorations()

    def _clear_decorations(self) -> None:
        uri = self._decorated_uri
        self._decorated_uri = None
        if uri is not None:
            self.channel.set_decorations(uri, DECORATION_TYPE, [])
