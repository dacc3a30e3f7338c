"""Inspector context: one provider instance plus shell settings."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from mcode.config import ProviderConfig
from mcode.paths import expected_sidecar_path, guess_language_id, is_recognized, resolve_sidecar
from mcode.provider import DocumentInfo, MetadataProvider
from mcode.table import InstructionRecord

LOGGER = logging.getLogger("vmcode_dbg.context")


class InspectorError(RuntimeError):
    """User-level failure reported by a shell command."""


@dataclass
class InspectorContext:
    """Holds shared inspector state."""

    config: ProviderConfig = field(default_factory=ProviderConfig)
    json_output: bool = False
    aliases: Dict[str, str] = field(default_factory=dict)
    _provider: Optional[MetadataProvider] = field(default=None, init=False, repr=False)
    _document: Optional[DocumentInfo] = field(default=None, init=False, repr=False)

    @property
    def provider(self) -> MetadataProvider:
        if self._provider is None:
            # The shell reloads on demand; no background watcher.
            self._provider = MetadataProvider(self.config, watch=False)
            self._provider.start()
        return self._provider

    @property
    def document(self) -> Optional[DocumentInfo]:
        return self._document

    def close(self) -> None:
        provider = self._provider
        if provider is None:
            return
        try:
            provider.stop()
        except Exception as exc:  # pragma: no cover
            LOGGER.debug("provider stop failed: %s", exc)
        self._provider = None
        self._document = None

    def reconfigure(self, options: Dict[str, Any]) -> ProviderConfig:
        """
        Apply new options; the table is rebuilt for the current source.

        Nothing changes when the open source would stop being recognized
        under the new options.
        """
        config = self.config.with_options(options)
        document = self._document
        if document is not None and not is_recognized(
            document.path,
            document.language_id,
            recognize_headers=config.recognize_headers,
            header_marker=config.header_marker,
        ):
            raise InspectorError(f"{document.path.name} would not be recognized with these options; open another source first")
        self.close()
        self.config = config
        if document is not None:
            self.open_source(document.path)
        return config

    def resolve_alias(self, name: str) -> str:
        return self.aliases.get(name, name)

    # Side-car operations ---------------------------------------------------
    def expected_sidecar(self, source: str | Path) -> Path:
        return expected_sidecar_path(self._absolute(source), self.config.path_convention)

    def resolve_sidecar(self, source: str | Path) -> Optional[Path]:
        return resolve_sidecar(self._absolute(source), self.config.path_convention)

    def open_source(self, source: str | Path) -> DocumentInfo:
        """Make ``source`` the active document, as the editor would on focus."""
        path = self._absolute(source)
        document = DocumentInfo(path, guess_language_id(path))
        if path.is_file():
            try:
                document.set_text(path.read_text(encoding="utf-8", errors="replace"))
            except OSError as exc:
                LOGGER.debug("could not read %s: %s", path, exc)
        provider = self.provider
        if not provider.is_recognized(document):
            raise InspectorError(f"not a recognized assembly source: {path}")
        provider.on_active_editor_changed(document)
        self._document = document
        return document

    def load_sidecar(self, path: str | Path) -> int:
        sidecar = self._absolute(path)
        try:
            return self.provider.table.load_file(sidecar)
        except OSError as exc:
            raise InspectorError(f"failed to read {sidecar}: {exc}") from exc

    def reload(self) -> int:
        if self._document is None:
            raise InspectorError("no source open (use 'open <file.asm>')")
        return self.provider.reload()

    # Queries -----------------------------------------------------------------
    def lookup(self, line: int, file_name: Optional[str] = None) -> Optional[InstructionRecord]:
        if file_name is None and self._document is not None:
            file_name = str(self._document.path)
        return self.provider.table.get(line, file_name)

    def hover_text(self, line: int) -> Optional[str]:
        if self._document is None:
            raise InspectorError("no source open (use 'open <file.asm>')")
        hover = self.provider.provide_hover(self._document, line - 1)
        if not hover:
            return None
        return hover["contents"]["value"]

    def annotation(self, line: int) -> Optional[str]:
        if self._document is None:
            raise InspectorError("no source open (use 'open <file.asm>')")
        decoration = self.provider.on_selection_changed(self._document, line - 1)
        if not decoration:
            return None
        return decoration["renderOptions"]["after"]["contentText"].strip()

    def records(self, limit: Optional[int] = None) -> List[InstructionRecord]:
        items = self.provider.table.records()
        if limit is not None and limit >= 0:
            return items[:limit]
        return items

    @staticmethod
    def _absolute(value: str | Path) -> Path:
        candidate = Path(value).expanduser()
        if not candidate.is_absolute():
            candidate = (Path.cwd() / candidate).resolve()
        return candidate
