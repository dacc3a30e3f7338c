from __future__ import annotations

import os
import re
from enum import Enum
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urlparse

SIDECAR_DIR = "tool"
SIDECAR_FILE = "exec_mcode.txt"
LINE_PC_DIR = "line_pc"
LINE_PC_SUFFIX = ".txt"

ASM_LANGUAGE_IDS = frozenset({"asm"})
ASM_EXTENSIONS = frozenset({".asm"})
HEADER_LANGUAGE_IDS = frozenset({"c", "cpp"})
HEADER_EXTENSIONS = frozenset({".h"})
DEFAULT_HEADER_MARKER = "asm"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_]")


class PathConvention(str, Enum):
    """Where the toolchain drops the side-car file relative to the source."""

    TOOL = "tool"
    LINE_PC = "line-pc"


def uri_to_path(uri: str) -> Path:
    """Convert a ``file://`` URI (or plain path) into a filesystem path."""
    if not uri:
        return Path("")
    parsed = urlparse(uri)
    if parsed.scheme != "file":
        return Path(uri)
    path = unquote(parsed.path)
    # file:///c:/work/x.asm
    if re.match(r"^/[A-Za-z]:", path):
        path = path[1:]
    return Path(path)


def path_to_uri(path: Path | str) -> str:
    return Path(path).resolve(strict=False).as_uri()


def sanitize_base_name(name: str) -> str:
    """``main.asm`` -> ``main_asm``."""
    return _UNSAFE_CHARS.sub("_", Path(name).name)


def expected_sidecar_path(document_path: Path | str, convention: PathConvention = PathConvention.TOOL) -> Path:
    source = Path(document_path)
    tool_dir = Path(os.path.normpath(source.parent / ".." / SIDECAR_DIR))
    if PathConvention(convention) is PathConvention.LINE_PC:
        return tool_dir / LINE_PC_DIR / f"{sanitize_base_name(source.name)}{LINE_PC_SUFFIX}"
    return tool_dir / SIDECAR_FILE


def resolve_sidecar(document_path: Path | str, convention: PathConvention = PathConvention.TOOL) -> Optional[Path]:
    """Return the side-car path when it exists; None means no build output yet."""
    candidate = expected_sidecar_path(document_path, convention)
    if candidate.is_file():
        return candidate
    return None


def is_recognized(
    document_path: Path | str,
    language_id: Optional[str],
    *,
    recognize_headers: bool = False,
    header_marker: str = DEFAULT_HEADER_MARKER,
) -> bool:
    if not document_path:
        return False
    path = Path(document_path)
    suffix = path.suffix.lower()
    language = (language_id or "").lower()
    if language in ASM_LANGUAGE_IDS and suffix in ASM_EXTENSIONS:
        return True
    if not recognize_headers:
        return False
    if language not in HEADER_LANGUAGE_IDS or suffix not in HEADER_EXTENSIONS:
        return False
    return header_marker in path.parent.parts


def guess_language_id(document_path: Path | str) -> Optional[str]:
    suffix = Path(document_path).suffix.lower()
    if suffix in ASM_EXTENSIONS:
        return "asm"
    if suffix in HEADER_EXTENSIONS:
        return "cpp"
    return None
