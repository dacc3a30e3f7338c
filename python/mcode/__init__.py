"""
mcode: per-line machine-code metadata for assembly sources.

Loads the side-car text file written by the build toolchain
(``<file>, <line>, <pc>, <inpc>, <instruction>`` rows) and serves hover
text and caret-line annotations from it.
"""

from __future__ import annotations

from .config import ProviderConfig
from .paths import PathConvention, expected_sidecar_path, is_recognized, resolve_sidecar
from .provider import DocumentInfo, MetadataProvider, RecordingDecorationChannel
from .table import InstructionRecord, KeyScheme, MergePolicy, MetadataTable, parse_sidecar_line
from .watch import SidecarWatcher

__all__ = [
    "DocumentInfo",
    "InstructionRecord",
    "KeyScheme",
    "MergePolicy",
    "MetadataProvider",
    "MetadataTable",
    "PathConvention",
    "ProviderConfig",
    "RecordingDecorationChannel",
    "SidecarWatcher",
    "expected_sidecar_path",
    "is_recognized",
    "parse_sidecar_line",
    "resolve_sidecar",
]
__version__ = "0.1.0"
