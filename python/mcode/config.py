"""Provider configuration (one tagged variant per deployment)."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Any, Mapping, Optional

from .paths import DEFAULT_HEADER_MARKER, PathConvention
from .table import KeyScheme, MergePolicy
from .watch import DEFAULT_POLL_INTERVAL

ENV_PREFIX = "VMCODE_"

_OPTION_ALIASES = {
    "key_scheme": ("keyScheme", "key_scheme"),
    "merge_policy": ("mergePolicy", "merge_policy"),
    "path_convention": ("pathConvention", "path_convention"),
    "recognize_headers": ("recognizeHeaders", "recognize_headers", "headers"),
    "header_marker": ("headerMarker", "header_marker"),
    "poll_interval": ("pollInterval", "poll_interval"),
}


def coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
    return False


def coerce_interval(value: Any, *, default: float = DEFAULT_POLL_INTERVAL) -> float:
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


def _enum_value(enum_type, value: Any):
    text = str(value).strip().lower().replace("_", "-")
    try:
        return enum_type(text)
    except ValueError:
        choices = ", ".join(member.value for member in enum_type)
        raise ValueError(f"invalid {enum_type.__name__} {value!r} (expected one of: {choices})") from None


@dataclass(frozen=True)
class ProviderConfig:
    key_scheme: KeyScheme = KeyScheme.FILE_QUALIFIED
    merge_policy: MergePolicy = MergePolicy.OVERWRITE
    path_convention: PathConvention = PathConvention.TOOL
    recognize_headers: bool = False
    header_marker: str = DEFAULT_HEADER_MARKER
    poll_interval: float = DEFAULT_POLL_INTERVAL

    def with_options(self, options: Optional[Mapping[str, Any]]) -> "ProviderConfig":
        """
        Overlay host-supplied options (camelCase or snake_case keys).
        Raises ValueError for unknown enum values.
        """
        if not options:
            return self
        updates = {}
        for field_name, aliases in _OPTION_ALIASES.items():
            for alias in aliases:
                if alias in options and options[alias] is not None:
                    updates[field_name] = options[alias]
                    break
        return self._apply(updates)

    def with_environment(self, environ: Optional[Mapping[str, str]] = None) -> "ProviderConfig":
        env = os.environ if environ is None else environ
        updates = {}
        for field_name in _OPTION_ALIASES:
            value = env.get(f"{ENV_PREFIX}{field_name.upper()}")
            if value:
                updates[field_name] = value
        return self._apply(updates)

    def _apply(self, updates: Mapping[str, Any]) -> "ProviderConfig":
        if not updates:
            return self
        coerced = {}
        if "key_scheme" in updates:
            coerced["key_scheme"] = _enum_value(KeyScheme, updates["key_scheme"])
        if "merge_policy" in updates:
            coerced["merge_policy"] = _enum_value(MergePolicy, updates["merge_policy"])
        if "path_convention" in updates:
            coerced["path_convention"] = _enum_value(PathConvention, updates["path_convention"])
        if "recognize_headers" in updates:
            coerced["recognize_headers"] = coerce_bool(updates["recognize_headers"])
        if "header_marker" in updates and str(updates["header_marker"]).strip():
            coerced["header_marker"] = str(updates["header_marker"]).strip()
        if "poll_interval" in updates:
            coerced["poll_interval"] = coerce_interval(updates["poll_interval"], default=self.poll_interval)
        return replace(self, **coerced)

    def describe(self) -> dict:
        return {
            "keyScheme": self.key_scheme.value,
            "mergePolicy": self.merge_policy.value,
            "pathConvention": self.path_convention.value,
            "recognizeHeaders": self.recognize_headers,
            "headerMarker": self.header_marker,
            "pollInterval": self.poll_interval,
        }
