#!/usr/bin/env python3
"""Wrapper that ensures the repo's python/ directory is importable before running vmcode_lsp.main."""

from __future__ import annotations

import os
import pathlib
import sys
from typing import Iterable


def _iter_candidate_roots() -> Iterable[pathlib.Path]:
    yield pathlib.Path(__file__).resolve().parents[2]
    for env_key in ("VMCODE_REPO_ROOT", "VMCODE_WORKSPACE_ROOT"):
        env_value = os.environ.get(env_key)
        if env_value:
            yield pathlib.Path(env_value)


def _bootstrap_paths() -> None:
    visited = set()
    for candidate in _iter_candidate_roots():
        try:
            resolved = candidate.resolve()
        except OSError:
            continue
        if resolved in visited:
            continue
        visited.add(resolved)
        python_dir = resolved / "python"
        if (python_dir / "vmcode_lsp").is_dir():
            sys.path.insert(0, str(python_dir))
            sys.stderr.write(f"[vmcode-lsp] Using repo root {resolved}\n")
            return
    raise RuntimeError(
        "Unable to locate vmcode python modules. Set VMCODE_REPO_ROOT to your checkout path.",
    )


def main() -> int:
    try:
        from vmcode_lsp import main as lsp_main  # noqa: WPS433
    except ImportError:
        _bootstrap_paths()
        from vmcode_lsp import main as lsp_main  # noqa: WPS433

    return lsp_main(sys.argv[1:])


if __name__ == "__main__":
    raise SystemExit(main())
