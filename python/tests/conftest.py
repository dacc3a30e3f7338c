"""
Pytest fixtures for vmcode tests.
"""
from pathlib import Path

import pytest

SAMPLE_ASM = """start:
    NOP
    MOV R1, R2
    NOP
    ADD R1, R2
"""


@pytest.fixture
def project(tmp_path) -> Path:
    """tmp project laid out the way the toolchain writes it: src/*.asm + tool/."""
    root = tmp_path / "project"
    (root / "src").mkdir(parents=True)
    (root / "tool").mkdir()
    (root / "src" / "main.asm").write_text(SAMPLE_ASM, encoding="utf-8")
    return root


@pytest.fixture
def write_sidecar(project):
    def _write(text: str, name: str = "exec_mcode.txt") -> Path:
        path = project / "tool" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path

    return _write
