"""Command tests for vmcode-dbg."""

from __future__ import annotations

import json

import pytest

from mcode.config import ProviderConfig
from vmcode_dbg.cli import main
from vmcode_dbg.commands import build_registry
from vmcode_dbg.context import InspectorContext
from vmcode_dbg.repl import InspectorREPL

SIDECAR = "main.asm, 3, 0x1000, 0x10, MOV R1, R2\nmain.asm, 5, 0x1004, 0x11, ADD R1, R2\n"


@pytest.fixture
def shell():
    ctx = InspectorContext()
    registry = build_registry()
    repl = InspectorREPL(ctx, registry)
    yield ctx, repl
    ctx.close()


def test_help_lists_commands(shell, capsys):
    _, repl = shell
    assert repl.dispatch("help") == 0
    out = capsys.readouterr().out
    for name in ("open", "lookup", "hover", "annotate", "list", "config", "exit"):
        assert name in out


def test_unknown_command(shell, capsys):
    _, repl = shell
    assert repl.dispatch("frobnicate") == 1
    assert "Unknown command: frobnicate" in capsys.readouterr().out


def test_parse_error_is_reported(shell, capsys):
    _, repl = shell
    assert repl.dispatch("open 'unterminated") == 1
    assert "Parse error" in capsys.readouterr().out


def test_open_lookup_hover_annotate(shell, project, write_sidecar, capsys):
    ctx, repl = shell
    write_sidecar(SIDECAR)
    assert repl.dispatch(f"open {project / 'src' / 'main.asm'}") == 0
    assert "2 records" in capsys.readouterr().out

    assert repl.dispatch("lookup 3") == 0
    assert "pc=0x1000 inpc=0x10 instruction='MOV R1, R2'" in capsys.readouterr().out

    assert repl.dispatch("lookup 4") == 1
    assert "error: no record for line 4" in capsys.readouterr().out

    assert repl.dispatch("hover 5") == 0
    assert "Instruction: ADD R1, R2" in capsys.readouterr().out

    assert repl.dispatch("annotate 3") == 0
    assert "[Line: 3 pc: 0x1000]" in capsys.readouterr().out


def test_open_without_sidecar_reports_expected_path(shell, project, capsys):
    _, repl = shell
    assert repl.dispatch(f"open {project / 'src' / 'main.asm'}") == 0
    out = capsys.readouterr().out
    assert "no side-car yet" in out
    assert str(project / "tool" / "exec_mcode.txt") in out


def test_open_rejects_unrecognized_source(shell, project, capsys):
    _, repl = shell
    notes = project / "notes.txt"
    notes.write_text("x", encoding="utf-8")
    assert repl.dispatch(f"open {notes}") == 1
    assert "not a recognized assembly source" in capsys.readouterr().out


def test_hover_requires_open_source(shell, capsys):
    _, repl = shell
    assert repl.dispatch("hover 1") == 1
    assert "no source open" in capsys.readouterr().out


def test_resolve_and_load(shell, project, write_sidecar, capsys):
    ctx, repl = shell
    source = project / "src" / "main.asm"
    assert repl.dispatch(f"resolve {source}") == 0
    assert "(missing)" in capsys.readouterr().out
    sidecar = write_sidecar("7, 0x70, 0x7, NOP\n", name="other.txt")
    assert repl.dispatch("config keyScheme=unqualified") == 0
    capsys.readouterr()
    assert repl.dispatch(f"load {sidecar}") == 0
    assert "Loaded 1 rows" in capsys.readouterr().out
    assert ctx.lookup(7).program_counter == "0x70"
    assert repl.dispatch(f"load {project / 'missing.txt'}") == 1


def test_list_limits_output(shell, project, write_sidecar, capsys):
    _, repl = shell
    write_sidecar(SIDECAR)
    repl.dispatch(f"open {project / 'src' / 'main.asm'}")
    capsys.readouterr()
    assert repl.dispatch("list --limit 1") == 0
    out = capsys.readouterr().out
    assert "0x1000" in out
    assert "0x1004" not in out
    assert "1 more" in out


def test_config_change_rebuilds_open_source(shell, project, write_sidecar, capsys):
    ctx, repl = shell
    write_sidecar("3, 0x1, 0x1, A\n3, 0x2, 0x2, B\n", name="line_pc/main_asm.txt")
    repl.dispatch(f"open {project / 'src' / 'main.asm'}")
    assert len(ctx.provider.table) == 0
    assert repl.dispatch("config keyScheme=unqualified mergePolicy=accumulate pathConvention=line-pc") == 0
    assert ctx.lookup(3).program_counter == "0x1, 0x2"
    assert repl.dispatch("config keyScheme=bogus") == 1
    assert repl.dispatch("config nonsense") == 1


def test_exit_raises_system_exit(shell):
    _, repl = shell
    with pytest.raises(SystemExit):
        repl.dispatch("quit")


def test_multiline_buffering():
    buffer = []
    assert InspectorREPL.handle_multiline(buffer, "lookup \\") is True
    assert InspectorREPL.handle_multiline(buffer, "3") is False
    assert " ".join(buffer) == "lookup  3"


def test_cli_json_single_commands(project, write_sidecar, capsys):
    write_sidecar(SIDECAR)
    status = main([str(project / "src" / "main.asm"), "--json", "-c", "lookup 5"])
    assert status == 0
    out = capsys.readouterr().out
    decoder = json.JSONDecoder()
    payloads = []
    index = 0
    while index < len(out):
        if out[index].isspace():
            index += 1
            continue
        payload, index = decoder.raw_decode(out, index)
        payloads.append(payload)
    assert [payload["status"] for payload in payloads] == ["ok", "ok"]
    assert payloads[0]["result"]["records"] == 2
    assert payloads[1]["result"]["pc"] == "0x1004"


def test_cli_rejects_bad_environment(monkeypatch):
    monkeypatch.setenv("VMCODE_KEY_SCHEME", "weird")
    with pytest.raises(SystemExit):
        main(["-c", "help"])


def test_context_uses_given_config():
    ctx = InspectorContext(config=ProviderConfig(recognize_headers=True))
    assert ctx.provider.config.recognize_headers is True
    ctx.close()


def test_config_keeps_open_header_when_it_would_stop_matching(project, capsys):
    header_dir = project / "src" / "asm"
    header_dir.mkdir()
    header = header_dir / "defs.h"
    header.write_text("#define X 1\n", encoding="utf-8")
    ctx = InspectorContext(config=ProviderConfig(recognize_headers=True))
    repl = InspectorREPL(ctx, build_registry())
    try:
        assert repl.dispatch(f"open {header}") == 0
        capsys.readouterr()
        assert repl.dispatch("config recognizeHeaders=no") == 1
        assert "would not be recognized" in capsys.readouterr().out
        assert ctx.config.recognize_headers is True
        assert ctx.document.path == header
    finally:
        ctx.close()


def test_help_reports_open_source_and_variant(shell, project, capsys):
    _, repl = shell
    assert repl.dispatch("help") == 0
    assert "(none, use open <file.asm>)" in capsys.readouterr().out
    repl.dispatch(f"open {project / 'src' / 'main.asm'}")
    capsys.readouterr()
    assert repl.dispatch("help") == 0
    out = capsys.readouterr().out
    assert str(project / "src" / "main.asm") in out
    assert str(project / "tool" / "exec_mcode.txt") in out
    assert "file-qualified / overwrite / tool" in out


def test_help_for_single_command(shell, capsys):
    _, repl = shell
    assert repl.dispatch("help l") == 0
    assert "lookup, l" in capsys.readouterr().out
    assert repl.dispatch("help nothing") == 1


def test_cli_exit_status_is_returned():
    assert main(["-c", "exit 3"]) == 3
    assert main(["-c", "exit nope"]) == 1
