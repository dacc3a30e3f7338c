import pytest

from mcode.table import (
    InstructionRecord,
    KeyScheme,
    MergePolicy,
    MetadataTable,
    parse_sidecar_line,
)

EXAMPLE = "3, 0x1000, 0x10, MOV R1, R2\n5, 0x1004, 0x11, ADD R1, R2"


def test_parse_unqualified_keeps_commas_in_instruction():
    record = parse_sidecar_line("3, 0x1000, 0x10, MOV R1, R2", KeyScheme.UNQUALIFIED)
    assert record == InstructionRecord(line=3, program_counter="0x1000", in_pc="0x10", instruction_text="MOV R1, R2")


def test_parse_file_qualified_trims_columns():
    record = parse_sidecar_line("  main.asm, 7 , 0x20,  0x2 , RET  ", KeyScheme.FILE_QUALIFIED)
    assert record.source_file_name == "main.asm"
    assert record.line == 7
    assert record.program_counter == "0x20"
    assert record.in_pc == "0x2"
    assert record.instruction_text == "RET"


def test_parse_missing_trailing_columns_yields_none_fields():
    record = parse_sidecar_line("12, 0x30", KeyScheme.UNQUALIFIED)
    assert record.line == 12
    assert record.program_counter == "0x30"
    assert record.in_pc is None
    assert record.instruction_text is None


@pytest.mark.parametrize(
    "text,scheme",
    [
        ("", KeyScheme.UNQUALIFIED),
        ("   ", KeyScheme.UNQUALIFIED),
        (", 0x10, 0x1, NOP", KeyScheme.UNQUALIFIED),
        ("abc, 0x10, 0x1, NOP", KeyScheme.UNQUALIFIED),
        ("main.asm", KeyScheme.FILE_QUALIFIED),
        (", 3, 0x10, 0x1, NOP", KeyScheme.FILE_QUALIFIED),
        ("main.asm, , 0x10", KeyScheme.FILE_QUALIFIED),
        ("1_0, 0x10, 0x1, NOP", KeyScheme.UNQUALIFIED),
        ("+3, 0x10, 0x1, NOP", KeyScheme.UNQUALIFIED),
        ("-2, 0x10, 0x1, NOP", KeyScheme.UNQUALIFIED),
        ("\u0663, 0x10, 0x1, NOP", KeyScheme.UNQUALIFIED),
        ("main.asm, 0x3, 0x10, 0x1, NOP", KeyScheme.FILE_QUALIFIED),
    ],
)
def test_parse_malformed_lines_return_none(text, scheme):
    assert parse_sidecar_line(text, scheme) is None


def test_load_example_unqualified():
    table = MetadataTable(KeyScheme.UNQUALIFIED)
    assert table.load_text(EXAMPLE) == 2
    record = table.get(3)
    assert record.program_counter == "0x1000"
    assert record.in_pc == "0x10"
    assert record.instruction_text == "MOV R1, R2"
    assert table.get(4) is None


def test_load_skips_malformed_without_raising():
    table = MetadataTable(KeyScheme.UNQUALIFIED)
    accepted = table.load_text("garbage\n, 0x1\n\n4, 0x8, 0x1, NOP\n")
    assert accepted == 1
    assert len(table) == 1
    assert table.get(4).instruction_text == "NOP"


def test_accumulate_joins_pc_and_inpc():
    table = MetadataTable(KeyScheme.UNQUALIFIED, MergePolicy.ACCUMULATE)
    table.load_text("9, 0x100, 0x1, LDI R1, 1\n9, 0x104, 0x2, LDI R2, 2\n")
    assert len(table) == 1
    record = table.get(9)
    assert record.program_counter == "0x100, 0x104"
    assert record.in_pc == "0x1, 0x2"
    assert record.instruction_text == "LDI R1, 1"


def test_overwrite_keeps_last_row():
    table = MetadataTable(KeyScheme.UNQUALIFIED, MergePolicy.OVERWRITE)
    table.load_text("9, 0x100, 0x1, A\n9, 0x104, 0x2, B\n")
    record = table.get(9)
    assert record.program_counter == "0x104"
    assert record.instruction_text == "B"


def test_file_qualified_lookup_matches_basename_and_full_path(tmp_path):
    source = tmp_path / "src" / "main.asm"
    table = MetadataTable(KeyScheme.FILE_QUALIFIED)
    table.load_text(f"main.asm, 3, 0x10, 0x1, NOP\n{source}, 4, 0x14, 0x2, RET\nother.asm, 3, 0x90, 0x9, HLT\n")
    assert table.get(3, str(source)).program_counter == "0x10"
    assert table.get(4, str(source)).program_counter == "0x14"
    assert table.get(3, str(tmp_path / "other.asm")).program_counter == "0x90"
    assert table.get(3) is None
    assert table.get(5, str(source)) is None


def test_file_qualified_lookup_is_case_insensitive_on_file():
    table = MetadataTable(KeyScheme.FILE_QUALIFIED)
    table.load_text("Main.ASM, 1, 0x0, 0x0, NOP\n")
    assert table.get(1, "/work/main.asm") is not None


def test_load_file_rebuilds_from_scratch(tmp_path):
    path = tmp_path / "exec_mcode.txt"
    path.write_text("1, 0x0, 0x0, NOP\n2, 0x4, 0x1, NOP\n", encoding="utf-8")
    table = MetadataTable(KeyScheme.UNQUALIFIED, MergePolicy.ACCUMULATE)
    table.load_file(path)
    table.load_file(path)
    assert len(table) == 2
    assert table.get(1).program_counter == "0x0"
    assert table.source_path == path
    path.write_text("2, 0x8, 0x2, HLT\n", encoding="utf-8")
    table.load_file(path)
    assert table.get(1) is None
    assert table.get(2).program_counter == "0x8"


def test_load_file_missing_raises_oserror(tmp_path):
    table = MetadataTable()
    with pytest.raises(OSError):
        table.load_file(tmp_path / "missing.txt")


def test_records_sorted_and_clear():
    table = MetadataTable(KeyScheme.UNQUALIFIED)
    table.load_text("5, 0x14, 0x5, B\n2, 0x8, 0x2, A\n")
    assert [record.line for record in table.records()] == [2, 5]
    table.clear()
    assert len(table) == 0
    assert table.source_path is None
