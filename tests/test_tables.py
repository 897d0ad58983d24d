"""Tests for table generation, conversion and prettifying."""

import pytest

from moose.edits import apply_edits
from moose.errors import PreconditionError, TableError
from moose.tables import (
    TableGrid,
    excel_to_markdown_table,
    format_separator_cell,
    generate_table,
    insert_table,
    is_separator_row,
    parse_dimension,
    parse_table,
    prettify_table,
)


class TestParseDimension:
    @pytest.mark.parametrize("value,expected", [(3, 3), ("3", 3), (" 12 ", 12), ("+2", 2)])
    def test_valid(self, value, expected):
        assert parse_dimension(value) == expected

    @pytest.mark.parametrize("value", ["0", 0, -1, "-4", "abc", "", "2.5", True])
    def test_invalid(self, value):
        with pytest.raises(TableError):
            parse_dimension(value)

    def test_message(self):
        with pytest.raises(TableError, match="greater than 0"):
            parse_dimension("zero")


class TestGenerateTable:
    def test_shape(self):
        assert generate_table(2, 1) == "|    |   |\n| ---|---|\n|    |   |\n"

    def test_line_count(self):
        lines = generate_table(3, 4).splitlines()
        assert len(lines) == 6
        assert lines[1] == "| ---|---|---|"
        assert all(line.count("|") == 4 for line in lines)

    def test_rejects_zero(self):
        with pytest.raises(TableError):
            generate_table(0, 2)


class TestInsertTable:
    def test_at_line_start(self):
        text = "intro\n"
        edit = insert_table(text, len(text), 1, 1)
        assert apply_edits(text, [edit]) == "intro\n|    |\n| ---|\n|    |\n"

    def test_mid_line_starts_new_line(self):
        edit = insert_table("intro", 5, 1, 1)
        assert edit.new_text.startswith("\n| ")

    def test_empty_document(self):
        edit = insert_table("", 0, 1, 1)
        assert edit.new_text == "|    |\n| ---|\n|    |\n"

    def test_offset_outside_document(self):
        with pytest.raises(PreconditionError):
            insert_table("abc", 10, 1, 1)


class TestExcelToMarkdown:
    def test_basic(self):
        assert excel_to_markdown_table("a\tb\nc\td") == (
            "| a | b |\n| --- | --- |\n| c | d |\n"
        )

    def test_windows_line_endings(self):
        assert excel_to_markdown_table("a\tb\r\nc\td\r\n") == (
            "| a | b |\n| --- | --- |\n| c | d |\n"
        )

    def test_separator_matches_header_cells(self):
        table = excel_to_markdown_table("x\ty\tz\n1\t2")
        assert table.splitlines()[1] == "| --- | --- | --- |"
        assert table.splitlines()[2] == "| 1 | 2 |"

    def test_empty_cells_kept(self):
        assert excel_to_markdown_table("a\t\tc").splitlines()[0] == "| a |  | c |"

    def test_empty_selection(self):
        with pytest.raises(PreconditionError, match="No table selected"):
            excel_to_markdown_table("\n\n")


class TestParseTable:
    def test_trims_cells_and_skips_plain_lines(self):
        grid = parse_table("| a |  b |\nnot a row\n|c|d|")
        assert grid.rows == [["", "a", "b", ""], ["", "c", "d", ""]]

    def test_column_widths_ignore_missing_cells(self):
        grid = TableGrid(rows=[["abc"], ["a", "bcde"]])
        assert grid.column_count == 2
        assert grid.column_widths == [3, 4]


class TestSeparator:
    def test_is_separator_row(self):
        assert is_separator_row(["", ":---:", "---", ""])
        assert not is_separator_row(["", "a", "---", ""])
        assert not is_separator_row(["", "", ""])

    @pytest.mark.parametrize(
        "cell,expected",
        [("---", "-----"), (":---", ":-----"), ("---:", "-----:"), (":---:", ":-----:")],
    )
    def test_alignment_colons_kept(self, cell, expected):
        assert format_separator_cell(cell, 5) == expected


class TestPrettifyTable:
    def test_aligns_columns(self):
        table = "|Name|Age|\n|---|---|\n|Alice|30|"
        assert prettify_table(table) == "|Name |Age|\n|-----|---|\n|Alice|30 |"

    def test_alignment_markers(self):
        table = "|Name|Age|\n|:---:|---|\n|Alice|30|"
        assert prettify_table(table).splitlines()[1] == "|:-----:|---|"

    def test_long_header_not_shrunk(self):
        table = "|LongHeader|b|\n|---|---|\n|x|y|"
        lines = prettify_table(table).splitlines()
        assert lines[0] == "|LongHeader|b  |"
        assert lines[2] == "|x         |y  |"

    def test_header_padding(self):
        table = "|a|b|\n|---|---|\n|cc|d|"
        assert prettify_table(table, header_padding=True).splitlines() == [
            " | a   | b   | ",
            " | --- | --- | ",
            " | cc  | d   | ",
        ]

    def test_keeps_trailing_newline(self):
        assert prettify_table("|a|b|\n").endswith("|\n")
        assert prettify_table("|a|b|").endswith("|")

    def test_keeps_windows_line_endings(self):
        assert prettify_table("|a|b|\r\n|---|---|\r\n") == "|a  |b  |\r\n|---|---|\r\n"

    def test_tab_delimited_rows(self):
        assert prettify_table("name\tqty\napple\t3\n") == "name |qty\napple|3  \n"

    def test_empty_selection(self):
        with pytest.raises(PreconditionError, match="No table selected"):
            prettify_table("   \n")

    def test_no_pipes(self):
        with pytest.raises(PreconditionError, match="No table found"):
            prettify_table("just text")
