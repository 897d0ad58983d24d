"""Markdown table generation, conversion and reformatting."""

import re
from dataclasses import dataclass

from .edits import TextEdit
from .errors import PreconditionError, TableError

PIPE = "|"
TAB = "\t"
PADDED_PIPE = " | "

_SEPARATOR_CELL = re.compile(r"^[\s:-]*$")
_INTEGER = re.compile(r"^\+?\d+$")


@dataclass
class TableGrid:
    """Rows of trimmed cells; rows may have different lengths."""

    rows: list[list[str]]

    @property
    def column_count(self) -> int:
        return max((len(row) for row in self.rows), default=0)

    @property
    def column_widths(self) -> list[int]:
        """Widest cell per column, over the rows that have that column."""
        widths = [0] * self.column_count
        for row in self.rows:
            for i, cell in enumerate(row):
                widths[i] = max(widths[i], len(cell))
        return widths


def parse_dimension(value) -> int:
    """Parse a table dimension entered by the user.

    Raises:
        TableError: If value is not a positive integer
    """
    if isinstance(value, bool):
        raise TableError(f"Invalid table dimension: {value!r}")
    if isinstance(value, int):
        number = value
    else:
        text = str(value).strip()
        if not _INTEGER.match(text):
            raise TableError("Please enter a valid number greater than 0")
        number = int(text)
    if number <= 0:
        raise TableError("Please enter a valid number greater than 0")
    return number


def generate_table(columns: int, rows: int) -> str:
    """Blank table: header row, separator row, then rows empty body rows."""
    columns = parse_dimension(columns)
    rows = parse_dimension(rows)

    blank_row = "| " + "   |" * columns + "\n"
    lines = [blank_row, "| " + "---|" * columns + "\n"]
    lines.extend(blank_row for _ in range(rows))
    return "".join(lines)


def insert_table(text: str, offset: int, columns: int, rows: int) -> TextEdit:
    """Edit inserting a blank table at offset, starting on a fresh line."""
    if not 0 <= offset <= len(text):
        raise PreconditionError(f"Insert position {offset} is outside the document")
    table = generate_table(columns, rows)
    if offset > 0 and text[offset - 1] != "\n":
        table = "\n" + table
    return TextEdit(start=offset, end=offset, new_text=table)


def excel_to_markdown_table(selection: str) -> str:
    """Convert tab-delimited rows (e.g. pasted from a spreadsheet) to a table.

    The first row becomes the header. Cells are not aligned.
    """
    text = selection.strip("\r\n")
    if not text.strip():
        raise PreconditionError("No table selected")

    rows = [line.rstrip("\r").split(TAB) for line in text.split("\n")]

    lines = []
    for i, row in enumerate(rows):
        lines.append(f"| {' | '.join(row)} |")
        if i == 0:
            lines.append(f"| {' | '.join('---' for _ in row)} |")
    return "\n".join(lines) + "\n"


def parse_table(selection: str, delimiter: str = PIPE) -> TableGrid:
    """Split delimited lines into trimmed cells, dropping lines without cells."""
    rows = [
        [cell.strip() for cell in line.split(delimiter)]
        for line in selection.splitlines()
        if delimiter in line
    ]
    return TableGrid(rows=rows)


def is_separator_row(row: list[str]) -> bool:
    """A header separator: only dashes, colons and spaces, with a dash somewhere."""
    return any("-" in cell for cell in row) and all(
        _SEPARATOR_CELL.match(cell) for cell in row
    )


def format_separator_cell(cell: str, width: int) -> str:
    """Dash run of the column width, keeping alignment colons."""
    left = cell.startswith(":")
    right = cell.endswith(":") and len(cell) > 1
    return (":" if left else "") + "-" * width + (":" if right else "")


def prettify_table(selection: str, header_padding: bool = False) -> str:
    """Reflow a pipe table so every column has a uniform width.

    Selections without any pipe are read as tab-delimited rows.

    Args:
        selection: Selected text containing the table
        header_padding: Join cells with " | " instead of "|"

    Returns:
        The formatted table, using the selection's line ending and ending in
        a newline if the selection did
    """
    if not selection.strip():
        raise PreconditionError("No table selected")

    grid = parse_table(selection)
    if not grid.rows:
        grid = parse_table(selection, TAB)
    if not grid.rows:
        raise PreconditionError("No table found in selection")

    widths = grid.column_widths
    joiner = PADDED_PIPE if header_padding else PIPE

    lines = []
    for row in grid.rows:
        if is_separator_row(row):
            cells = [format_separator_cell(cell, widths[i]) for i, cell in enumerate(row)]
        else:
            cells = [cell.ljust(widths[i]) for i, cell in enumerate(row)]
        lines.append(joiner.join(cells))

    newline = "\r\n" if "\r\n" in selection else "\n"
    table = newline.join(lines)
    if selection.endswith("\n"):
        table += newline
    return table
