"""Documents and text edits.

Transforms never mutate text directly. They return TextEdits measured
against the original text, and apply_edits() applies them in one pass.
"""

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

from .errors import PreconditionError

MARKDOWN_EXTENSIONS = {".md", ".markdown", ".mdown", ".mkd", ".mkdn"}


@dataclass(frozen=True)
class TextEdit:
    """Replace text[start:end] with new_text."""

    start: int
    end: int
    new_text: str

    def __post_init__(self):
        if self.start < 0 or self.end < self.start:
            raise ValueError(f"Invalid edit range {self.start}..{self.end}")


def apply_edits(text: str, edits: list[TextEdit]) -> str:
    """Apply non-overlapping edits, all measured against the original text.

    Raises:
        ValueError: If edits overlap or fall outside the text
    """
    ordered = sorted(edits, key=lambda e: (e.start, e.end))
    parts = []
    cursor = 0
    for edit in ordered:
        if edit.start < cursor:
            raise ValueError(f"Overlapping edit at offset {edit.start}")
        if edit.end > len(text):
            raise ValueError(f"Edit range {edit.start}..{edit.end} past end of text")
        parts.append(text[cursor : edit.start])
        parts.append(edit.new_text)
        cursor = edit.end
    parts.append(text[cursor:])
    return "".join(parts)


def line_offsets(text: str, start_line: int, end_line: int | None = None) -> tuple[int, int]:
    """Character range covering 1-based lines start_line..end_line inclusive.

    The range includes the newline ending end_line, if any.
    """
    if start_line < 1:
        raise PreconditionError("Line numbers start at 1")
    lines = text.splitlines(keepends=True)
    if end_line is None:
        end_line = start_line
    if end_line < start_line:
        raise PreconditionError(f"Invalid line range {start_line}-{end_line}")
    if start_line > len(lines) + 1:
        raise PreconditionError(
            f"Line {start_line} is past the end of the document ({len(lines)} lines)"
        )
    start = sum(len(line) for line in lines[: start_line - 1])
    end = sum(len(line) for line in lines[:end_line])
    return start, end


@dataclass
class Document:
    """A Markdown document and an optional selected character range."""

    path: Path
    text: str
    selection: tuple[int, int] | None = None

    @classmethod
    def load(cls, path: Path) -> "Document":
        """Read a Markdown document from disk.

        Raises:
            PreconditionError: If the file is missing or not Markdown
        """
        path = Path(path)
        if not path.is_file():
            raise PreconditionError(f"No such document: {path}")
        if not is_markdown(path):
            raise PreconditionError(f"{path.name} is not a Markdown file")
        # newline="" keeps \r\n so offsets match the bytes on disk
        with open(path, encoding="utf-8", newline="") as f:
            return cls(path=path, text=f.read())

    @property
    def directory(self) -> Path:
        return self.path.parent

    @property
    def selected_text(self) -> str:
        if self.selection is None:
            return ""
        start, end = self.selection
        return self.text[start:end]

    def select_lines(self, start_line: int, end_line: int | None = None) -> None:
        """Select whole lines by 1-based line numbers."""
        self.selection = line_offsets(self.text, start_line, end_line)

    def save(self, text: str) -> None:
        """Atomically replace the document contents on disk."""
        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
                f.write(text)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        self.text = text


def is_markdown(path: Path) -> bool:
    return Path(path).suffix.lower() in MARKDOWN_EXTENSIONS
