"""Command handlers.

Each handler is a plain function taking a CommandContext and returning a
CommandResult. Handlers never write files; the caller applies result.edits.
"""

from collections.abc import Callable
from dataclasses import dataclass, field

import httpx

from .config import SettingsResolver
from .edits import Document, TextEdit, is_markdown
from .errors import PreconditionError
from .image_alt import assign_alt_text
from .image_download import ProgressCallback, download_images
from .logging import debug, info
from .tables import excel_to_markdown_table, insert_table, parse_dimension, prettify_table


@dataclass
class CommandContext:
    """Everything a command may use: the document, settings and host hooks."""

    document: Document | None
    resolver: SettingsResolver = field(default_factory=SettingsResolver)
    client: httpx.Client | None = None
    progress: ProgressCallback | None = None
    # Asks the user for a value; used when table dimensions are not given.
    prompt: Callable[[str], str] | None = None
    columns: int | str | None = None
    rows: int | str | None = None
    offset: int | None = None


@dataclass
class CommandResult:
    message: str
    edits: list[TextEdit] = field(default_factory=list)
    failures: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.edits)


def require_markdown(ctx: CommandContext) -> Document:
    """The context's document, which must exist and be Markdown."""
    if ctx.document is None:
        raise PreconditionError("No active document")
    if not is_markdown(ctx.document.path):
        raise PreconditionError("Active file is not markdown")
    return ctx.document


def require_selection(ctx: CommandContext) -> str:
    document = require_markdown(ctx)
    selected = document.selected_text
    if not selected.strip():
        raise PreconditionError("No table selected")
    return selected


def update_image_alts(ctx: CommandContext) -> CommandResult:
    document = require_markdown(ctx)
    overwrite = ctx.resolver.resolve(
        "imageAlt", "overwriteExisting", document.path, False
    )
    result = assign_alt_text(document.text, overwrite_existing=bool(overwrite))

    if not result.images:
        return CommandResult("No images found in markdown")
    debug(f"Considered {len(result.images)} images, {result.replaced} need new alt text")
    if not result.replaced:
        return CommandResult("No images needed updating")
    return CommandResult(f"Updated {result.replaced} image alt texts", edits=result.edits)


def download_document_images(ctx: CommandContext) -> CommandResult:
    document = require_markdown(ctx)
    result = download_images(
        document, ctx.resolver, client=ctx.client, progress=ctx.progress
    )

    if not result.images:
        return CommandResult("No images found in markdown")
    info(f"Found {len(result.images)} remote images")

    message = f"Downloaded {len(result.downloaded)} images"
    if result.skipped:
        message += f", skipped {len(result.skipped)} existing"
    if result.failed:
        message += f", {len(result.failed)} failed"
    return CommandResult(message, edits=result.edits, failures=len(result.failed))


def _dimension(ctx: CommandContext, value, prompt_text: str) -> int:
    if value is None:
        if ctx.prompt is None:
            raise PreconditionError("No dimensions given")
        value = ctx.prompt(prompt_text)
    return parse_dimension(value)


def insert_blank_table(ctx: CommandContext) -> CommandResult:
    document = require_markdown(ctx)
    columns = _dimension(ctx, ctx.columns, "Enter the number of columns for the table")
    rows = _dimension(ctx, ctx.rows, "Enter the number of rows for the table")

    offset = ctx.offset
    if offset is None:
        offset = document.selection[0] if document.selection else len(document.text)
    edit = insert_table(document.text, offset, columns, rows)
    return CommandResult(f"Inserted table {columns}x{rows}.", edits=[edit])


def _replace_selection(document: Document, new_text: str) -> list[TextEdit]:
    start, end = document.selection
    if document.text[start:end] == new_text:
        return []
    return [TextEdit(start=start, end=end, new_text=new_text)]


def convert_excel_table(ctx: CommandContext) -> CommandResult:
    selected = require_selection(ctx)
    table = excel_to_markdown_table(selected)
    return CommandResult("Formatted Table", edits=_replace_selection(ctx.document, table))


def prettify_selected_table(ctx: CommandContext) -> CommandResult:
    selected = require_selection(ctx)
    header_padding = ctx.resolver.resolve(
        "tablePrettify", "headerPadding", ctx.document.path, False
    )
    table = prettify_table(selected, header_padding=bool(header_padding))
    return CommandResult("Formatted Table", edits=_replace_selection(ctx.document, table))
