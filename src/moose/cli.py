"""Command-line interface for moose."""

import difflib
import json
import sys
from pathlib import Path

import click

from .commands import CommandContext, CommandResult
from .config import PROJECT_CONFIG_FILENAME, SettingsResolver
from .edits import Document, apply_edits, line_offsets
from .errors import PreconditionError, TableError
from .image_download import collect_remote_images
from .logging import progress, setup_logging
from .plugins import Extension, activate

STDIN_DOCUMENT = Path("<stdin>.md")


class LineRange(click.ParamType):
    """``START`` or ``START:END`` (1-based, inclusive)."""

    name = "lines"

    def convert(self, value, param, ctx):
        if isinstance(value, tuple):
            return value
        start, _, end = str(value).partition(":")
        try:
            first = int(start)
            last = int(end) if end else first
        except ValueError:
            self.fail(f"{value!r} is not a line range like 3 or 3:8", param, ctx)
        if first < 1 or last < first:
            self.fail(f"{value!r} is not a valid line range", param, ctx)
        return first, last


def _fail(message: str) -> None:
    click.echo(f"Error: {message}", err=True)
    raise SystemExit(1)


def _resolver(ctx: click.Context, overrides: dict | None = None) -> SettingsResolver:
    return SettingsResolver(
        user_settings=ctx.obj["user_settings"],
        overrides={k: v for k, v in (overrides or {}).items() if v is not None},
    )


def _load(path: Path, lines: tuple[int, int] | None = None) -> Document:
    try:
        document = Document.load(path)
        if lines:
            document.select_lines(*lines)
        return document
    except PreconditionError as e:
        _fail(str(e))


def _run(
    ctx: click.Context,
    command_id: str,
    cmd_ctx: CommandContext,
    dry_run: bool = False,
) -> CommandResult:
    """Execute a command and write its edits back to the document."""
    extension: Extension = ctx.obj["extension"]
    try:
        result = extension.execute(command_id, cmd_ctx)
    except (PreconditionError, TableError) as e:
        _fail(str(e))

    document = cmd_ctx.document
    if result.edits:
        new_text = apply_edits(document.text, result.edits)
        if dry_run:
            diff = difflib.unified_diff(
                document.text.splitlines(keepends=True),
                new_text.splitlines(keepends=True),
                fromfile=str(document.path),
                tofile=str(document.path),
            )
            click.echo("".join(diff), nl=False)
        else:
            document.save(new_text)

    click.echo(f"Moose: {result.message}")
    if result.failures:
        raise SystemExit(1)
    return result


@click.group()
@click.version_option(package_name="markdown-moose")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.option(
    "--settings",
    "user_settings",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="User settings file (TOML) instead of ~/.config/moose/settings.toml",
)
@click.pass_context
def main(ctx: click.Context, verbose: bool, user_settings: Path | None):
    """Markdown Moose - alt text, image downloads and tables for Markdown."""
    setup_logging(verbose)
    ctx.obj = {"extension": activate(), "user_settings": user_settings}


@main.command()
@click.argument("file", type=click.Path(path_type=Path))
@click.option(
    "--overwrite/--no-overwrite",
    default=None,
    help="Replace existing alt text (default: imageAlt.overwriteExisting)",
)
@click.option("--dry-run", "-n", is_flag=True, help="Show the changes without saving")
@click.pass_context
def alt(ctx: click.Context, file: Path, overwrite: bool | None, dry_run: bool):
    """Set image alt text from the nearest heading."""
    cmd_ctx = CommandContext(
        document=_load(file),
        resolver=_resolver(ctx, {"imageAlt.overwriteExisting": overwrite}),
    )
    _run(ctx, "markdown-moose.updateImageAlts", cmd_ctx, dry_run)


@main.command()
@click.argument("file", type=click.Path(path_type=Path))
@click.option("--overwrite/--no-overwrite", default=None, help="Overwrite existing files")
@click.option(
    "--dry-run", "-n", is_flag=True, help="List the images without downloading"
)
@click.pass_context
def download(ctx: click.Context, file: Path, overwrite: bool | None, dry_run: bool):
    """Download remote images and link to the local copies."""
    document = _load(file)

    if dry_run:
        images = collect_remote_images(document.text)
        if not images:
            click.echo("Moose: No images found in markdown")
        for image in images:
            click.echo(f"{image.filename}  <-  {image.url}")
        return

    cmd_ctx = CommandContext(
        document=document,
        resolver=_resolver(ctx, {"imageDownloader.overwriteExisting": overwrite}),
        progress=progress,
    )
    _run(ctx, "markdown-moose.downloadImages", cmd_ctx)


@main.group()
def table():
    """Insert, convert and format Markdown tables."""


@table.command("insert")
@click.argument("file", type=click.Path(path_type=Path))
@click.option("--columns", "-c", type=click.IntRange(min=1), default=None)
@click.option("--rows", "-r", type=click.IntRange(min=1), default=None)
@click.option(
    "--line",
    "-l",
    type=click.IntRange(min=1),
    default=None,
    help="Insert before this line (default: end of file)",
)
@click.option("--dry-run", "-n", is_flag=True, help="Show the changes without saving")
@click.pass_context
def table_insert(
    ctx: click.Context,
    file: Path,
    columns: int | None,
    rows: int | None,
    line: int | None,
    dry_run: bool,
):
    """Insert a blank table, prompting for missing dimensions."""
    document = _load(file)
    offset = None
    if line is not None:
        try:
            offset = line_offsets(document.text, line)[0]
        except PreconditionError as e:
            _fail(str(e))

    cmd_ctx = CommandContext(
        document=document,
        resolver=_resolver(ctx),
        prompt=lambda text: click.prompt(text, type=click.IntRange(min=1)),
        columns=columns,
        rows=rows,
        offset=offset,
    )
    _run(ctx, "markdown-moose.insertTable", cmd_ctx, dry_run)


def _selection_command(
    ctx: click.Context,
    command_id: str,
    file: Path | None,
    lines: tuple[int, int] | None,
    overrides: dict | None = None,
    dry_run: bool = False,
) -> None:
    """Run a selection command on file lines, or on stdin when no file is given."""
    resolver = _resolver(ctx, overrides)

    if file is None:
        text = sys.stdin.read()
        document = Document(
            path=Path.cwd() / STDIN_DOCUMENT, text=text, selection=(0, len(text))
        )
        extension: Extension = ctx.obj["extension"]
        try:
            result = extension.execute(
                command_id, CommandContext(document=document, resolver=resolver)
            )
        except PreconditionError as e:
            _fail(str(e))
        click.echo(apply_edits(text, result.edits), nl=False)
        return

    document = _load(file, lines)
    if document.selection is None:
        document.selection = (0, len(document.text))
    _run(ctx, command_id, CommandContext(document=document, resolver=resolver), dry_run)


@table.command("from-excel")
@click.argument("file", type=click.Path(path_type=Path), required=False)
@click.option("--lines", "-l", type=LineRange(), default=None, help="Lines START:END")
@click.option("--dry-run", "-n", is_flag=True, help="Show the changes without saving")
@click.pass_context
def table_from_excel(
    ctx: click.Context, file: Path | None, lines: tuple[int, int] | None, dry_run: bool
):
    """Convert tab-delimited rows to a Markdown table."""
    _selection_command(ctx, "markdown-moose.TableExcelToMD", file, lines, dry_run=dry_run)


@table.command("prettify")
@click.argument("file", type=click.Path(path_type=Path), required=False)
@click.option("--lines", "-l", type=LineRange(), default=None, help="Lines START:END")
@click.option(
    "--header-padding/--no-header-padding",
    default=None,
    help='Separate cells with " | " (default: tablePrettify.headerPadding)',
)
@click.option("--dry-run", "-n", is_flag=True, help="Show the changes without saving")
@click.pass_context
def table_prettify(
    ctx: click.Context,
    file: Path | None,
    lines: tuple[int, int] | None,
    header_padding: bool | None,
    dry_run: bool,
):
    """Align the columns of a pipe table."""
    _selection_command(
        ctx,
        "markdown-moose.TablePrettify",
        file,
        lines,
        overrides={"tablePrettify.headerPadding": header_padding},
        dry_run=dry_run,
    )


@main.command()
@click.pass_context
def schema(ctx: click.Context):
    """Print the settings schema of every plugin as JSON."""
    extension: Extension = ctx.obj["extension"]
    click.echo(json.dumps(extension.registry.generate_schema(), indent=2))


@main.group()
def settings():
    """Inspect effective settings."""


@settings.command("get")
@click.argument("plugin")
@click.argument("key")
@click.option(
    "--document",
    "-d",
    type=click.Path(path_type=Path),
    default=None,
    help="Resolve as seen from this document (default: current directory)",
)
@click.pass_context
def settings_get(ctx: click.Context, plugin: str, key: str, document: Path | None):
    """Show the effective value of PLUGIN.KEY."""
    extension: Extension = ctx.obj["extension"]
    definition = extension.registry.definition(plugin, key)
    if definition is None:
        _fail(f"Plugin '{plugin}' has no setting '{key}'")

    document_path = document or Path.cwd() / STDIN_DOCUMENT
    value = _resolver(ctx).resolve(plugin, key, document_path, definition.default)
    click.echo(json.dumps(value))


@main.command()
@click.option("--force", "-f", is_flag=True, help="Overwrite existing file")
@click.pass_context
def init(ctx: click.Context, force: bool):
    """Create a .moose project file with every default setting."""
    config_file = Path.cwd() / PROJECT_CONFIG_FILENAME

    if config_file.exists() and not force:
        click.echo(f"Error: {PROJECT_CONFIG_FILENAME} already exists", err=True)
        click.echo("Use --force to overwrite", err=True)
        raise SystemExit(1)

    extension: Extension = ctx.obj["extension"]
    config_file.write_text(
        json.dumps(extension.registry.defaults(), indent=2) + "\n", encoding="utf-8"
    )
    click.echo(f"Created {config_file}")


@main.command()
@click.pass_context
def doctor(ctx: click.Context):
    """Check the project and host settings for problems."""
    from .doctor import run_doctor

    extension: Extension = ctx.obj["extension"]
    errors, warnings, ok = run_doctor(
        extension.registry, user_settings=ctx.obj["user_settings"]
    )

    for line in ok:
        click.echo(f"OK: {line}")
    for line in warnings:
        click.echo(f"Warning: {line}", err=True)
    for line in errors:
        click.echo(f"Error: {line}", err=True)

    if errors:
        raise SystemExit(1)


@main.command("plugins")
@click.pass_context
def list_plugins(ctx: click.Context):
    """List loaded plugins and their commands."""
    extension: Extension = ctx.obj["extension"]
    for plugin in extension.plugins:
        click.echo(f"{plugin.name} v{plugin.version} - {plugin.description}")
        for command in plugin.commands:
            click.echo(f"  {command.id}: {command.title}")
    for failure in extension.failures:
        click.echo(f"Failed: {failure.source}: {failure.error}", err=True)


if __name__ == "__main__":
    main()
