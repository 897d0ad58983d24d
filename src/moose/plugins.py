"""Plugin declarations and loading.

Plugins are listed statically in PLUGIN_FACTORIES. Loading builds each one,
registers its settings and collects its commands; a plugin that fails at
any step is reported and left out without affecting the others.
"""

from collections.abc import Callable
from dataclasses import dataclass, field

from .commands import (
    CommandContext,
    CommandResult,
    convert_excel_table,
    download_document_images,
    insert_blank_table,
    prettify_selected_table,
    update_image_alts,
)
from .image_download import DEFAULT_MAX_FILE_SIZE_MB, DEFAULT_TIMEOUT
from .logging import debug, error
from .paths import DEFAULT_IMAGE_PATH
from .settings import SettingDefinition, SettingsRegistry

CommandHandler = Callable[[CommandContext], CommandResult]


@dataclass(frozen=True)
class Command:
    id: str
    title: str
    execute: CommandHandler


@dataclass
class Plugin:
    """A named group of commands and the settings they read."""

    name: str
    description: str
    version: str
    commands: list[Command]
    settings: dict[str, SettingDefinition] = field(default_factory=dict)
    author: str = ""


def image_alt_plugin() -> Plugin:
    return Plugin(
        name="imageAlt",
        description="Updates image alt text based on heading context",
        version="1.0.0",
        author="Shane Holloman",
        commands=[
            Command(
                "markdown-moose.updateImageAlts",
                "Update Image Alt Text",
                update_image_alts,
            )
        ],
        settings={
            "overwriteExisting": SettingDefinition(
                type="boolean",
                default=False,
                description="Whether to overwrite existing alt text",
            )
        },
    )


def image_downloader_plugin() -> Plugin:
    return Plugin(
        name="imageDownloader",
        description=(
            "Downloads remote images from markdown files to a local directory "
            "and updates links automatically"
        ),
        version="1.0.0",
        author="Shane Holloman",
        commands=[
            Command(
                "markdown-moose.downloadImages",
                "Download Images from Markdown",
                download_document_images,
            )
        ],
        settings={
            "path": SettingDefinition(
                type="string",
                default=DEFAULT_IMAGE_PATH,
                description="Directory for downloaded images, relative to the document",
            ),
            "overwriteExisting": SettingDefinition(
                type="boolean",
                default=False,
                description="Whether to overwrite images that already exist locally",
            ),
            "limitFileSize": SettingDefinition(
                type="boolean",
                default=False,
                description="Skip images larger than maxFileSizeMB",
            ),
            "maxFileSizeMB": SettingDefinition(
                type="number",
                default=DEFAULT_MAX_FILE_SIZE_MB,
                description="Largest image to download, in megabytes",
                minimum=0,
            ),
            "timeout": SettingDefinition(
                type="number",
                default=DEFAULT_TIMEOUT,
                description="Network timeout per image, in seconds",
                minimum=1,
                maximum=600,
            ),
        },
    )


def table_generator_plugin() -> Plugin:
    return Plugin(
        name="TableGen",
        description="Inserts a markdown table at the cursor based on user input",
        version="1.0.0",
        author="Max Gernhoefer",
        commands=[
            Command(
                "markdown-moose.insertTable",
                "Insert Markdown Table",
                insert_blank_table,
            )
        ],
    )


def table_excel_plugin() -> Plugin:
    return Plugin(
        name="TableExcelToMD",
        description=(
            "Takes in an excel pasted (Tab delimited) table selection "
            "and converts to Markdown"
        ),
        version="1.0.0",
        author="Max Gernhoefer",
        commands=[
            Command(
                "markdown-moose.TableExcelToMD",
                "Convert Excel/Tab delimited table to Markdown",
                convert_excel_table,
            )
        ],
    )


def table_prettify_plugin() -> Plugin:
    return Plugin(
        name="tablePrettify",
        description="Takes in a markdown table selection and formats it nice",
        version="1.0.0",
        author="Max Gernhoefer",
        commands=[
            Command(
                "markdown-moose.TablePrettify",
                "Prettify Markdown Table",
                prettify_selected_table,
            )
        ],
        settings={
            "headerPadding": SettingDefinition(
                type="boolean",
                default=False,
                description='Separate cells with " | " instead of "|"',
            )
        },
    )


PLUGIN_FACTORIES: list[Callable[[], Plugin]] = [
    image_alt_plugin,
    image_downloader_plugin,
    table_generator_plugin,
    table_excel_plugin,
    table_prettify_plugin,
]


@dataclass
class PluginLoadResult:
    """Either a loaded plugin or the error that prevented loading it."""

    source: str
    plugin: Plugin | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.plugin is not None


def is_valid_plugin(plugin) -> bool:
    return (
        isinstance(plugin, Plugin)
        and isinstance(plugin.name, str)
        and bool(plugin.name)
        and isinstance(plugin.version, str)
        and all(isinstance(c, Command) and callable(c.execute) for c in plugin.commands)
    )


def load_plugins(factories=None) -> list[PluginLoadResult]:
    """Build every plugin, isolating failures per plugin."""
    results = []
    for factory in factories if factories is not None else PLUGIN_FACTORIES:
        source = getattr(factory, "__name__", repr(factory))
        try:
            plugin = factory()
        except Exception as e:
            error(f"Failed to load plugin from {source}: {e}")
            results.append(PluginLoadResult(source, error=e))
            continue
        if not is_valid_plugin(plugin):
            e = TypeError(f"{source} did not return a valid plugin")
            error(str(e))
            results.append(PluginLoadResult(source, error=e))
            continue
        results.append(PluginLoadResult(source, plugin=plugin))
    return results


@dataclass
class Extension:
    """Loaded plugins, their registered settings and the command table."""

    registry: SettingsRegistry
    plugins: list[Plugin] = field(default_factory=list)
    commands: dict[str, Command] = field(default_factory=dict)
    failures: list[PluginLoadResult] = field(default_factory=list)

    def execute(self, command_id: str, ctx: CommandContext) -> CommandResult:
        command = self.commands.get(command_id)
        if command is None:
            raise KeyError(f"Unknown command: {command_id}")
        debug(f"{command_id} called")
        return command.execute(ctx)


def activate(factories=None, registry: SettingsRegistry | None = None) -> Extension:
    """Load plugins, register their settings and build the command table."""
    extension = Extension(registry=registry or SettingsRegistry())

    for result in load_plugins(factories):
        if not result.ok:
            extension.failures.append(result)
            continue
        plugin = result.plugin

        if plugin.settings:
            try:
                extension.registry.register(plugin.name, plugin.settings)
            except Exception as e:
                error(f"Failed to register settings for plugin {plugin.name}: {e}")
                extension.failures.append(PluginLoadResult(result.source, error=e))
                continue
            debug(f"Registered settings for plugin: {plugin.name}")

        for command in plugin.commands:
            if command.id in extension.commands:
                error(f"Duplicate command {command.id} in plugin {plugin.name}")
                continue
            extension.commands[command.id] = command

        extension.plugins.append(plugin)
        debug(f"Activated plugin: {plugin.name} v{plugin.version}")

    return extension


def deactivate(extension: Extension) -> None:
    extension.registry.clear()
    extension.commands.clear()
    extension.plugins.clear()
