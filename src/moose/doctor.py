"""Diagnostics for moose project and host settings."""

from __future__ import annotations

from pathlib import Path

from .config import (
    WORKSPACE_SETTINGS_FILENAME,
    HostConfig,
    check_project_config,
    default_user_settings_path,
    find_project_config,
    load_project_config,
    plugin_section,
)
from .errors import ConfigError
from .paths import validate_image_path
from .settings import SettingsRegistry


def _display_path(path: Path, base: Path) -> str:
    """Return a friendly path display, relative when possible."""
    try:
        return str(path.relative_to(base))
    except ValueError:
        return str(path)


def run_doctor(
    registry: SettingsRegistry,
    start_path: Path | None = None,
    user_settings: Path | None = None,
) -> tuple[list[str], list[str], list[str]]:
    """Run diagnostics and return (errors, warnings, ok)."""
    errors: list[str] = []
    warnings: list[str] = []
    ok: list[str] = []

    start_path = (start_path or Path.cwd()).resolve()

    ok.append(f"Plugins with settings: {', '.join(registry.plugins()) or 'none'}")

    config_path = find_project_config(start_path)
    project_root = config_path.parent if config_path else None
    data = None
    if config_path is None:
        ok.append("No .moose project file found (using host settings and defaults).")
    else:
        display_config = _display_path(config_path, start_path)
        try:
            data = load_project_config(config_path)
        except ConfigError as e:
            errors.append(str(e))
        else:
            ok.append(f"Project file loaded: {display_config}")
            warnings.extend(check_project_config(data, registry))

    user_path = user_settings or default_user_settings_path()
    if user_path.is_file():
        ok.append(f"User settings: {user_path}")
    if project_root and (project_root / WORKSPACE_SETTINGS_FILENAME).is_file():
        ok.append(f"Workspace settings: {project_root / WORKSPACE_SETTINGS_FILENAME}")

    host = HostConfig.for_project(project_root, user_path)
    image_path = None
    if data:
        section = plugin_section(data, "imageDownloader")
        if section is not None:
            image_path = section.get("path")
    if image_path is None:
        image_path = host.get_setting(registry.namespace, "imageDownloader", "path")

    if image_path is not None:
        if validate_image_path(start_path, image_path) is None:
            errors.append(
                f"Image download path {image_path!r} must be relative and stay "
                "inside the document directory."
            )
        else:
            ok.append(f"Image download path: {image_path}")

    return errors, warnings, ok
