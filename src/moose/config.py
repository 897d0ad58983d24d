"""Configuration loading and settings resolution for moose.

Settings are resolved per (plugin, key) pair in this order:

1. ``.moose`` project file (JSON) at the project root
2. Host settings (TOML): user settings file, then workspace ``moose.toml``
3. The default supplied by the caller
"""

import json
import os
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any, TypeVar

from .errors import ConfigError
from .logging import debug, warning
from .settings import NAMESPACE, SettingsRegistry, matches_type, normalize_plugin_name

T = TypeVar("T")

PROJECT_CONFIG_FILENAME = ".moose"
WORKSPACE_SETTINGS_FILENAME = "moose.toml"
USER_SETTINGS_ENV = "MOOSE_SETTINGS"


def _find_similar(key: str, valid_keys: set[str], threshold: float = 0.6) -> str | None:
    """Find a similar key from valid_keys using Levenshtein ratio.

    Args:
        key: The unknown key to match
        valid_keys: Set of valid key names
        threshold: Minimum similarity ratio (0-1) to suggest

    Returns:
        Most similar key if above threshold, None otherwise
    """

    def levenshtein_ratio(s1: str, s2: str) -> float:
        m, n = len(s1), len(s2)
        if m == 0 or n == 0:
            return 0.0

        d = [[0] * (n + 1) for _ in range(m + 1)]
        for i in range(m + 1):
            d[i][0] = i
        for j in range(n + 1):
            d[0][j] = j

        for i in range(1, m + 1):
            for j in range(1, n + 1):
                cost = 0 if s1[i - 1] == s2[j - 1] else 1
                d[i][j] = min(d[i - 1][j] + 1, d[i][j - 1] + 1, d[i - 1][j - 1] + cost)

        return 1.0 - (d[m][n] / max(m, n))

    best_match = None
    best_ratio = 0.0

    for valid in sorted(valid_keys):
        ratio = levenshtein_ratio(key.lower(), valid.lower())
        if ratio > best_ratio:
            best_ratio = ratio
            best_match = valid

    return best_match if best_ratio >= threshold else None


def plugin_section(data: Mapping, plugin_id: str) -> Mapping | None:
    """Find a plugin's section in a config mapping, ignoring id case/format."""
    wanted = normalize_plugin_name(plugin_id)
    for name, section in data.items():
        if isinstance(name, str) and normalize_plugin_name(name) == wanted:
            return section if isinstance(section, Mapping) else None
    return None


def find_project_config(start_path: Path) -> Path | None:
    """Find the ``.moose`` project file starting from start_path.

    Searches start_path and its parents up to the filesystem root.

    Args:
        start_path: Directory to start searching from

    Returns:
        Path to the project file if found, None otherwise
    """
    current = start_path.resolve()

    while True:
        config_path = current / PROJECT_CONFIG_FILENAME
        if config_path.is_file():
            return config_path

        parent = current.parent
        if parent == current:
            return None
        current = parent


def load_project_config(config_path: Path) -> dict | None:
    """Load a ``.moose`` project file.

    Args:
        config_path: Path to the project file

    Returns:
        Parsed JSON object, or None if the file does not exist

    Raises:
        ConfigError: If the file exists but is not a JSON object
    """
    try:
        content = config_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"Unable to read {config_path}: {e}") from e

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"{config_path} must contain a JSON object")
    return data


def check_project_config(
    data: Mapping, registry: SettingsRegistry
) -> list[str]:
    """Validate a project config against the registry.

    Args:
        data: Parsed project file
        registry: Registry with every plugin's declared settings

    Returns:
        Human-readable problems (unknown plugins/keys, type mismatches)
    """
    problems = []
    known_plugins = set(registry.plugins())

    for plugin_name in sorted(data):
        section = data[plugin_name]
        normalized = normalize_plugin_name(plugin_name)
        if normalized not in known_plugins:
            msg = f"Unknown plugin '{plugin_name}'"
            similar = _find_similar(normalized, known_plugins)
            if similar:
                msg += f". Did you mean '{similar}'?"
            problems.append(msg)
            continue
        if not isinstance(section, Mapping):
            problems.append(f"Settings for plugin '{plugin_name}' must be an object")
            continue

        declared = registry.settings_for(plugin_name)
        for key in sorted(section):
            definition = declared.get(key)
            if definition is None:
                msg = f"Unknown setting '{key}' for plugin '{plugin_name}'"
                similar = _find_similar(key, set(declared))
                if similar:
                    msg += f". Did you mean '{similar}'?"
                problems.append(msg)
            elif not matches_type(definition.type, section[key]):
                problems.append(
                    f"Setting '{plugin_name}.{key}' should be of type "
                    f"{definition.type}, got {section[key]!r}"
                )

    return problems


def default_user_settings_path() -> Path:
    """Location of the user-level host settings file."""
    override = os.environ.get(USER_SETTINGS_ENV)
    if override:
        return Path(os.path.expanduser(override))
    return Path.home() / ".config" / "moose" / "settings.toml"


class HostConfig:
    """Hierarchical host settings keyed ``namespace.plugin.key``.

    Built from TOML layers; a value in a later layer wins over the same
    key in an earlier one.
    """

    def __init__(self, layers: list[dict] | None = None):
        self.layers = list(layers or [])

    @classmethod
    def load(cls, paths: list[Path]) -> "HostConfig":
        """Load settings layers from TOML files, skipping missing ones.

        Unreadable or invalid files produce a warning and are ignored.
        """
        layers = []
        for path in paths:
            if not path.is_file():
                continue
            try:
                with open(path, "rb") as f:
                    layers.append(tomllib.load(f))
            except (tomllib.TOMLDecodeError, OSError, UnicodeDecodeError) as e:
                warning(f"Ignoring host settings {path}: {e}")
        return cls(layers)

    @classmethod
    def for_project(
        cls, project_root: Path | None, user_settings: Path | None = None
    ) -> "HostConfig":
        """Load user settings followed by the workspace settings of a project."""
        paths = [user_settings or default_user_settings_path()]
        if project_root is not None:
            paths.append(project_root / WORKSPACE_SETTINGS_FILENAME)
        return cls.load(paths)

    def get_setting(self, namespace: str, plugin_id: str, key: str) -> Any:
        """Look up one plugin setting; None when no layer defines it."""
        for layer in reversed(self.layers):
            section = layer.get(namespace)
            if not isinstance(section, Mapping):
                continue
            found = plugin_section(section, plugin_id)
            if found is not None and key in found:
                return found[key]
        return None


def _fits_default(value: Any, default: Any) -> bool:
    """Check whether a configured value has the same kind as the caller default."""
    if default is None:
        return True
    for setting_type in ("boolean", "number", "string", "array", "object"):
        if matches_type(setting_type, default):
            return matches_type(setting_type, value)
    return isinstance(value, type(default))


def _override_key(name: str) -> str:
    plugin_id, _, key = name.rpartition(".")
    return f"{normalize_plugin_name(plugin_id)}.{key}"


class SettingsResolver:
    """Resolve the effective value of a plugin setting for a document.

    Nothing is cached: each call re-reads the project file and, unless a
    fixed HostConfig was supplied, the host settings files.

    Overrides (``{"plugin.key": value}``, e.g. from command-line flags) take
    precedence over every configuration source.
    """

    def __init__(
        self,
        host: HostConfig | None = None,
        project_root: Path | None = None,
        user_settings: Path | None = None,
        namespace: str = NAMESPACE,
        overrides: dict[str, Any] | None = None,
    ):
        self.host = host
        self.project_root = project_root
        self.user_settings = user_settings
        self.namespace = namespace
        self.overrides = {
            _override_key(name): value for name, value in (overrides or {}).items()
        }

    def find_project_root(self, document_path: Path) -> Path | None:
        """Project root for a document: explicit root, else nearest ``.moose``."""
        if self.project_root is not None:
            return self.project_root
        config_path = find_project_config(Path(document_path).parent)
        return config_path.parent if config_path else None

    def resolve(
        self, plugin_id: str, key: str, document_path: Path, default: T
    ) -> T:
        """Get the effective value of ``plugin_id.key`` for a document.

        Args:
            plugin_id: Plugin identifier, e.g. "imageDownloader"
            key: Setting key, e.g. "path"
            document_path: Path of the document being transformed
            default: Value used when no configuration defines the setting

        Returns:
            Project file value, else host value, else default
        """
        override = self.overrides.get(_override_key(f"{plugin_id}.{key}"))
        if override is not None and self._accept(override, default, plugin_id, key, "overrides"):
            return override

        project_root = self.find_project_root(document_path)

        if project_root is not None:
            config_path = project_root / PROJECT_CONFIG_FILENAME
            try:
                data = load_project_config(config_path)
            except ConfigError as e:
                warning(f"{e}. Using host settings instead.")
                data = None
            if data:
                section = plugin_section(data, plugin_id)
                value = section.get(key) if section is not None else None
                if value is not None and self._accept(
                    value, default, plugin_id, key, str(config_path)
                ):
                    debug(f"Using {plugin_id}.{key} from {config_path}")
                    return value

        host = self.host
        if host is None:
            host = HostConfig.for_project(project_root, self.user_settings)
        value = host.get_setting(self.namespace, plugin_id, key)
        if value is not None and self._accept(value, default, plugin_id, key, "host settings"):
            debug(f"Using {plugin_id}.{key} from host settings")
            return value

        debug(f"Using default for {plugin_id}.{key}: {default!r}")
        return default

    @staticmethod
    def _accept(value: Any, default: Any, plugin_id: str, key: str, source: str) -> bool:
        """Reject a value whose type differs from the default, with a warning."""
        if _fits_default(value, default):
            return True
        warning(
            f"Ignoring {plugin_id}.{key} = {value!r} from {source}: "
            f"expected a value like {default!r}"
        )
        return False
