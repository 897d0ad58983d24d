"""Plugin settings declarations and the settings registry."""

import re
from collections.abc import Mapping
from dataclasses import dataclass, fields
from typing import Any

from .errors import SettingsError

NAMESPACE = "moose"
SCHEMA_TITLE = "Markdown Moose"

SETTING_TYPES = {
    "string": (str,),
    "number": (int, float),
    "boolean": (bool,),
    "array": (list, tuple),
    "object": (dict,),
}

_WHITESPACE_PATTERN = re.compile(r"\s+")


def normalize_plugin_name(name: str) -> str:
    """Normalize a plugin identifier: lowercase, whitespace runs to hyphens."""
    return _WHITESPACE_PATTERN.sub("-", name.strip().lower())


def matches_type(setting_type: str, value: Any) -> bool:
    """Check whether a value fits a declared setting type."""
    expected = SETTING_TYPES.get(setting_type)
    if expected is None:
        return False
    # bool is an int subclass; keep booleans out of number settings
    if setting_type == "number" and isinstance(value, bool):
        return False
    return isinstance(value, expected)


@dataclass(frozen=True)
class SettingDefinition:
    """A single setting declared by a plugin."""

    type: str
    default: Any
    description: str
    enum: tuple[str, ...] | None = None
    items: dict | None = None
    minimum: float | None = None
    maximum: float | None = None
    pattern: str | None = None

    def __post_init__(self):
        if self.type not in SETTING_TYPES:
            raise SettingsError(
                f"Unknown setting type '{self.type}' "
                f"(expected one of {', '.join(SETTING_TYPES)})"
            )
        if not matches_type(self.type, self.default):
            raise SettingsError(
                f"Default {self.default!r} does not match type '{self.type}'"
            )
        if not isinstance(self.description, str):
            raise SettingsError("Setting description must be a string")
        if self.enum is not None:
            object.__setattr__(self, "enum", tuple(self.enum))

    @classmethod
    def from_dict(cls, data: Mapping) -> "SettingDefinition":
        """Build a definition from a plain mapping, rejecting unknown fields."""
        if not isinstance(data, Mapping):
            raise SettingsError(f"Setting definition must be a mapping, got {data!r}")
        valid = {f.name for f in fields(cls)}
        unknown = set(data) - valid
        if unknown:
            raise SettingsError(
                f"Unknown setting definition fields: {', '.join(sorted(unknown))}"
            )
        missing = {"type", "default", "description"} - set(data)
        if missing:
            raise SettingsError(
                f"Setting definition is missing: {', '.join(sorted(missing))}"
            )
        return cls(**data)

    def to_schema(self) -> dict:
        """Render as a configuration schema property, optional keys only when set."""
        prop: dict[str, Any] = {
            "type": self.type,
            "default": self.default,
            "description": self.description,
        }
        if self.enum:
            prop["enum"] = list(self.enum)
        if self.items:
            prop["items"] = dict(self.items)
        if self.minimum is not None:
            prop["minimum"] = self.minimum
        if self.maximum is not None:
            prop["maximum"] = self.maximum
        if self.pattern:
            prop["pattern"] = self.pattern
        return prop


class SettingsRegistry:
    """Catalog of plugins and the settings each one declares.

    One registry is built when the plugins are loaded and lives for the rest
    of the process. Plugin identifiers are normalized on the way in and on
    every lookup, so ``imageAlt`` and ``ImageAlt`` name the same plugin.
    """

    def __init__(self, namespace: str = NAMESPACE):
        self.namespace = namespace
        self._settings: dict[str, dict[str, SettingDefinition]] = {}

    def register(self, plugin_id: str, settings: Mapping) -> None:
        """Register a plugin's settings.

        Raises:
            SettingsError: If the settings map is malformed. The catalog is
                left untouched in that case.
        """
        if not isinstance(plugin_id, str) or not plugin_id.strip():
            raise SettingsError(f"Invalid plugin identifier: {plugin_id!r}")
        if not isinstance(settings, Mapping):
            raise SettingsError(
                f"Settings for plugin '{plugin_id}' must be a mapping"
            )

        definitions: dict[str, SettingDefinition] = {}
        for key, definition in settings.items():
            if not isinstance(key, str) or not key:
                raise SettingsError(
                    f"Invalid setting key {key!r} for plugin '{plugin_id}'"
                )
            if isinstance(definition, SettingDefinition):
                definitions[key] = definition
                continue
            try:
                definitions[key] = SettingDefinition.from_dict(definition)
            except (SettingsError, TypeError) as e:
                raise SettingsError(
                    f"Invalid setting '{key}' for plugin '{plugin_id}': {e}"
                ) from e

        self._settings[normalize_plugin_name(plugin_id)] = definitions

    def plugins(self) -> list[str]:
        """Normalized identifiers of every registered plugin."""
        return list(self._settings)

    def settings_for(self, plugin_id: str) -> dict[str, SettingDefinition]:
        """All settings declared by a plugin (empty if unknown)."""
        return dict(self._settings.get(normalize_plugin_name(plugin_id), {}))

    def definition(self, plugin_id: str, key: str) -> SettingDefinition | None:
        return self._settings.get(normalize_plugin_name(plugin_id), {}).get(key)

    def has_plugin(self, plugin_id: str) -> bool:
        return normalize_plugin_name(plugin_id) in self._settings

    def has_setting(self, plugin_id: str, key: str) -> bool:
        return self.definition(plugin_id, key) is not None

    def get(self, plugin_id: str, key: str, host=None) -> Any:
        """Get a setting value from the host store or the declared default.

        Args:
            plugin_id: Plugin identifier (any case)
            key: Setting key
            host: Optional HostConfig to consult first

        Returns:
            The host value when it matches the declared type, else the
            declared default, else None when the plugin does not declare
            the key.
        """
        definition = self.definition(plugin_id, key)
        if definition is None:
            return None
        if host is not None:
            value = host.get_setting(self.namespace, plugin_id, key)
            if value is not None and matches_type(definition.type, value):
                return value
        return definition.default

    def generate_schema(self, title: str = SCHEMA_TITLE) -> dict:
        """Flatten every registered setting into one configuration schema."""
        properties = {}
        for plugin_name, settings in self._settings.items():
            for key, definition in settings.items():
                properties[f"{self.namespace}.{plugin_name}.{key}"] = (
                    definition.to_schema()
                )
        return {"title": title, "properties": properties}

    def defaults(self) -> dict[str, dict[str, Any]]:
        """Per-plugin default values, shaped like a project config file."""
        return {
            plugin_name: {key: d.default for key, d in settings.items()}
            for plugin_name, settings in self._settings.items()
        }

    def clear(self) -> None:
        """Remove every registered plugin."""
        self._settings.clear()
