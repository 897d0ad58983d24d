"""Tests for the settings registry."""

import pytest

from moose.config import HostConfig
from moose.errors import SettingsError
from moose.settings import SettingDefinition, SettingsRegistry, normalize_plugin_name


def _registry() -> SettingsRegistry:
    registry = SettingsRegistry()
    registry.register(
        "imageAlt",
        {
            "overwriteExisting": SettingDefinition(
                type="boolean", default=False, description="Overwrite alt text"
            )
        },
    )
    return registry


class TestNormalizePluginName:
    def test_lowercases(self):
        assert normalize_plugin_name("ImageAlt") == "imagealt"

    def test_whitespace_to_hyphen(self):
        assert normalize_plugin_name("Image  Downloader") == "image-downloader"


class TestSettingDefinition:
    def test_rejects_unknown_type(self):
        with pytest.raises(SettingsError):
            SettingDefinition(type="integer", default=1, description="x")

    def test_rejects_mismatched_default(self):
        with pytest.raises(SettingsError):
            SettingDefinition(type="number", default="10", description="x")

    def test_boolean_is_not_a_number(self):
        with pytest.raises(SettingsError):
            SettingDefinition(type="number", default=True, description="x")

    def test_from_dict_rejects_unknown_fields(self):
        with pytest.raises(SettingsError, match="colour"):
            SettingDefinition.from_dict(
                {"type": "string", "default": "", "description": "x", "colour": 1}
            )

    def test_from_dict_requires_description(self):
        with pytest.raises(SettingsError, match="description"):
            SettingDefinition.from_dict({"type": "string", "default": ""})


class TestRegistry:
    def test_register_normalizes_plugin_id(self):
        registry = _registry()
        assert registry.plugins() == ["imagealt"]
        assert registry.has_setting("IMAGEALT", "overwriteExisting")
        assert registry.has_setting("imageAlt", "overwriteExisting")

    def test_has_setting_false_for_unknown(self):
        registry = _registry()
        assert not registry.has_setting("imageAlt", "missing")
        assert not registry.has_setting("other", "overwriteExisting")

    def test_register_accepts_plain_dicts(self):
        registry = SettingsRegistry()
        registry.register(
            "imageDownloader",
            {"path": {"type": "string", "default": "./img", "description": "Where"}},
        )
        assert registry.definition("imageDownloader", "path").default == "./img"

    def test_malformed_map_leaves_catalog_untouched(self):
        registry = _registry()
        with pytest.raises(SettingsError):
            registry.register(
                "broken",
                {
                    "good": {"type": "string", "default": "", "description": "ok"},
                    "bad": {"type": "string", "default": 3, "description": "no"},
                },
            )
        assert registry.plugins() == ["imagealt"]

    def test_non_mapping_settings_rejected(self):
        with pytest.raises(SettingsError):
            SettingsRegistry().register("x", ["not", "a", "map"])

    def test_get_returns_declared_default(self):
        assert _registry().get("imageAlt", "overwriteExisting") is False

    def test_get_prefers_host_value(self):
        host = HostConfig([{"moose": {"imageAlt": {"overwriteExisting": True}}}])
        assert _registry().get("imageAlt", "overwriteExisting", host=host) is True

    def test_get_ignores_host_value_of_wrong_type(self):
        host = HostConfig([{"moose": {"imageAlt": {"overwriteExisting": "yes"}}}])
        assert _registry().get("imageAlt", "overwriteExisting", host=host) is False

    def test_get_unknown_is_none(self):
        assert _registry().get("imageAlt", "nope") is None

    def test_clear(self):
        registry = _registry()
        registry.clear()
        assert registry.plugins() == []
        assert registry.generate_schema()["properties"] == {}


class TestGenerateSchema:
    def test_flattens_namespaced_properties(self):
        schema = _registry().generate_schema()

        assert schema["title"] == "Markdown Moose"
        assert schema["properties"] == {
            "moose.imagealt.overwriteExisting": {
                "type": "boolean",
                "default": False,
                "description": "Overwrite alt text",
            }
        }

    def test_optional_constraints_only_when_present(self):
        registry = SettingsRegistry()
        registry.register(
            "downloader",
            {
                "size": SettingDefinition(
                    type="number", default=5, description="MB", minimum=0, maximum=50
                ),
                "mode": SettingDefinition(
                    type="string",
                    default="fast",
                    description="Mode",
                    enum=("fast", "slow"),
                    pattern="^[a-z]+$",
                ),
                "tags": SettingDefinition(
                    type="array", default=[], description="Tags", items={"type": "string"}
                ),
            },
        )
        props = registry.generate_schema()["properties"]

        assert props["moose.downloader.size"]["minimum"] == 0
        assert props["moose.downloader.size"]["maximum"] == 50
        assert "enum" not in props["moose.downloader.size"]
        assert props["moose.downloader.mode"]["enum"] == ["fast", "slow"]
        assert props["moose.downloader.mode"]["pattern"] == "^[a-z]+$"
        assert "minimum" not in props["moose.downloader.mode"]
        assert props["moose.downloader.tags"]["items"] == {"type": "string"}

    def test_defaults_shaped_like_project_file(self):
        assert _registry().defaults() == {"imagealt": {"overwriteExisting": False}}
