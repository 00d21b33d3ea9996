"""Tests for environment-driven settings."""

import sys
from pathlib import Path

import pytest
from pydantic import ValidationError

from plugin_spine.settings import DEFAULT_BUILD_COMMAND, PluginSpineSettings, get_settings


def test_defaults(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    settings = PluginSpineSettings()

    assert settings.plugins_dir == tmp_path / "plugins"
    assert settings.manifest_name == "plugin.json"
    assert settings.entry_point == "plugin.py"
    assert settings.entry_symbol == "plugin"
    assert settings.artifact_source == "artifact.py"
    assert settings.python_executable == sys.executable
    assert settings.build_command == DEFAULT_BUILD_COMMAND
    assert settings.enable_build is True
    assert settings.subprocess_timeout_seconds is None


def test_environment_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("PLUGIN_SPINE_PLUGINS_DIR", str(tmp_path))
    monkeypatch.setenv("PLUGIN_SPINE_ENABLE_BUILD", "false")
    monkeypatch.setenv("PLUGIN_SPINE_BUILD_COMMAND", '["make", "-C", "{plugin_dir}"]')
    monkeypatch.setenv("PLUGIN_SPINE_SUBPROCESS_TIMEOUT_SECONDS", "2.5")

    settings = PluginSpineSettings()

    assert settings.plugins_dir == Path(str(tmp_path))
    assert settings.enable_build is False
    assert settings.build_command == ["make", "-C", "{plugin_dir}"]
    assert settings.subprocess_timeout_seconds == 2.5


def test_empty_build_command_rejected():
    with pytest.raises(ValidationError, match="build_command"):
        PluginSpineSettings(build_command=[])


def test_get_settings_cached():
    assert get_settings() is get_settings()
