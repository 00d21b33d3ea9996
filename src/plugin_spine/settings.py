"""Runtime settings for plugin-spine.

Every knob the resolver and loader need (where plugins live, how they are
built, how their entry points are invoked) is declared once here and read
from the environment with the ``PLUGIN_SPINE_`` prefix.

Manifesto:
    Configuration should be explicit, validated, and environment-driven.

    - **Pydantic validation:** Type-checked at startup, not runtime
    - **Environment-driven:** Reads from env vars and .env files
    - **Sensible defaults:** A bare ``plugins/`` directory works out of the box

Examples:
    >>> from plugin_spine.settings import PluginSpineSettings
    >>> settings = PluginSpineSettings(plugins_dir="/opt/plugins", enable_build=False)
    >>> settings.manifest_name
    'plugin.json'

Tags:
    settings, configuration, pydantic, environment, plugin-spine

Doc-Types:
    api-reference
"""

from __future__ import annotations

import sys
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_BUILD_COMMAND = [
    "{python}",
    "-m",
    "compileall",
    "-q",
    "-f",
    "-b",
    "{artifact_source}",
]


class PluginSpineSettings(BaseSettings):
    """Settings shared by the runtime, resolver, and CLI.

    Fields
    ──────
    plugins_dir                : Directory whose subdirectories are plugins
    manifest_name              : Manifest file name inside a plugin directory
    entry_point                : Default source entry point (manifest may override)
    entry_symbol               : Zero-argument function a compiled artifact exports
    artifact_source            : Module source the default build compiles into an artifact
    python_executable          : Interpreter used for build and subprocess fallback
    build_command              : argv template for the on-demand build step
    build_timeout_seconds      : Kill the build tool after this long
    subprocess_timeout_seconds : Kill an entry-point process after this long (None = never)
    enable_build               : Skip the on-demand build strategy when False
    log_level / log_format     : Structlog configuration
    """

    model_config = SettingsConfigDict(
        env_prefix="PLUGIN_SPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Discovery ────────────────────────────────────────────────
    plugins_dir: Path = Field(
        default_factory=lambda: Path.cwd() / "plugins",
        description="Directory scanned for plugin subdirectories",
    )
    manifest_name: str = "plugin.json"
    entry_point: str = "plugin.py"
    entry_symbol: str = "plugin"
    artifact_source: str = "artifact.py"

    # ── Build / subprocess ───────────────────────────────────────
    python_executable: str = Field(default_factory=lambda: sys.executable)
    build_command: list[str] = Field(default_factory=lambda: list(DEFAULT_BUILD_COMMAND))
    build_timeout_seconds: float = 120.0
    subprocess_timeout_seconds: float | None = None
    enable_build: bool = True

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    log_format: str = "console"

    @field_validator("build_command")
    @classmethod
    def _build_command_not_empty(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("build_command must contain at least the program to run")
        return value


@lru_cache(maxsize=1)
def get_settings() -> PluginSpineSettings:
    """Return process settings read from the environment (cached)."""
    return PluginSpineSettings()
