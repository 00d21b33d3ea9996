"""
Shared pytest fixtures and configuration for plugin-spine tests.

This module provides:
- Auto-marking of unit / integration tests by location
- Structlog routed through stdlib logging so caplog sees events
- A plugin directory factory for resolver and runtime tests
- Settings pointed at a temporary plugins tree

Usage:
    def test_something(make_plugin, sources, settings):
        plugin_dir = make_plugin("echo", source=sources.echo)
        ...
"""

import json
import textwrap
from collections.abc import Callable
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest
import structlog

from plugin_spine.registry import HandlerRegistry
from plugin_spine.settings import PluginSpineSettings, get_settings


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    for item in items:
        test_path = Path(item.path).relative_to(Path(__file__).parent)

        if "integration" in str(test_path):
            item.add_marker(pytest.mark.integration)

        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration", "slow"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _stdlib_structlog():
    """Send structlog events through stdlib logging without installing handlers."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )
    yield
    structlog.reset_defaults()


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# =============================================================================
# Plugin Sources
# =============================================================================

# Artifact module source: exports plugin() for in-process loading.
ARTIFACT_SOURCE = """
    def execute(params):
        return {"source": "artifact", "params": dict(params)}

    def execute_iteration(params, index):
        return {"source": "artifact", "index": index}, index < 1

    def plugin():
        return {"execute": execute, "execute_iteration": execute_iteration}
"""

# Script-only plugin: no entry symbol, so only the subprocess path serves it.
SCRIPT_SOURCE = """
    import json
    import sys

    if __name__ == "__main__":
        print(json.dumps({"status": "ok"}))
"""

# Echoes the decoded --params payload back as JSON.
ECHO_SOURCE = """
    import json
    import sys

    if __name__ == "__main__":
        raw = "{}"
        for arg in sys.argv[1:]:
            if arg.startswith("--params="):
                raw = arg.split("=", 1)[1]
        print(json.dumps({"echo": json.loads(raw)}))
"""

# Plain script with no __main__ guard; must only ever run as a subprocess.
# Records the pid it ran under in ran_in.pid next to itself.
UNGUARDED_SOURCE = """
    import json
    import os
    import sys

    with open(os.path.join(os.path.dirname(os.path.abspath(__file__)), "ran_in.pid"), "w") as f:
        f.write(str(os.getpid()))
    print(json.dumps({"status": "ok"}))
    sys.exit(0)
"""


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def sources() -> SimpleNamespace:
    """Plugin sources: ``artifact``, ``script``, ``echo``, ``unguarded``."""
    return SimpleNamespace(
        artifact=ARTIFACT_SOURCE,
        script=SCRIPT_SOURCE,
        echo=ECHO_SOURCE,
        unguarded=UNGUARDED_SOURCE,
    )


@pytest.fixture
def plugins_dir(tmp_path: Path) -> Path:
    path = tmp_path / "plugins"
    path.mkdir()
    return path


@pytest.fixture
def make_plugin(plugins_dir: Path) -> Callable[..., Path]:
    """Factory creating ``<plugins_dir>/<plugin_id>/`` with a manifest and entry point.

    ``artifact`` is written to ``artifact.py``, the source the build step compiles.
    """

    def _make(
        plugin_id: str,
        source: str | None = SCRIPT_SOURCE,
        *,
        manifest: dict[str, Any] | None = None,
        entry_point: str = "plugin.py",
        artifact: str | None = None,
    ) -> Path:
        plugin_dir = plugins_dir / plugin_id
        plugin_dir.mkdir(parents=True, exist_ok=True)

        data = {"id": plugin_id, "name": plugin_id.title(), "version": "1.0.0"}
        data.update(manifest or {})
        (plugin_dir / "plugin.json").write_text(json.dumps(data), encoding="utf-8")

        if source is not None:
            (plugin_dir / entry_point).write_text(textwrap.dedent(source), encoding="utf-8")
        if artifact is not None:
            (plugin_dir / "artifact.py").write_text(textwrap.dedent(artifact), encoding="utf-8")
        return plugin_dir

    return _make


@pytest.fixture
def settings(plugins_dir: Path) -> PluginSpineSettings:
    """Settings for a temporary plugins tree with the build strategy disabled."""
    return PluginSpineSettings(plugins_dir=plugins_dir, enable_build=False)


@pytest.fixture
def build_settings(plugins_dir: Path) -> PluginSpineSettings:
    """Settings with the default compileall build step enabled."""
    return PluginSpineSettings(plugins_dir=plugins_dir, enable_build=True)


@pytest.fixture
def registry() -> HandlerRegistry:
    return HandlerRegistry()
