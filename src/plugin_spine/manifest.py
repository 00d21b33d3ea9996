"""
Plugin manifests and directory discovery.

Each plugin occupies one directory holding a ``plugin.json`` manifest and a
source entry point.  The runtime reads only what it needs (id, entry point)
but parses the descriptive fields too, so front ends can list plugins and
render parameter forms.

File Format (JSON):
    {
      "id": "subnet_calculator",
      "name": "Subnet Calculator",
      "description": "IPv4/IPv6 subnet arithmetic",
      "version": "1.2.0",
      "entryPoint": "plugin.py",
      "parameters": [
        {"id": "action", "name": "Action", "type": "select",
         "required": true, "options": ["calculate", "divide"]},
        {"id": "continueToIterate", "name": "Continue to iterate?",
         "type": "boolean", "default": false, "canIterate": true}
      ]
    }
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from plugin_spine.errors import ManifestError
from plugin_spine.logging import get_logger

logger = get_logger(__name__)

MANIFEST_NAME = "plugin.json"


class PluginParam(BaseModel):
    """One entry of a manifest's parameter schema."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    id: str
    name: str = ""
    description: str = ""
    type: str = "string"
    required: bool = False
    default: Any = None
    can_iterate: bool = False
    options: list[Any] | None = None


class PluginManifest(BaseModel):
    """Parsed ``plugin.json``. Unknown keys are ignored."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    id: str = Field(min_length=1)
    name: str = ""
    description: str = ""
    version: str = ""
    author: str = ""
    license: str = ""
    icon: str = ""
    entry_point: str | None = None
    parameters: list[PluginParam] = Field(default_factory=list)

    # Set by the loader, not read from JSON.
    path: Path | None = Field(default=None, exclude=True)

    @property
    def supports_iteration_param(self) -> bool:
        return any(p.can_iterate for p in self.parameters)

    def summary(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name or self.id,
            "description": self.description,
            "version": self.version,
            "path": str(self.path) if self.path else None,
        }


def load_manifest(path: Path | str) -> PluginManifest:
    """
    Load a single manifest file.

    Raises:
        ManifestError: If the file is unreadable, not JSON, or fails validation
    """
    path = Path(path)

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ManifestError(f"Failed to read {path}: {e}", cause=e) from e
    except ValueError as e:
        raise ManifestError(f"Invalid JSON in {path}: {e}", cause=e) from e

    if not isinstance(data, dict):
        raise ManifestError(f"Expected a JSON object in {path}, got {type(data).__name__}")

    try:
        manifest = PluginManifest.model_validate(data)
    except ValidationError as e:
        raise ManifestError(f"Invalid manifest {path}: {e}", cause=e) from e

    manifest.path = path.parent
    logger.debug("manifest.loaded", path=str(path), plugin_id=manifest.id)
    return manifest


def discover_plugins(
    plugins_dir: Path | str,
    manifest_name: str = MANIFEST_NAME,
) -> list[PluginManifest]:
    """
    Scan immediate subdirectories of ``plugins_dir`` for manifests.

    Directories without a manifest are skipped silently; invalid manifests
    are logged and skipped.  Results are sorted by directory name.
    """
    plugins_dir = Path(plugins_dir)

    if not plugins_dir.is_dir():
        logger.warning("manifest.directory_not_found", path=str(plugins_dir))
        return []

    manifests = []
    errors = 0

    for entry in sorted(plugins_dir.iterdir()):
        manifest_path = entry / manifest_name
        if not entry.is_dir() or not manifest_path.is_file():
            continue
        try:
            manifests.append(load_manifest(manifest_path))
        except ManifestError as e:
            errors += 1
            logger.warning("manifest.invalid", path=str(manifest_path), error=str(e))

    logger.info(
        "manifest.discovered",
        directory=str(plugins_dir),
        loaded=len(manifests),
        errors=errors,
    )
    return manifests
