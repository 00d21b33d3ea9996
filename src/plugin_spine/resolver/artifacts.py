"""Compiled plugin artifacts — locate, build, and bind.

A plugin directory may hold a compiled, dynamically loadable module: a native
extension named after the plugin id, or legacy-location bytecode built from
the artifact source (``artifact.py`` -> ``artifact.pyc``).  The subprocess
entry point is never an artifact; it is a script and only ever runs in its
own process.  Loading an artifact executes its module body inside the host,
so every failure, ``SystemExit`` included, is an :class:`ArtifactLoadError`
the resolver can fall through.

Artifact contract::

    def plugin() -> dict:
        return {
            "execute": execute,                      # required: (params) -> result
            "execute_iteration": execute_iteration,  # optional: (params, index) -> (result, continue)
        }

Module bodies should do nothing beyond defining these functions.
"""

from __future__ import annotations

import importlib.machinery
import importlib.util
import re
import subprocess
from collections.abc import Mapping
from pathlib import Path
from types import ModuleType

from plugin_spine.errors import ArtifactLoadError, BuildFailedError
from plugin_spine.handlers import FunctionHandler, Handler, IterableHandler
from plugin_spine.logging import get_logger

logger = get_logger(__name__)

EXECUTE_KEY = "execute"
ITERATION_KEY = "execute_iteration"
ARTIFACT_SOURCE = "artifact.py"

_PLACEHOLDER = re.compile(r"\{(python|plugin_dir|plugin_id|artifact_source)\}")


def artifact_candidates(
    plugin_dir: Path,
    plugin_id: str,
    entry_point: str,
    artifact_source: str = ARTIFACT_SOURCE,
) -> list[Path]:
    """Paths a compiled artifact may occupy, in lookup order.

    Bytecode compiled from the entry point is never a candidate.
    """
    candidates = [
        plugin_dir / f"{plugin_id}{suffix}" for suffix in importlib.machinery.EXTENSION_SUFFIXES
    ]
    source = Path(artifact_source)
    if source.stem != Path(entry_point).stem:
        candidates.append(plugin_dir / source.with_suffix(".pyc").name)
    return candidates


def find_artifact(
    plugin_dir: Path,
    plugin_id: str,
    entry_point: str,
    artifact_source: str = ARTIFACT_SOURCE,
) -> Path | None:
    """First existing artifact for the plugin, or None."""
    for path in artifact_candidates(plugin_dir, plugin_id, entry_point, artifact_source):
        if path.is_file():
            return path
    return None


def _module_name(path: Path, plugin_id: str) -> str:
    # Extension modules must be imported under the name their init symbol uses.
    if any(path.name.endswith(suffix) for suffix in importlib.machinery.EXTENSION_SUFFIXES):
        return plugin_id
    return f"_plugin_spine_artifact_{plugin_id}"


def load_module(path: Path, plugin_id: str) -> ModuleType:
    """Import an artifact without publishing it in ``sys.modules``."""
    spec = importlib.util.spec_from_file_location(_module_name(path, plugin_id), path)
    if spec is None or spec.loader is None:
        raise ArtifactLoadError(f"Unsupported artifact type: {path.name}", plugin_id=plugin_id)

    module = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except KeyboardInterrupt:
        raise
    except BaseException as exc:
        raise ArtifactLoadError(
            f"Failed to load artifact {path.name}: {exc}", plugin_id=plugin_id, cause=exc
        ) from exc
    return module


def bind_capabilities(module: ModuleType, plugin_id: str, entry_symbol: str) -> Handler:
    """Call the module's entry symbol and adapt its capability map."""
    factory = getattr(module, entry_symbol, None)
    if factory is None:
        raise ArtifactLoadError(
            f"Artifact does not export {entry_symbol!r}", plugin_id=plugin_id
        )
    if not callable(factory):
        raise ArtifactLoadError(f"{entry_symbol!r} is not callable", plugin_id=plugin_id)

    try:
        capabilities = factory()
    except KeyboardInterrupt:
        raise
    except BaseException as exc:
        raise ArtifactLoadError(
            f"{entry_symbol}() raised: {exc}", plugin_id=plugin_id, cause=exc
        ) from exc

    if not isinstance(capabilities, Mapping):
        raise ArtifactLoadError(
            f"{entry_symbol}() returned {type(capabilities).__name__}, expected a mapping",
            plugin_id=plugin_id,
        )

    execute = capabilities.get(EXECUTE_KEY)
    if not callable(execute):
        raise ArtifactLoadError(
            f"{entry_symbol}() does not provide a callable {EXECUTE_KEY!r}", plugin_id=plugin_id
        )

    iterate = capabilities.get(ITERATION_KEY)
    if callable(iterate):
        return IterableHandler(execute, iterate, name=plugin_id)
    return FunctionHandler(execute, name=plugin_id)


def load_artifact_handler(
    plugin_dir: Path,
    plugin_id: str,
    *,
    entry_point: str,
    entry_symbol: str,
    artifact_source: str = ARTIFACT_SOURCE,
) -> Handler:
    """Strategy body: find, load, and bind a compiled artifact.

    Raises:
        ArtifactLoadError: On a missing file, missing symbol, or wrong shape.
    """
    path = find_artifact(plugin_dir, plugin_id, entry_point, artifact_source)
    if path is None:
        raise ArtifactLoadError(f"No compiled artifact in {plugin_dir}", plugin_id=plugin_id)

    module = load_module(path, plugin_id)
    handler = bind_capabilities(module, plugin_id, entry_symbol)
    logger.debug("artifacts.loaded", plugin_id=plugin_id, path=str(path))
    return handler


class BuildTool:
    """Runs an external build command against a plugin's source directory.

    The command is an argv template; ``{python}``, ``{plugin_dir}``,
    ``{plugin_id}`` and ``{artifact_source}`` are substituted per build.
    Any other text, braces included, is passed through untouched.  The
    default byte-compiles only the artifact source with ``compileall`` so
    the result lands where :func:`find_artifact` looks.
    """

    def __init__(
        self,
        command: list[str],
        *,
        python_executable: str,
        timeout_seconds: float | None = None,
        artifact_source: str = ARTIFACT_SOURCE,
    ):
        self.command = list(command)
        self.python_executable = python_executable
        self.timeout_seconds = timeout_seconds
        self.artifact_source = artifact_source

    def argv(self, plugin_dir: Path, plugin_id: str) -> list[str]:
        values = {
            "python": self.python_executable,
            "plugin_dir": str(plugin_dir),
            "plugin_id": plugin_id,
            "artifact_source": str(plugin_dir / self.artifact_source),
        }
        return [_PLACEHOLDER.sub(lambda m: values[m.group(1)], part) for part in self.command]

    def build(self, plugin_dir: Path, plugin_id: str) -> str:
        """Run the build and return its combined output.

        Raises:
            BuildFailedError: Non-zero exit, timeout, or the tool could not start.
        """
        argv = self.argv(plugin_dir, plugin_id)
        logger.info("build.started", plugin_id=plugin_id, command=" ".join(argv))

        try:
            completed = subprocess.run(
                argv,
                cwd=str(plugin_dir),
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                timeout=self.timeout_seconds,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise BuildFailedError(
                f"Build timed out after {self.timeout_seconds}s",
                plugin_id=plugin_id,
                output=_decode(exc.output),
                cause=exc,
            ) from exc
        except OSError as exc:
            raise BuildFailedError(
                f"Build tool could not be started: {exc}", plugin_id=plugin_id, cause=exc
            ) from exc

        if completed.returncode != 0:
            raise BuildFailedError(
                f"Build exited with status {completed.returncode}",
                plugin_id=plugin_id,
                exit_code=completed.returncode,
                output=completed.stdout or "",
            )

        logger.info("build.succeeded", plugin_id=plugin_id)
        return completed.stdout or ""


def _decode(output: str | bytes | None) -> str:
    if output is None:
        return ""
    if isinstance(output, bytes):
        return output.decode(errors="replace")
    return output
