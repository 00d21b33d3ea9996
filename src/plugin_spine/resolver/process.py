"""Subprocess fallback — run a plugin's entry point as an external process.

Protocol::

    <python> plugin.py --params='{"host": "10.0.0.1"}'    (.py entry points)
    ./plugin --params='{"host": "10.0.0.1"}'              (other executables)

    exit 0       → stdout+stderr parsed as JSON, or wrapped as
                   {"result": <text>, "params": <params>}
    exit != 0    → SubprocessFailedError (output attached)
    cannot start → SubprocessFailedError

This path is slow but always available, so it is the resolver's last resort.
"""

from __future__ import annotations

import json
import subprocess
from pathlib import Path

from plugin_spine.errors import SubprocessFailedError
from plugin_spine.logging import get_logger
from plugin_spine.types import ParameterMapping, Result

logger = get_logger(__name__)

PARAMS_FLAG = "--params"


class SubprocessHandler:
    """Handler that serves every call by spawning the plugin's entry point.

    Subprocess plugins do not iterate; one process run is one result.
    """

    def __init__(
        self,
        plugin_id: str,
        entry_point: Path,
        *,
        python_executable: str,
        timeout_seconds: float | None = None,
    ):
        self.plugin_id = plugin_id
        self.name = plugin_id
        self.entry_point = entry_point
        self.python_executable = python_executable
        self.timeout_seconds = timeout_seconds

    def argv(self, params: ParameterMapping) -> list[str]:
        payload = json.dumps(dict(params), default=str)
        if self.entry_point.suffix == ".py":
            program = [self.python_executable, str(self.entry_point)]
        else:
            program = [str(self.entry_point)]
        return [*program, f"{PARAMS_FLAG}={payload}"]

    def execute(self, params: ParameterMapping) -> Result:
        argv = self.argv(params)
        logger.debug("subprocess.invoke", plugin_id=self.plugin_id, entry_point=str(self.entry_point))

        try:
            completed = subprocess.run(
                argv,
                cwd=str(self.entry_point.parent),
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                timeout=self.timeout_seconds,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise SubprocessFailedError(
                f"Plugin {self.plugin_id} timed out after {self.timeout_seconds}s",
                plugin_id=self.plugin_id,
                cause=exc,
            ) from exc
        except OSError as exc:
            raise SubprocessFailedError(
                f"Failed to start plugin {self.plugin_id}: {exc}",
                plugin_id=self.plugin_id,
                cause=exc,
            ) from exc

        output = completed.stdout or ""
        if completed.returncode != 0:
            raise SubprocessFailedError(
                f"Plugin {self.plugin_id} exited with status {completed.returncode}",
                plugin_id=self.plugin_id,
                exit_code=completed.returncode,
                output=output,
            )

        return parse_output(output, params)

    def supports_iteration(self) -> bool:
        return False

    def execute_iteration(self, params: ParameterMapping, index: int) -> tuple[Result, bool]:
        raise NotImplementedError(f"{self.plugin_id} runs as a subprocess and does not iterate")

    def __repr__(self) -> str:
        return f"SubprocessHandler({self.plugin_id!r}, entry_point={str(self.entry_point)!r})"


def parse_output(output: str, params: ParameterMapping) -> Result:
    """Structured data if the output is JSON, otherwise the raw text wrapped."""
    try:
        return json.loads(output)
    except ValueError:
        return {"result": output, "params": dict(params)}
