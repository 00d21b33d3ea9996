"""Network diagnostics served natively by shelling out to system tools.

Command output is returned raw as ``{command, output, success}``;
interpreting it is the front end's job.  ``ping`` and ``dns_lookup``
support iteration: each step re-runs the command and asks to continue,
so the run is bounded by ``maxIterations`` or a stop request.
"""

from __future__ import annotations

import shlex
import subprocess
from collections.abc import Callable
from typing import Any

from plugin_spine.builtin.table import table
from plugin_spine.handlers import IterableHandler, IterationFunc
from plugin_spine.logging import get_logger
from plugin_spine.types import ParameterMapping

logger = get_logger(__name__)

COMMAND_TIMEOUT_SECONDS = 60.0
DEFAULT_PING_COUNT = 4


def run_command(argv: list[str], timeout: float = COMMAND_TIMEOUT_SECONDS) -> dict[str, Any]:
    """Run a diagnostic tool and capture combined output.

    A missing tool or a timeout is reported in the result rather than raised,
    matching how a non-zero exit is reported.
    """
    command = shlex.join(argv)
    try:
        completed = subprocess.run(
            argv,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            timeout=timeout,
            check=False,
        )
    except FileNotFoundError:
        logger.warning("diagnostics.tool_missing", tool=argv[0])
        return {"command": command, "output": f"{argv[0]}: command not found", "success": False}
    except subprocess.TimeoutExpired:
        return {"command": command, "output": f"timed out after {timeout}s", "success": False}

    return {
        "command": command,
        "output": completed.stdout or "",
        "success": completed.returncode == 0,
    }


def _required(params: ParameterMapping, key: str) -> str:
    value = params.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{key} parameter is required")
    value = value.strip()
    if value.startswith("-"):
        raise ValueError(f"{key} must not start with '-'")
    return value


def ping(params: ParameterMapping) -> dict[str, Any]:
    host = _required(params, "host")
    count = params.get("count")
    if isinstance(count, bool) or not isinstance(count, int | float) or count <= 0:
        count = DEFAULT_PING_COUNT
    result = run_command(["ping", "-c", str(int(count)), host])
    if not result["success"]:
        raise RuntimeError(f"ping failed: {result['output'].strip()}")
    return result


def traceroute(params: ParameterMapping) -> dict[str, Any]:
    return run_command(["traceroute", _required(params, "host")])


def dns_lookup(params: ParameterMapping) -> dict[str, Any]:
    domain = _required(params, "domain")
    record_type = params.get("recordType") or params.get("record_type") or "A"
    return run_command(["dig", domain, str(record_type).upper()])


def _repeating(func: Callable[[ParameterMapping], dict[str, Any]]) -> IterationFunc:
    def step(params: ParameterMapping, index: int) -> tuple[dict[str, Any], bool]:
        result = func(params)
        result["iteration"] = index
        return result, True

    return step


@table.register("ping")
class PingHandler(IterableHandler):
    def __init__(self) -> None:
        super().__init__(ping, _repeating(ping), name="ping")


@table.register("dns_lookup")
class DnsLookupHandler(IterableHandler):
    def __init__(self) -> None:
        super().__init__(dns_lookup, _repeating(dns_lookup), name="dns_lookup")


table.register("traceroute")(traceroute)
