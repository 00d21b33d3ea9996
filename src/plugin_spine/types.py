"""Loosely-typed value model shared by parameters and results.

Plugins return different shapes, so parameters and results are modelled as a
recursive JSON-like union rather than per-plugin classes. pydantic's
``JsonValue`` is that union (str | int | float | bool | None | list | dict).
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TypeAlias

from pydantic import JsonValue

Value: TypeAlias = JsonValue
ParameterMapping: TypeAlias = Mapping[str, JsonValue]
Result: TypeAlias = JsonValue

__all__ = ["Value", "ParameterMapping", "Result"]
