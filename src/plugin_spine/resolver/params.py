"""Parameter adaptation applied uniformly across resolution strategies.

Front ends send list-valued inputs (``ip_list``) as one comma-separated
string.  Handlers whose contract expects a sequence get the split form,
and the same rule runs whichever strategy serves the plugin, so a
native handler and a subprocess fallback see identical parameters.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from plugin_spine.handlers import Handler
from plugin_spine.types import ParameterMapping, Result

ACTION_PARAM = "action"


@dataclass(frozen=True, slots=True)
class ListParamRule:
    """Split ``param`` on commas when the request's action is in ``actions``.

    An empty ``actions`` set applies the rule to every request.
    """

    param: str
    actions: frozenset[str] = field(default_factory=frozenset)
    separator: str = ","

    def applies_to(self, params: Mapping[str, Any]) -> bool:
        if not self.actions:
            return True
        return params.get(ACTION_PARAM) in self.actions

    def apply(self, params: dict[str, Any]) -> None:
        value = params.get(self.param)
        if not isinstance(value, str) or not value:
            return
        params[self.param] = [part.strip() for part in value.split(self.separator) if part.strip()]


def adapt_params(params: ParameterMapping, rules: Iterable[ListParamRule]) -> dict[str, Any]:
    """Return an adapted copy of ``params``; the input is never mutated."""
    adapted = dict(params)
    for rule in rules:
        if rule.applies_to(adapted):
            rule.apply(adapted)
    return adapted


# Plugin id → rules. Consulted by the resolver for every strategy.
DEFAULT_PARAM_RULES: dict[str, tuple[ListParamRule, ...]] = {
    "subnet_calculator": (
        ListParamRule("ip_list", frozenset({"supernet", "aggregate", "conflict_detect"})),
    ),
}


class AdaptedHandler:
    """Wraps a handler so every call sees adapted parameters."""

    def __init__(self, inner: Handler, rules: Iterable[ListParamRule], name: str | None = None):
        self.inner = inner
        self.rules = tuple(rules)
        self.name = name or getattr(inner, "name", type(inner).__name__)

    def execute(self, params: ParameterMapping) -> Result:
        return self.inner.execute(adapt_params(params, self.rules))

    def supports_iteration(self) -> bool:
        return self.inner.supports_iteration()

    def execute_iteration(self, params: ParameterMapping, index: int) -> tuple[Result, bool]:
        return self.inner.execute_iteration(adapt_params(params, self.rules), index)

    def __repr__(self) -> str:
        return f"AdaptedHandler({self.inner!r}, rules={len(self.rules)})"
