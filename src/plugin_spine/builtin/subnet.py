"""Subnet calculator — pure ``ipaddress`` arithmetic, no external tools.

Actions::

    calculate        address [+ mask]   network details
    divide           address + num_subnets
    supernet         ip_list            smallest network covering every entry
    aggregate        ip_list            minimal set of covering networks
    conflict_detect  ip_list            overlapping pairs

``ip_list`` must already be a list; the resolver's parameter rules split
the comma-separated form front ends send.
"""

from __future__ import annotations

import ipaddress
import math
from collections.abc import Sequence
from typing import Any

from plugin_spine.builtin.table import table
from plugin_spine.types import ParameterMapping

IPNetwork = ipaddress.IPv4Network | ipaddress.IPv6Network


def _network(address: str, mask: str | None = None) -> IPNetwork:
    text = address.strip()
    if mask:
        text = f"{text.split('/')[0]}/{mask.strip().lstrip('/')}"
    return ipaddress.ip_network(text, strict=False)


def _networks(params: ParameterMapping) -> list[IPNetwork]:
    ip_list = params.get("ip_list")
    if not isinstance(ip_list, Sequence) or isinstance(ip_list, str):
        raise ValueError("ip_list must be a list of addresses or networks")
    if not ip_list:
        raise ValueError("ip_list must not be empty")
    return [_network(str(item)) for item in ip_list]


def _describe(network: IPNetwork) -> dict[str, Any]:
    usable = network.num_addresses
    first, last = network.network_address, network.broadcast_address
    # IPv4 reserves network and broadcast addresses except on /31 and /32.
    if network.version == 4 and network.prefixlen < 31:
        usable -= 2
        first, last = first + 1, last - 1

    return {
        "network": str(network),
        "network_address": str(network.network_address),
        "netmask": str(network.netmask),
        "wildcard": str(network.hostmask),
        "broadcast": str(network.broadcast_address),
        "prefix_length": network.prefixlen,
        "first_host": str(first),
        "last_host": str(last),
        "total_addresses": network.num_addresses,
        "usable_hosts": usable,
        "ip_version": network.version,
        "is_private": network.is_private,
    }


def calculate(params: ParameterMapping) -> dict[str, Any]:
    address = params.get("address")
    if not isinstance(address, str) or not address:
        raise ValueError("address parameter is required")
    mask = params.get("mask")
    return _describe(_network(address, mask if isinstance(mask, str) else None))


def divide(params: ParameterMapping) -> dict[str, Any]:
    address = params.get("address")
    if not isinstance(address, str) or not address:
        raise ValueError("address parameter is required")
    count = params.get("num_subnets")
    if isinstance(count, bool) or not isinstance(count, int | float) or count < 1:
        raise ValueError("num_subnets must be a positive number")

    network = _network(address)
    extra_bits = math.ceil(math.log2(int(count))) if count > 1 else 0
    new_prefix = network.prefixlen + extra_bits
    if new_prefix > network.max_prefixlen:
        raise ValueError(f"{network} cannot be divided into {int(count)} subnets")

    subnets = list(network.subnets(new_prefix=new_prefix))
    return {
        "network": str(network),
        "requested": int(count),
        "new_prefix_length": new_prefix,
        "subnets": [_describe(subnet) for subnet in subnets],
    }


def supernet(params: ParameterMapping) -> dict[str, Any]:
    networks = _networks(params)
    if len({n.version for n in networks}) > 1:
        raise ValueError("ip_list mixes IPv4 and IPv6 entries")

    covering = networks[0]
    while not all(n.subnet_of(covering) for n in networks):
        covering = covering.supernet()
    return {"inputs": [str(n) for n in networks], "supernet": _describe(covering)}


def aggregate(params: ParameterMapping) -> dict[str, Any]:
    networks = _networks(params)
    collapsed: list[IPNetwork] = []
    for version in (4, 6):
        same = [n for n in networks if n.version == version]
        if same:
            collapsed.extend(ipaddress.collapse_addresses(same))
    return {
        "inputs": [str(n) for n in networks],
        "aggregated": [str(n) for n in collapsed],
        "count": len(collapsed),
    }


def conflict_detect(params: ParameterMapping) -> dict[str, Any]:
    networks = _networks(params)
    conflicts = [
        {"a": str(a), "b": str(b)}
        for i, a in enumerate(networks)
        for b in networks[i + 1 :]
        if a.version == b.version and a.overlaps(b)
    ]
    return {
        "inputs": [str(n) for n in networks],
        "conflicts": conflicts,
        "has_conflicts": bool(conflicts),
    }


ACTIONS = {
    "calculate": calculate,
    "divide": divide,
    "supernet": supernet,
    "aggregate": aggregate,
    "conflict_detect": conflict_detect,
}


@table.register("subnet_calculator")
def subnet_calculator(params: ParameterMapping) -> dict[str, Any]:
    """Dispatch on ``params["action"]`` (default ``calculate``)."""
    action = params.get("action") or "calculate"
    handler = ACTIONS.get(str(action))
    if handler is None:
        raise ValueError(f"Unknown action {action!r}. Valid: {sorted(ACTIONS)}")
    result = handler(params)
    result["action"] = action
    return result
