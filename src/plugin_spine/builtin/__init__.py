"""Built-in native handlers.

Importing this package fills the table::

    subnet_calculator  ─ ipaddress arithmetic
    ping               ─ ping -c N host       (iterable)
    dns_lookup         ─ dig domain TYPE      (iterable)
    traceroute         ─ traceroute host
"""

from plugin_spine.builtin import diagnostics, subnet  # noqa: F401  (registers handlers)
from plugin_spine.builtin.table import table
from plugin_spine.resolver.native import NativeTable


def builtin_table() -> NativeTable:
    """The native table holding every built-in handler."""
    return table


__all__ = ["builtin_table"]
