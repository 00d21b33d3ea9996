"""The built-in native handler table, filled by the modules beside it."""

from plugin_spine.resolver.native import NativeTable

table = NativeTable()
