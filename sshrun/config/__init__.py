"""Configuration types, settings and inventory loading."""

from .duration import parse_duration
from .inventory import (
    Inventory,
    InventoryLineError,
    SkippedLine,
    load_inventory,
    parse_inventory,
    parse_inventory_line,
)
from .loader import ConfigError, find_config_file, load_settings
from .protocol import (
    Platform,
    Settings,
    SshConnectionOptions,
    Target,
    TransferMethod,
)

__all__ = [
    "ConfigError",
    "Inventory",
    "InventoryLineError",
    "Platform",
    "Settings",
    "SkippedLine",
    "SshConnectionOptions",
    "Target",
    "TransferMethod",
    "find_config_file",
    "load_inventory",
    "load_settings",
    "parse_duration",
    "parse_inventory",
    "parse_inventory_line",
]
