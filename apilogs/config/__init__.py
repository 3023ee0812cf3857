"""Configuration for API call logging."""

from .loader import DEFAULT_CHANNELS, default_channels, load_channel_config, parse_channel_config
from .settings import ApiLogsSettings, get_settings

__all__ = [
    "ApiLogsSettings",
    "DEFAULT_CHANNELS",
    "default_channels",
    "get_settings",
    "load_channel_config",
    "parse_channel_config",
]
