"""Channel configuration loader.

Channels are configured in YAML as a mapping of channel name to a list of
redactor specs. Each spec is a registered redactor name or a mapping with a
``type`` key and that redactor's arguments:

    channels:
      api_logs_raw: []
      api_logs_redacted:
        - common_headers
        - common_body
        - type: dot_notation
          paths: ["**.card.number"]
          replacement_strategy: last_four

The top-level ``channels`` key is optional.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from ..exceptions import ConfigurationError

logger = logging.getLogger("apilogs.config")

DEFAULT_CHANNELS: dict[str, list[Any]] = {
    "api_logs_raw": [],
    "api_logs_redacted": ["common_headers", "common_body"],
}


def default_channels() -> dict[str, list[Any]]:
    """Return a fresh copy of the default channel configuration."""
    return {name: list(rules) for name, rules in DEFAULT_CHANNELS.items()}


def parse_channel_config(data: Any) -> dict[str, list[Any]]:
    """Validate the shape of a channel configuration mapping.

    Redactor specs are only checked structurally here; the channel manager
    resolves them against its registry.

    Raises:
        ConfigurationError: If the configuration is not a mapping of
            channel names to lists
    """
    if isinstance(data, dict) and set(data) == {"channels"}:
        data = data["channels"]

    if not isinstance(data, dict):
        raise ConfigurationError("Channel configuration must be a mapping of channel name to redactors")

    errors: list[str] = []
    channels: dict[str, list[Any]] = {}

    for name, rules in data.items():
        if not isinstance(name, str) or not name:
            errors.append(f"invalid channel name {name!r}")
            continue
        if rules is None:
            rules = []
        if not isinstance(rules, list):
            errors.append(f"channel '{name}' must map to a list, got {type(rules).__name__}")
            continue
        for spec in rules:
            if not isinstance(spec, (str, dict)):
                errors.append(f"channel '{name}' has unsupported redactor spec {spec!r}")
        channels[name] = rules

    if errors:
        raise ConfigurationError("Invalid channel configuration", errors)

    return channels


def load_channel_config(path: str | Path) -> dict[str, list[Any]]:
    """Load a channel configuration from a YAML file.

    Args:
        path: Path to the YAML file

    Returns:
        Mapping of channel name to redactor specs

    Raises:
        ConfigurationError: If the file cannot be read, parsed or validated
    """
    path = Path(path).expanduser().resolve()

    if not path.is_file():
        raise ConfigurationError(f"Channel configuration file not found: {path}")

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in channel configuration: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read channel configuration: {e}") from e

    channels = parse_channel_config(data)
    logger.info(f"Loaded {len(channels)} channel(s) from {path}")
    return channels
