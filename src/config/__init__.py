"""Configuration loading for the storm feed pipeline.

Configuration is loaded from ``src/config/config.yaml``; ``${VAR}`` and
``${VAR:-default}`` references are expanded from the environment.

Usage:
    >>> from config import get_config
    >>> config = get_config()
    >>> config.raw_topic
    'raw-weather-reports'
"""

from config.config import (
    StormFeedConfig,
    get_config,
    load_config,
    reset_config,
    set_config,
)

__all__ = [
    "load_config",
    "get_config",
    "set_config",
    "reset_config",
    "StormFeedConfig",
]
