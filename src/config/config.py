"""Storm feed configuration, loaded from config/config.yaml.

String values may reference the environment as ``${VAR}`` or
``${VAR:-default}``. Every setting has a default, so a file that only names
``kafka.connection.bootstrap_servers`` is enough to run.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

# Same 200 MiB ceiling the broker is configured for
DEFAULT_MAX_MESSAGE_BYTES = 209715200
DEFAULT_FEED_BASE_URL = "https://www.spc.noaa.gov/climo/reports/"

DEFAULT_CONFIG_FILE = Path(__file__).parent / "config.yaml"

_ENV_REFERENCE = re.compile(r"\$\{([^}:]+)(?::-(([^}]*))?)?\}")

_TRUTHY = ("1", "true", "yes", "on")


def load_yaml(path: Path) -> Dict[str, Any]:
    """Parsed YAML document, or ``{}`` for a missing or empty file."""
    if not path.exists():
        return {}
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


def _expand_env_vars(data: Any) -> Any:
    """Substitute environment references in every string of ``data``.

    An unset variable without a default is left as written.
    """
    if isinstance(data, dict):
        return {key: _expand_env_vars(value) for key, value in data.items()}
    if isinstance(data, list):
        return [_expand_env_vars(item) for item in data]
    if not isinstance(data, str):
        return data

    def substitute(match: re.Match) -> str:
        fallback = match.group(2)
        return os.getenv(match.group(1), match.group(0) if fallback is None else fallback)

    return _ENV_REFERENCE.sub(substitute, data)


def _deep_merge(base: Dict[str, Any], overlay: Dict[str, Any]) -> Dict[str, Any]:
    """``overlay`` merged into a copy of ``base``; nested dicts merge key by key."""
    merged = dict(base)
    for key, value in overlay.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = _deep_merge(current, value)
        else:
            merged[key] = value
    return merged


@dataclass
class StormFeedConfig:
    """Settings for both workers. Units are part of the field names.

    YAML layout::

        kafka:
          connection: {bootstrap_servers, security_protocol, sasl_*, ...}
          producer: {...}           # passed through to AIOKafkaProducer
          topics: {raw, processed}
          processor:
            consumer: {...}         # group_id, auto_offset_reset, ...
        feeds: {base_url, connect_timeout_seconds, read_timeout_seconds}
        delivery: {max_message_bytes, close_timeout_seconds, retry: {...}}
        schedule: {interval_seconds}
        logging: {level, dir, json}
    """

    # kafka.connection
    bootstrap_servers: str = ""
    security_protocol: str = "PLAINTEXT"
    sasl_mechanism: str = "PLAIN"
    sasl_plain_username: str = ""
    sasl_plain_password: str = ""
    request_timeout_ms: int = 30000
    connect_retries: int = 10
    connect_retry_delay_ms: int = 300
    client_id: str = "stormfeed-producer"

    # kafka.producer / kafka.processor.consumer
    producer: Dict[str, Any] = field(default_factory=dict)
    processor_consumer: Dict[str, Any] = field(default_factory=dict)

    # kafka.topics
    raw_topic: str = "raw-weather-reports"
    processed_topic: str = "processed-weather-reports"

    # feeds
    feed_base_url: str = DEFAULT_FEED_BASE_URL
    feed_connect_timeout_seconds: float = 10.0
    feed_read_timeout_seconds: float = 60.0

    # delivery
    max_message_bytes: int = DEFAULT_MAX_MESSAGE_BYTES
    retry_max_attempts: int = 5
    retry_base_delay_seconds: float = 1.0
    retry_max_delay_seconds: float = 60.0
    close_timeout_seconds: float = 10.0

    # schedule / logging
    interval_seconds: float = 86400.0
    log_level: str = "INFO"
    log_dir: str = "logs"
    json_logs: bool = True

    def __post_init__(self):
        for name, cast in _NUMERIC_FIELDS.items():
            setattr(self, name, cast(getattr(self, name)))
        if isinstance(self.json_logs, str):
            self.json_logs = self.json_logs.strip().lower() in _TRUTHY

    def get_consumer_group(self) -> str:
        return self.processor_consumer.get("group_id", "etl-consumer-group")

    def validate(self) -> None:
        """Raise ValueError naming the first setting that is out of range."""
        if not self.bootstrap_servers:
            raise ValueError("bootstrap_servers is required in kafka.connection section")
        if not self.raw_topic:
            raise ValueError("kafka.topics.raw is required")
        if not self.feed_base_url.startswith(("http://", "https://")):
            raise ValueError(f"feeds.base_url must be an http(s) URL, got '{self.feed_base_url}'")

        for name, (section, minimum, inclusive) in _MINIMUMS.items():
            value = getattr(self, name)
            if value < minimum if inclusive else value <= minimum:
                bound = ">=" if inclusive else ">"
                raise ValueError(f"{section}: {name} must be {bound} {minimum}, got {value}")

        for settings, key, allowed, section in (
            (self.processor_consumer, "auto_offset_reset", ["earliest", "latest", "none"], "kafka.processor.consumer"),
            (self.producer, "acks", ["0", "1", "all", 0, 1], "kafka.producer"),
        ):
            if key in settings and settings[key] not in allowed:
                raise ValueError(f"{section}: {key} must be one of {allowed}, got '{settings[key]}'")


_NUMERIC_FIELDS = {
    "request_timeout_ms": int,
    "connect_retries": int,
    "connect_retry_delay_ms": int,
    "feed_connect_timeout_seconds": float,
    "feed_read_timeout_seconds": float,
    "max_message_bytes": int,
    "retry_max_attempts": int,
    "retry_base_delay_seconds": float,
    "retry_max_delay_seconds": float,
    "close_timeout_seconds": float,
    "interval_seconds": float,
}

# field -> (yaml section for the message, lower bound, bound inclusive)
_MINIMUMS = {
    "request_timeout_ms": ("kafka.connection", 0, False),
    "connect_retries": ("kafka.connection", 0, True),
    "connect_retry_delay_ms": ("kafka.connection", 0, True),
    "max_message_bytes": ("delivery", 0, False),
    "retry_max_attempts": ("delivery.retry", 1, True),
    "retry_base_delay_seconds": ("delivery.retry", 0, True),
    "close_timeout_seconds": ("delivery", 0, False),
    "interval_seconds": ("schedule", 0, False),
}

# yaml path -> dataclass field
_YAML_FIELDS = {
    ("kafka", "connection", "bootstrap_servers"): "bootstrap_servers",
    ("kafka", "connection", "security_protocol"): "security_protocol",
    ("kafka", "connection", "sasl_mechanism"): "sasl_mechanism",
    ("kafka", "connection", "sasl_plain_username"): "sasl_plain_username",
    ("kafka", "connection", "sasl_plain_password"): "sasl_plain_password",
    ("kafka", "connection", "request_timeout_ms"): "request_timeout_ms",
    ("kafka", "connection", "connect_retries"): "connect_retries",
    ("kafka", "connection", "connect_retry_delay_ms"): "connect_retry_delay_ms",
    ("kafka", "connection", "client_id"): "client_id",
    ("kafka", "producer"): "producer",
    ("kafka", "processor", "consumer"): "processor_consumer",
    ("kafka", "topics", "raw"): "raw_topic",
    ("kafka", "topics", "processed"): "processed_topic",
    ("feeds", "base_url"): "feed_base_url",
    ("feeds", "connect_timeout_seconds"): "feed_connect_timeout_seconds",
    ("feeds", "read_timeout_seconds"): "feed_read_timeout_seconds",
    ("delivery", "max_message_bytes"): "max_message_bytes",
    ("delivery", "close_timeout_seconds"): "close_timeout_seconds",
    ("delivery", "retry", "max_attempts"): "retry_max_attempts",
    ("delivery", "retry", "base_delay_seconds"): "retry_base_delay_seconds",
    ("delivery", "retry", "max_delay_seconds"): "retry_max_delay_seconds",
    ("schedule", "interval_seconds"): "interval_seconds",
    ("logging", "level"): "log_level",
    ("logging", "dir"): "log_dir",
    ("logging", "json"): "json_logs",
}

_MISSING = object()


def _lookup(data: Dict[str, Any], path: tuple) -> Any:
    node: Any = data
    for key in path:
        if not isinstance(node, dict) or key not in node:
            return _MISSING
        node = node[key]
    return node


def load_config(
    config_path: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> StormFeedConfig:
    """Read, expand, merge and validate the config file.

    ``overrides`` use the YAML nesting (``{"kafka": {"topics": {"raw": "x"}}}``)
    and are applied after environment expansion.
    """
    config_path = config_path or DEFAULT_CONFIG_FILE
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    logger.info("Loading configuration from %s", config_path)
    data = _expand_env_vars(load_yaml(config_path))
    if overrides:
        logger.debug("Applying config overrides: %s", sorted(overrides))
        data = _deep_merge(data, overrides)

    if "kafka" not in data:
        raise ValueError(
            f"Invalid config file {config_path}: missing 'kafka:' section "
            "(see src/config/config.yaml)"
        )

    values = {}
    for path, name in _YAML_FIELDS.items():
        value = _lookup(data, path)
        # "producer:" with nothing under it parses as None
        if value is _MISSING or value is None:
            continue
        values[name] = value

    config = StormFeedConfig(**values)
    config.validate()
    logger.debug(
        "Configuration loaded",
        extra={"bootstrap_servers": config.bootstrap_servers, "topic": config.raw_topic},
    )
    return config


_config: Optional[StormFeedConfig] = None


def get_config() -> StormFeedConfig:
    """Process-wide config, loaded from the default file on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: StormFeedConfig) -> None:
    global _config
    _config = config


def reset_config() -> None:
    """Drop the cached config so the next get_config() reloads it."""
    global _config
    _config = None
