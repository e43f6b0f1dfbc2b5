"""Shared Kafka client configuration builders."""

import ssl

from config.config import StormFeedConfig


def build_kafka_security_config(config: StormFeedConfig) -> dict:
    """Build Kafka security config dict from StormFeedConfig.

    Handles PLAIN and SCRAM SASL mechanisms and SSL context creation.
    Returns an empty dict for PLAINTEXT connections.
    """
    if config.security_protocol == "PLAINTEXT":
        return {}

    security_config = {"security_protocol": config.security_protocol}

    if "SSL" in config.security_protocol:
        security_config["ssl_context"] = ssl.create_default_context()

    if "SASL" in config.security_protocol:
        security_config["sasl_mechanism"] = config.sasl_mechanism
        if config.sasl_mechanism in ("PLAIN", "SCRAM-SHA-256", "SCRAM-SHA-512"):
            security_config["sasl_plain_username"] = config.sasl_plain_username
            security_config["sasl_plain_password"] = config.sasl_plain_password

    return security_config


def build_producer_config(config: StormFeedConfig) -> dict:
    """Build AIOKafkaProducer keyword arguments for the raw report producer.

    No key, no compression; ``max_request_size`` matches the delivery
    queue's message ceiling so anything the queue accepts fits in one request.
    """
    producer_config = {
        "bootstrap_servers": config.bootstrap_servers,
        "client_id": config.client_id,
        "value_serializer": lambda v: v,
        "request_timeout_ms": config.request_timeout_ms,
        "max_request_size": config.max_message_bytes,
        "compression_type": None,
        "acks": _resolve_acks(config.producer.get("acks", "all")),
        "retry_backoff_ms": config.connect_retry_delay_ms,
    }
    if "linger_ms" in config.producer:
        producer_config["linger_ms"] = config.producer["linger_ms"]

    producer_config.update(build_kafka_security_config(config))
    return producer_config


def build_consumer_config(config: StormFeedConfig) -> dict:
    """Build AIOKafkaConsumer keyword arguments for the processor worker."""
    consumer_settings = config.processor_consumer
    consumer_config = {
        "bootstrap_servers": config.bootstrap_servers,
        "group_id": config.get_consumer_group(),
        "client_id": f"{config.client_id}-processor",
        "auto_offset_reset": consumer_settings.get("auto_offset_reset", "earliest"),
        "enable_auto_commit": False,
        "request_timeout_ms": config.request_timeout_ms,
        "fetch_max_bytes": config.max_message_bytes,
        "max_partition_fetch_bytes": config.max_message_bytes,
    }
    if "session_timeout_ms" in consumer_settings:
        consumer_config["session_timeout_ms"] = consumer_settings["session_timeout_ms"]

    consumer_config.update(build_kafka_security_config(config))
    return consumer_config


def _resolve_acks(acks_value):
    if isinstance(acks_value, str) and acks_value.isdigit():
        return int(acks_value)
    return acks_value
