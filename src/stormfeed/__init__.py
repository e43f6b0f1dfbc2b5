"""
Storm report ingestion pipeline.

Fetches the daily storm report feeds (tornado, hail, wind), tags each row with
its category and observation time, and publishes the rows to Kafka.

Modules:
    fetcher         - HTTP feed streaming and feed URL construction
    parser          - CSV line stream to RawReport records
    normalizer      - category / observedAt tagging
    delivery_queue  - ordered outbound buffer with size ceiling
    publisher       - Kafka producer lifecycle and retried batch delivery
    orchestrator    - per-run composition and the recurring schedule
    processor       - raw-to-processed ETL worker
"""

from stormfeed.types import NormalizedReport, RawReport, StormCategory

__all__ = ["NormalizedReport", "RawReport", "StormCategory"]
