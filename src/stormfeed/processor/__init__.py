"""Downstream processor: raw reports in, typed StormReport records out."""

from stormfeed.processor.models import StormReport
from stormfeed.processor.transform import transform_message, transform_record
from stormfeed.processor.worker import ReportProcessor

__all__ = [
    "ReportProcessor",
    "StormReport",
    "transform_message",
    "transform_record",
]
