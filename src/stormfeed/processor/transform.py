"""Raw-to-processed transformation for storm report messages."""

import json

from pydantic import ValidationError

from core.errors.exceptions import TransformError
from stormfeed.processor.models import StormReport


def transform_record(payload: bytes | str) -> StormReport:
    """
    Parse one raw-topic message into a StormReport.

    Raises:
        TransformError: If the payload is not a JSON object, is a stray CSV
            header row, or has fields that cannot be coerced
    """
    try:
        raw = json.loads(payload)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise TransformError("Raw record is not valid JSON", cause=e) from e

    if not isinstance(raw, dict):
        raise TransformError(f"Raw record must be a JSON object, got {type(raw).__name__}")

    time_value = raw.get("Time")
    if isinstance(time_value, str) and time_value.strip().lower() == "time":
        raise TransformError("Header row detected in raw record")

    try:
        return StormReport.model_validate(raw)
    except ValidationError as e:
        fields = sorted({str(err["loc"][0]) for err in e.errors() if err.get("loc")})
        raise TransformError(
            f"Invalid storm report: {e.error_count()} field error(s)",
            cause=e,
            context={"fields": fields},
        ) from e


def transform_message(payload: bytes | str) -> bytes:
    """Transform a raw-topic payload into the processed-topic payload."""
    return transform_record(payload).model_dump_json().encode("utf-8")


__all__ = ["transform_message", "transform_record"]
