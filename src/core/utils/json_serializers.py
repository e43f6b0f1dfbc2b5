"""``json.dumps`` fallback for the values that show up in reports and log extras."""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any


def json_serializer(obj: Any) -> Any:
    """
    Convert ``obj`` to something ``json`` can encode.

    Dates and datetimes become ISO 8601 strings, Decimals become floats
    (numbers stay numbers), enums become their value and anything else
    becomes ``str(obj)``.
    """
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, Decimal):
        return float(obj)
    if isinstance(obj, Enum):
        return obj.value
    return str(obj)


__all__ = ["json_serializer"]
