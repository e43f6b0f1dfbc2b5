"""Shared types for the storm feed pipeline."""

from enum import Enum
from typing import Dict

# One parsed feed row: header name -> raw cell text
RawReport = Dict[str, str]

# A RawReport plus the fields added by normalization
NormalizedReport = Dict[str, str]

CATEGORY_FIELD = "category"
OBSERVED_AT_FIELD = "observedAt"


class StormCategory(str, Enum):
    """Closed set of storm report categories, in publishing order."""

    TORNADO = "tornado"
    HAIL = "hail"
    WIND = "wind"

    @property
    def feed_suffix(self) -> str:
        """Suffix used in the remote feed filenames."""
        return _FEED_SUFFIXES[self]


_FEED_SUFFIXES = {
    StormCategory.TORNADO: "torn",
    StormCategory.HAIL: "hail",
    StormCategory.WIND: "wind",
}


__all__ = [
    "RawReport",
    "NormalizedReport",
    "StormCategory",
    "CATEGORY_FIELD",
    "OBSERVED_AT_FIELD",
]
