"""
Processed storm report schema.

Raw reports carry the feed's CSV column names as keys with every value as a
string. StormReport coerces them into typed fields with the camelCase names
used on the processed topic.
"""

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from stormfeed.types import StormCategory

# Feed markers for a measurement that was not taken
MISSING_MEASUREMENTS = {"", "UNK"}


class StormReport(BaseModel):
    """Typed storm report produced by the processor.

    Attributes:
        date: Observation timestamp carried over from ``observedAt``
        time: Local report time as HHMM
        size: Hail size (hail feed only)
        fScale: Tornado rating (tornado feed only)
        speed: Wind speed (wind feed only)
        location: Place name relative to the nearest town
        county: County name
        state: Two-letter state code
        lat: Latitude in decimal degrees
        lon: Longitude in decimal degrees
        comments: Free-text remarks from the reporter
        type: Storm category

    Example:
        >>> report = StormReport.model_validate({
        ...     "observedAt": "1733773195",
        ...     "Time": "1200",
        ...     "Size": "175",
        ...     "Location": "Boston",
        ...     "Lat": "42.36",
        ...     "Lon": "-71.06",
        ...     "category": "hail",
        ... })
        >>> report.size
        175.0
    """

    model_config = ConfigDict(extra="ignore")

    date: str = Field(..., validation_alias=AliasChoices("observedAt", "date"))
    time: int = Field(..., validation_alias=AliasChoices("Time", "time"))
    size: float | None = Field(default=None, validation_alias=AliasChoices("Size", "size"))
    fScale: str = Field(default="", validation_alias=AliasChoices("F_Scale", "fScale"))
    speed: int | None = Field(default=None, validation_alias=AliasChoices("Speed", "speed"))
    location: str = Field(default="", validation_alias=AliasChoices("Location", "location"))
    county: str = Field(default="", validation_alias=AliasChoices("County", "county"))
    state: str = Field(default="", validation_alias=AliasChoices("State", "state"))
    lat: float = Field(..., validation_alias=AliasChoices("Lat", "lat"))
    lon: float = Field(..., validation_alias=AliasChoices("Lon", "lon"))
    comments: str = Field(default="", validation_alias=AliasChoices("Comments", "comments"))
    type: StormCategory = Field(..., validation_alias=AliasChoices("category", "Type", "type"))

    @field_validator("size", "speed", mode="before")
    @classmethod
    def missing_measurement_to_none(cls, v: Any) -> Any:
        """Blank or ``UNK`` measurements become None instead of failing."""
        if isinstance(v, str) and v.strip().upper() in MISSING_MEASUREMENTS:
            return None
        return v

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower()
        return v
