"""Report normalizer: tags parsed rows with their category and observation time."""

import time
from collections.abc import AsyncIterable, AsyncIterator, Callable

from stormfeed.types import (
    CATEGORY_FIELD,
    OBSERVED_AT_FIELD,
    NormalizedReport,
    RawReport,
    StormCategory,
)

Clock = Callable[[], float]


def normalize_report(
    raw: RawReport,
    category: StormCategory,
    observed_at: str | None = None,
    clock: Clock = time.time,
) -> NormalizedReport:
    """
    Return a new record with ``category`` and ``observedAt`` added.

    Raw keys and values are copied unchanged. ``observedAt`` is the explicit
    value when one is given, otherwise the clock reading as epoch
    milliseconds. Any ``category``/``observedAt`` already in the row is
    overwritten, never read.
    """
    report = dict(raw)
    report[CATEGORY_FIELD] = category.value
    if observed_at is None:
        observed_at = str(int(clock() * 1000))
    report[OBSERVED_AT_FIELD] = observed_at
    return report


class ReportNormalizer:
    """Normalizes every row of one category feed."""

    def __init__(
        self,
        category: StormCategory,
        observed_at: str | None = None,
        clock: Clock = time.time,
    ):
        self.category = category
        self.observed_at = observed_at
        self.clock = clock

    def normalize(self, raw: RawReport) -> NormalizedReport:
        return normalize_report(raw, self.category, self.observed_at, self.clock)

    async def normalize_stream(self, rows: AsyncIterable[RawReport]) -> AsyncIterator[NormalizedReport]:
        async for raw in rows:
            yield self.normalize(raw)


__all__ = ["Clock", "ReportNormalizer", "normalize_report"]
