"""
Row parser for storm report CSV streams.

The first non-blank line is the header; every following record is zipped
positionally with it. Records are decoded with the ``csv`` module, so quoted
fields (including ones spanning several lines) follow standard CSV rules.
"""

import csv
import logging
from collections.abc import AsyncIterable, AsyncIterator

from core.errors.exceptions import ParseError
from stormfeed.types import RawReport

logger = logging.getLogger(__name__)

BOM = "\ufeff"


def _split_record(text: str, line_number: int) -> list[str]:
    try:
        return next(csv.reader([text], strict=True))
    except csv.Error as e:
        raise ParseError(
            f"Malformed CSV record at line {line_number}: {e}",
            line_number=line_number,
            cause=e,
        ) from e


async def parse_rows(lines: AsyncIterable[str]) -> AsyncIterator[RawReport]:
    """
    Lazily decode a stream of text lines into RawReports, in row order.

    A header-only or empty stream yields nothing. Blank lines between
    records are skipped; a leading UTF-8 BOM and ``\\r`` line endings are
    tolerated.

    Raises:
        ParseError: If a record's column count differs from the header's, or a
            quoted field is still open when the stream ends
    """
    header: list[str] | None = None
    pending: list[str] = []
    record_start = 0
    line_number = 0
    rows = 0

    async for line in lines:
        line_number += 1
        if line_number == 1:
            line = line.lstrip(BOM)
        line = line.rstrip("\r\n")

        if not pending:
            if not line.strip():
                continue
            record_start = line_number
        pending.append(line)

        text = "\n".join(pending)
        # An odd number of quote characters means a quoted field is still open
        if text.count('"') % 2:
            continue
        pending = []

        fields = _split_record(text, record_start)
        if header is None:
            header = fields
            continue

        if len(fields) != len(header):
            raise ParseError(
                f"Expected {len(header)} columns at line {record_start}, got {len(fields)}",
                line_number=record_start,
            )

        rows += 1
        yield dict(zip(header, fields))

    if pending:
        raise ParseError(
            f"Unterminated quoted field starting at line {record_start}",
            line_number=record_start,
        )

    logger.debug("Parsed feed rows", extra={"records_processed": rows})


__all__ = ["parse_rows"]
