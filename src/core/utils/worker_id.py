"""Readable worker ids, tagged on every log record."""

from coolname import generate_slug

SLUG_WORDS = 3


def generate_worker_id(prefix: str = "") -> str:
    """``<prefix>-<three random words>``, e.g. ``stormfeed-producer-swift-blue-falcon``.

    Without a prefix the bare slug is returned.
    """
    slug = generate_slug(SLUG_WORDS)
    return "-".join(part for part in (prefix, slug) if part)
