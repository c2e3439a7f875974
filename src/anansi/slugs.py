"""Slug derivation for stored items.

A slug is ``<slugified RFC3339 timestamp>-<slugified title>``, e.g.::

    >>> make_slug("Hello World", datetime(2021, 1, 1, tzinfo=UTC))
    '2021-01-01t00-00-00z-hello-world'

No uniqueness check is made against the store: two items
created in the same second with the same title get the same slug.
"""

from __future__ import annotations

from datetime import UTC, datetime

from slugify import slugify

# Word substitutions applied before slugifying; quotes are dropped, not split on.
_REPLACEMENTS = [
    ["&", "and"],
    ["@", "at"],
    ["'", ""],
    ['"', ""],
    ["’", ""],
]


def format_rfc3339(ts: datetime) -> str:
    """Format ``ts`` as RFC3339 with second precision.

    Naive datetimes are taken to be UTC.  A zero offset is written as ``Z``.
    """
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    text = ts.replace(microsecond=0).isoformat()
    if text.endswith("+00:00"):
        text = text[: -len("+00:00")] + "Z"
    return text


def slugify_text(text: str) -> str:
    """Lowercase, ASCII-transliterated, hyphen-separated form of ``text``."""
    return slugify(text, replacements=_REPLACEMENTS)


def make_slug(title: str, timestamp: datetime) -> str:
    """Build the storage key for an item created at ``timestamp``.

    An empty title is allowed and leaves a trailing hyphen.
    """
    return f"{slugify_text(format_rfc3339(timestamp))}-{slugify_text(title)}"
