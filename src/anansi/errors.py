"""Error taxonomy for the storage core.

Startup failures (``StoreUnavailable``, ``LayoutInitFailed``) are fatal and
should keep the service from accepting requests.  Everything under
``StoreError`` is per-request and local to a single transaction.
"""

from __future__ import annotations


class AnansiError(Exception):
    """Base error for anansi."""


class StoreUnavailable(AnansiError):
    """The key-value engine could not be opened."""


class LayoutInitFailed(AnansiError):
    """The bucket hierarchy could not be created after the engine opened."""


class StoreError(AnansiError):
    """A storage operation failed."""


class NotFound(StoreError, KeyError):
    """No object is stored at the requested slug."""

    def __init__(self, slug: str, collection: str = "") -> None:
        super().__init__(slug)
        self.slug = slug
        self.collection = collection

    def __str__(self) -> str:
        if self.collection:
            return f"{self.collection} not found: {self.slug!r}"
        return f"not found: {self.slug!r}"


class EncodeError(StoreError):
    """An object could not be serialized for storage."""


class DecodeError(StoreError):
    """Stored bytes could not be deserialized (corruption or schema drift)."""


class WriteError(StoreError):
    """The engine rejected a mutation."""
