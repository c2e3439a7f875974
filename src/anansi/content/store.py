"""Transactional object stores for the content and tag collections.

Each collection lives in its own child bucket of the root bucket and maps
slug -> JSON-encoded item.  Every public method is exactly one engine
transaction; nothing is cached in memory and nothing is retried.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import ClassVar, Generic, TypeVar

from anansi.content.models import ContentItem, Item, TagItem
from anansi.engine import Bucket, Engine, EngineError, Tx
from anansi.errors import DecodeError, EncodeError, NotFound, StoreError, WriteError
from anansi.layout import CONTENT_BUCKET, ROOT_BUCKET, TAG_BUCKET
from pydantic import ValidationError

logger = logging.getLogger(__name__)

ItemT = TypeVar("ItemT", bound=Item)

# Alias to avoid shadowing by ObjectStore.list method
_list = list

# Top-level values dropped from the encoding; ``slug`` is always written.
_EMPTY = ("", None, [])


class ObjectStore(Generic[ItemT]):
    """Upsert/get/list/delete over one collection bucket.

    Subclasses only name the collection, its bucket and its item type.
    The engine handle is passed in; the store owns no other state.
    """

    collection: ClassVar[str]
    bucket_name: ClassVar[bytes]
    item_type: ClassVar[type[Item]]

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    # ── Private helpers ──────────────────────────────────────────

    def _bucket(self, tx: Tx) -> Bucket | None:
        root = tx.bucket(ROOT_BUCKET)
        if root is None:
            return None
        return root.bucket(self.bucket_name)

    def _encode(self, item: ItemT) -> bytes:
        try:
            data = item.model_dump(mode="json", by_alias=True)
            data = {k: v for k, v in data.items() if v not in _EMPTY}
            data["slug"] = item.slug
            return json.dumps(data, ensure_ascii=False).encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise EncodeError(f"could not encode {self.collection} {item.slug!r}: {exc}") from exc

    def _decode(self, slug: str, raw: bytes) -> ItemT:
        try:
            return self.item_type.model_validate_json(raw)  # type: ignore[return-value]
        except ValidationError as exc:
            raise DecodeError(f"could not decode {self.collection} {slug!r}: {exc}") from exc

    # ── Write operations ─────────────────────────────────────────

    def upsert(self, item: ItemT, slug: str) -> None:
        """Write ``item`` under ``slug``, replacing any existing value.

        Raises:
            EncodeError: The item could not be serialized.
            WriteError: The engine rejected the write.
        """
        buf = self._encode(item)
        try:
            with self._engine.update() as tx:
                bucket = self._bucket(tx)
                if bucket is None:
                    raise WriteError(f"{self.collection} bucket does not exist")
                bucket.put(slug, buf)
        except EngineError as exc:
            raise WriteError(f"could not insert {self.collection}: {exc}") from exc
        logger.debug("Wrote %s %s (%d bytes)", self.collection, slug, len(buf))

    def modify(self, slug: str, change: Callable[[ItemT], ItemT]) -> ItemT:
        """Replace the item at ``slug`` with ``change(current)``.

        The read and the write share one write transaction; other writers
        wait until it commits.  A failing ``change`` leaves the item as it was.

        Raises:
            NotFound: Nothing is stored at ``slug``.
            DecodeError: The stored bytes are not a valid item.
            EncodeError: The new item could not be serialized.
            WriteError: The engine rejected the write.
        """
        try:
            with self._engine.update() as tx:
                bucket = self._bucket(tx)
                raw = bucket.get(slug) if bucket is not None else None
                if raw is None:
                    raise NotFound(slug, self.collection)
                item = change(self._decode(slug, raw))
                buf = self._encode(item)
                bucket.put(slug, buf)
        except EngineError as exc:
            raise WriteError(f"could not update {self.collection}: {exc}") from exc
        logger.debug("Rewrote %s %s (%d bytes)", self.collection, slug, len(buf))
        return item

    def delete(self, slug: str) -> None:
        """Remove the item at ``slug``; absent slugs are not an error.

        Raises:
            WriteError: The engine rejected the delete.
        """
        try:
            with self._engine.update() as tx:
                bucket = self._bucket(tx)
                if bucket is None:
                    raise WriteError(f"{self.collection} bucket does not exist")
                bucket.delete(slug)
        except EngineError as exc:
            raise WriteError(f"could not delete {self.collection}: {exc}") from exc
        logger.info("Deleted %s %s", self.collection, slug)

    # ── Read operations ──────────────────────────────────────────

    def get(self, slug: str) -> ItemT:
        """Return the item stored at ``slug``.

        Raises:
            NotFound: Nothing is stored at ``slug``.
            DecodeError: The stored bytes are not a valid item.
        """
        try:
            with self._engine.view() as tx:
                bucket = self._bucket(tx)
                raw = bucket.get(slug) if bucket is not None else None
        except EngineError as exc:
            raise StoreError(f"could not read {self.collection}: {exc}") from exc
        if raw is None:
            raise NotFound(slug, self.collection)
        return self._decode(slug, raw)

    def list(self) -> _list[tuple[str, ItemT]]:
        """Return every ``(slug, item)`` pair in slug byte order.

        Fails on the first record that cannot be decoded; there is no
        partial listing.

        Raises:
            DecodeError: A stored record is corrupt.
            StoreError: The bucket is missing or the engine failed.
        """
        results: _list[tuple[str, ItemT]] = []
        try:
            with self._engine.view() as tx:
                bucket = self._bucket(tx)
                if bucket is None:
                    raise StoreError(f"{self.collection} bucket does not exist")
                for key, raw in bucket.cursor():
                    try:
                        slug = key.decode("utf-8")
                    except UnicodeDecodeError as exc:
                        raise DecodeError(
                            f"could not decode {self.collection} key {key!r}"
                        ) from exc
                    results.append((slug, self._decode(slug, raw)))
        except EngineError as exc:
            raise StoreError(f"could not list {self.collection}: {exc}") from exc
        return results

    def exists(self, slug: str) -> bool:
        """Check whether anything is stored at ``slug``."""
        try:
            with self._engine.view() as tx:
                bucket = self._bucket(tx)
                return bucket is not None and bucket.get(slug) is not None
        except EngineError as exc:
            raise StoreError(f"could not read {self.collection}: {exc}") from exc

    def count(self) -> int:
        """Number of items in the collection."""
        try:
            with self._engine.view() as tx:
                bucket = self._bucket(tx)
                if bucket is None:
                    raise StoreError(f"{self.collection} bucket does not exist")
                return bucket.count()
        except EngineError as exc:
            raise StoreError(f"could not count {self.collection}: {exc}") from exc


class ContentStore(ObjectStore[ContentItem]):
    """Store for the content collection."""

    collection = "content"
    bucket_name = CONTENT_BUCKET
    item_type = ContentItem


class TagStore(ObjectStore[TagItem]):
    """Store for the tag collection."""

    collection = "tag"
    bucket_name = TAG_BUCKET
    item_type = TagItem
