"""Bucket hierarchy bootstrap.

The store holds one root bucket with one child bucket per collection::

    anansi/
        content/
        tag/
"""

from __future__ import annotations

import logging
from pathlib import Path

from anansi.engine import DEFAULT_TIMEOUT, Engine, EngineError, EngineOpenError
from anansi.errors import LayoutInitFailed, StoreUnavailable

logger = logging.getLogger(__name__)

ROOT_BUCKET = b"anansi"
CONTENT_BUCKET = b"content"
TAG_BUCKET = b"tag"

COLLECTION_BUCKETS = (CONTENT_BUCKET, TAG_BUCKET)


def ensure_layout(path: str | Path, *, timeout: float = DEFAULT_TIMEOUT) -> Engine:
    """Open the store at ``path`` and make sure every bucket exists.

    Idempotent; safe to call on every process start.  All buckets are
    created inside one write transaction, so a failure leaves the layout
    untouched.

    Raises:
        StoreUnavailable: The engine could not be opened.
        LayoutInitFailed: The engine opened but bucket creation failed.
    """
    try:
        engine = Engine.open(path, timeout=timeout)
    except EngineOpenError as exc:
        raise StoreUnavailable(f"could not open db, {exc}") from exc

    try:
        init_layout(engine)
    except LayoutInitFailed:
        engine.close()
        raise
    logger.info("Store ready at %s", engine.path)
    return engine


def init_layout(engine: Engine) -> None:
    """Create the root and collection buckets on an already-open engine.

    Raises:
        LayoutInitFailed: Any bucket could not be created.
    """
    try:
        with engine.update() as tx:
            root = tx.create_bucket_if_not_exists(ROOT_BUCKET)
            for name in COLLECTION_BUCKETS:
                root.create_bucket_if_not_exists(name)
    except EngineError as exc:
        raise LayoutInitFailed(f"could not set up buckets, {exc}") from exc
