"""Content and tag collections: item models, stores, and services."""

from anansi.content.models import (
    ContentItem,
    ContentKind,
    DocumentMeta,
    ImageMeta,
    Item,
    RenderedItem,
    TagItem,
    VideoMeta,
    WebMeta,
)
from anansi.content.store import ContentStore, ObjectStore, TagStore

__all__ = [
    "ContentItem",
    "ContentKind",
    "ContentStore",
    "DocumentMeta",
    "ImageMeta",
    "Item",
    "ObjectStore",
    "RenderedItem",
    "TagItem",
    "TagStore",
    "VideoMeta",
    "WebMeta",
]
