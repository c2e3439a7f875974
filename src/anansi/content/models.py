"""Item models for the content and tag collections, pure Pydantic v2 types.

Both collections store the same five core fields (author, body, createdAt,
title, slug).  Content items can also reference tags by slug and carry
kind-specific metadata.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ContentKind(StrEnum):
    """What a content item points at."""

    IMAGE = "image"
    DOCUMENT = "document"
    VIDEO = "video"
    WEB = "web"


class ImageMeta(BaseModel):
    kind: Literal["image"] = "image"
    location: str = ""
    width: int | None = None
    height: int | None = None
    alt: str = ""


class DocumentMeta(BaseModel):
    kind: Literal["document"] = "document"
    location: str = ""
    pages: int | None = None
    mime_type: str = ""


class VideoMeta(BaseModel):
    kind: Literal["video"] = "video"
    location: str = ""
    duration_seconds: float | None = None


class WebMeta(BaseModel):
    kind: Literal["web"] = "web"
    url: str = ""


ContentMeta = Annotated[
    ImageMeta | DocumentMeta | VideoMeta | WebMeta,
    Field(discriminator="kind"),
]


class Item(BaseModel):
    """Fields shared by every stored item.

    ``slug`` is the primary key inside the item's collection.  It is set
    once at creation and never changes.
    """

    model_config = ConfigDict(populate_by_name=True)

    author: str = ""
    body: str = ""
    created_at: datetime | None = Field(default=None, alias="createdAt")
    title: str = ""
    slug: str = ""

    @field_validator("created_at")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        # Naive times are UTC, matching the timestamp in the slug.
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value


class ContentItem(Item):
    """A piece of published content."""

    tags: list[str] = Field(default_factory=list)
    meta: ContentMeta | None = None

    @field_validator("tags")
    @classmethod
    def _dedupe_tags(cls, value: list[str]) -> list[str]:
        return list(dict.fromkeys(value))

    @property
    def kind(self) -> ContentKind | None:
        if self.meta is None:
            return None
        return ContentKind(self.meta.kind)


class TagItem(Item):
    """A tag that content can be filed under."""


class RenderedItem(BaseModel):
    """An item paired with its display-safe HTML body."""

    item: Item
    html: str
