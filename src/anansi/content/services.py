"""Create/modify flows and read paths on top of the object stores.

The stores only know how to write items.  This module decides when a slug is
minted (creation) and when it is held fixed (modification), and pairs
stored bodies with rendered HTML for display.
"""

from __future__ import annotations

import logging
import re
from datetime import UTC, datetime
from pathlib import Path

import yaml

from anansi.content.models import ContentItem, RenderedItem
from anansi.content.store import ContentStore, ItemT, ObjectStore, TagStore
from anansi.errors import EncodeError, NotFound
from anansi.render import render
from anansi.slugs import make_slug

logger = logging.getLogger(__name__)

_FRONTMATTER_RE = re.compile(r"\A---\s*\n(.*?)\n---\s*(?:\n|\Z)", re.DOTALL)


def _now() -> datetime:
    return datetime.now(tz=UTC)


def _stamped(draft: ItemT, **fields: object) -> ItemT:
    # model_copy skips validation; naive timestamps must still become UTC.
    return draft.model_validate({**draft.model_dump(), **fields})


def create_item(store: ObjectStore[ItemT], draft: ItemT, *, now: datetime | None = None) -> ItemT:
    """Stamp ``draft`` with a creation time and fresh slug, then store it.

    Any slug or timestamp already on the draft is ignored.
    """
    created_at = now or _now()
    slug = make_slug(draft.title, created_at)
    item = _stamped(draft, created_at=created_at, slug=slug)
    store.upsert(item, slug)
    logger.info("Created %s %s", store.collection, slug)
    return item


def modify_item(
    store: ObjectStore[ItemT],
    slug: str,
    draft: ItemT,
    *,
    now: datetime | None = None,
) -> ItemT:
    """Replace the item at ``slug`` with ``draft``.

    The slug never changes.  ``created_at`` is reset to the write time,
    so it can drift from the timestamp embedded in the slug.  The existence
    check and the write run in one transaction, so a concurrent delete is
    never undone.

    Raises:
        NotFound: Nothing is stored at ``slug``.
    """
    written_at = now or _now()
    item = store.modify(slug, lambda _current: _stamped(draft, created_at=written_at, slug=slug))
    logger.info("Modified %s %s", store.collection, slug)
    return item


def render_item(store: ObjectStore[ItemT], slug: str) -> RenderedItem:
    """Fetch the item at ``slug`` and render its body for display."""
    item = store.get(slug)
    logger.debug("Rendering %s %s by %s", store.collection, item.title, item.author)
    return RenderedItem(item=item, html=render(item.body))


def render_all(store: ObjectStore[ItemT]) -> list[RenderedItem]:
    """Render every item in the collection, in slug order."""
    return [RenderedItem(item=item, html=render(item.body)) for _, item in store.list()]


def tag_content(
    content_store: ContentStore,
    tag_store: TagStore,
    content_slug: str,
    tag_slugs: list[str],
) -> ContentItem:
    """Attach existing tags to a content item.

    Tags already on the item are kept; new ones are appended in order.
    ``created_at`` is left alone since the item itself was not edited.
    The merge is applied to the item as it is at write time, so concurrent
    edits to its other fields are kept.

    Raises:
        NotFound: The content item or one of the tags does not exist.
    """

    def attach(item: ContentItem) -> ContentItem:
        for tag_slug in tag_slugs:
            if not tag_store.exists(tag_slug):
                raise NotFound(tag_slug, tag_store.collection)
        return _stamped(item, tags=[*item.tags, *tag_slugs])

    tagged = content_store.modify(content_slug, attach)
    logger.info("Tagged content %s with %s", content_slug, ", ".join(tag_slugs))
    return tagged


def parse_markdown_file(text: str) -> tuple[dict[str, object], str]:
    """Split optional YAML front matter from a markdown document.

    Raises:
        EncodeError: The front matter is not a YAML mapping.
    """
    match = _FRONTMATTER_RE.match(text)
    if not match:
        return {}, text
    try:
        meta = yaml.safe_load(match.group(1)) or {}
    except yaml.YAMLError as exc:
        raise EncodeError(f"invalid front matter: {exc}") from exc
    if not isinstance(meta, dict):
        raise EncodeError("invalid front matter: expected a mapping")
    return meta, text[match.end():]


def import_markdown(
    store: ObjectStore[ItemT],
    path: Path,
    *,
    now: datetime | None = None,
) -> ItemT:
    """Create an item from a markdown file.

    ``title`` and ``author`` come from front matter; the title falls back
    to the file name without its extension.
    """
    meta, body = parse_markdown_file(path.read_text(encoding="utf-8"))
    title = str(meta.get("title") or path.stem)
    author = str(meta.get("author") or "")
    draft = store.item_type(title=title, author=author, body=body.strip())
    return create_item(store, draft, now=now)  # type: ignore[arg-type]
