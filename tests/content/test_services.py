"""Tests for create/modify/render/tag flows over the stores."""

from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from anansi.content.models import ContentItem, TagItem
from anansi.content.services import (
    create_item,
    import_markdown,
    modify_item,
    parse_markdown_file,
    render_all,
    render_item,
    tag_content,
)
from anansi.content.store import ContentStore, TagStore
from anansi.errors import EncodeError, NotFound
from anansi.layout import ensure_layout

NEW_YEAR = datetime(2021, 1, 1, tzinfo=UTC)


@pytest.fixture
def engine(tmp_path: Path):
    eng = ensure_layout(tmp_path / "anansi.db")
    yield eng
    eng.close()


@pytest.fixture
def content(engine) -> ContentStore:
    return ContentStore(engine)


@pytest.fixture
def tags(engine) -> TagStore:
    return TagStore(engine)


class TestCreateItem:
    def test_slug_from_time_and_title(self, content: ContentStore):
        item = create_item(content, ContentItem(title="Hello World", body="hi"), now=NEW_YEAR)
        assert item.slug == "2021-01-01t00-00-00z-hello-world"
        assert item.created_at == NEW_YEAR
        assert content.get(item.slug) == item

    def test_ignores_draft_slug_and_timestamp(self, content: ContentStore):
        draft = ContentItem(title="T", slug="chosen", created_at=NEW_YEAR - timedelta(days=9))
        item = create_item(content, draft, now=NEW_YEAR)
        assert item.slug == "2021-01-01t00-00-00z-t"
        assert not content.exists("chosen")

    def test_same_second_same_title_overwrites(self, content: ContentStore):
        create_item(content, ContentItem(title="Dup", body="first"), now=NEW_YEAR)
        create_item(content, ContentItem(title="Dup", body="second"), now=NEW_YEAR)
        assert content.count() == 1
        assert content.get("2021-01-01t00-00-00z-dup").body == "second"

    def test_naive_now_stored_as_utc(self, content: ContentStore):
        item = create_item(content, ContentItem(title="Hi"), now=datetime(2021, 1, 1))
        assert item.slug == "2021-01-01t00-00-00z-hi"
        assert item.created_at == NEW_YEAR
        stored = content.get(item.slug).model_dump(mode="json", by_alias=True)
        assert stored["createdAt"] == "2021-01-01T00:00:00Z"

    def test_defaults_to_current_time(self, tags: TagStore):
        before = datetime.now(tz=UTC).replace(microsecond=0)
        item = create_item(tags, TagItem(title="python"))
        assert item.created_at >= before
        assert item.slug.endswith("-python")


class TestModifyItem:
    def test_slug_held_fixed(self, content: ContentStore):
        item = create_item(content, ContentItem(title="Original"), now=NEW_YEAR)
        later = NEW_YEAR + timedelta(days=30)

        updated = modify_item(content, item.slug, ContentItem(title="Renamed"), now=later)

        assert updated.slug == item.slug
        assert updated.title == "Renamed"
        assert content.list() == [(item.slug, updated)]

    def test_created_at_refreshed(self, content: ContentStore):
        item = create_item(content, ContentItem(title="Original"), now=NEW_YEAR)
        later = NEW_YEAR + timedelta(days=30)

        updated = modify_item(content, item.slug, ContentItem(title="Original"), now=later)

        assert updated.created_at == later
        assert content.get(item.slug).created_at == later

    def test_missing_slug(self, content: ContentStore):
        with pytest.raises(NotFound):
            modify_item(content, "nope", ContentItem(title="x"))
        assert content.list() == []

    def test_naive_now_stored_as_utc(self, content: ContentStore):
        item = create_item(content, ContentItem(title="Original"), now=NEW_YEAR)
        updated = modify_item(content, item.slug, ContentItem(title="x"), now=datetime(2021, 2, 1))
        assert updated.created_at == datetime(2021, 2, 1, tzinfo=UTC)

    def test_deleted_item_not_revived(self, content: ContentStore):
        item = create_item(content, ContentItem(title="Gone"), now=NEW_YEAR)
        content.delete(item.slug)
        with pytest.raises(NotFound):
            modify_item(content, item.slug, ContentItem(title="Back"))
        assert content.exists(item.slug) is False


class TestTagContent:
    def test_attaches_tags(self, content: ContentStore, tags: TagStore):
        post = create_item(content, ContentItem(title="Post"), now=NEW_YEAR)
        py = create_item(tags, TagItem(title="Python"), now=NEW_YEAR)

        tagged = tag_content(content, tags, post.slug, [py.slug])

        assert tagged.tags == [py.slug]
        assert content.get(post.slug).tags == [py.slug]
        assert tagged.created_at == NEW_YEAR

    def test_merges_without_duplicates(self, content: ContentStore, tags: TagStore):
        for slug in ("a", "b"):
            tags.upsert(TagItem(title=slug, slug=slug), slug)
        content.upsert(ContentItem(title="Post", slug="post", tags=["a"]), "post")

        tagged = tag_content(content, tags, "post", ["b", "a", "b"])
        assert tagged.tags == ["a", "b"]

    def test_unknown_tag(self, content: ContentStore, tags: TagStore):
        content.upsert(ContentItem(title="Post", slug="post"), "post")
        with pytest.raises(NotFound) as info:
            tag_content(content, tags, "post", ["ghost"])
        assert info.value.collection == "tag"
        assert content.get("post").tags == []

    def test_keeps_fields_written_since_read(self, content: ContentStore, tags: TagStore):
        tags.upsert(TagItem(title="a", slug="a"), "a")
        content.upsert(ContentItem(title="Post", slug="post", body="old"), "post")
        stale = content.get("post")
        content.upsert(stale.model_copy(update={"body": "new"}), "post")

        tagged = tag_content(content, tags, "post", ["a"])

        assert tagged.body == "new"
        assert content.get("post").tags == ["a"]

    def test_unknown_content(self, content: ContentStore, tags: TagStore):
        with pytest.raises(NotFound):
            tag_content(content, tags, "missing", [])


class TestRender:
    def test_render_item(self, content: ContentStore):
        item = create_item(
            content, ContentItem(title="R", body="**bold** <script>x()</script>"), now=NEW_YEAR
        )
        rendered = render_item(content, item.slug)
        assert rendered.item == item
        assert "<strong>bold</strong>" in rendered.html
        assert "<script" not in rendered.html

    def test_stored_body_untouched(self, content: ContentStore):
        body = "<script>x()</script>"
        item = create_item(content, ContentItem(title="Raw", body=body), now=NEW_YEAR)
        render_item(content, item.slug)
        assert content.get(item.slug).body == body

    def test_render_item_missing(self, tags: TagStore):
        with pytest.raises(NotFound):
            render_item(tags, "missing")

    def test_render_all_in_slug_order(self, tags: TagStore):
        create_item(tags, TagItem(title="b", body="*two*"), now=NEW_YEAR)
        create_item(tags, TagItem(title="a", body="*one*"), now=NEW_YEAR)

        rendered = render_all(tags)

        assert [r.item.title for r in rendered] == ["a", "b"]
        assert "<em>one</em>" in rendered[0].html


class TestParseMarkdownFile:
    def test_no_front_matter(self):
        meta, body = parse_markdown_file("# Just markdown\n")
        assert meta == {}
        assert body == "# Just markdown\n"

    def test_front_matter(self):
        meta, body = parse_markdown_file("---\ntitle: Hi\nauthor: Ada\n---\nBody text\n")
        assert meta == {"title": "Hi", "author": "Ada"}
        assert body == "Body text\n"

    def test_invalid_yaml(self):
        with pytest.raises(EncodeError):
            parse_markdown_file("---\ntitle: [unclosed\n---\nbody\n")

    def test_front_matter_must_be_mapping(self):
        with pytest.raises(EncodeError, match="mapping"):
            parse_markdown_file("---\n- a\n- b\n---\nbody\n")


class TestImportMarkdown:
    def test_uses_front_matter(self, content: ContentStore, tmp_path: Path):
        path = tmp_path / "ignored-name.md"
        path.write_text("---\ntitle: Field Notes\nauthor: Ada\n---\n\nSome *notes*.\n")

        item = import_markdown(content, path, now=NEW_YEAR)

        assert item.slug == "2021-01-01t00-00-00z-field-notes"
        assert item.author == "Ada"
        assert item.body == "Some *notes*."

    def test_title_falls_back_to_file_stem(self, tags: TagStore, tmp_path: Path):
        path = tmp_path / "web-dev.md"
        path.write_text("Pages about the web.\n")

        item = import_markdown(tags, path, now=NEW_YEAR)

        assert item.title == "web-dev"
        assert isinstance(tags.get(item.slug), TagItem)
