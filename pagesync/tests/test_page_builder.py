"""Page builder tests: publish gating, metadata, slugs"""

from datetime import datetime, timezone

import pytest

from pagesync import rules
from pagesync.core.errors import ValidationError
from pagesync.ingestion.document import Document
from pagesync.policy import Policy
from pagesync.schemas.sync import ContentRecord
from pagesync.services import page_builder


def _doc(page) -> Document:
    return Document.from_api_response(page)


def _seed(repository, natural_id: str, slug: str, data_source_id: str = "db-blog") -> None:
    repository.upsert(ContentRecord(natural_id=natural_id, data_source_id=data_source_id, title=slug, slug=slug))


@pytest.fixture
def gated_policy():
    return Policy(
        data_source_id="db-blog",
        alias="blog",
        is_public=rules.checkbox("Published"),
        publish_date=rules.date_property("Publish Date"),
        slug_override=rules.rich_text("Slug"),
        tags_property="Tags",
        authors_property="Authors",
    )


class TestPublishGate:
    """Test publish_at computation"""

    @pytest.mark.asyncio
    async def test_public_with_date(self, builder, gated_policy, make_page):
        doc = _doc(make_page(1, published=True, publish_date="2025-01-15T10:00:00Z"))
        record = await builder.build(doc, gated_policy)
        assert record.publish_at == datetime(2025, 1, 15, 10, 0, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_not_public_is_stored_unpublished(self, builder, gated_policy, make_page):
        doc = _doc(make_page(1, published=False, publish_date="2025-01-15"))
        record = await builder.build(doc, gated_policy)
        assert record.publish_at is None
        assert record.title == "Hello World"

    @pytest.mark.asyncio
    async def test_public_without_date(self, builder, gated_policy, make_page):
        record = await builder.build(_doc(make_page(1, published=True)), gated_policy)
        assert record.publish_at is None

    @pytest.mark.asyncio
    async def test_future_date_kept(self, builder, gated_policy, make_page):
        doc = _doc(make_page(1, published=True, publish_date="2999-01-01"))
        record = await builder.build(doc, gated_policy)
        assert record.publish_at == datetime(2999, 1, 1, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_default_policy_publishes_at_last_edit(self, builder, policy, make_page):
        record = await builder.build(_doc(make_page(1, edited="2025-05-05T00:00:00Z")), policy)
        assert record.publish_at == datetime(2025, 5, 5, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_unparseable_date_is_validation_error(self, builder, make_page):
        policy = Policy(data_source_id="db-blog", publish_date=lambda doc: "next tuesday")
        with pytest.raises(ValidationError):
            await builder.build(_doc(make_page(1)), policy)


class TestMetadata:
    """Test title, tags, authors, meta"""

    @pytest.mark.asyncio
    async def test_missing_title(self, builder, policy, make_page):
        with pytest.raises(ValidationError) as exc_info:
            await builder.build(_doc(make_page(1, title=None)), policy)
        assert exc_info.value.document_id.endswith("0001")

    @pytest.mark.asyncio
    async def test_blank_title(self, builder, policy, make_page):
        with pytest.raises(ValidationError):
            await builder.build(_doc(make_page(1, title="   ")), policy)

    @pytest.mark.asyncio
    async def test_tags_authors_content(self, builder, gated_policy, source, make_page, page_id):
        source.content[page_id(1)] = "# Heading"
        doc = _doc(make_page(1, tags=["python", "notion"], authors=["Ada", "Grace"]))
        record = await builder.build(doc, gated_policy)

        assert record.tags == ["python", "notion"]
        assert record.authors == ["Ada", "Grace"]
        assert record.content == "# Heading"
        assert record.natural_id == page_id(1)
        assert record.updated_at == doc.last_edited_at

    @pytest.mark.asyncio
    async def test_metadata_extractor(self, builder, make_page):
        policy = Policy(data_source_id="db-blog", metadata_extractor=lambda doc: {"url": doc.url})
        record = await builder.build(_doc(make_page(1)), policy)
        assert record.meta["url"].startswith("https://www.notion.so/")

    @pytest.mark.asyncio
    async def test_metadata_extractor_error(self, builder, make_page):
        def broken(doc):
            raise KeyError("Cover")

        policy = Policy(data_source_id="db-blog", metadata_extractor=broken)
        with pytest.raises(ValidationError):
            await builder.build(_doc(make_page(1)), policy)

    @pytest.mark.asyncio
    async def test_metadata_must_be_dict(self, builder, make_page):
        policy = Policy(data_source_id="db-blog", metadata_extractor=lambda doc: ["not", "a", "dict"])
        with pytest.raises(ValidationError):
            await builder.build(_doc(make_page(1)), policy)


class TestSlugs:
    """Test slug resolution, uniqueness and stability"""

    @pytest.mark.asyncio
    async def test_slug_from_title(self, builder, policy, make_page):
        record = await builder.build(_doc(make_page(1, title="Hello World!")), policy)
        assert record.slug == "hello-world"

    @pytest.mark.asyncio
    async def test_conflict_gets_suffix(self, builder, repository, policy, make_page, page_id):
        _seed(repository, page_id(1), "hello-world")
        _seed(repository, page_id(2), "hello-world-2")

        record = await builder.build(_doc(make_page(3, title="Hello World")), policy)
        assert record.slug == "hello-world-3"

    @pytest.mark.asyncio
    async def test_conflicts_only_within_data_source(self, builder, repository, policy, make_page, page_id):
        _seed(repository, page_id(9), "hello-world", data_source_id="db-other")
        record = await builder.build(_doc(make_page(1, title="Hello World")), policy)
        assert record.slug == "hello-world"

    @pytest.mark.asyncio
    async def test_exhausted_candidates_fall_back_to_id(self, builder, repository, policy, make_page, page_id, monkeypatch):
        monkeypatch.setattr(page_builder, "MAX_SLUG_ATTEMPTS", 3)
        _seed(repository, page_id(1), "post")
        _seed(repository, page_id(2), "post-2")
        _seed(repository, page_id(3), "post-3")

        record = await builder.build(_doc(make_page(4, title="Post")), policy)
        assert record.slug == "post-00000004"

    @pytest.mark.asyncio
    async def test_empty_slug_uses_short_id(self, builder, policy, make_page):
        record = await builder.build(_doc(make_page(12, title="日本語")), policy)
        assert record.slug == "00000012"

    @pytest.mark.asyncio
    async def test_title_change_keeps_slug(self, builder, repository, policy, make_page):
        first = await builder.build(_doc(make_page(1, title="Original Title")), policy)
        repository.upsert(first)

        second = await builder.build(_doc(make_page(1, title="Renamed Entirely")), policy)
        assert second.slug == "original-title"
        assert second.title == "Renamed Entirely"

    @pytest.mark.asyncio
    async def test_override_on_new_page(self, builder, gated_policy, make_page):
        record = await builder.build(_doc(make_page(1, slug="Custom Slug")), gated_policy)
        assert record.slug == "custom-slug"

    @pytest.mark.asyncio
    async def test_override_change_moves_slug(self, builder, repository, gated_policy, make_page):
        repository.upsert(await builder.build(_doc(make_page(1, title="Post")), gated_policy))

        record = await builder.build(_doc(make_page(1, title="Post", slug="better-url")), gated_policy)
        assert record.slug == "better-url"

    @pytest.mark.asyncio
    async def test_override_conflict(self, builder, repository, gated_policy, make_page, page_id):
        _seed(repository, page_id(2), "taken")
        record = await builder.build(_doc(make_page(1, slug="taken")), gated_policy)
        assert record.slug == "taken-2"

    @pytest.mark.asyncio
    async def test_rebuild_does_not_conflict_with_itself(self, builder, repository, policy, make_page):
        repository.upsert(await builder.build(_doc(make_page(1, title="Same")), policy))
        record = await builder.build(_doc(make_page(1, title="Same")), policy)
        assert record.slug == "same"


class TestSlugWriteBack:
    """Test writing the slug back to the source"""

    @pytest.fixture
    def sync_policy(self):
        return Policy(
            data_source_id="db-blog",
            slug_override=rules.rich_text("Slug"),
            slug_sync_property="Slug",
        )

    @pytest.mark.asyncio
    async def test_writes_when_different(self, builder, source, sync_policy, make_page, page_id):
        await builder.build(_doc(make_page(1, title="Fresh Post", slug="")), sync_policy)
        assert source.updates == [(page_id(1), "Slug", "fresh-post")]

    @pytest.mark.asyncio
    async def test_skips_when_equal(self, builder, source, sync_policy, make_page):
        await builder.build(_doc(make_page(1, title="Fresh Post", slug="fresh-post")), sync_policy)
        assert source.updates == []

    @pytest.mark.asyncio
    async def test_failure_does_not_fail_build(self, builder, source, sync_policy, make_page):
        source.fail_update = True
        record = await builder.build(_doc(make_page(1, title="Fresh Post")), sync_policy)
        assert record.slug == "fresh-post"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "slug_property",
        [
            {"type": "select", "select": {"name": "fresh-post"}},
            {"type": "url", "url": "https://example.com/fresh-post"},
        ],
    )
    async def test_skips_non_rich_text_property(self, builder, source, make_page, slug_property):
        policy = Policy(data_source_id="db-blog", slug_sync_property="Slug")
        page = make_page(1, title="Fresh Post", extra={"Slug": slug_property})

        record = await builder.build(_doc(page), policy)
        await builder.build(_doc(page), policy)

        assert record.slug == "fresh-post"
        assert source.updates == []

    @pytest.mark.asyncio
    async def test_no_write_without_property(self, builder, source, policy, make_page):
        await builder.build(_doc(make_page(1, title="Fresh Post")), policy)
        assert source.updates == []
