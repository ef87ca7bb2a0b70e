"""Unit tests for scroll cursor cleanup."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from mitre_data_quality.core.elasticsearch import scrolled_search

INDEX = ".mitre-data-quality-ecs-default"


@pytest.fixture
def seeded_es(fake_es):
    for i in range(5):
        fake_es.add_document(INDEX, {"id": f"analytic-{i}"})
    return fake_es


class TestScrolledSearch:
    """Scroll contexts are released on every exit path."""

    @pytest.mark.asyncio
    async def test_iterates_every_page(self, seeded_es):
        async with scrolled_search(seeded_es, INDEX, page_size=2) as cursor:
            ids = [hit["_source"]["id"] async for hit in cursor]

        assert ids == [f"analytic-{i}" for i in range(5)]
        assert cursor.pages_fetched == 3
        assert seeded_es.search_calls[0]["scroll"] == "1m"
        assert seeded_es.search_calls[0]["query"] == {"match_all": {}}

    @pytest.mark.asyncio
    async def test_cleared_on_completion(self, seeded_es):
        async with scrolled_search(seeded_es, INDEX, page_size=2) as cursor:
            async for _ in cursor:
                pass

        assert len(seeded_es.cleared_scroll_ids) == 1
        assert seeded_es.open_scroll_ids == []

    @pytest.mark.asyncio
    async def test_cleared_on_early_break(self, seeded_es):
        async with scrolled_search(seeded_es, INDEX, page_size=2) as cursor:
            async for _ in cursor:
                break

        assert len(seeded_es.cleared_scroll_ids) == 1
        assert seeded_es.open_scroll_ids == []

    @pytest.mark.asyncio
    async def test_cleared_when_caller_raises(self, seeded_es):
        with pytest.raises(RuntimeError):
            async with scrolled_search(seeded_es, INDEX, page_size=2) as cursor:
                async for _ in cursor:
                    raise RuntimeError("processing failed")

        assert len(seeded_es.cleared_scroll_ids) == 1

    @pytest.mark.asyncio
    async def test_cleared_when_continuation_fails(self, seeded_es):
        seeded_es.failures["scroll"] = ConnectionError("lost")

        with pytest.raises(ConnectionError):
            async with scrolled_search(seeded_es, INDEX, page_size=2) as cursor:
                async for _ in cursor:
                    pass

        assert len(seeded_es.cleared_scroll_ids) == 1

    @pytest.mark.asyncio
    async def test_no_clear_when_search_never_opened(self, fake_es):
        fake_es.failures["search"] = ConnectionError("down")

        with pytest.raises(ConnectionError):
            async with scrolled_search(fake_es, INDEX) as cursor:
                async for _ in cursor:
                    pass

        assert fake_es.cleared_scroll_ids == []

    @pytest.mark.asyncio
    async def test_clear_failure_does_not_mask_result(self):
        client = MagicMock()
        client.search = AsyncMock(
            return_value={"_scroll_id": "abc", "hits": {"hits": [{"_id": "1"}]}}
        )
        client.scroll = AsyncMock(return_value={"_scroll_id": "abc", "hits": {"hits": []}})
        client.clear_scroll = AsyncMock(side_effect=ConnectionError("gone"))

        async with scrolled_search(client, INDEX) as cursor:
            hits = [hit async for hit in cursor]

        assert hits == [{"_id": "1"}]
        client.clear_scroll.assert_awaited_once_with(scroll_id="abc")
