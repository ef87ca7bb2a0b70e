"""Elasticsearch client factory and paged scan helpers.

All reads over the ECS mapping and results indices go through
``scrolled_search`` so that server-side scroll contexts are released on
every exit path: normal completion, an early ``break`` out of the loop,
or an exception raised by the caller while iterating.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

import structlog
from elasticsearch import AsyncElasticsearch

from mitre_data_quality.core.config import Settings

logger = structlog.get_logger()


def create_client(settings: Settings) -> AsyncElasticsearch:
    """Create the service-identity Elasticsearch client."""
    kwargs: dict[str, Any] = {
        "hosts": settings.elasticsearch_host_list,
        "verify_certs": settings.elasticsearch_verify_certs,
        "request_timeout": settings.elasticsearch_request_timeout,
    }
    if settings.elasticsearch_api_key:
        kwargs["api_key"] = settings.elasticsearch_api_key
    elif settings.elasticsearch_username:
        kwargs["basic_auth"] = (
            settings.elasticsearch_username,
            settings.elasticsearch_password or "",
        )
    return AsyncElasticsearch(**kwargs)


class ScrollCursor:
    """Iterates every hit of a scrolled search, page by page.

    Use through ``scrolled_search``; the cursor itself never clears its
    scroll context on exhaustion so that ``close`` stays the single place
    where the server-side resource is released.
    """

    def __init__(
        self,
        client: AsyncElasticsearch,
        index: str,
        query: dict,
        page_size: int,
        keep_alive: str,
    ):
        self._client = client
        self._index = index
        self._query = query
        self._page_size = page_size
        self._keep_alive = keep_alive
        self._scroll_id: Optional[str] = None
        self._closed = False
        self.pages_fetched = 0

    async def __aiter__(self) -> AsyncIterator[dict]:
        response = await self._client.search(
            index=self._index,
            size=self._page_size,
            scroll=self._keep_alive,
            query=self._query,
        )

        while True:
            self._scroll_id = response.get("_scroll_id") or self._scroll_id
            hits = response["hits"]["hits"]
            if not hits:
                return

            self.pages_fetched += 1
            for hit in hits:
                yield hit

            if not self._scroll_id or self._closed:
                return

            response = await self._client.scroll(
                scroll_id=self._scroll_id,
                scroll=self._keep_alive,
            )

    async def close(self) -> None:
        """Release the server-side scroll context, if one was opened."""
        self._closed = True
        if not self._scroll_id:
            return

        scroll_id, self._scroll_id = self._scroll_id, None
        try:
            await self._client.clear_scroll(scroll_id=scroll_id)
        except Exception as e:
            # The context expires on its own after keep_alive
            logger.warning("clear_scroll_failed", index=self._index, error=str(e))


@asynccontextmanager
async def scrolled_search(
    client: AsyncElasticsearch,
    index: str,
    query: Optional[dict] = None,
    page_size: int = 100,
    keep_alive: str = "1m",
) -> AsyncIterator[ScrollCursor]:
    """Open a scroll over ``index`` and guarantee it is cleared on exit.

    Example::

        async with scrolled_search(client, "my-index") as cursor:
            async for hit in cursor:
                ...
    """
    cursor = ScrollCursor(
        client,
        index=index,
        query=query or {"match_all": {}},
        page_size=page_size,
        keep_alive=keep_alive,
    )
    try:
        yield cursor
    finally:
        await cursor.close()
