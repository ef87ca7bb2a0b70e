"""Pytest configuration and fixtures."""

import copy
import fnmatch
import itertools
import random
from pathlib import Path
from typing import Any, AsyncGenerator, Optional

import pytest
import pytest_asyncio
from elastic_transport import ApiResponseMeta, HttpHeaders, NodeConfig
from elasticsearch import NotFoundError
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from mitre_data_quality.core.config import Settings
from mitre_data_quality.main import create_app, init_app_state
from mitre_data_quality.services.ecs_mapping_loader import load_mapping_objects
from mitre_data_quality.services.platform_settings_service import (
    PlatformSettingsService,
)
from mitre_data_quality.services.probe_gateway import ProbeGateway
from mitre_data_quality.services.scoring_service import DataQualityScoringService
from mitre_data_quality.services.settings_cache import SettingsCache

DATA_DIR = Path(__file__).parent / "data"


def not_found(index: str, doc_id: Optional[str] = None) -> NotFoundError:
    meta = ApiResponseMeta(
        status=404,
        http_version="1.1",
        headers=HttpHeaders(),
        duration=0.0,
        node=NodeConfig("http", "localhost", 9200),
    )
    message = f"index_not_found_exception: {index}" if doc_id is None else "not_found"
    return NotFoundError(message, meta, {"found": False, "_index": index, "_id": doc_id})


def _lookup(document: dict, dotted_field: str) -> Any:
    if dotted_field in document:
        return document[dotted_field]
    current: Any = document
    for part in dotted_field.split("."):
        if not isinstance(current, dict) or part not in current:
            return None
        current = current[part]
    return current


def _matches(source: dict, query: Optional[dict]) -> bool:
    if not query or "match_all" in query:
        return True

    if "bool" in query:
        return all(_matches(source, clause) for clause in query["bool"].get("must", []))

    if "term" in query:
        ((field, value),) = query["term"].items()
        actual = _lookup(source, field)
        if isinstance(actual, list):
            return value in actual
        return actual == value

    if "terms" in query:
        ((field, values),) = query["terms"].items()
        actual = _lookup(source, field)
        if isinstance(actual, list):
            return any(v in values for v in actual)
        return actual in values

    raise AssertionError(f"Unsupported query in fake client: {query}")


class FakeIndices:
    """``client.indices`` namespace of the fake client."""

    def __init__(self, client: "FakeElasticsearch"):
        self._client = client

    async def exists(self, index: str, **kwargs) -> bool:
        self._client._maybe_fail("indices.exists")
        return index in self._client.store

    async def create(self, index: str, settings=None, mappings=None, **kwargs) -> dict:
        self._client._maybe_fail("indices.create")
        self._client.store.setdefault(index, {})
        self._client.created_indices.append(
            {"index": index, "settings": settings, "mappings": mappings}
        )
        return {"acknowledged": True, "index": index}

    async def refresh(self, index: str, **kwargs) -> dict:
        self._client._maybe_fail("indices.refresh")
        self._client.refreshed.append(index)
        return {"_shards": {"failed": 0}}


class FakeElasticsearch:
    """In-memory stand-in for ``AsyncElasticsearch``.

    Supports the subset of the API used by the services: exists/create/
    refresh on indices, get, index, count, bulk, term/terms/match_all
    searches sorted by ``@timestamp``, and scroll contexts. Set
    ``failures["<method>"]`` to make a call raise.
    """

    def __init__(self):
        self.store: dict[str, dict[str, dict]] = {}
        self.indices = FakeIndices(self)
        self.headers: Optional[dict] = None
        self.failures: dict[str, Exception] = {}
        self.search_calls: list[dict] = []
        self.writes: list[tuple[str, str]] = []
        self.refreshed: list[str] = []
        self.created_indices: list[dict] = []
        self.scroll_contexts: dict[str, list[dict]] = {}
        self._scroll_sizes: dict[str, int] = {}
        self.cleared_scroll_ids: list[str] = []
        self._ids = itertools.count(1)

    def _maybe_fail(self, method: str) -> None:
        error = self.failures.get(method)
        if error is not None:
            raise error

    def add_document(self, index: str, source: dict, doc_id: Optional[str] = None) -> str:
        """Seed a document without recording a write."""
        doc_id = doc_id or source.get("id") or f"doc-{next(self._ids)}"
        self.store.setdefault(index, {})[doc_id] = copy.deepcopy(source)
        return doc_id

    def options(self, headers: Optional[dict] = None, **kwargs) -> "FakeElasticsearch":
        scoped = copy.copy(self)
        scoped.headers = headers
        return scoped

    async def ping(self, **kwargs) -> bool:
        self._maybe_fail("ping")
        return True

    async def close(self) -> None:
        return None

    async def get(self, index: str, id: str, **kwargs) -> dict:
        self._maybe_fail("get")
        if index not in self.store:
            raise not_found(index)
        if id not in self.store[index]:
            raise not_found(index, id)
        return {
            "_index": index,
            "_id": id,
            "found": True,
            "_source": copy.deepcopy(self.store[index][id]),
        }

    async def index(self, index: str, id: str, document: dict, **kwargs) -> dict:
        self._maybe_fail("index")
        self.store.setdefault(index, {})[id] = copy.deepcopy(document)
        self.writes.append((index, id))
        return {"_index": index, "_id": id, "result": "created"}

    async def count(self, index: str, **kwargs) -> dict:
        self._maybe_fail("count")
        if index not in self.store:
            raise not_found(index)
        return {"count": len(self.store[index])}

    async def bulk(self, operations: list, refresh=None, **kwargs) -> dict:
        self._maybe_fail("bulk")
        items = []
        for action, source in zip(operations[::2], operations[1::2]):
            meta = action["index"]
            self.store.setdefault(meta["_index"], {})[meta["_id"]] = copy.deepcopy(source)
            self.writes.append((meta["_index"], meta["_id"]))
            items.append({"index": {"_id": meta["_id"], "status": 201}})
        return {"errors": False, "items": items}

    def _resolve(self, index: str) -> list[str]:
        patterns = [p.strip() for p in index.split(",")]
        names = []
        for pattern in patterns:
            if "*" in pattern:
                names.extend(n for n in self.store if fnmatch.fnmatch(n, pattern))
            elif pattern in self.store:
                names.append(pattern)
            else:
                raise not_found(pattern)
        return names

    async def search(
        self,
        index: str,
        query: Optional[dict] = None,
        size: int = 10,
        sort: Optional[list] = None,
        scroll: Optional[str] = None,
        **kwargs,
    ) -> dict:
        self._maybe_fail("search")
        self.search_calls.append(
            {
                "index": index,
                "query": query,
                "size": size,
                "sort": sort,
                "scroll": scroll,
                "headers": self.headers,
                **kwargs,
            }
        )

        hits = [
            {"_index": name, "_id": doc_id, "_source": copy.deepcopy(source)}
            for name in self._resolve(index)
            for doc_id, source in self.store[name].items()
            if _matches(source, query)
        ]

        if sort:
            for clause in reversed(sort):
                ((field, options),) = clause.items()
                hits.sort(
                    key=lambda h: str(_lookup(h["_source"], field) or ""),
                    reverse=options.get("order") == "desc",
                )

        response = {"hits": {"total": {"value": len(hits)}, "hits": hits[:size]}}

        if scroll:
            scroll_id = f"scroll-{next(self._ids)}"
            self.scroll_contexts[scroll_id] = hits[size:]
            response["_scroll_id"] = scroll_id
            self._scroll_sizes[scroll_id] = size

        return response

    async def scroll(self, scroll_id: str, scroll: Optional[str] = None, **kwargs) -> dict:
        self._maybe_fail("scroll")
        if scroll_id not in self.scroll_contexts:
            raise not_found("_scroll")
        remaining = self.scroll_contexts[scroll_id]
        size = self._scroll_sizes[scroll_id]
        page, self.scroll_contexts[scroll_id] = remaining[:size], remaining[size:]
        return {"_scroll_id": scroll_id, "hits": {"hits": page}}

    async def clear_scroll(self, scroll_id: str, **kwargs) -> dict:
        self._maybe_fail("clear_scroll")
        self.cleared_scroll_ids.append(scroll_id)
        self.scroll_contexts.pop(scroll_id, None)
        return {"succeeded": True}

    @property
    def open_scroll_ids(self) -> list[str]:
        return list(self.scroll_contexts)


@pytest.fixture
def fake_es() -> FakeElasticsearch:
    """Empty in-memory Elasticsearch."""
    return FakeElasticsearch()


@pytest.fixture
def sample_bundle_path() -> Path:
    return DATA_DIR / "enterprise-attack-sample.json"


@pytest.fixture
def sample_mapping_path() -> Path:
    return DATA_DIR / "analytics_ecs_mapping_sample.json"


@pytest.fixture
def test_settings(tmp_path, sample_bundle_path, sample_mapping_path) -> Settings:
    """Settings isolated from the environment and ``.env``."""
    return Settings(
        _env_file=None,
        stix_data_path=str(sample_bundle_path),
        ecs_mapping_path=str(sample_mapping_path),
        stix_download_on_startup=False,
        scoring_schedule_enabled=False,
        scroll_page_size=2,
    )


@pytest.fixture
def ecs_index(fake_es, test_settings, sample_mapping_path) -> str:
    """ECS mapping index seeded from the sample mapping file."""
    for doc in load_mapping_objects(sample_mapping_path):
        fake_es.add_document(test_settings.ecs_index_name, doc.to_document(), doc.id)
    return test_settings.ecs_index_name


@pytest.fixture
def log_documents(fake_es) -> FakeElasticsearch:
    """Log records matching the sample PowerShell and auditd mappings.

    PowerShell is ingested 2 minutes after the event, auditd 20 minutes.
    """
    fake_es.add_document(
        "logs-windows.powershell-default",
        {
            "@timestamp": "2025-06-01T12:00:00Z",
            "event": {
                "provider": "Microsoft-Windows-PowerShell",
                "code": "4104",
                "ingested": "2025-06-01T12:02:00Z",
            },
        },
    )
    fake_es.add_document(
        "logs-auditd-default",
        {
            "@timestamp": "2025-06-01T12:00:00Z",
            "event": {"module": "auditd", "ingested": "2025-06-01T12:20:00Z"},
        },
    )
    return fake_es


@pytest.fixture
def scoring_service(fake_es, test_settings) -> DataQualityScoringService:
    """Scoring service wired to the fake client with a seeded jitter source."""
    store = PlatformSettingsService(fake_es, test_settings.settings_index_name)
    return DataQualityScoringService(
        fake_es,
        ProbeGateway(fake_es, test_settings.logs_index_pattern),
        SettingsCache(store, ttl_seconds=test_settings.settings_cache_ttl_seconds),
        settings=test_settings,
        rng=random.Random(7),
    )


@pytest.fixture
def app(fake_es, test_settings) -> FastAPI:
    """Application wired to the fake client.

    ASGITransport does not run the lifespan, so services are wired here.
    """
    application = create_app(test_settings)
    init_app_state(application, test_settings, fake_es)
    return application


@pytest_asyncio.fixture(scope="function")
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
