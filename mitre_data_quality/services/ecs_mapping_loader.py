"""Seeds the ECS mapping index from the bundled analytics mapping file."""

import json
from pathlib import Path
from typing import Union

import structlog
from elasticsearch import AsyncElasticsearch
from pydantic import ValidationError

from mitre_data_quality.schemas.data_quality import AnalyticDocument

logger = structlog.get_logger()


def load_mapping_objects(path: Union[str, Path]) -> list[AnalyticDocument]:
    """Read ``{"metadata": ..., "objects": [...]}`` into analytic documents.

    Objects that fail validation are logged and skipped.
    """
    data = json.loads(Path(path).read_text(encoding="utf-8"))

    documents = []
    for index, obj in enumerate(data.get("objects") or []):
        try:
            documents.append(AnalyticDocument.model_validate(obj))
        except ValidationError as e:
            logger.warning("ecs_mapping_object_invalid", position=index, error=str(e))
    return documents


async def ingest_ecs_mapping_if_empty(
    client: AsyncElasticsearch, index: str, path: Union[str, Path]
) -> int:
    """Bulk-load the mapping file unless the index already has documents.

    Returns:
        Number of documents sent for indexing (0 when skipped)
    """
    if await client.indices.exists(index=index):
        response = await client.count(index=index)
        if response["count"] > 0:
            logger.debug(
                "ecs_mapping_ingest_skipped", index=index, count=response["count"]
            )
            return 0

    path = Path(path)
    if not path.is_file():
        logger.warning("ecs_mapping_file_missing", path=str(path))
        return 0

    documents = load_mapping_objects(path)
    if not documents:
        logger.warning("ecs_mapping_file_empty", path=str(path))
        return 0

    logger.info("ingesting_ecs_mapping", index=index, documents=len(documents))

    operations: list[dict] = []
    for doc in documents:
        operations.append({"index": {"_index": index, "_id": doc.id}})
        operations.append(doc.to_document())

    response = await client.bulk(operations=operations, refresh=True)

    if response.get("errors"):
        errored = [
            item
            for item in response.get("items", [])
            if (item.get("index") or item.get("create") or {}).get("error")
        ]
        logger.error(
            "ecs_mapping_ingest_errors",
            index=index,
            errored=len(errored),
            first_error=errored[0] if errored else None,
        )
    else:
        logger.info("ecs_mapping_ingested", index=index, documents=len(documents))

    return len(documents)
