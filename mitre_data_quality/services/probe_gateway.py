"""Probe gateway: checks whether expected ECS fields exist in the log store."""

from dataclasses import dataclass
from typing import Optional

import structlog
from elasticsearch import AsyncElasticsearch

from mitre_data_quality.schemas.data_quality import LogSourceMapping, MappingStatus

logger = structlog.get_logger()

EVENT_TIME_FIELD = "@timestamp"


@dataclass
class ProbeResult:
    """Whether a matching record exists, and the most recent one."""

    exists: bool
    last_doc: Optional[dict] = None

    @classmethod
    def not_found(cls) -> "ProbeResult":
        return cls(exists=False, last_doc=None)


def build_probe_query(
    name_field: str,
    name_value: str,
    channel_field: Optional[str] = None,
    channel_value: Optional[str] = None,
) -> dict:
    """Bool query matching the name field and, optionally, the channel.

    A comma-separated channel value is matched as a set (``terms``).
    """
    must: list[dict] = [{"term": {name_field: name_value}}]

    if channel_field and channel_value:
        channel_values = [v.strip() for v in channel_value.split(",") if v.strip()]
        if len(channel_values) == 1:
            must.append({"term": {channel_field: channel_values[0]}})
        elif channel_values:
            must.append({"terms": {channel_field: channel_values}})

    return {"bool": {"must": must}}


class ProbeGateway:
    """Issues existence/freshness probes against the log indices.

    ``client`` may be swapped for a caller-scoped client for the duration
    of a scoring pass; see ``ScoringOrchestrator``.
    """

    def __init__(self, client: AsyncElasticsearch, index_pattern: str = "logs-*"):
        self.client = client
        self.index_pattern = index_pattern
        self.logger = logger.bind(service="ProbeGateway")

    async def query_field_exists(
        self,
        name_field: str,
        name_value: str,
        channel_field: Optional[str] = None,
        channel_value: Optional[str] = None,
    ) -> ProbeResult:
        """Find the most recent record matching the given field values.

        Query failures are logged and reported as "not found" so that a
        single unreachable log source never aborts a scoring pass.
        """
        if not name_field or not name_value:
            self.logger.warning(
                "probe_missing_name_field",
                name_field=name_field,
                name_value=name_value,
            )
            return ProbeResult.not_found()

        try:
            response = await self.client.search(
                index=self.index_pattern,
                size=1,
                sort=[{EVENT_TIME_FIELD: {"order": "desc"}}],
                query=build_probe_query(
                    name_field, name_value, channel_field, channel_value
                ),
                ignore_unavailable=True,
                allow_no_indices=True,
                expand_wildcards="open,hidden",
            )
            hits = response["hits"]["hits"]
        except Exception as e:
            self.logger.error(
                "probe_query_failed",
                name_field=name_field,
                name_value=name_value,
                channel_field=channel_field,
                error=str(e),
            )
            return ProbeResult.not_found()

        if not hits:
            return ProbeResult.not_found()

        return ProbeResult(exists=True, last_doc=hits[0].get("_source") or {})

    async def probe(self, mapping: LogSourceMapping) -> ProbeResult:
        """Probe for a log source mapping.

        The channel clause is only used for ``complete`` mappings; partial
        and unmapped sources are probed on the name field alone.
        """
        ecs = mapping.ecs
        use_channel = mapping.status == MappingStatus.COMPLETE.value

        return await self.query_field_exists(
            ecs.name_field,
            ecs.name_value,
            ecs.channel_field if use_channel else None,
            ecs.channel_value if use_channel else None,
        )
