"""MITRE ATT&CK taxonomy service.

Parses the local STIX snapshot once and serves the memoized matrix until
the cache is cleared explicitly.
"""

import asyncio
import threading
from pathlib import Path
from typing import Optional, Union

import structlog

from mitre_data_quality.analyzers.taxonomy_builder import (
    build_matrix,
    collect_available_platforms,
    convert_to_techniques,
    empty_taxonomy,
    link_detection_strategies_to_techniques,
)
from mitre_data_quality.parsers.stix_bundle_parser import load_bundle
from mitre_data_quality.schemas.taxonomy import Taxonomy

logger = structlog.get_logger()


class TaxonomyService:
    """Serves the tactic/technique matrix built from a STIX snapshot."""

    def __init__(self, stix_path: Union[str, Path]):
        self.stix_path = Path(stix_path)
        self.logger = logger.bind(service="TaxonomyService")
        self._cached: Optional[Taxonomy] = None
        self._lock = threading.Lock()

    def get_taxonomy(self) -> Taxonomy:
        """Return the memoized taxonomy, building it on first use."""
        with self._lock:
            if self._cached is None:
                self._cached = self._build()
            return self._cached

    def clear_cache(self) -> None:
        """Drop the memoized taxonomy; the next request rebuilds it."""
        with self._lock:
            self._cached = None
        self.logger.info("taxonomy_cache_cleared")

    async def get_taxonomy_async(self) -> Taxonomy:
        """``get_taxonomy`` from async code.

        Parsing the snapshot is CPU and file bound, so it runs in the
        default thread pool instead of on the event loop.
        """
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, self.get_taxonomy)

    async def clear_cache_async(self) -> None:
        # Waits on the build lock, so keep it off the event loop too
        loop = asyncio.get_event_loop()
        await loop.run_in_executor(None, self.clear_cache)

    def _build(self) -> Taxonomy:
        self.logger.info("parsing_taxonomy", path=str(self.stix_path))

        try:
            bundle = load_bundle(self.stix_path)
            if bundle is None:
                self.logger.error("taxonomy_source_unavailable", path=str(self.stix_path))
                return empty_taxonomy()

            techniques = convert_to_techniques(bundle.attack_patterns)
            dropped = link_detection_strategies_to_techniques(
                techniques,
                bundle.detection_strategies,
                bundle.analytics,
                bundle.detects_relationships,
            )
            platforms = collect_available_platforms(bundle.analytics.values())
            taxonomy = build_matrix(techniques, platforms)
        except Exception as e:
            self.logger.exception("taxonomy_build_failed", error=str(e))
            return empty_taxonomy()

        self.logger.info(
            "taxonomy_built",
            techniques=sum(1 for t in techniques if not t.is_subtechnique),
            subtechniques=sum(1 for t in techniques if t.is_subtechnique),
            unresolved_detects_relationships=dropped,
            platforms=len(platforms),
        )
        return taxonomy
