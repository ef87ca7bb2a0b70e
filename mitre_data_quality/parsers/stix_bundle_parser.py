"""STIX bundle parser.

Decodes an ATT&CK STIX bundle into the typed collections the taxonomy
builder consumes. Returns ``None`` when the bundle is missing or cannot be
parsed; callers fall back to an empty taxonomy.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

import structlog
from pydantic import ValidationError

from mitre_data_quality.schemas.stix import (
    SUPPORTED_STIX_TYPES,
    StixAnalytic,
    StixAttackPattern,
    StixDetectionStrategy,
    StixRelationship,
    stix_object_adapter,
)

logger = structlog.get_logger()

DETECTS_RELATIONSHIP = "detects"


@dataclass
class ParseStats:
    """Counters for a single bundle decode."""

    total: int = 0
    ignored: int = 0  # object kinds the matrix does not use
    inactive: int = 0  # deprecated or revoked
    invalid: int = 0  # missing required identity fields

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "ignored": self.ignored,
            "inactive": self.inactive,
            "invalid": self.invalid,
        }


@dataclass
class BundleObjects:
    """Typed, filtered contents of a STIX bundle."""

    attack_patterns: list[StixAttackPattern] = field(default_factory=list)
    detection_strategies: dict[str, StixDetectionStrategy] = field(default_factory=dict)
    analytics: dict[str, StixAnalytic] = field(default_factory=dict)
    detects_relationships: list[StixRelationship] = field(default_factory=list)
    stats: ParseStats = field(default_factory=ParseStats)


def _is_inactive(raw: dict) -> bool:
    return bool(raw.get("x_mitre_deprecated")) or bool(raw.get("revoked"))


def parse_bundle(document: Union[str, bytes, dict]) -> Optional[BundleObjects]:
    """Decode a STIX bundle document.

    Args:
        document: Raw JSON text/bytes or an already-decoded mapping

    Returns:
        BundleObjects, or None if the document is not a readable bundle
    """
    if isinstance(document, (str, bytes)):
        try:
            document = json.loads(document)
        except (ValueError, UnicodeDecodeError) as e:
            logger.error("stix_bundle_unparsable", error=str(e))
            return None

    if not isinstance(document, dict) or not isinstance(
        document.get("objects"), list
    ):
        logger.error("stix_bundle_malformed", reason="missing objects list")
        return None

    bundle = BundleObjects()
    stats = bundle.stats

    for raw in document["objects"]:
        stats.total += 1

        if not isinstance(raw, dict) or raw.get("type") not in SUPPORTED_STIX_TYPES:
            stats.ignored += 1
            continue

        if _is_inactive(raw):
            stats.inactive += 1
            continue

        if (
            raw["type"] == "relationship"
            and raw.get("relationship_type") != DETECTS_RELATIONSHIP
        ):
            stats.ignored += 1
            continue

        try:
            obj = stix_object_adapter.validate_python(raw)
        except ValidationError as e:
            stats.invalid += 1
            logger.debug(
                "stix_object_rejected",
                stix_id=raw.get("id", "unknown"),
                stix_type=raw.get("type"),
                errors=e.error_count(),
            )
            continue

        if isinstance(obj, StixAttackPattern):
            bundle.attack_patterns.append(obj)
        elif isinstance(obj, StixDetectionStrategy):
            bundle.detection_strategies[obj.id] = obj
        elif isinstance(obj, StixAnalytic):
            bundle.analytics[obj.id] = obj
        else:
            bundle.detects_relationships.append(obj)

    logger.info(
        "stix_bundle_parsed",
        attack_patterns=len(bundle.attack_patterns),
        detection_strategies=len(bundle.detection_strategies),
        analytics=len(bundle.analytics),
        detects_relationships=len(bundle.detects_relationships),
        **stats.to_dict(),
    )
    return bundle


def load_bundle(path: Union[str, Path]) -> Optional[BundleObjects]:
    """Read and decode the bundle stored at ``path``.

    Returns None when the file does not exist or cannot be read.
    """
    path = Path(path)
    if not path.exists():
        logger.error("stix_bundle_not_found", path=str(path))
        return None

    try:
        raw: Any = path.read_bytes()
    except OSError as e:
        logger.error("stix_bundle_read_failed", path=str(path), error=str(e))
        return None

    return parse_bundle(raw)
