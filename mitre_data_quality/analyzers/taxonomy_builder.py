"""Builds the tactic/technique matrix from decoded STIX objects.

All functions here are pure: they take the typed collections produced by
the bundle parser and return new taxonomy objects.
"""

from typing import Iterable, Optional

from mitre_data_quality.data.tactics import MITRE_TACTICS
from mitre_data_quality.schemas.stix import (
    MITRE_KILL_CHAIN_NAME,
    StixAnalytic,
    StixAttackPattern,
    StixDetectionStrategy,
    StixRelationship,
)
from mitre_data_quality.schemas.taxonomy import (
    Analytic,
    DetectionStrategy,
    TacticWithTechniques,
    Taxonomy,
    Technique,
)

SUBTECHNIQUE_SEPARATOR = "."
TECHNIQUE_URL_BASE = "https://attack.mitre.org/techniques"


def _name_sort_key(technique: Technique) -> tuple[str, str, str]:
    # Case-insensitive first, raw name and id keep the order total
    return (technique.name.casefold(), technique.name, technique.external_id)


def _technique_url(external_id: str) -> str:
    return f"{TECHNIQUE_URL_BASE}/{external_id.replace(SUBTECHNIQUE_SEPARATOR, '/', 1)}"


def convert_to_techniques(patterns: Iterable[StixAttackPattern]) -> list[Technique]:
    """Project attack patterns into techniques.

    Parent ids are derived only for subtechniques whose external id
    contains the separator. Tactic short names come from kill chain
    phases of the ATT&CK kill chain; other chains are ignored.
    """
    techniques = []
    for pattern in patterns:
        mitre_ref = pattern.mitre_reference()
        external_id = mitre_ref.external_id if mitre_ref else ""
        is_subtechnique = pattern.x_mitre_is_subtechnique

        parent_technique_id: Optional[str] = None
        if is_subtechnique and SUBTECHNIQUE_SEPARATOR in external_id:
            parent_technique_id = external_id.split(SUBTECHNIQUE_SEPARATOR, 1)[0]

        tactic_short_names = []
        for phase in pattern.kill_chain_phases:
            if (
                phase.kill_chain_name == MITRE_KILL_CHAIN_NAME
                and phase.phase_name not in tactic_short_names
            ):
                tactic_short_names.append(phase.phase_name)

        techniques.append(
            Technique(
                id=pattern.id,
                name=pattern.name,
                external_id=external_id,
                url=(mitre_ref.url if mitre_ref and mitre_ref.url else None)
                or _technique_url(external_id),
                description=pattern.description or "",
                tactic_short_names=tactic_short_names,
                is_subtechnique=is_subtechnique,
                parent_technique_id=parent_technique_id,
            )
        )
    return techniques


def _project_analytic(analytic: StixAnalytic) -> Analytic:
    mitre_ref = analytic.mitre_reference()
    return Analytic(
        id=analytic.id,
        name=analytic.name,
        external_id=mitre_ref.external_id if mitre_ref else "",
        platforms=list(analytic.x_mitre_platforms),
    )


def link_detection_strategies_to_techniques(
    techniques: list[Technique],
    strategies: dict[str, StixDetectionStrategy],
    analytics: dict[str, StixAnalytic],
    relations: Iterable[StixRelationship],
) -> int:
    """Attach detection strategies to the techniques they detect.

    Relations whose strategy or technique is not present (for example
    because it was deprecated and filtered out) are dropped.

    Returns:
        Number of relations that could not be resolved
    """
    techniques_by_id = {t.id: t for t in techniques}
    dropped = 0

    for relation in relations:
        technique = techniques_by_id.get(relation.target_ref)
        strategy = strategies.get(relation.source_ref)
        if technique is None or strategy is None:
            dropped += 1
            continue

        mitre_ref = strategy.mitre_reference()
        strategy_analytics = [
            _project_analytic(analytics[ref])
            for ref in strategy.x_mitre_analytic_refs
            if ref in analytics
        ]

        if technique.detection_strategies is None:
            technique.detection_strategies = []
        technique.detection_strategies.append(
            DetectionStrategy(
                id=strategy.id,
                name=strategy.name,
                external_id=mitre_ref.external_id if mitre_ref else "",
                url=(mitre_ref.url or "") if mitre_ref else "",
                analytics=strategy_analytics,
            )
        )

    return dropped


def collect_available_platforms(analytics: Iterable[StixAnalytic]) -> list[str]:
    """Sorted union of every platform declared by any analytic."""
    platforms: set[str] = set()
    for analytic in analytics:
        platforms.update(analytic.x_mitre_platforms)
    return sorted(platforms)


def build_matrix(
    techniques: Iterable[Technique], available_platforms: list[str]
) -> Taxonomy:
    """Assemble the matrix.

    Subtechniques are nested under their parent (orphans are dropped) and
    sorted by name. Each tactic column lists, by name, every parent
    technique that references the tactic's short name. Column entries are
    independent copies, so a technique listed under several tactics never
    shares state between columns.
    """
    parents: dict[str, Technique] = {}
    subtechniques: list[Technique] = []

    for technique in techniques:
        if technique.is_subtechnique:
            subtechniques.append(technique)
        else:
            parents[technique.external_id] = technique.model_copy(
                update={"subtechniques": []}
            )

    for subtechnique in subtechniques:
        if not subtechnique.parent_technique_id:
            continue
        parent = parents.get(subtechnique.parent_technique_id)
        if parent is not None:
            parent.subtechniques.append(subtechnique)

    for parent in parents.values():
        parent.subtechniques.sort(key=_name_sort_key)

    columns = []
    for tactic in MITRE_TACTICS:
        members = [
            parent.model_copy(deep=True)
            for parent in parents.values()
            if tactic.short_name in parent.tactic_short_names
        ]
        members.sort(key=_name_sort_key)
        columns.append(TacticWithTechniques(tactic=tactic, techniques=members))

    return Taxonomy(tactics=columns, available_platforms=list(available_platforms))


def empty_taxonomy() -> Taxonomy:
    """All 14 tactics with no techniques and no platforms."""
    return Taxonomy(
        tactics=[
            TacticWithTechniques(tactic=tactic, techniques=[])
            for tactic in MITRE_TACTICS
        ],
        available_platforms=[],
    )
