"""Taxonomy schemas served by the matrix endpoint."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Tactic(BaseModel):
    """A MITRE ATT&CK tactic (TA####)."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    short_name: str
    description: str
    external_id: str
    url: str


class Analytic(BaseModel):
    """Analytic as referenced by a detection strategy."""

    id: str
    name: str
    external_id: str
    platforms: list[str] = Field(default_factory=list)


class DetectionStrategy(BaseModel):
    """Detection strategy attached to a technique via a "detects" relation."""

    id: str
    name: str
    external_id: str
    url: str = ""
    analytics: list[Analytic] = Field(default_factory=list)


class Technique(BaseModel):
    """Technique (T####) or subtechnique (T####.###)."""

    id: str
    name: str
    external_id: str
    url: str
    description: str = ""
    tactic_short_names: list[str] = Field(default_factory=list)
    is_subtechnique: bool = False
    # Set only for subtechniques whose external id carries a separator
    parent_technique_id: Optional[str] = None
    subtechniques: Optional[list["Technique"]] = None
    detection_strategies: Optional[list[DetectionStrategy]] = None


class TacticWithTechniques(BaseModel):
    """One matrix column."""

    tactic: Tactic
    techniques: list[Technique]


class Taxonomy(BaseModel):
    """Full matrix: the 14 tactic columns plus the platform inventory."""

    tactics: list[TacticWithTechniques]
    available_platforms: list[str]
