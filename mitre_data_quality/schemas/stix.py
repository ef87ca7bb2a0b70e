"""Typed views of the STIX objects the taxonomy is built from.

Bundle objects are decoded through a discriminated union keyed on the
STIX ``type`` field. Only the four object kinds the matrix needs are
modelled; every other kind is ignored by the parser.
"""

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

MITRE_SOURCE_NAME = "mitre-attack"
MITRE_KILL_CHAIN_NAME = "mitre-attack"


class StixExternalReference(BaseModel):
    model_config = ConfigDict(extra="ignore")

    source_name: str
    external_id: Optional[str] = None
    url: Optional[str] = None


class StixKillChainPhase(BaseModel):
    model_config = ConfigDict(extra="ignore")

    kill_chain_name: str
    phase_name: str


class _StixObject(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    x_mitre_deprecated: bool = False
    revoked: bool = False


class _NamedStixObject(_StixObject):
    name: str = Field(min_length=1)
    external_references: list[StixExternalReference]

    def mitre_reference(self) -> Optional[StixExternalReference]:
        """The first reference issued by the ATT&CK registry, if any."""
        for ref in self.external_references:
            if ref.source_name == MITRE_SOURCE_NAME and ref.external_id:
                return ref
        return None


class StixAttackPattern(_NamedStixObject):
    type: Literal["attack-pattern"]
    description: str = ""
    kill_chain_phases: list[StixKillChainPhase] = Field(default_factory=list)
    x_mitre_is_subtechnique: bool = False


class StixDetectionStrategy(_NamedStixObject):
    type: Literal["x-mitre-detection-strategy"]
    x_mitre_analytic_refs: list[str] = Field(default_factory=list)


class StixAnalytic(_NamedStixObject):
    type: Literal["x-mitre-analytic"]
    x_mitre_platforms: list[str] = Field(default_factory=list)


class StixRelationship(_StixObject):
    type: Literal["relationship"]
    relationship_type: str
    source_ref: str = Field(min_length=1)
    target_ref: str = Field(min_length=1)


StixObject = Annotated[
    Union[StixAttackPattern, StixDetectionStrategy, StixAnalytic, StixRelationship],
    Field(discriminator="type"),
]

SUPPORTED_STIX_TYPES = frozenset(
    {"attack-pattern", "x-mitre-detection-strategy", "x-mitre-analytic", "relationship"}
)

stix_object_adapter: TypeAdapter[StixObject] = TypeAdapter(StixObject)
