"""Value shapes of the claim types written into the ledger.

Claim values are stored as camelCase JSON. The models validate what a
writer produces before it reaches the ledger and give readers (composers,
status queries) typed access; unknown keys are carried through untouched.
"""

from typing import Any, Dict, List, Literal, Optional, Type

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from profile_indexer.core.constants import ClaimType


class ClaimValue(BaseModel):
    """Base for claim value models."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    def to_json(self) -> Dict[str, Any]:
        """camelCase JSON as persisted in Claim.value_json."""
        return self.model_dump(mode="json", by_alias=True)


class LegalNameValue(ClaimValue):
    value: str = Field(..., description="Full legal name")
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class LocationValue(ClaimValue):
    full: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    country_code: Optional[str] = None
    timezone: Optional[str] = None


class EducationItemValue(ClaimValue):
    school: str = ""
    degree: str = ""
    field: str = ""
    start_year: Optional[int] = None
    end_year: Optional[int] = None
    description: str = ""
    fingerprint: str


class CareerRoleValue(ClaimValue):
    company: str = ""
    title: str = ""
    location: str = ""
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    is_current: bool = False
    duration_months: Optional[int] = None
    description: str = ""
    fingerprint: str


class CertificationValue(ClaimValue):
    name: str = ""
    issuer: str = ""
    issue_date: Optional[str] = None
    expiration_date: Optional[str] = None
    credential_id: str = ""
    url: str = ""
    fingerprint: str


class BoardPositionValue(ClaimValue):
    organization: str = ""
    title: str = ""
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    evidence_role_fingerprint: Optional[str] = None


class AgeRangeMeta(ClaimValue):
    module_run_id: int
    derived_from_claim_ids: List[int] = Field(default_factory=list)
    ai_provider: Optional[str] = None
    ai_model: Optional[str] = None
    tokens_used: Optional[int] = None


class AgeRangeValue(ClaimValue):
    min_age: int
    max_age: int
    confidence: Literal["LOW", "MED", "HIGH"]
    evidence: List[str] = Field(default_factory=list)
    notes: Optional[str] = None
    meta: Optional[AgeRangeMeta] = Field(default=None, alias="_meta")


class FinalSummaryMeta(ClaimValue):
    module_run_id: int
    ai_provider: Optional[str] = None
    ai_model: Optional[str] = None
    tokens_used: Optional[int] = None
    source_document_id: Optional[int] = None
    posts_document_id: Optional[int] = None
    schema_version: str = "v1"


class FinalSummaryValue(ClaimValue):
    """Free-form AI summary object plus provenance under ``_meta``."""

    meta: FinalSummaryMeta = Field(..., alias="_meta")


CLAIM_VALUE_MODELS: Dict[str, Type[ClaimValue]] = {
    ClaimType.LEGAL_NAME.value: LegalNameValue,
    ClaimType.LOCATION.value: LocationValue,
    ClaimType.EDUCATION_ITEM.value: EducationItemValue,
    ClaimType.CAREER_ROLE.value: CareerRoleValue,
    ClaimType.CERTIFICATION.value: CertificationValue,
    ClaimType.BOARD_POSITION.value: BoardPositionValue,
    ClaimType.AGE_RANGE.value: AgeRangeValue,
    ClaimType.FINAL_SUMMARY.value: FinalSummaryValue,
}


def validate_claim_value(claim_type: str, value: Any) -> Any:
    """Validate a claim value against its model when the type has one.

    Returns the camelCase JSON to persist. Unregistered claim types pass
    through unchanged.
    """
    model = CLAIM_VALUE_MODELS.get(claim_type)
    if model is None:
        return value
    if isinstance(value, ClaimValue):
        return value.to_json()
    return model.model_validate(value).to_json()
