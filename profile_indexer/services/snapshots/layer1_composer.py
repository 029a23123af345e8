from typing import Any, Dict, Iterable, Optional

from profile_indexer.core.constants import ClaimType
from profile_indexer.database.models import Claim
from profile_indexer.utils.clock import isoformat, utcnow

LAYER_1_CLAIM_TYPES = (
    ClaimType.LEGAL_NAME.value,
    ClaimType.LOCATION.value,
    ClaimType.EDUCATION_ITEM.value,
    ClaimType.CAREER_ROLE.value,
    ClaimType.CERTIFICATION.value,
)

# claim type -> (coreIdentity field, grouped)
_FIELDS = {
    ClaimType.LEGAL_NAME.value: ("legalName", False),
    ClaimType.LOCATION.value: ("location", False),
    ClaimType.EDUCATION_ITEM.value: ("education", True),
    ClaimType.CAREER_ROLE.value: ("career", True),
    ClaimType.CERTIFICATION.value: ("certifications", True),
}


class Layer1Composer:
    """Folds active core-identity claims into the layer 1 compiled view.

    Claims are expected oldest first: a later singleton overwrites an
    earlier one, grouped claims accumulate in order.
    """

    def __init__(self, layer_number: int = 1, schema_version: str = "v1"):
        self.layer_number = layer_number
        self.schema_version = schema_version

    def compose(self, claims: Iterable[Claim], generated_at: Optional[str] = None) -> Dict[str, Any]:
        core_identity: Dict[str, Any] = {
            "legalName": None,
            "location": None,
            "education": [],
            "career": [],
            "certifications": [],
        }
        for claim in claims:
            target = _FIELDS.get(claim.claim_type)
            if target is None:
                continue
            name, grouped = target
            if grouped:
                core_identity[name].append(claim.value_json)
            else:
                core_identity[name] = claim.value_json

        return {
            "layer": self.layer_number,
            "schemaVersion": self.schema_version,
            "coreIdentity": core_identity,
            "generatedAt": generated_at or isoformat(utcnow()),
        }
