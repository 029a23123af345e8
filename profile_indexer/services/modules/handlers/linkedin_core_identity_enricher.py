"""LinkedIn profile -> core identity claims, plus an AI-inferred age range."""

from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from profile_indexer.clients.interfaces import AIProvider
from profile_indexer.core.constants import ClaimType, DocumentKind, DocumentSource, MAX_AGE_RANGE_WIDTH, ModuleKey
from profile_indexer.database.models import Claim, Document, ModuleRun
from profile_indexer.prompts.age_range import build_age_range_prompt
from profile_indexer.schemas.claims import AgeRangeMeta, AgeRangeValue
from profile_indexer.schemas.module_inputs import LinkedinCoreIdentityEnricherInput
from profile_indexer.schemas.providers import AIRequest
from profile_indexer.services.claims.claim_ledger_service import ClaimLedgerService
from profile_indexer.services.documents.document_service import DocumentService
from profile_indexer.services.enrichment import linkedin_profile_parser as parser
from profile_indexer.services.enrichment.claim_writer import DocumentClaimWriter
from profile_indexer.services.modules.base_handler import BaseModuleHandler, require_person_id
from profile_indexer.utils.clock import utcnow
from profile_indexer.utils.json_parser import parse_json_object


def validate_age_range(parsed: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Return the parsed answer when it is a usable age range, else None.

    Null bounds, inverted bounds, ranges wider than MAX_AGE_RANGE_WIDTH and
    unknown confidence levels are all rejected.
    """
    if not parsed:
        return None
    min_age = parsed.get("minAge")
    max_age = parsed.get("maxAge")
    if not isinstance(min_age, (int, float)) or not isinstance(max_age, (int, float)):
        return None
    if min_age > max_age or max_age - min_age > MAX_AGE_RANGE_WIDTH:
        return None
    if parsed.get("confidence") not in ("LOW", "MED", "HIGH"):
        return None
    return parsed


class LinkedinCoreIdentityEnricherHandler(BaseModuleHandler):
    """Extracts legal name, location, education, career, certifications and board roles.

    Reads the latest valid ``linkedin_profile`` document of the person.
    Every value goes through the ledger's change check; board positions are
    career roles whose title carries a board keyword. After the
    deterministic claims, an age range is inferred from the active
    education and career claims. Age inference failures are logged and
    never fail the run.
    """

    module_key = ModuleKey.LINKEDIN_CORE_IDENTITY_ENRICHER

    def __init__(
        self,
        document_service: DocumentService,
        ledger: ClaimLedgerService,
        ai_client: Optional[AIProvider] = None,
        model: Optional[str] = None,
    ):
        super().__init__()
        self.document_service = document_service
        self.ledger = ledger
        self.ai_client = ai_client
        self.model = model

    async def run(self, run: ModuleRun, config: LinkedinCoreIdentityEnricherInput) -> Dict[str, Any]:
        person_id = require_person_id(run)
        document = await self.document_service.get_latest_valid_document(
            run.project_id, person_id, DocumentSource.LINKEDIN.value, DocumentKind.LINKEDIN_PROFILE.value
        )
        payload = document.payload_json
        writer = DocumentClaimWriter(self.ledger, run, person_id, document, config.schema_version)

        legal_name = parser.extract_legal_name(payload)
        if legal_name:
            await writer.write(ClaimType.LEGAL_NAME.value, legal_name, 0.9)

        location = parser.extract_location(payload)
        if location:
            await writer.write(ClaimType.LOCATION.value, location, 0.85)

        for edu in parser.education_list(payload):
            value = parser.normalize_education(edu)
            await writer.write(ClaimType.EDUCATION_ITEM.value, value, 0.9, group_key=value.fingerprint)

        roles = [parser.normalize_career_role(exp) for exp in parser.experience_list(payload)]
        for role in roles:
            await writer.write(ClaimType.CAREER_ROLE.value, role, 0.9, group_key=role.fingerprint)

        for cert in parser.certification_list(payload):
            value = parser.normalize_certification(cert)
            await writer.write(ClaimType.CERTIFICATION.value, value, 0.9, group_key=value.fingerprint)

        for role in roles:
            if parser.is_board_position(role.title):
                board = parser.board_position_from_role(role)
                await writer.write(
                    ClaimType.BOARD_POSITION.value, board, 0.9, group_key=parser.board_position_group_key(board)
                )

        self.logger.info(
            f"LinkedIn enrichment parsed [hasName={bool(legal_name)}, hasLocation={bool(location)}, "
            f"careerCount={len(roles)}, claimsCreated={len(writer.claim_ids)}]",
            extra={"module_run_id": run.id, "document_id": document.id},
        )

        if config.infer_age_range and self.ai_client is not None:
            await self.infer_age_range(run, person_id, document, writer)

        return writer.result()

    async def infer_age_range(
        self,
        run: ModuleRun,
        person_id: int,
        document: Document,
        writer: DocumentClaimWriter,
    ) -> Optional[Claim]:
        try:
            education_claims = await self.ledger.get_active_claims(
                run.project_id, person_id, [ClaimType.EDUCATION_ITEM.value]
            )
            career_claims = await self.ledger.get_active_claims(
                run.project_id, person_id, [ClaimType.CAREER_ROLE.value]
            )
            if not education_claims and not career_claims:
                self.logger.info(f"Skipping age range inference for person {person_id}: no evidence")
                return None

            system_prompt, user_prompt = build_age_range_prompt(
                education=self._education_evidence(education_claims),
                career=self._career_evidence(career_claims),
                current_year=utcnow().year,
                captured_year=document.captured_at.year if document.captured_at else None,
            )
            response = await self.ai_client.run(
                AIRequest(
                    prompt=user_prompt,
                    system_prompt=system_prompt,
                    model=self.model,
                    temperature=0.2,
                    max_tokens=300,
                )
            )

            parsed = validate_age_range(parse_json_object(response.raw_text))
            if parsed is None:
                self.logger.warning(
                    "Discarding age range answer",
                    extra={"module_run_id": run.id, "preview": (response.raw_text or "")[:200]},
                )
                return None

            value = AgeRangeValue(
                min_age=int(parsed["minAge"]),
                max_age=int(parsed["maxAge"]),
                confidence=parsed["confidence"],
                evidence=[str(item) for item in parsed.get("evidence") or []],
                notes=parsed.get("notes"),
                meta=AgeRangeMeta(
                    module_run_id=run.id,
                    derived_from_claim_ids=[claim.id for claim in education_claims + career_claims],
                    ai_provider=response.provider,
                    ai_model=response.model,
                    tokens_used=response.tokens_used or 0,
                ),
            )
            return await writer.write(ClaimType.AGE_RANGE.value, value, 0.7)

        except PydanticValidationError as e:
            self.logger.warning(f"Age range answer failed validation: {str(e)}", extra={"module_run_id": run.id})
            return None
        except Exception as e:
            self.logger.error(
                f"Age range inference failed: {str(e)}",
                exc_info=True,
                extra={"module_run_id": run.id, "person_id": person_id},
            )
            return None

    @staticmethod
    def _education_evidence(claims: List[Claim]) -> List[Dict[str, Any]]:
        return [
            {
                "school": (claim.value_json or {}).get("school") or "Unknown",
                "degree": (claim.value_json or {}).get("degree") or "",
                "field": (claim.value_json or {}).get("field") or "",
                "endYear": (claim.value_json or {}).get("endYear"),
            }
            for claim in claims
        ]

    @staticmethod
    def _career_evidence(claims: List[Claim]) -> List[Dict[str, Any]]:
        return [
            {
                "title": (claim.value_json or {}).get("title") or "Unknown",
                "company": (claim.value_json or {}).get("company") or "Unknown",
                "startYear": parser.extract_year((claim.value_json or {}).get("startDate")),
                "isCurrent": bool((claim.value_json or {}).get("isCurrent")),
            }
            for claim in claims
        ]
