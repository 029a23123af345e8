from typing import Any, Dict, List, Optional

from profile_indexer.clients.interfaces import AIProvider
from profile_indexer.core.constants import ClaimType, DocumentKind, DocumentSource, ModuleKey
from profile_indexer.core.exceptions import ConfigurationError, ExternalProviderError
from profile_indexer.database.models import Claim, ModuleRun
from profile_indexer.prompts.evidence import extract_posts, extract_reposts, profile_summary
from profile_indexer.prompts.final_summary import build_final_summary_prompt
from profile_indexer.schemas.claims import FinalSummaryMeta
from profile_indexer.schemas.module_inputs import FinalSummaryComposerInput
from profile_indexer.schemas.providers import AIRequest
from profile_indexer.services.claims.claim_ledger_service import ClaimLedgerService, ClaimWriteParams
from profile_indexer.services.documents.document_service import DocumentService
from profile_indexer.services.modules.base_handler import BaseModuleHandler, require_person_id
from profile_indexer.utils.clock import utcnow
from profile_indexer.utils.json_parser import parse_json_object

# Everything the ledger knows about the person except earlier summaries
SUMMARY_EVIDENCE_CLAIM_TYPES = tuple(
    claim_type.value for claim_type in ClaimType if claim_type is not ClaimType.FINAL_SUMMARY
)


def claims_as_evidence(claims: List[Claim]) -> List[Dict[str, Any]]:
    return [{"claimType": claim.claim_type, "value": claim.value_json} for claim in claims]


class FinalSummaryComposerHandler(BaseModuleHandler):
    """Asks the AI for a structured lead summary and stores it as an insights claim."""

    module_key = ModuleKey.FINAL_SUMMARY_COMPOSER

    def __init__(
        self,
        document_service: DocumentService,
        ledger: ClaimLedgerService,
        ai_client: Optional[AIProvider],
        default_model: Optional[str] = None,
    ):
        super().__init__()
        self.document_service = document_service
        self.ledger = ledger
        self.ai_client = ai_client
        self.default_model = default_model

    async def run(self, run: ModuleRun, config: FinalSummaryComposerInput) -> Dict[str, Any]:
        if self.ai_client is None:
            raise ConfigurationError("No AI provider configured for the final summary composer")
        person_id = require_person_id(run)

        profile_document = await self.document_service.get_latest_valid_document(
            run.project_id, person_id, DocumentSource.LINKEDIN.value, DocumentKind.LINKEDIN_PROFILE.value
        )
        posts_document = await self.document_service.get_latest_valid_document(
            run.project_id, person_id, DocumentSource.LINKEDIN.value, DocumentKind.LINKEDIN_POSTS.value, panic=False
        )
        claims = await self.ledger.get_active_claims(run.project_id, person_id, SUMMARY_EVIDENCE_CLAIM_TYPES)

        system_prompt, user_prompt = build_final_summary_prompt(
            profile=profile_summary(profile_document.payload_json),
            recent_posts=extract_posts(posts_document.payload_json) if posts_document else [],
            recent_reposts=extract_reposts(profile_document.payload_json),
            claims=claims_as_evidence(claims),
            custom_prompt=config.custom_prompt,
        )
        response = await self.ai_client.run(
            AIRequest(
                prompt=user_prompt,
                system_prompt=system_prompt,
                model=config.model or self.default_model,
                temperature=0.3,
                max_tokens=700,
            )
        )

        parsed = parse_json_object(response.raw_text)
        if parsed is None:
            raise ExternalProviderError("Final summary response was not a JSON object")

        meta = FinalSummaryMeta(
            module_run_id=run.id,
            ai_provider=response.provider,
            ai_model=response.model,
            tokens_used=response.tokens_used or 0,
            source_document_id=profile_document.id,
            posts_document_id=posts_document.id if posts_document else None,
            schema_version=config.schema_version,
        )
        claim, _ = await self.ledger.write_claim_if_changed(
            ClaimWriteParams(
                project_id=run.project_id,
                person_id=person_id,
                claim_type=ClaimType.FINAL_SUMMARY.value,
                value={**parsed, "_meta": meta.to_json()},
                confidence=0.7,
                observed_at=profile_document.captured_at or utcnow(),
                source_document_id=profile_document.id,
                module_run_id=run.id,
                schema_version=config.schema_version,
            )
        )
        self.logger.info(
            f"Final summary claim {claim.id} written",
            extra={"module_run_id": run.id, "tokens_used": response.tokens_used},
        )
        return {"claimId": claim.id, "tokensUsed": response.tokens_used}
