from typing import Any, Dict, Optional

from profile_indexer.clients.interfaces import AIProvider
from profile_indexer.core.constants import DocumentKind, DocumentSource
from profile_indexer.core.exceptions import ConfigurationError, ExternalProviderError, ValidationError
from profile_indexer.database.models import FlowRun
from profile_indexer.prompts.evidence import extract_posts, extract_reposts, profile_summary
from profile_indexer.prompts.flow_filter import build_flow_filter_prompt, build_flow_filter_retry_prompt
from profile_indexer.schemas.flows import FilterResult
from profile_indexer.schemas.providers import AIRequest
from profile_indexer.services.documents.document_service import DocumentService
from profile_indexer.utils.json_parser import parse_json_object
from profile_indexer.utils.logging import get_logger

LOGGER = get_logger(__name__)


def to_filter_result(parsed: Dict[str, Any]) -> FilterResult:
    unsupported = parsed.get("unsupportedFilters")
    try:
        confidence = float(parsed.get("confidence", 0.5))
    except (TypeError, ValueError):
        confidence = 0.5
    return FilterResult(
        should_proceed=bool(parsed.get("shouldProceed")),
        reason=str(parsed.get("reason") or "No reason provided"),
        confidence=confidence,
        unsupported_filters=[str(item) for item in unsupported] if isinstance(unsupported, list) else [],
    )


class FlowFilterService:
    """AI gate deciding whether a flow continues past its connectors.

    Evidence is the latest valid LinkedIn profile document (required) and
    posts document (optional). An unparseable answer gets one corrective
    retry before the evaluation fails.
    """

    def __init__(self, document_service: DocumentService, ai_client: Optional[AIProvider], model: Optional[str] = None):
        self.document_service = document_service
        self.ai_client = ai_client
        self.model = model

    async def _ask(self, system_prompt: str, user_prompt: str) -> str:
        response = await self.ai_client.run(
            AIRequest(
                prompt=user_prompt,
                system_prompt=system_prompt,
                model=self.model,
                temperature=0.0,
                max_tokens=300,
            )
        )
        return response.raw_text

    async def evaluate(self, flow_run: FlowRun, filter_instructions: Optional[str]) -> FilterResult:
        if not filter_instructions:
            return FilterResult.pass_through()
        if self.ai_client is None:
            raise ConfigurationError("No AI provider configured for flow filtering")
        if flow_run.person_id is None:
            raise ValidationError(f"Flow run {flow_run.id} has no person to filter")

        profile_document = await self.document_service.get_latest_valid_document(
            flow_run.project_id, flow_run.person_id, DocumentSource.LINKEDIN.value, DocumentKind.LINKEDIN_PROFILE.value
        )
        posts_document = await self.document_service.get_latest_valid_document(
            flow_run.project_id,
            flow_run.person_id,
            DocumentSource.LINKEDIN.value,
            DocumentKind.LINKEDIN_POSTS.value,
            panic=False,
        )

        system_prompt, user_prompt = build_flow_filter_prompt(
            profile=profile_summary(profile_document.payload_json),
            recent_posts=extract_posts(posts_document.payload_json) if posts_document else [],
            recent_reposts=extract_reposts(profile_document.payload_json),
            filter_instructions=filter_instructions,
        )

        raw_text = await self._ask(system_prompt, user_prompt)
        parsed = parse_json_object(raw_text)
        if parsed is None:
            LOGGER.warning(
                f"Flow filter answer for flow run {flow_run.id} was not valid JSON, retrying once",
                extra={"preview": (raw_text or "")[:200]},
            )
            raw_text = await self._ask(system_prompt, build_flow_filter_retry_prompt(user_prompt, raw_text))
            parsed = parse_json_object(raw_text)
        if parsed is None:
            raise ExternalProviderError(f"Flow filter returned invalid JSON for flow run {flow_run.id}")

        result = to_filter_result(parsed)
        LOGGER.info(
            f"Flow filter for flow run {flow_run.id}: shouldProceed={result.should_proceed}",
            extra={"reason": result.reason, "confidence": result.confidence},
        )
        return result
