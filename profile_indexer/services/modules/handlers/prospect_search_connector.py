from typing import Any, Dict

from profile_indexer.clients.interfaces import SearchProvider
from profile_indexer.core.constants import DocumentKind, DocumentSource, ModuleKey
from profile_indexer.core.exceptions import ValidationError
from profile_indexer.database.models import ModuleRun
from profile_indexer.schemas.module_inputs import ProspectSearchConnectorInput
from profile_indexer.schemas.providers import SearchRequest
from profile_indexer.schemas.prospect import ProspectContext
from profile_indexer.services.documents.document_service import DocumentService
from profile_indexer.services.modules.base_handler import BaseModuleHandler
from profile_indexer.services.prospect.prospect_person_upsert_service import ProspectPersonUpsertService
from profile_indexer.utils.clock import isoformat, utcnow
from profile_indexer.utils.hashing import hash_payload


class ProspectSearchConnectorHandler(BaseModuleHandler):
    """Project-level connector: runs a prospect search, stores the result and fans it out.

    The search result document belongs to the project (no person). Every
    item is then resolved into people, organizations and locations; item
    failures are reported in the result data and do not fail the run.
    """

    module_key = ModuleKey.PROSPECT_SEARCH_CONNECTOR

    def __init__(
        self,
        document_service: DocumentService,
        search_client: SearchProvider,
        upsert_service: ProspectPersonUpsertService,
    ):
        super().__init__()
        self.document_service = document_service
        self.search_client = search_client
        self.upsert_service = upsert_service

    @staticmethod
    def _validate(config: ProspectSearchConnectorInput) -> None:
        if not config.provider:
            raise ValidationError("provider is required in InputConfigJson")
        if config.provider.upper() != DocumentSource.PROSPECT.value:
            raise ValidationError(
                f"Unsupported provider: {config.provider}. Only {DocumentSource.PROSPECT.value} is supported."
            )
        if not config.payload:
            raise ValidationError("payload is required in InputConfigJson")

    async def run(self, run: ModuleRun, config: ProspectSearchConnectorInput) -> Dict[str, Any]:
        self._validate(config)

        search_result = await self.search_client.search(
            SearchRequest(
                payload=config.payload,
                max_pages=config.max_pages,
                max_items=config.max_items,
                enrich_profiles=config.is_enrich_profiles,
            )
        )
        self.logger.info(
            f"Prospect search returned {len(search_result.items)} items over {search_result.pages_fetched} pages",
            extra={"module_run_id": run.id, "query_id": search_result.query_id},
        )

        content_hash = hash_payload(
            {
                "provider": DocumentSource.PROSPECT.value,
                "payload": config.payload,
                "pageCount": search_result.pages_fetched,
                "itemCount": len(search_result.items),
                "dedupeKey": config.dedupe_key,
            }
        )
        document_payload = {
            "provider": DocumentSource.PROSPECT.value,
            "input": {
                "payload": config.payload,
                "maxPages": config.max_pages,
                "maxItems": config.max_items,
                "dedupeKey": config.dedupe_key,
            },
            "result": search_result.to_json(),
        }

        document = await self.document_service.create_document(
            project_id=run.project_id,
            person_id=None,
            source=DocumentSource.PROSPECT.value,
            payload=document_payload,
            document_kind=DocumentKind.PROSPECT_SEARCH_RESULTS.value,
            source_ref=search_result.query_id,
            module_run_id=run.id,
            content_hash=content_hash,
        )
        invalidated_count = await self.document_service.invalidate_previous_valid(
            run.project_id,
            None,
            DocumentSource.PROSPECT.value,
            DocumentKind.PROSPECT_SEARCH_RESULTS.value,
            document.id,
            {
                "reason": "superseded",
                "supersededBy": document.id,
                "moduleRunId": run.id,
                "at": isoformat(utcnow()),
            },
        )

        # item failures roll the session back, which expires loaded rows
        document_id = document.id
        context = ProspectContext(
            project_id=run.project_id,
            module_run_id=run.id,
            triggered_by_user_id=run.triggered_by_user_id,
        )
        summary = await self.upsert_service.process_all_items(search_result.items, context)

        return {
            "documentId": document_id,
            "itemsRetrieved": len(search_result.items),
            "pagesFetched": search_result.pages_fetched,
            "invalidatedCount": invalidated_count,
            "queryId": search_result.query_id,
            "processing": summary.to_json(),
        }
