from unittest.mock import AsyncMock, Mock

import pytest

from profile_indexer.clients.interfaces import SearchProvider
from profile_indexer.core.constants import ModuleKey
from profile_indexer.core.exceptions import ValidationError
from profile_indexer.schemas.prospect import ProspectProcessingSummary
from profile_indexer.schemas.providers import SearchResult
from profile_indexer.services.documents.document_service import DocumentService
from profile_indexer.services.modules.handlers import ProspectSearchConnectorHandler
from profile_indexer.services.prospect.prospect_person_upsert_service import ProspectPersonUpsertService


@pytest.fixture
def parts():
    document_service = AsyncMock(spec=DocumentService)
    document_service.create_document.return_value = Mock(id=300)
    document_service.invalidate_previous_valid.return_value = 1
    search_client = AsyncMock(spec=SearchProvider)
    search_client.search.return_value = SearchResult(
        items=[{"linkedin_url": "https://linkedin.com/in/a"}], pages_fetched=1, query_id="q-1", total=1
    )
    upsert_service = AsyncMock(spec=ProspectPersonUpsertService)
    upsert_service.process_all_items.return_value = ProspectProcessingSummary(items_processed=1, persons_upserted=1)
    return document_service, search_client, upsert_service


def project_run(make_module_run, config):
    return make_module_run(module_key=ModuleKey.PROSPECT_SEARCH_CONNECTOR, person_id=None, input_config_json=config)


class TestProspectSearchConnector:

    @pytest.mark.asyncio
    async def test_stores_project_document_and_fans_out(self, parts, make_module_run):
        document_service, search_client, upsert_service = parts
        handler = ProspectSearchConnectorHandler(*parts)

        result = await handler.execute(
            project_run(make_module_run, {"provider": "prospect", "payload": {"title": "CTO"}, "maxPages": 2})
        )

        assert result.data["documentId"] == 300
        assert result.data["itemsRetrieved"] == 1
        assert result.data["invalidatedCount"] == 1
        assert result.data["processing"]["personsUpserted"] == 1
        assert search_client.search.call_args.args[0].max_pages == 2
        assert document_service.create_document.call_args.kwargs["person_id"] is None
        context = upsert_service.process_all_items.call_args.args[1]
        assert context.module_run_id == 10

    @pytest.mark.asyncio
    async def test_unsupported_provider(self, parts, make_module_run):
        handler = ProspectSearchConnectorHandler(*parts)

        result = await handler.execute(project_run(make_module_run, {"provider": "other", "payload": {"a": 1}}))

        assert isinstance(result.error, ValidationError)
        parts[1].search.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_payload(self, parts, make_module_run):
        handler = ProspectSearchConnectorHandler(*parts)

        result = await handler.execute(project_run(make_module_run, {"provider": "PROSPECT", "payload": {}}))

        assert result.error.message == "payload is required in InputConfigJson"
