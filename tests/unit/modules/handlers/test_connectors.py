from unittest.mock import AsyncMock, Mock

import pytest

from profile_indexer.clients.interfaces import ScraperProvider
from profile_indexer.core.config import ScraperSettings
from profile_indexer.core.constants import ModuleKey
from profile_indexer.core.exceptions import ExternalProviderError, ValidationError
from profile_indexer.schemas.providers import ActorRun, ActorRunResult
from profile_indexer.services.documents.document_service import DocumentService
from profile_indexer.services.modules.handlers import (
    LinkedinPostsConnectorHandler,
    LinkedinProfileConnectorHandler,
    ManualDocumentConnectorHandler,
)


@pytest.fixture
def document_service():
    service = AsyncMock(spec=DocumentService)
    service.create_document.return_value = Mock(id=77, hash="abc")
    service.write_and_supersede.return_value = Mock(id=88)
    return service


@pytest.fixture
def scraper():
    scraper = AsyncMock(spec=ScraperProvider)
    result = ActorRunResult(
        run=ActorRun(id="run-1", actor_id="actor", status="SUCCEEDED", default_dataset_id="ds-1"),
        items=[{"basic_info": {"fullname": "Ada Lovelace"}}],
    )
    scraper.scrape_profile.return_value = result
    scraper.run_actor_and_fetch_dataset.return_value = result
    return scraper


class TestManualDocumentConnector:

    @pytest.mark.asyncio
    async def test_stores_payload(self, document_service, make_module_run):
        handler = ManualDocumentConnectorHandler(document_service)
        run = make_module_run(
            module_key=ModuleKey.MANUAL_DOCUMENT_CONNECTOR,
            input_config_json={"payload": {"note": "met at conference"}, "documentKind": "note"},
        )

        result = await handler.execute(run)

        assert result.data == {"documentId": 77, "hash": "abc"}
        kwargs = document_service.create_document.call_args.kwargs
        assert kwargs["source"] == "MANUAL"
        assert kwargs["module_run_id"] == 10

    @pytest.mark.asyncio
    async def test_invalid_source(self, document_service, make_module_run):
        handler = ManualDocumentConnectorHandler(document_service)
        run = make_module_run(
            module_key=ModuleKey.MANUAL_DOCUMENT_CONNECTOR,
            input_config_json={"payload": {}, "source": "LINKEDIN"},
        )

        result = await handler.execute(run)

        assert isinstance(result.error, ValidationError)
        assert result.error.message == "Invalid source: LINKEDIN. Must be MANUAL"
        document_service.create_document.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_payload(self, document_service, make_module_run):
        handler = ManualDocumentConnectorHandler(document_service)
        run = make_module_run(module_key=ModuleKey.MANUAL_DOCUMENT_CONNECTOR, input_config_json={})

        result = await handler.execute(run)

        assert result.error.message == "payload is required in InputConfigJson"


class TestLinkedinConnectors:

    @pytest.mark.asyncio
    async def test_profile_connector_supersedes_previous(self, document_service, scraper, make_module_run):
        handler = LinkedinProfileConnectorHandler(document_service, scraper, ScraperSettings())
        run = make_module_run(
            module_key=ModuleKey.LINKEDIN_PROFILE_CONNECTOR,
            input_config_json={"profileUrl": "https://www.linkedin.com/in/Ada-Lovelace/"},
        )

        result = await handler.execute(run)

        assert result.data["documentId"] == 88
        assert result.data["profileUrl"] == "https://linkedin.com/in/ada-lovelace"
        assert scraper.scrape_profile.call_args.args[0] == ["https://linkedin.com/in/ada-lovelace"]
        kwargs = document_service.write_and_supersede.call_args.kwargs
        assert kwargs["document_kind"] == "linkedin_profile"
        assert kwargs["storage_uri"] == "apify://dataset/ds-1"
        assert kwargs["source_ref"] == "run-1"

    @pytest.mark.asyncio
    async def test_posts_connector_uses_total_posts(self, document_service, scraper, make_module_run):
        handler = LinkedinPostsConnectorHandler(document_service, scraper, ScraperSettings())
        run = make_module_run(
            module_key=ModuleKey.LINKEDIN_POSTS_CONNECTOR,
            input_config_json={"profileUrl": "linkedin.com/in/ada-lovelace", "totalPosts": 25},
        )

        await handler.execute(run)

        actor_id, actor_input = scraper.run_actor_and_fetch_dataset.call_args.args
        assert actor_input == {"username": "https://linkedin.com/in/ada-lovelace", "total_posts": 25}
        assert scraper.run_actor_and_fetch_dataset.call_args.kwargs["limit"] == 25
        assert document_service.write_and_supersede.call_args.kwargs["document_kind"] == "linkedin_posts"

    @pytest.mark.asyncio
    async def test_scrape_failure_stores_nothing(self, document_service, scraper, make_module_run):
        scraper.scrape_profile.side_effect = ExternalProviderError("Actor run run-1 FAILED")
        handler = LinkedinProfileConnectorHandler(document_service, scraper, ScraperSettings())
        run = make_module_run(
            module_key=ModuleKey.LINKEDIN_PROFILE_CONNECTOR,
            input_config_json={"profileUrl": "https://linkedin.com/in/ada-lovelace"},
        )

        result = await handler.execute(run)

        assert isinstance(result.error, ExternalProviderError)
        document_service.write_and_supersede.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_person_required(self, document_service, scraper, make_module_run):
        handler = LinkedinProfileConnectorHandler(document_service, scraper, ScraperSettings())
        run = make_module_run(
            module_key=ModuleKey.LINKEDIN_PROFILE_CONNECTOR,
            person_id=None,
            input_config_json={"profileUrl": "https://linkedin.com/in/ada-lovelace"},
        )

        result = await handler.execute(run)

        assert isinstance(result.error, ValidationError)
