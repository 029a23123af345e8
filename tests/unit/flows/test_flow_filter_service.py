from unittest.mock import AsyncMock

import pytest

from profile_indexer.clients.interfaces import AIProvider
from profile_indexer.core.exceptions import ConfigurationError, ExternalProviderError, NotFoundError
from profile_indexer.schemas.providers import AIResponse
from profile_indexer.services.documents.document_service import DocumentService
from profile_indexer.services.flows.flow_filter_service import FlowFilterService, to_filter_result


def answer(raw_text):
    return AIResponse(raw_text=raw_text, tokens_used=10, provider="openrouter", model="openai/gpt-4o-mini")


@pytest.fixture
def document_service(make_document):
    service = AsyncMock(spec=DocumentService)
    service.get_latest_valid_document.side_effect = [make_document(), None]
    return service


@pytest.fixture
def ai_client():
    return AsyncMock(spec=AIProvider)


class TestFlowFilterService:

    @pytest.mark.asyncio
    async def test_no_instructions_passes_through(self, document_service, ai_client, make_flow_run):
        service = FlowFilterService(document_service, ai_client)

        result = await service.evaluate(make_flow_run(), None)

        assert result.should_proceed is True
        assert result.confidence == 1.0
        ai_client.run.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_parses_answer(self, document_service, ai_client, make_flow_run):
        ai_client.run.return_value = answer(
            '{"shouldProceed": false, "reason": "Not a CTO", "confidence": 0.8, "unsupportedFilters": ["age"]}'
        )
        service = FlowFilterService(document_service, ai_client, model="openai/gpt-4o-mini")

        result = await service.evaluate(make_flow_run(), "Only CTOs, under 40")

        assert result.should_proceed is False
        assert result.reason == "Not a CTO"
        assert result.unsupported_filters == ["age"]
        request = ai_client.run.call_args.args[0]
        assert request.temperature == 0.0
        assert "Only CTOs, under 40" in request.prompt

    @pytest.mark.asyncio
    async def test_retries_once_on_invalid_json(self, document_service, ai_client, make_flow_run):
        ai_client.run.side_effect = [answer("Sure! The person passes."), answer('{"shouldProceed": true}')]
        service = FlowFilterService(document_service, ai_client)

        result = await service.evaluate(make_flow_run(), "CTOs")

        assert result.should_proceed is True
        assert result.reason == "No reason provided"
        retry_prompt = ai_client.run.call_args_list[1].args[0].prompt
        assert "Sure! The person passes." in retry_prompt

    @pytest.mark.asyncio
    async def test_second_invalid_answer_raises(self, document_service, ai_client, make_flow_run):
        ai_client.run.side_effect = [answer("nope"), answer("still nope")]
        service = FlowFilterService(document_service, ai_client)

        with pytest.raises(ExternalProviderError):
            await service.evaluate(make_flow_run(), "CTOs")
        assert ai_client.run.await_count == 2

    @pytest.mark.asyncio
    async def test_requires_ai_client(self, document_service, make_flow_run):
        with pytest.raises(ConfigurationError):
            await FlowFilterService(document_service, None).evaluate(make_flow_run(), "CTOs")

    @pytest.mark.asyncio
    async def test_requires_profile_document(self, ai_client, make_flow_run):
        document_service = AsyncMock(spec=DocumentService)
        document_service.get_latest_valid_document.side_effect = NotFoundError("No valid LINKEDIN/linkedin_profile")

        with pytest.raises(NotFoundError):
            await FlowFilterService(document_service, ai_client).evaluate(make_flow_run(), "CTOs")


class TestToFilterResult:

    def test_bad_confidence_defaults(self):
        result = to_filter_result({"shouldProceed": True, "confidence": "high", "unsupportedFilters": "x"})
        assert result.confidence == 0.5
        assert result.unsupported_filters == []
