from unittest.mock import AsyncMock, Mock

import pytest

from profile_indexer.clients.interfaces import AIProvider
from profile_indexer.core.constants import ClaimType, ModuleKey
from profile_indexer.core.exceptions import ConfigurationError, ExternalProviderError
from profile_indexer.schemas.providers import AIResponse
from profile_indexer.services.claims.claim_ledger_service import ClaimLedgerService
from profile_indexer.services.documents.document_service import DocumentService
from profile_indexer.services.modules.handlers import FinalSummaryComposerHandler, Layer1ComposerHandler
from profile_indexer.services.snapshots.layer_snapshot_service import LayerSnapshotService


@pytest.fixture
def ledger():
    ledger = AsyncMock(spec=ClaimLedgerService)
    ledger.write_claim_if_changed.return_value = (Mock(id=900), True)
    return ledger


class TestLayer1ComposerHandler:

    @pytest.mark.asyncio
    async def test_writes_next_snapshot(self, ledger, make_module_run, make_claim):
        ledger.get_active_claims.return_value = [make_claim(1, ClaimType.LEGAL_NAME.value, {"value": "Ada Lovelace"})]
        snapshots = AsyncMock(spec=LayerSnapshotService)
        snapshots.create_next_snapshot_version.return_value = Mock(id=5, snapshot_version=3)
        handler = Layer1ComposerHandler(ledger, snapshots)
        run = make_module_run(module_key=ModuleKey.LAYER_1_COMPOSER, input_config_json={"schemaVersion": "v1"})

        result = await handler.execute(run)

        assert result.data == {"layerSnapshotId": 5, "snapshotVersion": 3, "claimCount": 1}
        kwargs = snapshots.create_next_snapshot_version.call_args.kwargs
        assert kwargs["layer_number"] == 1
        assert kwargs["composer_module_key"] == ModuleKey.LAYER_1_COMPOSER
        assert kwargs["compiled_json"]["coreIdentity"]["legalName"] == {"value": "Ada Lovelace"}

    @pytest.mark.asyncio
    async def test_schema_version_required(self, ledger, make_module_run):
        handler = Layer1ComposerHandler(ledger, AsyncMock(spec=LayerSnapshotService))

        result = await handler.execute(make_module_run(module_key=ModuleKey.LAYER_1_COMPOSER))

        assert result.error.message == "schemaVersion is required in InputConfigJson"


class TestFinalSummaryComposerHandler:

    @pytest.fixture
    def document_service(self, make_document):
        service = AsyncMock(spec=DocumentService)
        service.get_latest_valid_document.side_effect = [make_document(), None]
        return service

    @pytest.mark.asyncio
    async def test_writes_summary_claim(self, document_service, ledger, make_module_run):
        ledger.get_active_claims.return_value = []
        ai_client = AsyncMock(spec=AIProvider)
        ai_client.run.return_value = AIResponse(
            raw_text='```json\n{"headline": "Analytical pioneer", "talkingPoints": ["engines"]}\n```',
            tokens_used=300,
            provider="openrouter",
            model="openai/gpt-4o-mini",
        )
        handler = FinalSummaryComposerHandler(document_service, ledger, ai_client, default_model="openai/gpt-4o-mini")

        result = await handler.execute(make_module_run(module_key=ModuleKey.FINAL_SUMMARY_COMPOSER))

        assert result.data == {"claimId": 900, "tokensUsed": 300}
        params = ledger.write_claim_if_changed.call_args.args[0]
        assert params.claim_type == ClaimType.FINAL_SUMMARY.value
        assert params.value["headline"] == "Analytical pioneer"
        assert params.value["_meta"]["moduleRunId"] == 10
        assert params.value["_meta"]["sourceDocumentId"] == 500
        assert params.value["_meta"]["postsDocumentId"] is None
        assert ai_client.run.call_args.args[0].model == "openai/gpt-4o-mini"

    @pytest.mark.asyncio
    async def test_non_json_answer_fails(self, document_service, ledger, make_module_run):
        ledger.get_active_claims.return_value = []
        ai_client = AsyncMock(spec=AIProvider)
        ai_client.run.return_value = AIResponse(raw_text="I cannot help", tokens_used=3, provider="p", model="m")
        handler = FinalSummaryComposerHandler(document_service, ledger, ai_client)

        result = await handler.execute(make_module_run(module_key=ModuleKey.FINAL_SUMMARY_COMPOSER))

        assert isinstance(result.error, ExternalProviderError)
        ledger.write_claim_if_changed.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_requires_ai_client(self, document_service, ledger, make_module_run):
        handler = FinalSummaryComposerHandler(document_service, ledger, None)

        result = await handler.execute(make_module_run(module_key=ModuleKey.FINAL_SUMMARY_COMPOSER))

        assert isinstance(result.error, ConfigurationError)
