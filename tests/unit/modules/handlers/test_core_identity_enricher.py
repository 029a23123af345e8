from unittest.mock import AsyncMock, Mock

import pytest

from profile_indexer.core.constants import ClaimType, ModuleKey
from profile_indexer.core.exceptions import ValidationError
from profile_indexer.services.claims.claim_ledger_service import ClaimLedgerService
from profile_indexer.services.documents.document_service import DocumentService
from profile_indexer.services.modules.handlers import CoreIdentityEnricherHandler

CONFIG = {"schemaVersion": "v1", "documentKind": "core_identity"}


@pytest.fixture
def ledger():
    ledger = AsyncMock(spec=ClaimLedgerService)
    ledger.write_claim_if_changed.return_value = (Mock(id=1), True)
    return ledger


def handler_for(payload, make_document, ledger):
    document_service = AsyncMock(spec=DocumentService)
    document_service.get_latest_valid_document.return_value = make_document(payload=payload, kind="core_identity")
    return CoreIdentityEnricherHandler(document_service, ledger), document_service


class TestCoreIdentityEnricher:

    @pytest.mark.asyncio
    async def test_incomplete_items_are_skipped(self, make_document, make_module_run, ledger):
        payload = {
            "legalName": {"firstName": "Ada", "lastName": "Lovelace"},
            "education": [{"school": "University of London", "degree": "BSc"}, {"school": "No Degree"}],
            "career": [{"company": "Analytical Engines", "title": "Chief Analyst"}, {"title": "Freelance"}],
            "certifications": [{"issuer": "Nobody"}],
        }
        handler, document_service = handler_for(payload, make_document, ledger)

        result = await handler.execute(
            make_module_run(module_key=ModuleKey.CORE_IDENTITY_ENRICHER, input_config_json=CONFIG)
        )

        assert result.data["claimsCreated"] == 3
        written = [call.args[0] for call in ledger.write_claim_if_changed.call_args_list]
        assert written[0].claim_type == ClaimType.LEGAL_NAME.value
        assert written[0].value["value"] == "Ada Lovelace"
        assert written[2].group_key == "analytical engines|chief analyst||present"
        assert document_service.get_latest_valid_document.call_args.args == (1, 7, "MANUAL", "core_identity")

    @pytest.mark.asyncio
    async def test_non_object_payload(self, make_document, make_module_run, ledger):
        handler, _ = handler_for(["not", "an", "object"], make_document, ledger)

        result = await handler.execute(
            make_module_run(module_key=ModuleKey.CORE_IDENTITY_ENRICHER, input_config_json=CONFIG)
        )

        assert isinstance(result.error, ValidationError)
