import itertools
from unittest.mock import AsyncMock, Mock

import pytest

from profile_indexer.clients.interfaces import AIProvider
from profile_indexer.core.constants import ClaimType, ModuleKey
from profile_indexer.core.exceptions import NotFoundError
from profile_indexer.schemas.claims import AgeRangeValue
from profile_indexer.schemas.providers import AIResponse
from profile_indexer.services.claims.claim_ledger_service import ClaimLedgerService
from profile_indexer.services.documents.document_service import DocumentService
from profile_indexer.services.modules.handlers.linkedin_core_identity_enricher import (
    LinkedinCoreIdentityEnricherHandler,
    validate_age_range,
)


@pytest.fixture
def ledger():
    ledger = AsyncMock(spec=ClaimLedgerService)
    ids = itertools.count(1000)

    async def write(params):
        return Mock(id=next(ids)), True

    ledger.write_claim_if_changed.side_effect = write
    ledger.get_active_claims.return_value = []
    return ledger


@pytest.fixture
def document_service(make_document):
    service = AsyncMock(spec=DocumentService)
    service.get_latest_valid_document.return_value = make_document()
    return service


@pytest.fixture
def ai_client():
    client = AsyncMock(spec=AIProvider)
    client.run.return_value = AIResponse(
        raw_text='{"minAge": 35, "maxAge": 42, "confidence": "MED", "evidence": ["graduated 2011"]}',
        tokens_used=120,
        provider="openrouter",
        model="openai/gpt-4o-mini",
    )
    return client


def written(ledger, claim_type):
    return [
        call.args[0]
        for call in ledger.write_claim_if_changed.call_args_list
        if call.args[0].claim_type == claim_type
    ]


class TestValidateAgeRange:

    @pytest.mark.parametrize(
        "parsed",
        [
            None,
            {"minAge": None, "maxAge": 40, "confidence": "LOW"},
            {"minAge": 45, "maxAge": 40, "confidence": "LOW"},
            {"minAge": 20, "maxAge": 40, "confidence": "LOW"},
            {"minAge": 30, "maxAge": 35, "confidence": "VERY_HIGH"},
        ],
    )
    def test_rejected(self, parsed):
        assert validate_age_range(parsed) is None

    def test_accepted(self):
        parsed = {"minAge": 30, "maxAge": 42, "confidence": "HIGH"}
        assert validate_age_range(parsed) == parsed


class TestLinkedinCoreIdentityEnricher:

    @pytest.mark.asyncio
    async def test_writes_core_identity_claims(self, document_service, ledger, make_module_run):
        handler = LinkedinCoreIdentityEnricherHandler(document_service, ledger)
        run = make_module_run(module_key=ModuleKey.LINKEDIN_CORE_IDENTITY_ENRICHER)

        result = await handler.execute(run)

        assert result.succeeded
        assert result.data["sourceDocumentId"] == 500
        assert result.data["claimsCreated"] == 8

        assert written(ledger, ClaimType.LEGAL_NAME.value)[0].group_key == "single"
        roles = written(ledger, ClaimType.CAREER_ROLE.value)
        assert [params.group_key for params in roles] == [
            "analytical engines|chief analyst|2019-03-01|present",
            "royal society|board member|2015-01-01|2018-06-01",
        ]
        boards = written(ledger, ClaimType.BOARD_POSITION.value)
        assert [params.group_key for params in boards] == ["royal society|board member|2015-01-01"]
        assert all(params.source_document_id == 500 for params in roles)
        assert all(params.module_run_id == 10 for params in roles)

    @pytest.mark.asyncio
    async def test_unchanged_claims_are_counted(self, document_service, ledger, make_module_run):
        ledger.write_claim_if_changed.side_effect = None
        ledger.write_claim_if_changed.return_value = (Mock(id=1), False)
        handler = LinkedinCoreIdentityEnricherHandler(document_service, ledger)

        result = await handler.execute(make_module_run(module_key=ModuleKey.LINKEDIN_CORE_IDENTITY_ENRICHER))

        assert result.data["claimsCreated"] == 0
        assert result.data["claimsUnchanged"] == 8

    @pytest.mark.asyncio
    async def test_missing_profile_document_fails(self, document_service, ledger, make_module_run):
        document_service.get_latest_valid_document.side_effect = NotFoundError("No valid LINKEDIN/linkedin_profile document")
        handler = LinkedinCoreIdentityEnricherHandler(document_service, ledger)

        result = await handler.execute(make_module_run(module_key=ModuleKey.LINKEDIN_CORE_IDENTITY_ENRICHER))

        assert isinstance(result.error, NotFoundError)
        ledger.write_claim_if_changed.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_age_range_inferred(self, document_service, ledger, ai_client, make_module_run, make_claim):
        ledger.get_active_claims.side_effect = [
            [make_claim(1, ClaimType.EDUCATION_ITEM.value, {"school": "University of London", "endYear": 2011})],
            [make_claim(2, ClaimType.CAREER_ROLE.value, {"title": "Chief Analyst", "startDate": "2019-03-01"})],
        ]
        handler = LinkedinCoreIdentityEnricherHandler(document_service, ledger, ai_client, model="openai/gpt-4o-mini")

        result = await handler.execute(make_module_run(module_key=ModuleKey.LINKEDIN_CORE_IDENTITY_ENRICHER))

        assert result.data["claimsCreated"] == 9
        (params,) = written(ledger, ClaimType.AGE_RANGE.value)
        assert isinstance(params.value, AgeRangeValue)
        assert (params.value.min_age, params.value.max_age) == (35, 42)
        assert params.value.meta.derived_from_claim_ids == [1, 2]
        assert params.confidence == 0.7

    @pytest.mark.asyncio
    async def test_bad_age_range_answer_does_not_fail_run(
        self, document_service, ledger, ai_client, make_module_run, make_claim
    ):
        ledger.get_active_claims.return_value = [make_claim(1, ClaimType.EDUCATION_ITEM.value, {"school": "X"})]
        ai_client.run.return_value = AIResponse(
            raw_text='{"minAge": 20, "maxAge": 60, "confidence": "LOW"}', tokens_used=5, provider="p", model="m"
        )
        handler = LinkedinCoreIdentityEnricherHandler(document_service, ledger, ai_client)

        result = await handler.execute(make_module_run(module_key=ModuleKey.LINKEDIN_CORE_IDENTITY_ENRICHER))

        assert result.succeeded
        assert written(ledger, ClaimType.AGE_RANGE.value) == []

    @pytest.mark.asyncio
    async def test_age_range_provider_error_is_swallowed(
        self, document_service, ledger, ai_client, make_module_run, make_claim
    ):
        ledger.get_active_claims.return_value = [make_claim(1, ClaimType.EDUCATION_ITEM.value, {"school": "X"})]
        ai_client.run.side_effect = RuntimeError("connection reset")
        handler = LinkedinCoreIdentityEnricherHandler(document_service, ledger, ai_client)

        result = await handler.execute(make_module_run(module_key=ModuleKey.LINKEDIN_CORE_IDENTITY_ENRICHER))

        assert result.succeeded
