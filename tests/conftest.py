"""Pytest configuration and shared fixtures."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, Mock

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.ext.asyncio import AsyncSession

from profile_indexer.core.constants import DocumentKind, DocumentSource, RunStatus
from profile_indexer.database.models import Claim, Document, FlowRun, ModuleRun

CAPTURED_AT = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def mock_session():
    """Create a mock database session."""
    session = AsyncMock(spec=AsyncSession)
    session.add = Mock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.execute = AsyncMock(return_value=Mock())
    return session


@pytest.fixture
def executed_sql(mock_session):
    """Compile a statement passed to ``session.execute`` for PostgreSQL."""
    def _compiled(index: int = -1):
        stmt = mock_session.execute.call_args_list[index].args[0]
        return stmt.compile(dialect=postgresql.dialect())
    return _compiled


@pytest.fixture
def make_module_run():
    """Factory for detached ModuleRun rows."""
    def _make(
        id: int = 10,
        module_key: str = "noop",
        status: str = RunStatus.QUEUED.value,
        input_config_json=None,
        person_id=7,
        **fields,
    ) -> ModuleRun:
        return ModuleRun(
            id=id,
            project_id=1,
            person_id=person_id,
            triggered_by_user_id=None,
            module_key=module_key,
            module_version="1.0.0",
            status=status,
            input_config_json=input_config_json or {},
            **fields,
        )
    return _make


@pytest.fixture
def make_flow_run():
    """Factory for detached FlowRun rows."""
    def _make(
        id: int = 100,
        status: str = RunStatus.RUNNING.value,
        current_stage=None,
        input_summary_json=None,
        flow_key: str = "linkedin-default",
        version: int = 1,
        **fields,
    ) -> FlowRun:
        return FlowRun(
            id=id,
            project_id=1,
            person_id=7,
            triggered_by_user_id=None,
            flow_key=flow_key,
            status=status,
            current_stage=current_stage,
            input_summary_json=input_summary_json if input_summary_json is not None else {},
            version=version,
            **fields,
        )
    return _make


@pytest.fixture
def make_claim():
    def _make(id: int, claim_type: str, value_json, group_key: str = "single", module_run_id=None) -> Claim:
        return Claim(
            id=id,
            project_id=1,
            person_id=7,
            claim_type=claim_type,
            group_key=group_key,
            value_json=value_json,
            confidence=0.9,
            observed_at=CAPTURED_AT,
            module_run_id=module_run_id,
        )
    return _make


@pytest.fixture
def linkedin_profile_payload():
    """A scraped LinkedIn profile as returned by the profile actor (one dataset item)."""
    return [
        {
            "basic_info": {
                "fullname": "Ada Lovelace",
                "first_name": "Ada",
                "last_name": "Lovelace",
                "headline": "Analyst at Analytical Engines",
                "location": {"full": "London, England, United Kingdom", "city": "London", "country": "United Kingdom", "country_code": "GB"},
                "profile_url": "https://www.linkedin.com/in/ada-lovelace",
            },
            "experience": [
                {
                    "title": "Chief Analyst",
                    "company": "Analytical Engines",
                    "location": "London",
                    "startDate": {"year": 2019, "month": 3},
                    "description": "Notes on the engine",
                },
                {
                    "title": "Board Member",
                    "company": "Royal Society",
                    "startDate": {"year": 2015, "month": 1},
                    "endDate": {"year": 2018, "month": 6},
                },
            ],
            "education": [
                {"school": "University of London", "degree": "BSc", "field": "Mathematics", "startYear": 2008, "endYear": 2011},
                {"school": "", "degree": ""},
            ],
            "certifications": [
                {"name": "Difference Engine Operator", "authority": "Babbage Institute", "date": "2016-01-01"},
            ],
        }
    ]


@pytest.fixture
def make_document(linkedin_profile_payload):
    def _make(id: int = 500, payload=None, kind: str = DocumentKind.LINKEDIN_PROFILE.value) -> Document:
        return Document(
            id=id,
            project_id=1,
            person_id=7,
            source=DocumentSource.LINKEDIN.value,
            content_type="application/json",
            document_kind=kind,
            is_valid=True,
            storage_uri="apify://dataset/abc",
            hash="h",
            captured_at=CAPTURED_AT,
            payload_json=payload if payload is not None else linkedin_profile_payload,
        )
    return _make
