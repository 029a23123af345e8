import logging
from unittest.mock import AsyncMock, Mock

import pytest

from profile_indexer.core.exceptions import NotFoundError
from profile_indexer.repositories.entity_repository import PersonProjectRepository, PersonRepository
from profile_indexer.repositories.flow_run_repository import FlowRunRepository
from profile_indexer.schemas.flows import FlowRunCreateResult, FlowRunStatus
from profile_indexer.services.flows.flow_batch_service import FlowBatchService, is_urn
from profile_indexer.services.flows.flow_job_service import FlowJobService
from profile_indexer.services.subjects import SubjectValidator


@pytest.fixture
def deps():
    persons = AsyncMock(spec=PersonRepository)
    persons.upsert.return_value = (Mock(id=41, linkedin_url="https://linkedin.com/in/ada-lovelace"), True)
    persons.get_by_external_urn.return_value = None
    flow_job_service = AsyncMock(spec=FlowJobService)
    flow_job_service.create_flow_run.return_value = FlowRunCreateResult(
        flow_run_id=100, flow_key="linkedin-default", job_id="indexer-flow-100"
    )
    return {
        "flow_job_service": flow_job_service,
        "person_repository": persons,
        "person_project_repository": AsyncMock(spec=PersonProjectRepository),
        "flow_run_repository": AsyncMock(spec=FlowRunRepository),
        "subjects": AsyncMock(spec=SubjectValidator),
    }


@pytest.fixture
def service(mock_session, deps):
    return FlowBatchService(mock_session, **deps)


class TestResolvePerson:

    def test_is_urn(self):
        assert is_urn("urn:li:person:abc")
        assert not is_urn("https://linkedin.com/in/abc")

    @pytest.mark.asyncio
    async def test_url_is_normalized(self, service, deps):
        person, profile_url = await service.resolve_person("https://www.linkedin.com/in/Ada-Lovelace/", 3)

        assert person.id == 41
        assert profile_url == "https://linkedin.com/in/ada-lovelace"
        args, kwargs = deps["person_repository"].upsert.call_args
        assert args == ("https://linkedin.com/in/ada-lovelace",)
        assert kwargs["linkedin_slug"] == "ada-lovelace"
        assert kwargs["created_by_user_id"] == 3

    @pytest.mark.asyncio
    async def test_existing_urn(self, service, deps):
        deps["person_repository"].get_by_external_urn.return_value = Mock(
            id=42, linkedin_url="https://linkedin.com/in/grace"
        )

        person, profile_url = await service.resolve_person("urn:li:person:grace")

        assert person.id == 42
        assert profile_url == "https://linkedin.com/in/grace"
        deps["person_repository"].upsert.assert_not_awaited()


class TestCreateFlows:

    @pytest.mark.asyncio
    async def test_bad_input_is_reported_per_item(self, service, deps, mock_session):
        result = await service.create_flows(
            1, ["https://linkedin.com/in/ada-lovelace", "https://example.com/nope", "  "], triggered_by_user_id=3
        )

        assert result.created_count == 1
        assert result.failed_count == 2
        assert result.items[0].flow_run_id == 100
        assert result.items[1].error == "Invalid LinkedIn profile URL or URN: https://example.com/nope"
        assert result.items[2].error == "Empty profile URL or URN"
        assert mock_session.rollback.await_count == 2

        kwargs = deps["flow_job_service"].create_flow_run.call_args.kwargs
        assert kwargs["flow_set_id"] == result.flow_set_id
        assert kwargs["person_id"] == 41
        deps["person_project_repository"].ensure.assert_awaited_once_with(41, 1, created_by_user_id=3)

    @pytest.mark.asyncio
    async def test_unexpected_error_is_contained(self, service, deps):
        deps["flow_job_service"].create_flow_run.side_effect = RuntimeError("queue unavailable")

        result = await service.create_flows(1, ["https://linkedin.com/in/ada-lovelace"])

        assert result.items[0].error == "queue unavailable"

    @pytest.mark.asyncio
    async def test_summary_is_logged_with_counts(self, service, caplog):
        with caplog.at_level(logging.INFO, logger="profile_indexer.services.flows.flow_batch_service"):
            result = await service.create_flows(1, ["https://linkedin.com/in/ada-lovelace", "https://example.com/nope"])

        summary = [record for record in caplog.records if record.getMessage().endswith("created")]
        assert len(summary) == 1
        assert summary[0].created_count == result.created_count == 1
        assert summary[0].failed_count == result.failed_count == 1

    @pytest.mark.asyncio
    async def test_missing_project_aborts(self, service, deps):
        deps["subjects"].require_project.side_effect = NotFoundError("Project 1 not found")
        with pytest.raises(NotFoundError):
            await service.create_flows(1, ["https://linkedin.com/in/ada-lovelace"])


class TestFlowSetStatus:

    @pytest.mark.asyncio
    async def test_counts_statuses(self, service, deps, make_flow_run):
        deps["flow_run_repository"].list_by_flow_set.return_value = [make_flow_run(id=1), make_flow_run(id=2)]
        deps["flow_job_service"].get_flow_run_status.side_effect = [
            FlowRunStatus(flow_run_id=1, flow_key="linkedin-default", status="COMPLETED"),
            FlowRunStatus(flow_run_id=2, flow_key="linkedin-default", status="FAILED"),
        ]

        status = await service.get_flow_set_status("set-1")

        assert status.total == 2
        assert status.status_counts == {"COMPLETED": 1, "FAILED": 1}
