from unittest.mock import AsyncMock

import pytest

from profile_indexer.core.config import FlowSettings
from profile_indexer.core.constants import JobType, ModuleKey, RunStatus
from profile_indexer.core.exceptions import NotFoundError, ValidationError
from profile_indexer.repositories.flow_run_repository import FlowRunRepository
from profile_indexer.repositories.module_repository import ModuleRunRepository
from profile_indexer.services.claims.claim_ledger_service import ClaimLedgerService
from profile_indexer.services.flows.flow_job_service import (
    FlowJobService,
    compute_progress,
    derive_flow_status,
    derive_status,
)
from profile_indexer.services.job_queue import JobQueue
from profile_indexer.services.subjects import SubjectValidator


@pytest.fixture
def deps():
    ledger = AsyncMock(spec=ClaimLedgerService)
    ledger.get_latest_active_claim.return_value = None
    job_queue = AsyncMock(spec=JobQueue)
    job_queue.enqueue.return_value = "indexer-flow-100"
    return {
        "job_queue": job_queue,
        "flow_settings": FlowSettings(),
        "flow_run_repository": AsyncMock(spec=FlowRunRepository),
        "module_run_repository": AsyncMock(spec=ModuleRunRepository),
        "subjects": AsyncMock(spec=SubjectValidator),
        "ledger": ledger,
    }


@pytest.fixture
def service(mock_session, deps):
    return FlowJobService(mock_session, **deps)


class TestDeriveStatus:

    def test_rules(self, make_module_run):
        assert derive_status([], "QUEUED") == "QUEUED"
        assert derive_status([make_module_run(status="COMPLETED"), make_module_run(status="FAILED")], "RUNNING") == "FAILED"
        assert derive_status([make_module_run(status="COMPLETED")] * 2, "RUNNING") == "COMPLETED"
        assert derive_status([make_module_run(status="COMPLETED"), make_module_run(status="RUNNING")], "QUEUED") == "RUNNING"
        assert derive_status([make_module_run(status="COMPLETED"), make_module_run(status="QUEUED")], "RUNNING") == "QUEUED"

    def test_progress(self, make_module_run):
        assert compute_progress([]) == 0
        runs = [make_module_run(status="COMPLETED"), make_module_run(status="COMPLETED"), make_module_run(status="RUNNING")]
        assert compute_progress(runs) == 67


class TestDeriveFlowStatus:

    def test_terminal_stored_status_wins(self, make_flow_run, make_module_run):
        flow_run = make_flow_run(status="COMPLETED", current_stage="COMPLETED")
        assert derive_flow_status(flow_run, [make_module_run(status="FAILED")]) == "COMPLETED"

    def test_finished_stage_is_not_a_finished_flow(self, make_flow_run, make_module_run):
        flow_run = make_flow_run(current_stage="CONNECTORS")
        assert derive_flow_status(flow_run, [make_module_run(status="COMPLETED")] * 2) == "RUNNING"

    def test_next_stage_queued_reads_running(self, make_flow_run, make_module_run):
        flow_run = make_flow_run(current_stage="ENRICHERS")
        runs = [make_module_run(status="COMPLETED"), make_module_run(status="QUEUED")]
        assert derive_flow_status(flow_run, runs) == "RUNNING"

    def test_started_flow_with_only_queued_runs_reads_running(self, make_flow_run, make_module_run):
        flow_run = make_flow_run(current_stage="CONNECTORS")
        assert derive_flow_status(flow_run, [make_module_run(status="QUEUED")]) == "RUNNING"

    def test_queued_flow(self, make_flow_run):
        assert derive_flow_status(make_flow_run(status="QUEUED"), []) == "QUEUED"

    def test_module_failure_reads_failed(self, make_flow_run, make_module_run):
        flow_run = make_flow_run(current_stage="CONNECTORS")
        runs = [make_module_run(status="FAILED"), make_module_run(status="RUNNING")]
        assert derive_flow_status(flow_run, runs) == "FAILED"


class TestCreateFlowRun:

    @pytest.mark.asyncio
    async def test_persists_and_enqueues(self, service, deps, make_flow_run):
        deps["flow_run_repository"].create.return_value = make_flow_run(status=RunStatus.QUEUED.value, version=0)

        result = await service.create_flow_run(
            project_id=1,
            person_id=7,
            profile_url="https://linkedin.com/in/ada-lovelace",
            filter_instructions="CTOs",
            flow_set_id="set-1",
        )

        assert result.flow_run_id == 100
        assert result.flow_key == "linkedin-default"
        assert result.job_id == "indexer-flow-100"
        kwargs = deps["flow_run_repository"].create.call_args.kwargs
        assert kwargs["status"] == "QUEUED"
        assert kwargs["version"] == 0
        assert kwargs["input_summary_json"] == {
            "profileUrl": "https://linkedin.com/in/ada-lovelace",
            "filterInstructions": "CTOs",
            "flowSetId": "set-1",
        }
        deps["job_queue"].enqueue.assert_awaited_once_with(JobType.RUN_INDEXER_FLOW, {"flowRunId": 100})

    @pytest.mark.asyncio
    async def test_unknown_flow_key(self, service, deps):
        with pytest.raises(ValidationError):
            await service.create_flow_run(project_id=1, person_id=7, flow_key="does-not-exist")
        deps["flow_run_repository"].create.assert_not_awaited()
        deps["job_queue"].enqueue.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_subject(self, service, deps):
        deps["subjects"].require_subject.side_effect = NotFoundError("Project 1 not found")
        with pytest.raises(NotFoundError):
            await service.create_flow_run(project_id=1, person_id=7)
        deps["flow_run_repository"].create.assert_not_awaited()


class TestGetFlowRunStatus:

    @pytest.mark.asyncio
    async def test_derives_progress_from_module_runs(self, service, deps, make_flow_run, make_module_run):
        deps["flow_run_repository"].get_fresh.return_value = make_flow_run(
            current_stage="ENRICHERS",
            input_summary_json={"filterResult": {"shouldProceed": True, "reason": "ok"}},
            modules_scheduled_json=[
                {"moduleKey": ModuleKey.LINKEDIN_PROFILE_CONNECTOR, "moduleRunId": 1, "stage": "CONNECTORS"},
            ],
        )
        deps["module_run_repository"].list_for_flow_run.return_value = [
            make_module_run(id=1, module_key=ModuleKey.LINKEDIN_PROFILE_CONNECTOR, status="COMPLETED"),
            make_module_run(id=2, module_key=ModuleKey.LINKEDIN_POSTS_CONNECTOR, status="COMPLETED"),
            make_module_run(id=3, module_key=ModuleKey.LINKEDIN_CORE_IDENTITY_ENRICHER, status="RUNNING"),
        ]

        status = await service.get_flow_run_status(100)

        assert status.status == "RUNNING"
        assert status.progress == 67
        assert status.current_modules == [ModuleKey.LINKEDIN_CORE_IDENTITY_ENRICHER]
        assert status.modules_scheduled == [ModuleKey.LINKEDIN_PROFILE_CONNECTOR]
        assert [(stage.stage, stage.status) for stage in status.stages] == [
            ("CONNECTORS", "COMPLETED"),
            ("ENRICHERS", "RUNNING"),
            ("COMPOSERS", "PENDING"),
        ]
        assert status.filter_result.reason == "ok"
        call = deps["flow_run_repository"].annotate.call_args
        assert call.args == (100, 1)
        kwargs = call.kwargs
        assert [item["moduleRunId"] for item in kwargs["modules_completed_json"]] == [1, 2]
        assert kwargs["modules_failed_json"] == []
        assert "status" not in kwargs

    @pytest.mark.asyncio
    async def test_terminal_stored_status_wins(self, service, deps, make_flow_run, make_module_run):
        deps["flow_run_repository"].get_fresh.return_value = make_flow_run(
            status=RunStatus.FAILED.value,
            current_stage="CONNECTORS",
            error_json={"message": "Filtered out: Not a CTO"},
            final_summary_json={"shouldProceed": False},
        )
        deps["module_run_repository"].list_for_flow_run.return_value = [
            make_module_run(id=1, module_key=ModuleKey.LINKEDIN_PROFILE_CONNECTOR, status="COMPLETED"),
        ]

        status = await service.get_flow_run_status(100)

        assert status.status == "FAILED"
        assert status.error == {"message": "Filtered out: Not a CTO"}
        assert status.final_summary == {"shouldProceed": False}
        deps["flow_run_repository"].annotate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_reports_running_between_stages(self, service, deps, make_flow_run, make_module_run):
        deps["flow_run_repository"].get_fresh.return_value = make_flow_run(current_stage="CONNECTORS", version=4)
        deps["module_run_repository"].list_for_flow_run.return_value = [
            make_module_run(id=1, module_key=ModuleKey.LINKEDIN_PROFILE_CONNECTOR, status="COMPLETED"),
            make_module_run(id=2, module_key=ModuleKey.LINKEDIN_POSTS_CONNECTOR, status="COMPLETED"),
        ]

        status = await service.get_flow_run_status(100)

        assert status.status == "RUNNING"
        assert status.progress == 100
        assert deps["flow_run_repository"].annotate.call_args.args == (100, 4)
        deps["flow_run_repository"].update.assert_not_awaited()
        deps["flow_run_repository"].transition.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_flow_run(self, service, deps):
        deps["flow_run_repository"].get_fresh.return_value = None
        with pytest.raises(NotFoundError):
            await service.get_flow_run_status(100)
