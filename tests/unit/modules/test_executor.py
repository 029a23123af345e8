from unittest.mock import AsyncMock

import pytest

from profile_indexer.core.constants import RunStatus
from profile_indexer.core.exceptions import AppError, ValidationError
from profile_indexer.repositories.module_repository import ModuleRunRepository
from profile_indexer.services.flows.flow_orchestrator import FlowOrchestrator
from profile_indexer.services.modules.base_handler import ModuleResult
from profile_indexer.services.modules.dispatcher import ModuleDispatcher
from profile_indexer.services.modules.executor import ModuleRunExecutor, flow_run_id_of


@pytest.fixture
def repository():
    return AsyncMock(spec=ModuleRunRepository)


@pytest.fixture
def dispatcher():
    return AsyncMock(spec=ModuleDispatcher)


@pytest.fixture
def orchestrator():
    return AsyncMock(spec=FlowOrchestrator)


@pytest.fixture
def executor(mock_session, dispatcher, orchestrator, repository):
    return ModuleRunExecutor(mock_session, dispatcher, orchestrator=orchestrator, repository=repository)


class TestExecuteModuleRun:

    @pytest.mark.asyncio
    async def test_missing_run(self, executor, repository, dispatcher):
        repository.get_by_id.return_value = None

        assert await executor.execute_module_run(10) is None
        dispatcher.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_success_marks_completed_and_progresses_flow(
        self, executor, repository, dispatcher, orchestrator, make_module_run
    ):
        repository.get_by_id.return_value = make_module_run(input_config_json={"_flowRunId": 100})
        dispatcher.execute.return_value = ModuleResult.ok({"noop": True})

        result = await executor.execute_module_run(10)

        assert result.succeeded
        repository.mark_running.assert_awaited_once()
        repository.mark_completed.assert_awaited_once()
        repository.mark_failed.assert_not_awaited()
        orchestrator.check_and_progress_stage.assert_awaited_once_with(100)

    @pytest.mark.asyncio
    async def test_failure_rolls_back_and_records_error(
        self, executor, repository, dispatcher, mock_session, make_module_run
    ):
        repository.get_by_id.return_value = make_module_run()
        dispatcher.execute.return_value = ModuleResult.failed(ValidationError("profileUrl is required in InputConfigJson"))

        result = await executor.execute_module_run(10)

        assert not result.succeeded
        mock_session.rollback.assert_awaited_once()
        module_run_id, _, error_json = repository.mark_failed.call_args.args
        assert module_run_id == 10
        assert error_json == {"type": "ValidationError", "message": "profileUrl is required in InputConfigJson"}
        repository.mark_completed.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_terminal_run_is_not_executed_but_flow_is_checked(
        self, executor, repository, dispatcher, orchestrator, make_module_run
    ):
        repository.get_by_id.return_value = make_module_run(
            status=RunStatus.COMPLETED.value, input_config_json={"_flowRunId": 100}
        )

        assert await executor.execute_module_run(10) is None
        dispatcher.execute.assert_not_awaited()
        repository.mark_running.assert_not_awaited()
        orchestrator.check_and_progress_stage.assert_awaited_once_with(100)

    @pytest.mark.asyncio
    async def test_orchestrator_error_does_not_escape(
        self, executor, repository, dispatcher, orchestrator, make_module_run
    ):
        repository.get_by_id.return_value = make_module_run(input_config_json={"_flowRunId": 100})
        dispatcher.execute.return_value = ModuleResult.ok()
        orchestrator.check_and_progress_stage.side_effect = AppError("stage broke")

        result = await executor.execute_module_run(10)

        assert result.succeeded

    @pytest.mark.asyncio
    async def test_standalone_run_skips_orchestrator(
        self, executor, repository, dispatcher, orchestrator, make_module_run
    ):
        repository.get_by_id.return_value = make_module_run()
        dispatcher.execute.return_value = ModuleResult.ok()

        await executor.execute_module_run(10)

        orchestrator.check_and_progress_stage.assert_not_awaited()


class TestFlowRunIdOf:

    def test_values(self, make_module_run):
        assert flow_run_id_of(make_module_run(input_config_json={"_flowRunId": "12"})) == 12
        assert flow_run_id_of(make_module_run(input_config_json={"_flowRunId": "abc"})) is None
        assert flow_run_id_of(make_module_run()) is None
