from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from profile_indexer.core.constants import JobType, ModuleScope, RunStatus
from profile_indexer.core.exceptions import ConflictError, NotFoundError, ValidationError
from profile_indexer.repositories.module_repository import ModuleRepository, ModuleRunRepository
from profile_indexer.services.job_queue import JobQueue
from profile_indexer.services.modules.module_run_service import ModuleRunService
from profile_indexer.services.subjects import SubjectValidator


def _module(scope=ModuleScope.PERSON_LEVEL.value, module_key="linkedin_profile_connector"):
    return SimpleNamespace(module_key=module_key, version="1.0.0", scope=scope)


@pytest.fixture
def service(mock_session):
    job_queue = AsyncMock(spec=JobQueue)
    job_queue.enqueue.return_value = "module-run-55"
    modules = AsyncMock(spec=ModuleRepository)
    runs = AsyncMock(spec=ModuleRunRepository)
    runs.create.side_effect = lambda **fields: SimpleNamespace(id=55, **fields)
    subjects = AsyncMock(spec=SubjectValidator)
    return ModuleRunService(
        mock_session,
        job_queue,
        module_repository=modules,
        module_run_repository=runs,
        subjects=subjects,
    )


class TestRegisterModule:

    @pytest.mark.asyncio
    async def test_rejects_unknown_type(self, service):
        with pytest.raises(ValidationError):
            await service.register_module("x", "NOT_A_TYPE", "1.0.0")

    @pytest.mark.asyncio
    async def test_rejects_duplicate_version(self, service):
        service.module_repository.get_by_key_and_version.return_value = _module()
        with pytest.raises(ConflictError):
            await service.register_module("linkedin_profile_connector", "CONNECTOR", "1.0.0")

    @pytest.mark.asyncio
    async def test_update_rejects_unknown_fields(self, service):
        with pytest.raises(ValidationError) as exc_info:
            await service.update_module(1, module_key="renamed")
        assert "module_key" in str(exc_info.value)


class TestCreateModuleRun:

    @pytest.mark.asyncio
    async def test_person_level_run_is_queued_and_enqueued(self, service):
        service.module_repository.get_latest_enabled.return_value = _module()

        run = await service.create_module_run(1, 7, "linkedin_profile_connector", input_config_json={"a": 1})

        assert run.id == 55
        assert run.status == RunStatus.QUEUED.value
        assert run.person_id == 7
        assert run.module_version == "1.0.0"
        service.subjects.require_subject.assert_awaited_once_with(1, 7)
        service.job_queue.enqueue.assert_awaited_once_with(JobType.EXECUTE_MODULE_RUN, {"moduleRunId": 55})

    @pytest.mark.asyncio
    async def test_missing_module(self, service):
        service.module_repository.get_latest_enabled.return_value = None
        with pytest.raises(NotFoundError):
            await service.create_module_run(1, 7, "missing")
        service.job_queue.enqueue.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_project_level_module_needs_project_entry_point(self, service):
        service.module_repository.get_latest_enabled.return_value = _module(scope=ModuleScope.PROJECT_LEVEL.value)
        with pytest.raises(ValidationError):
            await service.create_module_run(1, 7, "prospect_search_connector")

    @pytest.mark.asyncio
    async def test_project_level_run_has_no_person(self, service):
        service.module_repository.get_latest_enabled.return_value = _module(
            scope=ModuleScope.PROJECT_LEVEL.value, module_key="prospect_search_connector"
        )

        run = await service.create_project_level_module_run(1, "prospect_search_connector", triggered_by_user_id=3)

        assert run.person_id is None
        assert run.triggered_by_user_id == 3
        service.subjects.require_project.assert_awaited_once_with(1)
        service.subjects.require_user.assert_awaited_once_with(3)

    @pytest.mark.asyncio
    async def test_missing_run(self, service):
        service.module_run_repository.get_by_id.return_value = None
        with pytest.raises(NotFoundError):
            await service.get_module_run(404)

    @pytest.mark.asyncio
    async def test_list_module_runs_filters_only_given_fields(self, service):
        service.module_run_repository.get_all.return_value = []

        await service.list_module_runs(project_id=1, status=RunStatus.FAILED.value, limit=10)

        service.module_run_repository.get_all.assert_awaited_once_with(
            skip=0, limit=10, filters={"project_id": 1, "status": "FAILED"}
        )
