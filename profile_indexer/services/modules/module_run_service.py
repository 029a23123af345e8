"""Module catalogue management and direct (non-flow) module run triggers."""

from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from profile_indexer.core.constants import JobType, ModuleScope, ModuleType, RunStatus
from profile_indexer.core.exceptions import ConflictError, NotFoundError, ValidationError
from profile_indexer.database.models import Module, ModuleRun
from profile_indexer.repositories.module_repository import ModuleRepository, ModuleRunRepository
from profile_indexer.services.job_queue import JobQueue
from profile_indexer.services.subjects import SubjectValidator
from profile_indexer.utils.logging import get_logger

LOGGER = get_logger(__name__)

UPDATABLE_MODULE_FIELDS = ("config_schema_json", "is_enabled", "scope")


class ModuleRunService:
    """Registers modules and creates QUEUED module runs for the worker."""

    def __init__(
        self,
        session: AsyncSession,
        job_queue: JobQueue,
        module_repository: Optional[ModuleRepository] = None,
        module_run_repository: Optional[ModuleRunRepository] = None,
        subjects: Optional[SubjectValidator] = None,
    ):
        self.session = session
        self.job_queue = job_queue
        self.module_repository = module_repository or ModuleRepository(session)
        self.module_run_repository = module_run_repository or ModuleRunRepository(session)
        self.subjects = subjects or SubjectValidator(session)

    async def register_module(
        self,
        module_key: str,
        module_type: str,
        version: str,
        scope: str = ModuleScope.PERSON_LEVEL.value,
        config_schema_json: Optional[Dict[str, Any]] = None,
        is_enabled: bool = True,
    ) -> Module:
        if module_type not in {t.value for t in ModuleType}:
            raise ValidationError(f"Unknown module type: {module_type}")
        if scope not in {s.value for s in ModuleScope}:
            raise ValidationError(f"Unknown module scope: {scope}")
        if await self.module_repository.get_by_key_and_version(module_key, version):
            raise ConflictError(f"Module {module_key}@{version} is already registered")

        module = await self.module_repository.create(
            module_key=module_key,
            module_type=module_type,
            version=version,
            scope=scope,
            config_schema_json=config_schema_json,
            is_enabled=is_enabled,
        )
        LOGGER.info(f"Registered module {module_key}@{version} ({module_type}, {scope})")
        return module

    async def list_modules(
        self,
        module_key: Optional[str] = None,
        module_type: Optional[str] = None,
        is_enabled: Optional[bool] = None,
    ) -> List[Module]:
        return await self.module_repository.list_modules(module_key, module_type, is_enabled)

    async def update_module(self, module_id: int, **changes: Any) -> Module:
        unknown = set(changes) - set(UPDATABLE_MODULE_FIELDS)
        if unknown:
            raise ValidationError(f"Module fields cannot be updated: {', '.join(sorted(unknown))}")
        module = await self.module_repository.update(module_id, **changes)
        if module is None:
            raise NotFoundError(f"Module {module_id} not found")
        return module

    async def resolve_module(self, module_key: str) -> Module:
        """Latest enabled version of a module key."""
        module = await self.module_repository.get_latest_enabled(module_key)
        if module is None:
            raise NotFoundError(f"No enabled module registered for key: {module_key}")
        return module

    async def _create_and_enqueue(
        self,
        module: Module,
        project_id: int,
        person_id: Optional[int],
        triggered_by_user_id: Optional[int],
        input_config_json: Optional[Dict[str, Any]],
    ) -> ModuleRun:
        run = await self.module_run_repository.create(
            project_id=project_id,
            person_id=person_id,
            triggered_by_user_id=triggered_by_user_id,
            module_key=module.module_key,
            module_version=module.version,
            status=RunStatus.QUEUED.value,
            input_config_json=input_config_json or {},
        )
        job_id = await self.job_queue.enqueue(JobType.EXECUTE_MODULE_RUN, {"moduleRunId": run.id})
        LOGGER.info(
            f"Queued module run {run.id} ({module.module_key}@{module.version}) as job {job_id}",
            extra={"project_id": project_id, "person_id": person_id},
        )
        return run

    async def create_module_run(
        self,
        project_id: int,
        person_id: int,
        module_key: str,
        triggered_by_user_id: Optional[int] = None,
        input_config_json: Optional[Dict[str, Any]] = None,
    ) -> ModuleRun:
        """Trigger a person-level module directly, outside any flow."""
        await self.subjects.require_subject(project_id, person_id)
        await self.subjects.require_user(triggered_by_user_id)

        module = await self.resolve_module(module_key)
        if module.scope == ModuleScope.PROJECT_LEVEL.value:
            raise ValidationError(
                f"Module {module_key} is PROJECT_LEVEL; use create_project_level_module_run instead"
            )
        return await self._create_and_enqueue(module, project_id, person_id, triggered_by_user_id, input_config_json)

    async def create_project_level_module_run(
        self,
        project_id: int,
        module_key: str,
        triggered_by_user_id: Optional[int] = None,
        input_config_json: Optional[Dict[str, Any]] = None,
    ) -> ModuleRun:
        """Trigger a project-level module (e.g. prospect search); the run has no person."""
        await self.subjects.require_project(project_id)
        await self.subjects.require_user(triggered_by_user_id)

        module = await self.resolve_module(module_key)
        if module.scope != ModuleScope.PROJECT_LEVEL.value:
            raise ValidationError(f"Module {module_key} is PERSON_LEVEL and needs a person")
        return await self._create_and_enqueue(module, project_id, None, triggered_by_user_id, input_config_json)

    async def get_module_run(self, module_run_id: int) -> ModuleRun:
        run = await self.module_run_repository.get_by_id(module_run_id)
        if run is None:
            raise NotFoundError(f"Module run {module_run_id} not found")
        return run

    async def list_module_runs(
        self,
        project_id: Optional[int] = None,
        person_id: Optional[int] = None,
        module_key: Optional[str] = None,
        status: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> List[ModuleRun]:
        filters = {
            name: value
            for name, value in (
                ("project_id", project_id),
                ("person_id", person_id),
                ("module_key", module_key),
                ("status", status),
            )
            if value is not None
        }
        return await self.module_run_repository.get_all(skip=skip, limit=limit, filters=filters)
