from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from profile_indexer.core.constants import FLOW_RUN_ID_KEY, RunStatus
from profile_indexer.database.models import Module, ModuleRun
from profile_indexer.repositories.base_repository import BaseRepository


class ModuleRepository(BaseRepository[Module]):
    """Repository for registered modules."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Module)

    async def get_latest_enabled(self, module_key: str) -> Optional[Module]:
        """Most recently registered enabled version of a module key."""
        query = (
            select(Module)
            .where(Module.module_key == module_key, Module.is_enabled.is_(True))
            .order_by(Module.created_at.desc(), Module.id.desc())
            .limit(1)
        )
        result = await self.session.execute(query)
        return result.scalars().first()

    async def get_by_key_and_version(self, module_key: str, version: str) -> Optional[Module]:
        return await self.get_one_by(module_key=module_key, version=version)

    async def list_modules(
        self,
        module_key: Optional[str] = None,
        module_type: Optional[str] = None,
        is_enabled: Optional[bool] = None,
    ) -> List[Module]:
        filters: Dict[str, Any] = {}
        if module_key is not None:
            filters["module_key"] = module_key
        if module_type is not None:
            filters["module_type"] = module_type
        if is_enabled is not None:
            filters["is_enabled"] = is_enabled
        return await self.get_all(filters=filters, limit=500)


class ModuleRunRepository(BaseRepository[ModuleRun]):
    """Repository for module runs."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, ModuleRun)

    async def list_for_flow_run(
        self,
        flow_run_id: int,
        module_keys: Optional[Iterable[str]] = None,
    ) -> List[ModuleRun]:
        """Module runs tagged with a FlowRun back-pointer, oldest first."""
        query = select(ModuleRun).where(
            ModuleRun.input_config_json[FLOW_RUN_ID_KEY].as_integer() == flow_run_id
        )
        if module_keys is not None:
            query = query.where(ModuleRun.module_key.in_(list(module_keys)))
        query = query.order_by(ModuleRun.created_at.asc(), ModuleRun.id.asc()).execution_options(populate_existing=True)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def mark_running(self, module_run_id: int, started_at: datetime) -> Optional[ModuleRun]:
        return await self.update(module_run_id, status=RunStatus.RUNNING.value, started_at=started_at, error_json=None)

    async def mark_completed(self, module_run_id: int, finished_at: datetime) -> Optional[ModuleRun]:
        return await self.update(module_run_id, status=RunStatus.COMPLETED.value, finished_at=finished_at)

    async def mark_failed(
        self,
        module_run_id: int,
        finished_at: datetime,
        error_json: Dict[str, Any],
    ) -> Optional[ModuleRun]:
        return await self.update(
            module_run_id,
            status=RunStatus.FAILED.value,
            finished_at=finished_at,
            error_json=error_json,
        )
