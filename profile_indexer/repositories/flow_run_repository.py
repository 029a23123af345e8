from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from profile_indexer.database.models import FlowRun
from profile_indexer.repositories.base_repository import BaseRepository
from profile_indexer.utils.clock import utcnow


class FlowRunRepository(BaseRepository[FlowRun]):
    """Repository for flow runs."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, FlowRun)

    async def _update_at_version(self, flow_run_id: int, expected_version: int, values: Dict[str, Any]) -> bool:
        try:
            stmt = (
                update(FlowRun)
                .where(FlowRun.id == flow_run_id, FlowRun.version == expected_version)
                .values(**values, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            result = await self.session.execute(stmt)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            self.logger.error(f"Error updating FlowRun {flow_run_id}: {str(e)}", exc_info=True)
            raise

        applied = (result.rowcount or 0) == 1
        if not applied:
            self.logger.info(
                f"FlowRun {flow_run_id} update skipped, version {expected_version} is stale",
                extra={"flow_run_id": flow_run_id},
            )
        return applied

    async def transition(self, flow_run_id: int, expected_version: int, **values: Any) -> bool:
        """Conditionally update a flow run, bumping its version.

        The update only applies when the stored version still equals
        ``expected_version``. Returns False when another worker transitioned
        the run first; the caller must then stop.
        """
        return await self._update_at_version(flow_run_id, expected_version, {**values, "version": expected_version + 1})

    async def annotate(self, flow_run_id: int, expected_version: int, **values: Any) -> bool:
        """Write derived bookkeeping fields unless the run was transitioned since it was read.

        The version is not bumped, so pending transitions still apply.
        """
        return await self._update_at_version(flow_run_id, expected_version, values)

    async def get_fresh(self, flow_run_id: int) -> Optional[FlowRun]:
        """Load a flow run, overwriting any stale copy held by the session."""
        query = select(FlowRun).where(FlowRun.id == flow_run_id).execution_options(populate_existing=True)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def refresh(self, flow_run: FlowRun) -> FlowRun:
        await self.session.refresh(flow_run)
        return flow_run

    async def list_by_flow_set(self, flow_set_id: str) -> List[FlowRun]:
        query = (
            select(FlowRun)
            .where(FlowRun.input_summary_json["flowSetId"].as_string() == flow_set_id)
            .order_by(FlowRun.id.asc())
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())
