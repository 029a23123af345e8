from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from profile_indexer.database.models import LayerSnapshot
from profile_indexer.repositories.base_repository import BaseRepository


class LayerSnapshotRepository(BaseRepository[LayerSnapshot]):
    """Repository for layer snapshots. Rows are only ever inserted."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, LayerSnapshot)

    def _subject(self, project_id: int, person_id: int, layer_number: int):
        return (
            LayerSnapshot.project_id == project_id,
            LayerSnapshot.person_id == person_id,
            LayerSnapshot.layer_number == layer_number,
        )

    async def get_max_version(self, project_id: int, person_id: int, layer_number: int) -> int:
        query = select(func.max(LayerSnapshot.snapshot_version)).where(
            *self._subject(project_id, person_id, layer_number)
        )
        result = await self.session.execute(query)
        return result.scalar() or 0

    async def get_latest(self, project_id: int, person_id: int, layer_number: int) -> Optional[LayerSnapshot]:
        query = (
            select(LayerSnapshot)
            .where(*self._subject(project_id, person_id, layer_number))
            .order_by(LayerSnapshot.snapshot_version.desc())
            .limit(1)
        )
        result = await self.session.execute(query)
        return result.scalars().first()

    async def get_version(
        self, project_id: int, person_id: int, layer_number: int, snapshot_version: int
    ) -> Optional[LayerSnapshot]:
        query = select(LayerSnapshot).where(
            *self._subject(project_id, person_id, layer_number),
            LayerSnapshot.snapshot_version == snapshot_version,
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def list_versions(self, project_id: int, person_id: int, layer_number: int) -> List[LayerSnapshot]:
        query = (
            select(LayerSnapshot)
            .where(*self._subject(project_id, person_id, layer_number))
            .order_by(LayerSnapshot.snapshot_version.asc())
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())
