from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from profile_indexer.core.constants import DiscoveryRunItemStatus
from profile_indexer.database.models import DiscoveryRunItem, Project, User
from profile_indexer.repositories.base_repository import BaseRepository


class ProjectRepository(BaseRepository[Project]):

    def __init__(self, session: AsyncSession):
        super().__init__(session, Project)


class UserRepository(BaseRepository[User]):

    def __init__(self, session: AsyncSession):
        super().__init__(session, User)


class DiscoveryRunItemRepository(BaseRepository[DiscoveryRunItem]):
    """Lineage records for fanned-out prospect items."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, DiscoveryRunItem)

    async def record(
        self,
        project_id: int,
        module_run_id: Optional[int],
        status: DiscoveryRunItemStatus,
        person_id: Optional[int] = None,
        source_ref: Optional[str] = None,
        created_document_id: Optional[int] = None,
        error_json: Optional[Dict[str, Any]] = None,
    ) -> DiscoveryRunItem:
        return await self.create(
            project_id=project_id,
            module_run_id=module_run_id,
            person_id=person_id,
            source_ref=source_ref[:255] if source_ref else None,
            created_document_id=created_document_id,
            status=status.value,
            error_json=error_json,
        )
