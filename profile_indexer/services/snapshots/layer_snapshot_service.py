"""Append-only, monotonically versioned layer snapshots."""

from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from profile_indexer.core.exceptions import ConflictError, NotFoundError
from profile_indexer.database.models import LayerSnapshot
from profile_indexer.repositories.layer_snapshot_repository import LayerSnapshotRepository
from profile_indexer.utils.clock import utcnow
from profile_indexer.utils.logging import get_logger

LOGGER = get_logger(__name__)


class LayerSnapshotService:
    """Writes new snapshot versions and reads existing ones. Never updates or deletes."""

    def __init__(self, session: AsyncSession, repository: Optional[LayerSnapshotRepository] = None):
        self.session = session
        self.repository = repository or LayerSnapshotRepository(session)

    async def _insert_next(self, project_id: int, person_id: int, layer_number: int, **fields: Any) -> LayerSnapshot:
        current = await self.repository.get_max_version(project_id, person_id, layer_number)
        return await self.repository.create(
            project_id=project_id,
            person_id=person_id,
            layer_number=layer_number,
            snapshot_version=current + 1,
            **fields,
        )

    async def create_next_snapshot_version(
        self,
        project_id: int,
        person_id: int,
        layer_number: int,
        composer_module_key: str,
        composer_version: str,
        compiled_json: Any,
        module_run_id: Optional[int] = None,
        generated_at: Optional[datetime] = None,
    ) -> LayerSnapshot:
        """Insert version max+1 for the subject and layer.

        A concurrent writer taking the same version trips the unique
        constraint; the insert is retried once with a fresh max.

        Raises:
            ConflictError: when the retry also collides
        """
        fields = dict(
            composer_module_key=composer_module_key,
            composer_version=composer_version,
            compiled_json=compiled_json,
            generated_at=generated_at or utcnow(),
            module_run_id=module_run_id,
        )
        try:
            snapshot = await self._insert_next(project_id, person_id, layer_number, **fields)
        except IntegrityError as e:
            LOGGER.warning(
                f"Snapshot version race for project {project_id}, person {person_id}, layer {layer_number}; retrying",
                extra={"error": str(e)},
            )
            try:
                snapshot = await self._insert_next(project_id, person_id, layer_number, **fields)
            except IntegrityError as retry_error:
                raise ConflictError(
                    f"Could not allocate snapshot version for project {project_id}, person {person_id}, "
                    f"layer {layer_number}",
                    retry_error,
                )

        LOGGER.info(
            f"Created layer {layer_number} snapshot v{snapshot.snapshot_version} for person {person_id}",
            extra={"layer_snapshot_id": snapshot.id, "module_run_id": module_run_id},
        )
        return snapshot

    async def get_latest_snapshot(self, project_id: int, person_id: int, layer_number: int) -> LayerSnapshot:
        snapshot = await self.repository.get_latest(project_id, person_id, layer_number)
        if snapshot is None:
            raise NotFoundError(f"No layer {layer_number} snapshot for project {project_id}, person {person_id}")
        return snapshot

    async def get_snapshot(
        self, project_id: int, person_id: int, layer_number: int, snapshot_version: int
    ) -> LayerSnapshot:
        snapshot = await self.repository.get_version(project_id, person_id, layer_number, snapshot_version)
        if snapshot is None:
            raise NotFoundError(
                f"Layer {layer_number} snapshot v{snapshot_version} not found for project {project_id}, person {person_id}"
            )
        return snapshot

    async def list_snapshots(self, project_id: int, person_id: int, layer_number: int) -> List[LayerSnapshot]:
        return await self.repository.list_versions(project_id, person_id, layer_number)
