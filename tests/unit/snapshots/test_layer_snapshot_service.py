from unittest.mock import AsyncMock, Mock

import pytest
from sqlalchemy.exc import IntegrityError

from profile_indexer.core.exceptions import ConflictError, NotFoundError
from profile_indexer.repositories.layer_snapshot_repository import LayerSnapshotRepository
from profile_indexer.services.snapshots.layer_snapshot_service import LayerSnapshotService


def integrity_error():
    return IntegrityError("INSERT INTO layer_snapshots", {}, Exception("duplicate key"))


@pytest.fixture
def repository():
    return AsyncMock(spec=LayerSnapshotRepository)


@pytest.fixture
def service(mock_session, repository):
    return LayerSnapshotService(mock_session, repository)


async def create(service):
    return await service.create_next_snapshot_version(
        project_id=1,
        person_id=7,
        layer_number=1,
        composer_module_key="layer1-composer",
        composer_version="1.0.0",
        compiled_json={"layer": 1},
        module_run_id=10,
    )


class TestCreateNextSnapshotVersion:

    @pytest.mark.asyncio
    async def test_first_version(self, service, repository):
        repository.get_max_version.return_value = 0
        repository.create.return_value = Mock(id=1, snapshot_version=1)

        snapshot = await create(service)

        assert snapshot.snapshot_version == 1
        assert repository.create.call_args.kwargs["snapshot_version"] == 1

    @pytest.mark.asyncio
    async def test_retries_once_after_version_race(self, service, repository):
        repository.get_max_version.side_effect = [2, 3]
        repository.create.side_effect = [integrity_error(), Mock(id=9, snapshot_version=4)]

        snapshot = await create(service)

        assert snapshot.snapshot_version == 4
        versions = [call.kwargs["snapshot_version"] for call in repository.create.call_args_list]
        assert versions == [3, 4]

    @pytest.mark.asyncio
    async def test_second_collision_is_a_conflict(self, service, repository):
        repository.get_max_version.side_effect = [2, 3]
        repository.create.side_effect = [integrity_error(), integrity_error()]

        with pytest.raises(ConflictError):
            await create(service)


class TestReads:

    @pytest.mark.asyncio
    async def test_latest_missing(self, service, repository):
        repository.get_latest.return_value = None
        with pytest.raises(NotFoundError):
            await service.get_latest_snapshot(1, 7, 1)

    @pytest.mark.asyncio
    async def test_specific_version_missing(self, service, repository):
        repository.get_version.return_value = None
        with pytest.raises(NotFoundError):
            await service.get_snapshot(1, 7, 1, 3)

    @pytest.mark.asyncio
    async def test_list_snapshots(self, service, repository):
        repository.list_versions.return_value = [Mock(version=1), Mock(version=2)]

        snapshots = await service.list_snapshots(1, 7, 1)

        assert [snapshot.version for snapshot in snapshots] == [1, 2]
        repository.list_versions.assert_awaited_once_with(1, 7, 1)
