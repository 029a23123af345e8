"""Repository layer modules."""

from profile_indexer.repositories.claim_repository import ClaimRepository
from profile_indexer.repositories.document_repository import DocumentRepository
from profile_indexer.repositories.entity_repository import (
    LocationRepository,
    OrganizationRepository,
    PersonProjectRepository,
    PersonRepository,
)
from profile_indexer.repositories.flow_run_repository import FlowRunRepository
from profile_indexer.repositories.layer_snapshot_repository import LayerSnapshotRepository
from profile_indexer.repositories.module_repository import ModuleRepository, ModuleRunRepository
from profile_indexer.repositories.project_repository import (
    DiscoveryRunItemRepository,
    ProjectRepository,
    UserRepository,
)

__all__ = [
    "ClaimRepository",
    "DocumentRepository",
    "LocationRepository",
    "OrganizationRepository",
    "PersonRepository",
    "PersonProjectRepository",
    "FlowRunRepository",
    "LayerSnapshotRepository",
    "ModuleRepository",
    "ModuleRunRepository",
    "DiscoveryRunItemRepository",
    "ProjectRepository",
    "UserRepository",
]
