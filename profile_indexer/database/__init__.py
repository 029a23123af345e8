"""Database module for SQLAlchemy models and session management."""

from profile_indexer.core.database import Base, async_session_maker, engine, get_async_session
from profile_indexer.database.models import (
    Claim,
    DiscoveryRunItem,
    Document,
    FlowRun,
    LayerSnapshot,
    Location,
    Module,
    ModuleRun,
    Organization,
    Person,
    PersonProject,
    Project,
    User,
)

__all__ = [
    "Base",
    "engine",
    "async_session_maker",
    "get_async_session",
    "User",
    "Project",
    "Location",
    "Organization",
    "Person",
    "PersonProject",
    "Module",
    "ModuleRun",
    "FlowRun",
    "Document",
    "Claim",
    "LayerSnapshot",
    "DiscoveryRunItem",
]
