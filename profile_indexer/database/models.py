"""SQLAlchemy models for all database tables."""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    TIMESTAMP,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from profile_indexer.core.constants import FLOW_RUN_ID_KEY
from profile_indexer.core.database import Base
from profile_indexer.utils.clock import utcnow


class TimestampMixin:
    """created_at / updated_at columns set client-side so ordering is stable inside a session."""

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False
    )


class User(TimestampMixin, Base):
    """Operator who triggers flows and module runs."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    full_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)


class Project(TimestampMixin, Base):
    """A scope (campaign, client engagement) that people are attached to."""

    __tablename__ = "projects"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="ACTIVE")


class Location(TimestampMixin, Base):
    """Deduplicated location keyed by country|region|city."""

    __tablename__ = "locations"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    country: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    country_code: Mapped[Optional[str]] = mapped_column(String(8), nullable=True, index=True)
    region: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    display_name: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    normalized_key: Mapped[str] = mapped_column(String(512), unique=True, nullable=False)


class Organization(TimestampMixin, Base):
    """Deduplicated company. Dedup order: LinkedIn company URN, domain, name + location."""

    __tablename__ = "organizations"
    __table_args__ = (
        Index("ix_organizations_name_location", "name_normalized", "location_id"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(512), nullable=False)
    name_normalized: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    domain: Mapped[Optional[str]] = mapped_column(String(255), unique=True, nullable=True)
    website: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    linkedin_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    linkedin_company_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    linkedin_company_urn: Mapped[Optional[str]] = mapped_column(String(128), unique=True, nullable=True)
    industry: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    size_range: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    founded_year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    type: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    inferred_revenue: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    total_funding_raised: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    location_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("locations.id"), nullable=True)


class Person(TimestampMixin, Base):
    """Globally unique individual, keyed by normalized LinkedIn profile URL."""

    __tablename__ = "persons"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    linkedin_url: Mapped[str] = mapped_column(String(512), unique=True, nullable=False)
    linkedin_slug: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    external_urn: Mapped[Optional[str]] = mapped_column(String(128), nullable=True, index=True)
    primary_display_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    first_name: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    headline: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    sub_title: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="ACTIVE")
    current_organization_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("organizations.id"), nullable=True, index=True
    )
    location_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("locations.id"), nullable=True)
    created_by_user_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=True)


class PersonProject(TimestampMixin, Base):
    """Membership of a person in a project's scope."""

    __tablename__ = "person_projects"
    __table_args__ = (UniqueConstraint("person_id", "project_id", name="uq_person_projects_person_project"),)

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    person_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("persons.id"), nullable=False)
    project_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("projects.id"), nullable=False)
    tag: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    created_by_user_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=True)


class Module(TimestampMixin, Base):
    """Registered, versioned pipeline module."""

    __tablename__ = "modules"
    __table_args__ = (UniqueConstraint("module_key", "version", name="uq_modules_key_version"),)

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    module_key: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    module_type: Mapped[str] = mapped_column(String(32), nullable=False)
    scope: Mapped[str] = mapped_column(String(32), nullable=False, default="PERSON_LEVEL")
    version: Mapped[str] = mapped_column(String(32), nullable=False)
    config_schema_json: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONB, nullable=True)
    is_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class ModuleRun(TimestampMixin, Base):
    """One execution of a module for a subject. Mutated only by the worker."""

    __tablename__ = "module_runs"
    __table_args__ = (Index("ix_module_runs_subject", "project_id", "person_id"),)

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("projects.id"), nullable=False)
    person_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("persons.id"), nullable=True)
    triggered_by_user_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=True)
    module_key: Mapped[str] = mapped_column(String(128), nullable=False)
    module_version: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="QUEUED")
    input_config_json: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONB, nullable=True)
    started_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    finished_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    error_json: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONB, nullable=True)


# At most one run per module within a flow run
Index(
    "uq_module_runs_flow_run_module",
    ModuleRun.input_config_json[FLOW_RUN_ID_KEY].astext,
    ModuleRun.module_key,
    unique=True,
    postgresql_where=ModuleRun.input_config_json.has_key(FLOW_RUN_ID_KEY),
)


class FlowRun(TimestampMixin, Base):
    """One staged pipeline execution for a subject."""

    __tablename__ = "flow_runs"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("projects.id"), nullable=False)
    person_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("persons.id"), nullable=True)
    triggered_by_user_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=True)
    flow_key: Mapped[str] = mapped_column(String(128), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="QUEUED")
    current_stage: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    input_summary_json: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONB, nullable=True)
    modules_scheduled_json: Mapped[Optional[Any]] = mapped_column(JSONB, nullable=True)
    modules_completed_json: Mapped[Optional[Any]] = mapped_column(JSONB, nullable=True)
    modules_failed_json: Mapped[Optional[Any]] = mapped_column(JSONB, nullable=True)
    failure_reasons_json: Mapped[Optional[Any]] = mapped_column(JSONB, nullable=True)
    final_summary_json: Mapped[Optional[Any]] = mapped_column(JSONB, nullable=True)
    error_json: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONB, nullable=True)
    started_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    finished_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    # Bumped on every status/stage transition; transitions are conditional on it
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class Document(TimestampMixin, Base):
    """Immutable captured payload. Only is_valid / invalidated_meta_json change."""

    __tablename__ = "documents"
    __table_args__ = (
        Index(
            "ix_documents_latest_valid",
            "project_id",
            "person_id",
            "source",
            "document_kind",
            "is_valid",
            "captured_at",
        ),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("projects.id"), nullable=False)
    person_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("persons.id"), nullable=True)
    source: Mapped[str] = mapped_column(String(64), nullable=False)
    source_ref: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    content_type: Mapped[str] = mapped_column(String(64), nullable=False)
    document_kind: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    is_valid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    storage_uri: Mapped[str] = mapped_column(String(1024), nullable=False)
    hash: Mapped[str] = mapped_column(String(128), nullable=False)
    captured_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    module_run_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("module_runs.id"), nullable=True)
    payload_json: Mapped[Optional[Any]] = mapped_column(JSONB, nullable=True)
    invalidated_meta_json: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONB, nullable=True)


class Claim(TimestampMixin, Base):
    """Versioned fact. Active while superseded_at is null."""

    __tablename__ = "claims"
    __table_args__ = (
        Index(
            "ix_claims_active_key",
            "project_id",
            "person_id",
            "claim_type",
            "group_key",
            "superseded_at",
        ),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("projects.id"), nullable=False)
    person_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("persons.id"), nullable=False)
    claim_type: Mapped[str] = mapped_column(String(128), nullable=False)
    group_key: Mapped[str] = mapped_column(String(512), nullable=False, default="single")
    value_json: Mapped[Any] = mapped_column(JSONB, nullable=False)
    confidence: Mapped[float] = mapped_column(Float, nullable=False)
    observed_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    valid_from: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    valid_to: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    superseded_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    replaced_by_claim_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("claims.id"), nullable=True)
    source_document_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("documents.id"), nullable=True)
    module_run_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("module_runs.id"), nullable=True)
    schema_version: Mapped[str] = mapped_column(String(32), nullable=False, default="v1")


class LayerSnapshot(TimestampMixin, Base):
    """Immutable compiled view of the ledger; one row per version."""

    __tablename__ = "layer_snapshots"
    __table_args__ = (
        UniqueConstraint(
            "project_id",
            "person_id",
            "layer_number",
            "snapshot_version",
            name="uq_layer_snapshots_version",
        ),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("projects.id"), nullable=False)
    person_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("persons.id"), nullable=False)
    layer_number: Mapped[int] = mapped_column(Integer, nullable=False)
    snapshot_version: Mapped[int] = mapped_column(Integer, nullable=False)
    composer_module_key: Mapped[str] = mapped_column(String(128), nullable=False)
    composer_version: Mapped[str] = mapped_column(String(32), nullable=False)
    compiled_json: Mapped[Any] = mapped_column(JSONB, nullable=False)
    generated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    module_run_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("module_runs.id"), nullable=True)


class DiscoveryRunItem(TimestampMixin, Base):
    """Audit record of one fanned-out prospect item."""

    __tablename__ = "discovery_run_items"
    __table_args__ = (
        Index("ix_discovery_run_items_run_project", "module_run_id", "project_id"),
        Index("ix_discovery_run_items_subject", "project_id", "person_id"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    module_run_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("module_runs.id"), nullable=True)
    project_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("projects.id"), nullable=False)
    person_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("persons.id"), nullable=True)
    source_ref: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_document_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("documents.id"), nullable=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False)
    error_json: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONB, nullable=True)
