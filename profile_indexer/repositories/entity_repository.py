"""Repositories for deduplicated reference entities (Location, Organization, Person, PersonProject).

Upserts are merge-upserts: an existing row only receives values for
columns that are still null, so a later, lower-quality observation never
overwrites a value that is already known.
"""

from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from profile_indexer.core.exceptions import ConflictError, ValidationError
from profile_indexer.database.models import Location, Organization, Person, PersonProject
from profile_indexer.repositories.base_repository import BaseRepository, ModelType


def missing_field_values(instance: Any, values: Dict[str, Any]) -> Dict[str, Any]:
    """Subset of ``values`` whose target column on ``instance`` is still null."""
    return {
        key: value
        for key, value in values.items()
        if value is not None and hasattr(instance, key) and getattr(instance, key) is None
    }


class MergeUpsertMixin:
    """Shared fill-missing and create-or-refetch logic."""

    async def _fill_missing(self, instance: ModelType, values: Dict[str, Any]) -> ModelType:
        updates = missing_field_values(instance, values)
        if not updates:
            return instance
        updated = await self.update(instance.id, **updates)
        return updated or instance

    async def _create_or_refetch(
        self,
        values: Dict[str, Any],
        refetch: Callable[[], Awaitable[Optional[ModelType]]],
    ) -> Tuple[ModelType, bool]:
        """Create a row; on a unique violation re-fetch the winner and merge into it."""
        try:
            return await self.create(**values), True
        except IntegrityError as e:
            existing = await refetch()
            if existing is None:
                raise ConflictError(f"Unique conflict creating {self.model.__name__} and no row to re-fetch", e)
            self.logger.info(f"{self.model.__name__} created concurrently, merging into {existing.id}")
            return await self._fill_missing(existing, values), False


class LocationRepository(MergeUpsertMixin, BaseRepository[Location]):
    """Repository for deduplicated locations."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Location)

    async def get_by_normalized_key(self, normalized_key: str) -> Optional[Location]:
        return await self.get_one_by(normalized_key=normalized_key)

    async def upsert(self, normalized_key: str, **values: Any) -> Tuple[Location, bool]:
        """Insert-if-absent on normalized_key, then fill missing components."""
        stmt = (
            insert(Location)
            .values(normalized_key=normalized_key, **values)
            .on_conflict_do_nothing(index_elements=["normalized_key"])
            .returning(Location.id)
        )
        result = await self.session.execute(stmt)
        inserted_id = result.scalar_one_or_none()
        await self.session.commit()

        location = await self.get_by_normalized_key(normalized_key)
        if location is None:
            raise ConflictError(f"Location {normalized_key!r} vanished after upsert")
        if inserted_id is not None:
            return location, True
        return await self._fill_missing(location, values), False


class OrganizationRepository(MergeUpsertMixin, BaseRepository[Organization]):
    """Repository for deduplicated organizations."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Organization)

    async def find_existing(
        self,
        name: str,
        linkedin_company_urn: Optional[str] = None,
        domain: Optional[str] = None,
        location_id: Optional[int] = None,
    ) -> Optional[Organization]:
        """Resolve by LinkedIn company URN, then domain, then normalized name + location."""
        if linkedin_company_urn:
            existing = await self.get_one_by(linkedin_company_urn=linkedin_company_urn)
            if existing:
                return existing
        if domain:
            existing = await self.get_one_by(domain=domain)
            if existing:
                return existing
        if location_id is not None:
            query = (
                select(Organization)
                .where(
                    Organization.name_normalized == name.strip().lower(),
                    Organization.location_id == location_id,
                )
                .order_by(Organization.id.asc())
                .limit(1)
            )
            result = await self.session.execute(query)
            return result.scalars().first()
        return None

    async def upsert(self, name: str, **values: Any) -> Tuple[Organization, bool]:
        if not name or not name.strip():
            raise ValidationError("Name is required for organization upsert")

        values = {**values, "name": name.strip(), "name_normalized": name.strip().lower()}
        lookup = dict(
            name=values["name"],
            linkedin_company_urn=values.get("linkedin_company_urn"),
            domain=values.get("domain"),
            location_id=values.get("location_id"),
        )

        existing = await self.find_existing(**lookup)
        if existing:
            return await self._fill_missing(existing, values), False
        return await self._create_or_refetch(values, lambda: self.find_existing(**lookup))


class PersonRepository(MergeUpsertMixin, BaseRepository[Person]):
    """Repository for people, unique on normalized LinkedIn URL."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Person)

    async def get_by_linkedin_url(self, linkedin_url: str) -> Optional[Person]:
        return await self.get_one_by(linkedin_url=linkedin_url)

    async def get_by_external_urn(self, external_urn: str) -> Optional[Person]:
        return await self.get_one_by(external_urn=external_urn)

    async def upsert(self, linkedin_url: str, **values: Any) -> Tuple[Person, bool]:
        if not linkedin_url:
            raise ValidationError("LinkedinUrl is required for person upsert")

        existing = await self.get_by_linkedin_url(linkedin_url)
        if existing:
            return await self._fill_missing(existing, values), False
        return await self._create_or_refetch(
            {"linkedin_url": linkedin_url, **values},
            lambda: self.get_by_linkedin_url(linkedin_url),
        )


class PersonProjectRepository(BaseRepository[PersonProject]):
    """Repository for person <-> project links."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, PersonProject)

    async def get_link(self, person_id: int, project_id: int) -> Optional[PersonProject]:
        return await self.get_one_by(person_id=person_id, project_id=project_id)

    async def ensure(
        self,
        person_id: int,
        project_id: int,
        tag: Optional[str] = None,
        created_by_user_id: Optional[int] = None,
    ) -> Tuple[PersonProject, bool]:
        """Idempotently link a person to a project. Returns (link, created)."""
        existing = await self.get_link(person_id, project_id)
        if existing:
            return existing, False

        try:
            link = await self.create(
                person_id=person_id,
                project_id=project_id,
                tag=tag,
                created_by_user_id=created_by_user_id,
            )
            return link, True
        except IntegrityError as e:
            existing = await self.get_link(person_id, project_id)
            if existing is None:
                raise ConflictError(
                    f"PersonProject conflict for person {person_id} / project {project_id} could not be resolved",
                    e,
                )
            self.logger.info(f"PersonProject for person {person_id} / project {project_id} created concurrently")
            return existing, False
