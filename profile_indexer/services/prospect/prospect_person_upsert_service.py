"""Entity resolution and fanout of prospect search results.

Each search item becomes (at most) one Location, one Organization, one
Person, a PersonProject link and a per-person snapshot document. Items
are processed independently: one bad item is recorded and skipped, the
rest of the batch carries on.
"""

from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from profile_indexer.core.constants import DiscoveryRunItemStatus, DocumentKind, DocumentSource, EntityStatus
from profile_indexer.database.models import Location, Organization, Person
from profile_indexer.repositories.entity_repository import (
    LocationRepository,
    OrganizationRepository,
    PersonProjectRepository,
    PersonRepository,
)
from profile_indexer.repositories.project_repository import DiscoveryRunItemRepository
from profile_indexer.schemas.prospect import ProspectContext, ProspectItemResult, ProspectProcessingSummary
from profile_indexer.services.documents.document_service import DocumentService
from profile_indexer.utils.clock import isoformat, utcnow
from profile_indexer.utils.company import MappedCompany, map_company
from profile_indexer.utils.hashing import hash_payload
from profile_indexer.utils.linkedin_url import extract_linkedin_username, safe_normalize_linkedin_url
from profile_indexer.utils.location import ParsedLocation, parse_company_location, parse_prospect_location
from profile_indexer.utils.logging import get_logger

LOGGER = get_logger(__name__)

PROSPECT_LINK_TAG = "prospect-discovery"


def truncate(value: Optional[Any], length: int) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)[:length]


def raw_linkedin_url(item: Dict[str, Any]) -> Optional[str]:
    """LinkedIn URL of an item; the enriched profile_id sometimes carries it."""
    profile = (item.get("enriched") or {}).get("profile") or {}
    return item.get("linkedin_url") or profile.get("profile_id")


class ProspectPersonUpsertService:
    """Upserts people, organizations and locations from prospect search items."""

    def __init__(
        self,
        session: AsyncSession,
        document_service: Optional[DocumentService] = None,
        location_repository: Optional[LocationRepository] = None,
        organization_repository: Optional[OrganizationRepository] = None,
        person_repository: Optional[PersonRepository] = None,
        person_project_repository: Optional[PersonProjectRepository] = None,
        discovery_item_repository: Optional[DiscoveryRunItemRepository] = None,
    ):
        self.session = session
        self.document_service = document_service or DocumentService(session)
        self.location_repository = location_repository or LocationRepository(session)
        self.organization_repository = organization_repository or OrganizationRepository(session)
        self.person_repository = person_repository or PersonRepository(session)
        self.person_project_repository = person_project_repository or PersonProjectRepository(session)
        self.discovery_item_repository = discovery_item_repository or DiscoveryRunItemRepository(session)

    async def upsert_location(self, parsed: ParsedLocation) -> Optional[Location]:
        if parsed.is_unknown:
            return None
        location, _ = await self.location_repository.upsert(
            parsed.normalized_key,
            city=truncate(parsed.city, 128),
            region=truncate(parsed.region, 128),
            country=truncate(parsed.country, 128),
            country_code=truncate(parsed.country_code, 8),
            display_name=truncate(parsed.display_name, 512),
        )
        return location

    async def upsert_organization(
        self,
        company: MappedCompany,
        location: Optional[Location],
    ) -> Optional[Organization]:
        if not company.name:
            return None
        organization, _ = await self.organization_repository.upsert(
            truncate(company.name, 512),
            domain=truncate(company.domain, 255),
            website=truncate(company.website, 512),
            industry=truncate(company.industry, 255),
            size_range=company.size_range,
            founded_year=company.founded_year,
            type=company.type,
            inferred_revenue=truncate(company.inferred_revenue, 128),
            total_funding_raised=truncate(company.total_funding_raised, 128),
            linkedin_url=truncate(company.linkedin_url, 512),
            linkedin_company_id=truncate(company.linkedin_company_id, 64),
            linkedin_company_urn=truncate(company.linkedin_company_urn, 128),
            location_id=location.id if location else None,
        )
        return organization

    async def upsert_person(
        self,
        item: Dict[str, Any],
        linkedin_url: str,
        organization: Optional[Organization],
        location: Optional[Location],
        created_by_user_id: Optional[int],
    ) -> Person:
        profile = (item.get("enriched") or {}).get("profile") or {}
        first_name = truncate(profile.get("first_name"), 128)
        last_name = truncate(profile.get("last_name"), 128)
        display_name = item.get("full_name") or " ".join(part for part in (first_name, last_name) if part) or None

        person, _ = await self.person_repository.upsert(
            linkedin_url,
            linkedin_slug=truncate(extract_linkedin_username(linkedin_url) or item.get("linkedin_slug"), 128),
            external_urn=truncate(profile.get("entity_urn"), 128),
            first_name=first_name,
            last_name=last_name,
            primary_display_name=truncate(display_name, 255),
            headline=truncate(profile.get("summary") or item.get("job_title"), 512),
            sub_title=truncate(profile.get("sub_title"), 512),
            status=EntityStatus.ACTIVE.value,
            current_organization_id=organization.id if organization else None,
            location_id=location.id if location else None,
            created_by_user_id=created_by_user_id,
        )
        return person

    async def write_person_snapshot(
        self,
        item: Dict[str, Any],
        person: Person,
        linkedin_url: str,
        context: ProspectContext,
    ):
        captured_at = utcnow()
        document = await self.document_service.create_document(
            project_id=context.project_id,
            person_id=person.id,
            source=DocumentSource.PROSPECT.value,
            payload=item,
            document_kind=DocumentKind.PROSPECT_PERSON_SNAPSHOT.value,
            source_ref=linkedin_url,
            captured_at=captured_at,
            module_run_id=context.module_run_id,
            content_hash=hash_payload(
                {
                    "projectId": context.project_id,
                    "personId": person.id,
                    "linkedinUrl": linkedin_url,
                    "capturedAt": isoformat(captured_at),
                }
            ),
        )
        await self.document_service.invalidate_previous_valid(
            context.project_id,
            person.id,
            DocumentSource.PROSPECT.value,
            DocumentKind.PROSPECT_PERSON_SNAPSHOT.value,
            document.id,
            {"reason": "superseded", "supersededByDocumentId": document.id, "at": isoformat(utcnow())},
        )
        return document

    async def process_item(self, item: Dict[str, Any], index: int, context: ProspectContext) -> ProspectItemResult:
        """Resolve one search item end to end. Errors propagate to the caller."""
        linkedin_url = safe_normalize_linkedin_url(raw_linkedin_url(item))
        if not linkedin_url:
            LOGGER.info(f"Skipping item {index}: no valid LinkedIn URL")
            return ProspectItemResult(skipped=True)

        result = ProspectItemResult(linkedin_url=linkedin_url)

        parsed_person_location = parse_prospect_location(item)
        person_location = await self.upsert_location(parsed_person_location)
        if person_location:
            result.location_ids.append(person_location.id)

        organization = None
        company = map_company(item)
        if company:
            parsed_company_location = parse_company_location(item)
            if parsed_company_location.normalized_key == parsed_person_location.normalized_key:
                company_location = person_location
            else:
                company_location = await self.upsert_location(parsed_company_location)
                if company_location:
                    result.location_ids.append(company_location.id)
            organization = await self.upsert_organization(company, company_location)
            if organization:
                result.organization_id = organization.id

        person = await self.upsert_person(
            item, linkedin_url, organization, person_location, context.triggered_by_user_id
        )
        result.person_id = person.id

        _, result.link_created = await self.person_project_repository.ensure(
            person.id, context.project_id, tag=PROSPECT_LINK_TAG, created_by_user_id=context.triggered_by_user_id
        )

        document = await self.write_person_snapshot(item, person, linkedin_url, context)
        result.document_id = document.id

        await self.discovery_item_repository.record(
            project_id=context.project_id,
            module_run_id=context.module_run_id,
            status=DiscoveryRunItemStatus.CREATED,
            person_id=person.id,
            source_ref=linkedin_url,
            created_document_id=document.id,
        )
        return result

    async def process_all_items(
        self,
        items: Iterable[Dict[str, Any]],
        context: ProspectContext,
    ) -> ProspectProcessingSummary:
        """Process every item; failures are recorded per item and never raised."""
        summary = ProspectProcessingSummary()

        for index, item in enumerate(items):
            summary.items_processed += 1
            try:
                result = await self.process_item(item, index, context)
                summary.record(result)
            except Exception as e:
                linkedin_url = safe_normalize_linkedin_url(raw_linkedin_url(item)) or raw_linkedin_url(item)
                LOGGER.error(
                    f"Failed to process prospect item {index}: {str(e)}",
                    exc_info=True,
                    extra={"linkedin_url": linkedin_url, "project_id": context.project_id},
                )
                summary.record_failure(index, linkedin_url, str(e))
                await self.session.rollback()
                await self._record_failed_item(context, linkedin_url, e)

        LOGGER.info(
            f"Prospect fanout completed [processed={summary.items_processed}, persons={summary.persons_upserted}, "
            f"orgs={summary.organizations_upserted}, locations={summary.locations_upserted}, "
            f"links={summary.links_created}, snapshots={summary.snapshot_docs_inserted}, "
            f"skipped={summary.items_skipped_missing_linkedin_url}, failed={summary.items_failed_with_error}]"
        )
        return summary

    async def _record_failed_item(self, context: ProspectContext, linkedin_url: Optional[str], error: Exception):
        try:
            await self.discovery_item_repository.record(
                project_id=context.project_id,
                module_run_id=context.module_run_id,
                status=DiscoveryRunItemStatus.FAILED,
                source_ref=linkedin_url,
                error_json={"message": str(error), "linkedinUrl": linkedin_url},
            )
        except Exception as record_error:
            LOGGER.error(f"Could not record failed discovery item: {str(record_error)}", exc_info=True)


def items_from_search_document(payload: Any) -> List[Dict[str, Any]]:
    """Items of a prospect_search_results document payload."""
    if not isinstance(payload, dict):
        return []
    items = (payload.get("result") or {}).get("items") or []
    return [item for item in items if isinstance(item, dict)]
