"""Create many flow runs at once, grouped under a shared flow set id."""

import uuid
from typing import List, Optional, Sequence, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from profile_indexer.core.constants import EntityStatus
from profile_indexer.core.exceptions import AppError, ValidationError
from profile_indexer.database.models import Person
from profile_indexer.repositories.entity_repository import PersonProjectRepository, PersonRepository
from profile_indexer.repositories.flow_run_repository import FlowRunRepository
from profile_indexer.schemas.flows import FlowBatchItem, FlowBatchResult, FlowSetStatus
from profile_indexer.services.flows.flow_job_service import FlowJobService
from profile_indexer.services.subjects import SubjectValidator
from profile_indexer.utils.linkedin_url import extract_linkedin_username, safe_normalize_linkedin_url
from profile_indexer.utils.logging import get_logger

LOGGER = get_logger(__name__)


def is_urn(value: str) -> bool:
    return value.lower().startswith("urn:")


class FlowBatchService:
    """Resolves each input (profile URL or URN) to a person and starts a flow for it.

    Failures are isolated per input and reported on the item instead of
    being raised, so one bad URL does not abort the rest of the batch.
    """

    def __init__(
        self,
        session: AsyncSession,
        flow_job_service: FlowJobService,
        person_repository: Optional[PersonRepository] = None,
        person_project_repository: Optional[PersonProjectRepository] = None,
        flow_run_repository: Optional[FlowRunRepository] = None,
        subjects: Optional[SubjectValidator] = None,
    ):
        self.session = session
        self.flow_job_service = flow_job_service
        self.persons = person_repository or PersonRepository(session)
        self.links = person_project_repository or PersonProjectRepository(session)
        self.flow_runs = flow_run_repository or FlowRunRepository(session)
        self.subjects = subjects or SubjectValidator(session)

    async def resolve_person(self, raw_input: str, created_by_user_id: Optional[int] = None) -> Tuple[Person, str]:
        """Returns the person and the profile URL the flow should scrape."""
        value = (raw_input or "").strip()
        if not value:
            raise ValidationError("Empty profile URL or URN")

        if is_urn(value):
            existing = await self.persons.get_by_external_urn(value)
            if existing is not None:
                return existing, existing.linkedin_url or value
            person, _ = await self.persons.upsert(
                value,
                external_urn=value,
                status=EntityStatus.ACTIVE.value,
                created_by_user_id=created_by_user_id,
            )
            return person, value

        normalized = safe_normalize_linkedin_url(value)
        if normalized is None:
            raise ValidationError(f"Invalid LinkedIn profile URL or URN: {value}")
        person, created = await self.persons.upsert(
            normalized,
            linkedin_slug=extract_linkedin_username(normalized),
            status=EntityStatus.ACTIVE.value,
            created_by_user_id=created_by_user_id,
        )
        if created:
            LOGGER.info(f"Created person {person.id} for {normalized}")
        return person, normalized

    async def create_flows(
        self,
        project_id: int,
        profile_urls_or_urns: Sequence[str],
        triggered_by_user_id: Optional[int] = None,
        flow_key: Optional[str] = None,
        company_name: Optional[str] = None,
        company_domain: Optional[str] = None,
        filter_instructions: Optional[str] = None,
        custom_prompt: Optional[str] = None,
    ) -> FlowBatchResult:
        await self.subjects.require_project(project_id)
        await self.subjects.require_user(triggered_by_user_id)

        flow_set_id = str(uuid.uuid4())
        LOGGER.info(
            f"Creating flow set {flow_set_id} for project {project_id}",
            extra={"count": len(profile_urls_or_urns)},
        )

        items: List[FlowBatchItem] = []
        for raw_input in profile_urls_or_urns:
            try:
                person, profile_url = await self.resolve_person(raw_input, triggered_by_user_id)
                person_id = person.id
                await self.links.ensure(person_id, project_id, created_by_user_id=triggered_by_user_id)
                created = await self.flow_job_service.create_flow_run(
                    project_id=project_id,
                    person_id=person_id,
                    profile_url=profile_url,
                    triggered_by_user_id=triggered_by_user_id,
                    flow_key=flow_key,
                    filter_instructions=filter_instructions,
                    company_name=company_name,
                    company_domain=company_domain,
                    custom_prompt=custom_prompt,
                    flow_set_id=flow_set_id,
                )
                items.append(
                    FlowBatchItem(
                        input=raw_input,
                        person_id=person_id,
                        flow_run_id=created.flow_run_id,
                        flow_key=created.flow_key,
                        job_id=created.job_id,
                    )
                )
            except AppError as e:
                LOGGER.warning(f"Flow set {flow_set_id}: skipping input {raw_input!r}: {e.message}")
                await self.session.rollback()
                items.append(FlowBatchItem(input=raw_input, error=e.message))
            except Exception as e:
                LOGGER.error(f"Flow set {flow_set_id}: failed to create flow for {raw_input!r}: {str(e)}", exc_info=True)
                await self.session.rollback()
                items.append(FlowBatchItem(input=raw_input, error=str(e) or "Failed to create flow"))

        result = FlowBatchResult(flow_set_id=flow_set_id, items=items)
        LOGGER.info(
            f"Flow set {flow_set_id} created",
            extra={"created_count": result.created_count, "failed_count": result.failed_count},
        )
        return result

    async def get_flow_set_status(self, flow_set_id: str) -> FlowSetStatus:
        flow_runs = await self.flow_runs.list_by_flow_set(flow_set_id)
        flow_run_ids = [flow_run.id for flow_run in flow_runs]

        statuses = []
        counts = {}
        for flow_run_id in flow_run_ids:
            status = await self.flow_job_service.get_flow_run_status(flow_run_id)
            statuses.append(status)
            counts[status.status] = counts.get(status.status, 0) + 1

        return FlowSetStatus(flow_set_id=flow_set_id, total=len(statuses), status_counts=counts, flows=statuses)
