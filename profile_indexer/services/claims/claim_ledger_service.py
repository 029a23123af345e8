"""Claims ledger: versioned facts with transactional supersession.

For every (project, person, claim_type, group_key) at most one claim is
active (``superseded_at`` is null). Writing a new value inserts a row and
supersedes the previous active one inside a single transaction; an
unchanged value writes nothing.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from profile_indexer.core.constants import SINGLE_GROUP_KEY
from profile_indexer.core.exceptions import ValidationError
from profile_indexer.database.models import Claim
from profile_indexer.repositories.claim_repository import ClaimRepository
from profile_indexer.schemas.claims import validate_claim_value
from profile_indexer.utils.clock import utcnow
from profile_indexer.utils.hashing import json_equal
from profile_indexer.utils.logging import get_logger

LOGGER = get_logger(__name__)


@dataclass
class ClaimWriteParams:
    project_id: int
    person_id: int
    claim_type: str
    value: Any
    confidence: float
    group_key: Optional[str] = SINGLE_GROUP_KEY
    observed_at: datetime = field(default_factory=utcnow)
    source_document_id: Optional[int] = None
    module_run_id: Optional[int] = None
    schema_version: str = "v1"
    valid_from: Optional[datetime] = None
    valid_to: Optional[datetime] = None

    @property
    def key(self) -> str:
        return self.group_key or SINGLE_GROUP_KEY


class ClaimLedgerService:
    """Write and read claims."""

    def __init__(self, session: AsyncSession, repository: Optional[ClaimRepository] = None):
        self.session = session
        self.repository = repository or ClaimRepository(session)

    def _prepare_value(self, params: ClaimWriteParams) -> Any:
        if not 0.0 <= params.confidence <= 1.0:
            raise ValidationError(f"Claim confidence must be between 0 and 1, got {params.confidence}")
        try:
            return validate_claim_value(params.claim_type, params.value)
        except ValueError as e:
            raise ValidationError(f"Invalid value for claim type {params.claim_type}: {e}", e)

    async def insert_claim_and_supersede_previous(self, params: ClaimWriteParams) -> Claim:
        """Insert a claim and supersede the active one of the same key, atomically."""
        value = self._prepare_value(params)
        return await self.repository.insert_and_supersede(
            project_id=params.project_id,
            person_id=params.person_id,
            claim_type=params.claim_type,
            group_key=params.key,
            value_json=value,
            confidence=params.confidence,
            observed_at=params.observed_at,
            valid_from=params.valid_from,
            valid_to=params.valid_to,
            superseded_at=None,
            replaced_by_claim_id=None,
            source_document_id=params.source_document_id,
            module_run_id=params.module_run_id,
            schema_version=params.schema_version,
        )

    async def write_claim_if_changed(self, params: ClaimWriteParams) -> Tuple[Claim, bool]:
        """Write a claim unless the active value of its key is deep-equal.

        Returns:
            (claim, changed): the existing claim and False when nothing was
            written, otherwise the new claim and True
        """
        value = self._prepare_value(params)
        existing = await self.repository.get_latest_active(
            params.project_id, params.person_id, params.claim_type, params.key
        )
        if existing is not None and json_equal(existing.value_json, value):
            LOGGER.debug(
                f"Claim unchanged, skipping [claimType={params.claim_type}, groupKey={params.key}]",
                extra={"claim_id": existing.id},
            )
            return existing, False

        params.value = value
        claim = await self.insert_claim_and_supersede_previous(params)
        return claim, True

    async def get_active_claims(
        self,
        project_id: int,
        person_id: int,
        claim_types: Optional[Iterable[str]] = None,
    ) -> List[Claim]:
        return await self.repository.get_active(project_id, person_id, claim_types)

    async def get_latest_active_claim(
        self,
        project_id: int,
        person_id: int,
        claim_type: str,
        group_key: Optional[str] = None,
        module_run_ids: Optional[Sequence[int]] = None,
    ) -> Optional[Claim]:
        return await self.repository.get_latest_active(
            project_id, person_id, claim_type, group_key, module_run_ids
        )

    async def get_claim_history(
        self,
        project_id: int,
        person_id: int,
        claim_type: str,
        group_key: Optional[str] = None,
    ) -> List[Claim]:
        """Every version of a key, oldest first."""
        return await self.repository.get_history(project_id, person_id, claim_type, group_key or SINGLE_GROUP_KEY)
