from typing import Any, Iterable, List, Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from profile_indexer.core.constants import SINGLE_GROUP_KEY
from profile_indexer.database.models import Claim
from profile_indexer.repositories.base_repository import BaseRepository
from profile_indexer.utils.clock import utcnow


class ClaimRepository(BaseRepository[Claim]):
    """Repository for the append-only claims ledger."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Claim)

    async def insert_and_supersede(self, **fields: Any) -> Claim:
        """Insert a claim and supersede the active claims of the same key, atomically.

        Runs as one transaction: a transaction-scoped advisory lock on the
        (project, person, claim_type, group_key) key serialises concurrent
        writers, the new row is inserted, every other active row of the key
        is stamped with superseded_at / replaced_by_claim_id, then a single
        commit. Any failure rolls back both steps.
        """
        fields["group_key"] = fields.get("group_key") or SINGLE_GROUP_KEY
        lock_key = f"claims:{fields['project_id']}:{fields['person_id']}:{fields['claim_type']}:{fields['group_key']}"

        try:
            await self.session.execute(select(func.pg_advisory_xact_lock(func.hashtext(lock_key))))

            claim = Claim(**fields)
            self.session.add(claim)
            await self.session.flush()

            now = utcnow()
            stmt = (
                update(Claim)
                .where(
                    Claim.project_id == claim.project_id,
                    Claim.person_id == claim.person_id,
                    Claim.claim_type == claim.claim_type,
                    Claim.group_key == claim.group_key,
                    Claim.superseded_at.is_(None),
                    Claim.id != claim.id,
                )
                .values(superseded_at=now, replaced_by_claim_id=claim.id, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            result = await self.session.execute(stmt)
            await self.session.commit()

            self.logger.info(
                f"Inserted claim {claim.id} ({claim.claim_type}), superseded {result.rowcount or 0}",
                extra={"claim_id": claim.id, "group_key": claim.group_key},
            )
            return claim
        except SQLAlchemyError as e:
            await self.session.rollback()
            self.logger.error(
                f"Error inserting claim with supersession: {str(e)}",
                exc_info=True,
                extra={"claim_type": fields.get("claim_type"), "group_key": fields.get("group_key")},
            )
            raise

    async def get_active(
        self,
        project_id: int,
        person_id: int,
        claim_types: Optional[Iterable[str]] = None,
    ) -> List[Claim]:
        """Active claims, oldest first."""
        query = select(Claim).where(
            Claim.project_id == project_id,
            Claim.person_id == person_id,
            Claim.superseded_at.is_(None),
        )
        if claim_types:
            query = query.where(Claim.claim_type.in_(list(claim_types)))
        query = query.order_by(Claim.created_at.asc(), Claim.id.asc())
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_latest_active(
        self,
        project_id: int,
        person_id: int,
        claim_type: str,
        group_key: Optional[str] = None,
        module_run_ids: Optional[Sequence[int]] = None,
    ) -> Optional[Claim]:
        query = select(Claim).where(
            Claim.project_id == project_id,
            Claim.person_id == person_id,
            Claim.claim_type == claim_type,
            Claim.superseded_at.is_(None),
        )
        if group_key is not None:
            query = query.where(Claim.group_key == group_key)
        if module_run_ids is not None:
            if not module_run_ids:
                return None
            query = query.where(Claim.module_run_id.in_(list(module_run_ids)))
        query = query.order_by(Claim.created_at.desc(), Claim.id.desc()).limit(1)
        result = await self.session.execute(query)
        return result.scalars().first()

    async def get_history(self, project_id: int, person_id: int, claim_type: str, group_key: str) -> List[Claim]:
        query = (
            select(Claim)
            .where(
                Claim.project_id == project_id,
                Claim.person_id == person_id,
                Claim.claim_type == claim_type,
                Claim.group_key == group_key,
            )
            .order_by(Claim.created_at.asc(), Claim.id.asc())
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())
