from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from profile_indexer.database.models import Document
from profile_indexer.repositories.base_repository import BaseRepository
from profile_indexer.utils.clock import utcnow


class DocumentRepository(BaseRepository[Document]):
    """Repository for captured documents."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Document)

    @staticmethod
    def _subject_clause(project_id: int, person_id: Optional[int]):
        # Project-level documents have no person
        if person_id is None:
            return (Document.project_id == project_id, Document.person_id.is_(None))
        return (Document.project_id == project_id, Document.person_id == person_id)

    async def get_latest_valid(
        self,
        project_id: int,
        person_id: Optional[int],
        source: str,
        document_kind: str,
    ) -> Optional[Document]:
        """Most recently captured valid document for (subject, source, kind)."""
        query = (
            select(Document)
            .where(
                *self._subject_clause(project_id, person_id),
                Document.source == source,
                Document.document_kind == document_kind,
                Document.is_valid.is_(True),
            )
            .order_by(Document.captured_at.desc(), Document.created_at.desc(), Document.id.desc())
            .limit(1)
        )
        result = await self.session.execute(query)
        return result.scalars().first()

    async def list_documents(
        self,
        project_id: Optional[int] = None,
        person_id: Optional[int] = None,
        source: Optional[str] = None,
        document_kind: Optional[str] = None,
        is_valid: Optional[bool] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Document]:
        query = select(Document)
        if project_id is not None:
            query = query.where(Document.project_id == project_id)
        if person_id is not None:
            query = query.where(Document.person_id == person_id)
        if source is not None:
            query = query.where(Document.source == source)
        if document_kind is not None:
            query = query.where(Document.document_kind == document_kind)
        if is_valid is not None:
            query = query.where(Document.is_valid.is_(is_valid))

        query = query.order_by(Document.captured_at.desc(), Document.id.desc()).offset(offset).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def set_validity(self, document_id: int, is_valid: bool, meta: Dict[str, Any]) -> Optional[Document]:
        """Flip the validity flag; the payload is never touched."""
        return await self.update(document_id, is_valid=is_valid, invalidated_meta_json=meta)

    async def invalidate_others(
        self,
        project_id: int,
        person_id: Optional[int],
        source: str,
        document_kind: str,
        keep_document_id: int,
        meta: Dict[str, Any],
    ) -> int:
        """Invalidate every other valid document of the same key. Returns the count."""
        try:
            stmt = (
                update(Document)
                .where(
                    *self._subject_clause(project_id, person_id),
                    Document.source == source,
                    Document.document_kind == document_kind,
                    Document.is_valid.is_(True),
                    Document.id != keep_document_id,
                )
                .values(is_valid=False, invalidated_meta_json=meta, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            result = await self.session.execute(stmt)
            await self.session.commit()
            return result.rowcount or 0
        except SQLAlchemyError as e:
            await self.session.rollback()
            self.logger.error(
                f"Error invalidating previous documents: {str(e)}",
                exc_info=True,
                extra={"project_id": project_id, "person_id": person_id, "source": source, "kind": document_kind},
            )
            raise
