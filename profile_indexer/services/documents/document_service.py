"""Document store: immutable captured payloads with a validity flag.

A document's payload is never modified after insert. Only ``is_valid`` and
``invalidated_meta_json`` change, so every earlier capture stays available
for lineage. Writers follow a create-then-invalidate-previous protocol; in
between, two valid documents of the same key may briefly coexist, and
readers resolve that by always taking the latest capture.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from profile_indexer.core.constants import INLINE_STORAGE_URI
from profile_indexer.core.exceptions import NotFoundError, ValidationError
from profile_indexer.database.models import Document
from profile_indexer.repositories.document_repository import DocumentRepository
from profile_indexer.utils.clock import isoformat, utcnow
from profile_indexer.utils.hashing import hash_payload
from profile_indexer.utils.logging import get_logger

LOGGER = get_logger(__name__)


class DocumentService:
    """Create, invalidate and look up documents."""

    def __init__(self, session: AsyncSession, repository: Optional[DocumentRepository] = None):
        self.session = session
        self.repository = repository or DocumentRepository(session)

    async def create_document(
        self,
        project_id: int,
        person_id: Optional[int],
        source: str,
        payload: Any,
        document_kind: Optional[str] = None,
        source_ref: Optional[str] = None,
        content_type: str = "application/json",
        storage_uri: str = INLINE_STORAGE_URI,
        captured_at: Optional[datetime] = None,
        module_run_id: Optional[int] = None,
        content_hash: Optional[str] = None,
    ) -> Document:
        """Insert a new valid document.

        The hash is a sha256 over the canonical JSON of the payload unless
        the caller supplies its own.
        """
        if not source:
            raise ValidationError("Document source is required")

        document = await self.repository.create(
            project_id=project_id,
            person_id=person_id,
            source=source,
            source_ref=source_ref[:255] if source_ref else None,
            content_type=content_type,
            document_kind=document_kind,
            is_valid=True,
            storage_uri=storage_uri,
            hash=content_hash or hash_payload(payload),
            captured_at=captured_at or utcnow(),
            module_run_id=module_run_id,
            payload_json=payload,
            invalidated_meta_json=None,
        )
        LOGGER.info(
            f"Created document {document.id} ({source}/{document_kind})",
            extra={"project_id": project_id, "person_id": person_id, "module_run_id": module_run_id},
        )
        return document

    async def get_document(self, document_id: int) -> Document:
        document = await self.repository.get_by_id(document_id)
        if document is None:
            raise NotFoundError(f"Document {document_id} not found")
        return document

    async def list_documents(
        self,
        filters: Optional[Dict[str, Any]] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Document]:
        """List documents newest first.

        Supported filters: project_id, person_id, source, document_kind, is_valid.
        """
        filters = filters or {}
        return await self.repository.list_documents(
            project_id=filters.get("project_id"),
            person_id=filters.get("person_id"),
            source=filters.get("source"),
            document_kind=filters.get("document_kind"),
            is_valid=filters.get("is_valid"),
            limit=limit,
            offset=offset,
        )

    async def invalidate_document(
        self,
        document_id: int,
        reason: str,
        superseded_by: Optional[int] = None,
        invalidated_by_user_id: Optional[int] = None,
        extra_meta: Optional[Dict[str, Any]] = None,
    ) -> Document:
        await self.get_document(document_id)
        meta = {
            "reason": reason,
            "supersededBy": superseded_by,
            "invalidatedByUserId": invalidated_by_user_id,
            "invalidatedAt": isoformat(utcnow()),
            **(extra_meta or {}),
        }
        document = await self.repository.set_validity(document_id, False, meta)
        LOGGER.info(f"Invalidated document {document_id}: {reason}")
        return document

    async def revalidate_document(
        self,
        document_id: int,
        reason: str,
        revalidated_by_user_id: Optional[int] = None,
    ) -> Document:
        await self.get_document(document_id)
        meta = {
            "revalidatedByUserId": revalidated_by_user_id,
            "revalidatedAt": isoformat(utcnow()),
            "reason": reason,
        }
        document = await self.repository.set_validity(document_id, True, meta)
        LOGGER.info(f"Revalidated document {document_id}: {reason}")
        return document

    async def get_latest_valid_document(
        self,
        project_id: int,
        person_id: Optional[int],
        source: str,
        document_kind: str,
        panic: bool = True,
    ) -> Optional[Document]:
        """Most recent valid document for the key.

        Raises:
            NotFoundError: when none exists and ``panic`` is true
        """
        document = await self.repository.get_latest_valid(project_id, person_id, source, document_kind)
        if document is None and panic:
            raise NotFoundError(
                f"No valid {source}/{document_kind} document for project {project_id}, person {person_id}"
            )
        return document

    async def invalidate_previous_valid(
        self,
        project_id: int,
        person_id: Optional[int],
        source: str,
        document_kind: str,
        keep_document_id: int,
        meta: Dict[str, Any],
    ) -> int:
        """Invalidate every other valid document of the key. Returns how many were invalidated."""
        count = await self.repository.invalidate_others(
            project_id, person_id, source, document_kind, keep_document_id, meta
        )
        if count:
            LOGGER.info(
                f"Invalidated {count} previous {source}/{document_kind} documents, keeping {keep_document_id}",
                extra={"project_id": project_id, "person_id": person_id},
            )
        return count

    async def write_and_supersede(
        self,
        project_id: int,
        person_id: Optional[int],
        source: str,
        document_kind: str,
        payload: Any,
        module_run_id: Optional[int] = None,
        extra_meta: Optional[Dict[str, Any]] = None,
        **document_fields: Any,
    ) -> Document:
        """Writer protocol: insert the new document, then invalidate the older ones of its key."""
        document = await self.create_document(
            project_id=project_id,
            person_id=person_id,
            source=source,
            payload=payload,
            document_kind=document_kind,
            module_run_id=module_run_id,
            **document_fields,
        )
        meta = {
            "reason": "superseded",
            "supersededBy": document.id,
            "moduleRunId": module_run_id,
            "at": isoformat(utcnow()),
            **(extra_meta or {}),
        }
        await self.invalidate_previous_valid(project_id, person_id, source, document_kind, document.id, meta)
        return document
