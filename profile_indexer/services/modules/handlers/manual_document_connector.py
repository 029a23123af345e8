from typing import Any, Dict

from profile_indexer.core.constants import DocumentSource, ModuleKey
from profile_indexer.core.exceptions import ValidationError
from profile_indexer.database.models import ModuleRun
from profile_indexer.schemas.module_inputs import ManualDocumentConnectorInput
from profile_indexer.services.documents.document_service import DocumentService
from profile_indexer.services.modules.base_handler import BaseModuleHandler


class ManualDocumentConnectorHandler(BaseModuleHandler):
    """Stores an operator-supplied payload as a MANUAL document."""

    module_key = ModuleKey.MANUAL_DOCUMENT_CONNECTOR

    def __init__(self, document_service: DocumentService):
        super().__init__()
        self.document_service = document_service

    async def run(self, run: ModuleRun, config: ManualDocumentConnectorInput) -> Dict[str, Any]:
        if config.payload is None:
            raise ValidationError("payload is required in InputConfigJson")
        if config.source != DocumentSource.MANUAL.value:
            raise ValidationError(f"Invalid source: {config.source}. Must be {DocumentSource.MANUAL.value}")

        document = await self.document_service.create_document(
            project_id=run.project_id,
            person_id=run.person_id,
            source=config.source,
            payload=config.payload,
            document_kind=config.document_kind,
            source_ref=config.source_ref,
            content_type=config.content_type,
            captured_at=config.captured_at,
            module_run_id=run.id,
        )
        return {"documentId": document.id, "hash": document.hash}
