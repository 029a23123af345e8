from typing import Any, Dict, Optional

from profile_indexer.core.constants import ClaimType, ModuleKey
from profile_indexer.core.exceptions import ValidationError
from profile_indexer.database.models import ModuleRun
from profile_indexer.schemas.module_inputs import CoreIdentityEnricherInput
from profile_indexer.services.claims.claim_ledger_service import ClaimLedgerService
from profile_indexer.services.documents.document_service import DocumentService
from profile_indexer.services.enrichment.claim_writer import DocumentClaimWriter
from profile_indexer.services.modules.base_handler import BaseModuleHandler, require_person_id
from profile_indexer.utils.hashing import build_fingerprint


def _legal_name_value(raw: Any) -> Optional[Dict[str, Any]]:
    if isinstance(raw, str):
        return {"value": raw} if raw.strip() else None
    if not isinstance(raw, dict):
        return None
    full_name = raw.get("value") or raw.get("fullName")
    if not full_name and raw.get("firstName") and raw.get("lastName"):
        full_name = f"{raw['firstName']} {raw['lastName']}"
    if not full_name:
        return None
    return {**raw, "value": full_name}


class CoreIdentityEnricherHandler(BaseModuleHandler):
    """Turns a pre-structured core identity payload into claims.

    The source document (by default a MANUAL one) holds
    ``{legalName, location, education[], career[], certifications[]}``.
    Education needs school and degree, career roles company and title,
    certifications a name; incomplete items are skipped.
    """

    module_key = ModuleKey.CORE_IDENTITY_ENRICHER

    def __init__(self, document_service: DocumentService, ledger: ClaimLedgerService):
        super().__init__()
        self.document_service = document_service
        self.ledger = ledger

    async def run(self, run: ModuleRun, config: CoreIdentityEnricherInput) -> Dict[str, Any]:
        person_id = require_person_id(run)
        document = await self.document_service.get_latest_valid_document(
            run.project_id, person_id, config.document_source, config.document_kind
        )
        payload = document.payload_json
        if not isinstance(payload, dict):
            raise ValidationError(f"Document {document.id} has no core identity payload")

        writer = DocumentClaimWriter(self.ledger, run, person_id, document, config.schema_version)

        legal_name = _legal_name_value(payload.get("legalName"))
        if legal_name:
            await writer.write(ClaimType.LEGAL_NAME.value, legal_name, 0.9)

        if isinstance(payload.get("location"), dict):
            await writer.write(ClaimType.LOCATION.value, payload["location"], 0.9)

        for edu in payload.get("education") or []:
            if not isinstance(edu, dict) or not edu.get("school") or not edu.get("degree"):
                self.logger.warning("Skipping education item missing school or degree", extra={"edu": edu})
                continue
            fingerprint = build_fingerprint(
                [edu.get("school"), edu.get("degree"), edu.get("field"), edu.get("startYear"), edu.get("endYear")]
            )
            await writer.write(
                ClaimType.EDUCATION_ITEM.value, {**edu, "fingerprint": fingerprint}, 0.9, group_key=fingerprint
            )

        for role in payload.get("career") or []:
            if not isinstance(role, dict) or not role.get("company") or not role.get("title"):
                self.logger.warning("Skipping career role missing company or title", extra={"role": role})
                continue
            fingerprint = build_fingerprint(
                [role.get("company"), role.get("title"), role.get("startDate"), role.get("endDate") or "present"]
            )
            await writer.write(
                ClaimType.CAREER_ROLE.value, {**role, "fingerprint": fingerprint}, 0.9, group_key=fingerprint
            )

        for cert in payload.get("certifications") or []:
            if not isinstance(cert, dict) or not cert.get("name"):
                self.logger.warning("Skipping certification missing name", extra={"cert": cert})
                continue
            fingerprint = build_fingerprint(
                [cert.get("name"), cert.get("issuer"), cert.get("issueDate"), cert.get("credentialId")]
            )
            await writer.write(
                ClaimType.CERTIFICATION.value, {**cert, "fingerprint": fingerprint}, 0.9, group_key=fingerprint
            )

        self.logger.info(
            f"Core identity enrichment wrote {len(writer.claim_ids)} claims",
            extra={"module_run_id": run.id, "document_id": document.id},
        )
        return writer.result()
