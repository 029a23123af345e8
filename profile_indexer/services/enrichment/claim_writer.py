from typing import Any, List, Optional

from profile_indexer.core.constants import SINGLE_GROUP_KEY
from profile_indexer.database.models import Claim, Document, ModuleRun
from profile_indexer.services.claims.claim_ledger_service import ClaimLedgerService, ClaimWriteParams
from profile_indexer.utils.logging import get_logger

LOGGER = get_logger(__name__)


class DocumentClaimWriter:
    """Writes the claims an enricher derives from one source document.

    Every write goes through the ledger's change check, so re-running an
    enricher over the same document writes nothing. ``claim_ids`` collects
    the claims actually written during this run.
    """

    def __init__(
        self,
        ledger: ClaimLedgerService,
        run: ModuleRun,
        person_id: int,
        document: Document,
        schema_version: str = "v1",
    ):
        self.ledger = ledger
        self.run = run
        self.person_id = person_id
        self.document = document
        self.schema_version = schema_version
        self.claim_ids: List[int] = []
        self.unchanged = 0

    async def write(
        self,
        claim_type: str,
        value: Any,
        confidence: float,
        group_key: Optional[str] = SINGLE_GROUP_KEY,
    ) -> Optional[Claim]:
        claim, changed = await self.ledger.write_claim_if_changed(
            ClaimWriteParams(
                project_id=self.run.project_id,
                person_id=self.person_id,
                claim_type=claim_type,
                value=value,
                confidence=confidence,
                group_key=group_key,
                observed_at=self.document.captured_at,
                source_document_id=self.document.id,
                module_run_id=self.run.id,
                schema_version=self.schema_version,
            )
        )
        if not changed:
            self.unchanged += 1
            return None

        self.claim_ids.append(claim.id)
        LOGGER.info(f"Wrote claim {claim.id} [claimType={claim_type}, groupKey={group_key}]")
        return claim

    def result(self) -> dict:
        return {
            "claimsCreated": len(self.claim_ids),
            "claimIds": list(self.claim_ids),
            "claimsUnchanged": self.unchanged,
            "sourceDocumentId": self.document.id,
        }
