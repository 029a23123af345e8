from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from profile_indexer.core.exceptions import PartialBatchFailure


@dataclass
class ProspectContext:
    """Who and what a fanout batch runs for."""
    project_id: int
    module_run_id: Optional[int]
    triggered_by_user_id: Optional[int]


@dataclass
class ProspectItemResult:
    """Outcome of one processed item; ``skipped`` when it had no usable LinkedIn URL."""
    linkedin_url: Optional[str] = None
    person_id: Optional[int] = None
    organization_id: Optional[int] = None
    location_ids: List[int] = field(default_factory=list)
    link_created: bool = False
    document_id: Optional[int] = None
    skipped: bool = False


@dataclass
class ProspectProcessingSummary:
    """Aggregated counts of a fanout batch. Upsert counts are unique-id counts."""
    items_processed: int = 0
    persons_upserted: int = 0
    organizations_upserted: int = 0
    locations_upserted: int = 0
    links_created: int = 0
    snapshot_docs_inserted: int = 0
    items_skipped_missing_linkedin_url: int = 0
    items_failed_with_error: int = 0
    failures: List[Dict[str, Any]] = field(default_factory=list)

    _person_ids: Set[int] = field(default_factory=set, repr=False)
    _organization_ids: Set[int] = field(default_factory=set, repr=False)
    _location_ids: Set[int] = field(default_factory=set, repr=False)

    def record(self, result: ProspectItemResult) -> None:
        if result.skipped:
            self.items_skipped_missing_linkedin_url += 1
            return
        if result.person_id is not None:
            self._person_ids.add(result.person_id)
        if result.organization_id is not None:
            self._organization_ids.add(result.organization_id)
        self._location_ids.update(result.location_ids)
        if result.link_created:
            self.links_created += 1
        if result.document_id is not None:
            self.snapshot_docs_inserted += 1

        self.persons_upserted = len(self._person_ids)
        self.organizations_upserted = len(self._organization_ids)
        self.locations_upserted = len(self._location_ids)

    def record_failure(self, item_index: int, linkedin_url: Optional[str], error: str) -> None:
        self.items_failed_with_error += 1
        self.failures.append({"itemIndex": item_index, "linkedinUrl": linkedin_url, "error": error})

    def raise_for_failures(self) -> None:
        if self.failures:
            raise PartialBatchFailure(
                f"{len(self.failures)} of {self.items_processed} prospect items failed",
                self.failures,
            )

    def to_json(self) -> Dict[str, Any]:
        return {
            "itemsProcessed": self.items_processed,
            "personsUpserted": self.persons_upserted,
            "organizationsUpserted": self.organizations_upserted,
            "locationsUpserted": self.locations_upserted,
            "linksCreated": self.links_created,
            "snapshotDocsInserted": self.snapshot_docs_inserted,
            "itemsSkippedMissingLinkedinUrl": self.items_skipped_missing_linkedin_url,
            "itemsFailedWithError": self.items_failed_with_error,
            "failures": self.failures,
        }
