"""Enumerations and keys shared across the pipeline."""

from enum import Enum


class EntityStatus(str, Enum):
    ACTIVE = "ACTIVE"
    ARCHIVED = "ARCHIVED"
    DELETED = "DELETED"


class ModuleType(str, Enum):
    CONNECTOR = "CONNECTOR"
    ENRICHER = "ENRICHER"
    COMPOSER = "COMPOSER"


class ModuleScope(str, Enum):
    PERSON_LEVEL = "PERSON_LEVEL"
    PROJECT_LEVEL = "PROJECT_LEVEL"


class RunStatus(str, Enum):
    """Status of a ModuleRun or FlowRun."""
    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.COMPLETED, RunStatus.FAILED)


class FlowStage(str, Enum):
    CONNECTORS = "CONNECTORS"
    ENRICHERS = "ENRICHERS"
    COMPOSERS = "COMPOSERS"
    COMPLETED = "COMPLETED"


class DocumentSource(str, Enum):
    LINKEDIN = "LINKEDIN"
    MANUAL = "MANUAL"
    PROSPECT = "PROSPECT"


class DocumentKind(str, Enum):
    LINKEDIN_PROFILE = "linkedin_profile"
    LINKEDIN_POSTS = "linkedin_posts"
    PROSPECT_SEARCH_RESULTS = "prospect_search_results"
    PROSPECT_PERSON_SNAPSHOT = "prospect_person_snapshot"


class DiscoveryRunItemStatus(str, Enum):
    CREATED = "CREATED"
    FAILED = "FAILED"


class ClaimType(str, Enum):
    LEGAL_NAME = "core_identity.legal_name"
    LOCATION = "core_identity.location"
    EDUCATION_ITEM = "core_identity.education_item"
    CAREER_ROLE = "core_identity.career_role"
    CERTIFICATION = "core_identity.certification"
    BOARD_POSITION = "core_identity.board_position"
    AGE_RANGE = "core_identity.age_range"
    FINAL_SUMMARY = "insights.final_summary"


class JobType(str, Enum):
    EXECUTE_MODULE_RUN = "EXECUTE_MODULE_RUN"
    RUN_INDEXER_FLOW = "RUN_INDEXER_FLOW"


class ModuleKey:
    NOOP = "noop"
    MANUAL_DOCUMENT_CONNECTOR = "manual-document-connector"
    LINKEDIN_PROFILE_CONNECTOR = "linkedin-profile-connector"
    LINKEDIN_POSTS_CONNECTOR = "linkedin-posts-connector"
    PROSPECT_SEARCH_CONNECTOR = "prospect-search-connector"
    CORE_IDENTITY_ENRICHER = "core-identity-enricher"
    LINKEDIN_CORE_IDENTITY_ENRICHER = "linkedin-core-identity-enricher"
    LAYER_1_COMPOSER = "layer-1-composer"
    FINAL_SUMMARY_COMPOSER = "final-summary-composer"


# Group key of singleton claims (one active value per subject and type)
SINGLE_GROUP_KEY = "single"

# ModuleRun.input_config_json key pointing back at the owning FlowRun
FLOW_RUN_ID_KEY = "_flowRunId"

INLINE_STORAGE_URI = "inline://document"

COUNTRY_CODE_TO_TIMEZONE = {
    "IN": "Asia/Kolkata",
    "US": "America/New_York",
    "GB": "Europe/London",
    "SG": "Asia/Singapore",
    "AU": "Australia/Sydney",
}

# Career titles containing any of these are also recorded as board positions
BOARD_POSITION_KEYWORDS = (
    "board member",
    "advisor",
    "advisory",
    "independent director",
    "director (board)",
    "trustee",
    "governor",
    "board of directors",
)

# Age ranges wider than this are discarded
MAX_AGE_RANGE_WIDTH = 12
