"""Request/response contracts of the external capabilities (AI, scraper, search)."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class AIRequest:
    """Single chat-completion style request."""
    prompt: str
    system_prompt: Optional[str] = None
    model: Optional[str] = None
    temperature: float = 0.0
    max_tokens: Optional[int] = None
    response_json: bool = True


@dataclass
class AIResponse:
    raw_text: str
    tokens_used: Optional[int]
    provider: str
    model: str


@dataclass
class SearchRequest:
    """Paged prospect search."""
    payload: Dict[str, Any]
    max_pages: int = 10
    max_items: int = 500
    enrich_profiles: bool = True
    page_size_override: Optional[int] = None


@dataclass
class SearchResult:
    items: List[Dict[str, Any]]
    pages_fetched: int
    query_id: Optional[str] = None
    total: int = 0
    total_relation: str = "eq"
    last_scroll_token: Optional[str] = None

    def to_json(self) -> Dict[str, Any]:
        return {
            "items": self.items,
            "pagesFetched": self.pages_fetched,
            "queryId": self.query_id,
            "total": self.total,
            "totalRelation": self.total_relation,
            "lastScrollToken": self.last_scroll_token,
        }


@dataclass
class ActorRun:
    """An actor run as reported by the scraping platform."""
    id: str
    actor_id: str
    status: str
    default_dataset_id: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ActorRunResult:
    run: ActorRun
    items: List[Any]

    @property
    def storage_uri(self) -> str:
        return f"apify://dataset/{self.run.default_dataset_id}"
