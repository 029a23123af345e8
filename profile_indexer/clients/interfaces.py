"""Abstract capabilities the pipeline depends on.

Handlers and services only see these interfaces; concrete httpx-backed
implementations live next to this module and test doubles subclass them.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from profile_indexer.schemas.providers import (
    ActorRunResult,
    AIRequest,
    AIResponse,
    SearchRequest,
    SearchResult,
)


class AIProvider(ABC):
    """Text-in, text-out language model capability."""

    @abstractmethod
    async def run(self, request: AIRequest) -> AIResponse:
        pass


class ScraperProvider(ABC):
    """Runs scraping actors and returns their dataset items."""

    @abstractmethod
    async def run_actor_and_fetch_dataset(
        self,
        actor_id: str,
        actor_input: Dict[str, Any],
        limit: Optional[int] = None,
    ) -> ActorRunResult:
        pass

    @abstractmethod
    async def scrape_profile(
        self,
        profile_urls: List[str],
        actor_id: Optional[str] = None,
        actor_input: Optional[Dict[str, Any]] = None,
        limit: Optional[int] = None,
    ) -> ActorRunResult:
        pass


class SearchProvider(ABC):
    """Paged prospect search capability."""

    @abstractmethod
    async def search(self, request: SearchRequest) -> SearchResult:
        pass
