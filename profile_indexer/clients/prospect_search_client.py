"""Prospect search API client with scroll-token pagination and profile enrichment."""

from typing import Any, Dict, List, Optional

import httpx

from profile_indexer.clients.base_client import BaseHTTPClient
from profile_indexer.clients.interfaces import SearchProvider
from profile_indexer.core.config import ScraperSettings
from profile_indexer.core.exceptions import ConfigurationError, ExternalProviderError
from profile_indexer.schemas.providers import SearchRequest, SearchResult
from profile_indexer.utils.logging import get_logger

LOGGER = get_logger(__name__)

SEARCH_PATH = "/svc/app/prospect/search"
PROFILE_PATH = "/svc/app/prospect/profile"


class ProspectSearchClient(SearchProvider):
    """Search capability backed by the prospect search API."""

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: int = 60,
        max_retries: int = 3,
        retry_delay: float = 2.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client = BaseHTTPClient(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
            retry_delay=retry_delay,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, scraper_settings: ScraperSettings) -> "ProspectSearchClient":
        if not scraper_settings.prospect_search_url:
            raise ConfigurationError("PROSPECT_SEARCH_URL is not configured")
        return cls(
            base_url=scraper_settings.prospect_search_url,
            api_key=scraper_settings.prospect_api_key,
            timeout=scraper_settings.timeout,
            max_retries=scraper_settings.max_retries,
            retry_delay=scraper_settings.retry_delay,
        )

    async def get_profile(self, profile_code: str) -> Dict[str, Any]:
        response = await self.client.call_api(
            endpoint=PROFILE_PATH,
            method="GET",
            params={"profile_code": profile_code},
        )
        return response.get("data") or {}

    async def _enrich_item(self, item: Dict[str, Any]) -> Dict[str, Any]:
        """Attach profile details under ``enriched``; the item is returned as-is on failure."""
        profile_code = item.get("profile_code")
        if not profile_code:
            LOGGER.warning(f"Item missing profile_code, skipping enrichment [id={item.get('id')}]")
            return item
        try:
            profile = await self.get_profile(profile_code)
        except ExternalProviderError as e:
            LOGGER.warning(f"Failed to fetch profile, returning original item [profileCode={profile_code}, error={e.message}]")
            return item
        return {**item, "enriched": profile}

    @staticmethod
    def _next_page_payload(payload: Dict[str, Any], body: Dict[str, Any]) -> Dict[str, Any]:
        return {
            **payload,
            "scroll_token": body.get("scroll_token"),
            "sort_fields": body.get("sort_fields"),
            "search_after": body.get("last_sort"),
        }

    async def search(self, request: SearchRequest) -> SearchResult:
        """Fetch pages until max_pages, max_items or an empty page."""
        LOGGER.info(
            f"Starting prospect search [maxPages={request.max_pages}, maxItems={request.max_items}, "
            f"enrichProfiles={request.enrich_profiles}]"
        )

        payload = dict(request.payload)
        if request.page_size_override:
            payload["page_size"] = request.page_size_override

        items: List[Dict[str, Any]] = []
        pages_fetched = 0
        last_body: Dict[str, Any] = {}

        while pages_fetched < request.max_pages and len(items) < request.max_items:
            response = await self.client.call_api(endpoint=SEARCH_PATH, method="POST", payload=payload)
            last_body = response.get("body", response) if isinstance(response, dict) else {}
            page_items = last_body.get("data") or []

            if not page_items:
                LOGGER.info(f"No more items available [pagesFetched={pages_fetched}]")
                break

            to_add = page_items[: request.max_items - len(items)]
            if request.enrich_profiles:
                to_add = [await self._enrich_item(item) for item in to_add]
            items.extend(to_add)
            pages_fetched += 1

            if len(items) >= request.max_items:
                break
            payload = self._next_page_payload(payload, last_body)

        LOGGER.info(f"Search completed [pagesFetched={pages_fetched}, totalItems={len(items)}]")
        return SearchResult(
            items=items,
            pages_fetched=pages_fetched,
            query_id=last_body.get("query_id"),
            total=last_body.get("total") or 0,
            total_relation=last_body.get("total_relation") or "eq",
            last_scroll_token=last_body.get("scroll_token"),
        )
