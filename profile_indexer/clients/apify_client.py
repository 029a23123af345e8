"""Apify REST client: start actor runs, poll them to completion, read datasets."""

import asyncio
import random
import time
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from profile_indexer.clients.base_client import BaseHTTPClient
from profile_indexer.clients.interfaces import ScraperProvider
from profile_indexer.core.config import ScraperSettings
from profile_indexer.core.exceptions import ConfigurationError, ExternalProviderError, ProviderTimeoutError
from profile_indexer.schemas.providers import ActorRun, ActorRunResult
from profile_indexer.utils.logging import get_logger

LOGGER = get_logger(__name__)

RUN_SUCCEEDED = "SUCCEEDED"
RUN_FAILED_STATUSES = ("FAILED", "ABORTED", "TIMED_OUT")
LOG_TAIL_CHARS = 4000


def encode_actor_id(actor_id: str) -> str:
    """Apify addresses "user/actor" ids as "user~actor" in URLs."""
    return quote(actor_id.replace("/", "~"), safe="~")


def _to_actor_run(actor_id: str, body: Dict[str, Any]) -> ActorRun:
    data = body.get("data", body) if isinstance(body, dict) else {}
    return ActorRun(
        id=data.get("id"),
        actor_id=actor_id,
        status=data.get("status"),
        default_dataset_id=data.get("defaultDatasetId"),
        raw=data,
    )


class ApifyClient(ScraperProvider):
    """Scraper capability backed by Apify actors.

    ``wait_for_run`` is a bounded poller: it sleeps ``poll_interval`` plus a
    random jitter between status checks and gives up with
    ProviderTimeoutError once ``poll_timeout`` seconds have elapsed.
    """

    def __init__(
        self,
        token: str,
        base_url: str = "https://api.apify.com/v2",
        profile_actor_id: str = "apimaestro/linkedin-profile-full-sections-scraper",
        poll_interval: float = 2.0,
        poll_jitter: float = 0.5,
        poll_timeout: float = 600.0,
        timeout: int = 60,
        max_retries: int = 3,
        retry_delay: float = 2.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token = token
        self.profile_actor_id = profile_actor_id
        self.poll_interval = poll_interval
        self.poll_jitter = poll_jitter
        self.poll_timeout = poll_timeout
        self.client = BaseHTTPClient(
            api_key=token,
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
            retry_delay=retry_delay,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, scraper_settings: ScraperSettings) -> "ApifyClient":
        if not scraper_settings.apify_token:
            raise ConfigurationError("APIFY_TOKEN is not configured")
        return cls(
            token=scraper_settings.apify_token,
            base_url=scraper_settings.apify_base_url,
            profile_actor_id=scraper_settings.profile_actor_id,
            poll_interval=scraper_settings.poll_interval_seconds,
            poll_jitter=scraper_settings.poll_jitter_seconds,
            poll_timeout=scraper_settings.poll_timeout_seconds,
            timeout=scraper_settings.timeout,
            max_retries=scraper_settings.max_retries,
            retry_delay=scraper_settings.retry_delay,
        )

    def _params(self, **extra: Any) -> Dict[str, Any]:
        params = {"token": self.token}
        params.update({key: value for key, value in extra.items() if value is not None})
        return params

    async def start_actor_run(self, actor_id: str, actor_input: Dict[str, Any]) -> ActorRun:
        LOGGER.info(f"Starting actor run for {actor_id}")
        body = await self.client.call_api(
            endpoint=f"/acts/{encode_actor_id(actor_id)}/runs",
            method="POST",
            payload=actor_input,
            params=self._params(),
        )
        run = _to_actor_run(actor_id, body)
        LOGGER.info(f"Actor run started [runId={run.id}, status={run.status}]")
        return run

    async def get_run(self, actor_id: str, run_id: str) -> ActorRun:
        body = await self.client.call_api(
            endpoint=f"/acts/{encode_actor_id(actor_id)}/runs/{run_id}",
            method="GET",
            params=self._params(),
        )
        return _to_actor_run(actor_id, body)

    async def get_log_tail(self, run_id: str) -> str:
        try:
            text = await self.client.call_api(
                endpoint=f"/actor-runs/{run_id}/log",
                method="GET",
                params=self._params(),
                expect_json=False,
            )
        except ExternalProviderError as e:
            LOGGER.warning(f"Could not fetch log for actor run {run_id}: {e.message}")
            return ""
        return text[-LOG_TAIL_CHARS:]

    def _next_delay(self) -> float:
        return self.poll_interval + random.uniform(0, self.poll_jitter)

    async def wait_for_run(self, actor_id: str, run_id: str) -> ActorRun:
        """Poll a run until it succeeds, fails or the poll timeout elapses.

        Raises:
            ExternalProviderError: when the run ends FAILED, ABORTED or TIMED_OUT
            ProviderTimeoutError: when the run is still going after poll_timeout
        """
        deadline = time.monotonic() + self.poll_timeout
        while True:
            run = await self.get_run(actor_id, run_id)
            LOGGER.debug(f"Actor run status={run.status} [runId={run_id}]")

            if run.status == RUN_SUCCEEDED:
                return run

            if run.status in RUN_FAILED_STATUSES:
                log_tail = await self.get_log_tail(run_id)
                raise ExternalProviderError(f"Actor run failed with status: {run.status}. Log tail: {log_tail}")

            delay = self._next_delay()
            if time.monotonic() + delay > deadline:
                raise ProviderTimeoutError(
                    f"Actor run {run_id} did not finish within {self.poll_timeout} seconds (last status {run.status})"
                )
            await asyncio.sleep(delay)

    async def fetch_dataset_items(self, dataset_id: str, limit: Optional[int] = None) -> List[Any]:
        items = await self.client.call_api(
            endpoint=f"/datasets/{dataset_id}/items",
            method="GET",
            params=self._params(format="json", limit=limit),
        )
        if not isinstance(items, list):
            raise ExternalProviderError(f"Unexpected dataset response for {dataset_id}")
        LOGGER.info(f"Fetched {len(items)} items from dataset {dataset_id}")
        return items

    async def run_actor_and_fetch_dataset(
        self,
        actor_id: str,
        actor_input: Dict[str, Any],
        limit: Optional[int] = None,
    ) -> ActorRunResult:
        run = await self.start_actor_run(actor_id, actor_input)
        completed = await self.wait_for_run(actor_id, run.id)
        items = await self.fetch_dataset_items(completed.default_dataset_id, limit)
        LOGGER.info(f"Actor run completed [runId={completed.id}, items={len(items)}]")
        return ActorRunResult(run=completed, items=items)

    async def scrape_profile(
        self,
        profile_urls: List[str],
        actor_id: Optional[str] = None,
        actor_input: Optional[Dict[str, Any]] = None,
        limit: Optional[int] = None,
    ) -> ActorRunResult:
        """Scrape full LinkedIn profiles; caller overrides win over the base input."""
        merged_input = {"usernames": list(profile_urls), **(actor_input or {})}
        return await self.run_actor_and_fetch_dataset(actor_id or self.profile_actor_id, merged_input, limit)
