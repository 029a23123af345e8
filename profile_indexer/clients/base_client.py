import asyncio
from typing import Any, Dict, Optional

import httpx
from httpx import HTTPStatusError, TimeoutException

from profile_indexer.core.exceptions import ExternalProviderError, ProviderTimeoutError
from profile_indexer.utils.logging import get_logger

LOGGER = get_logger(__name__)


class BaseHTTPClient:
    """Base client for provider API interactions.

    Handles common logic for HTTP requests, retries, timeout management,
    and error logging.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str,
        timeout: float = 60,
        max_retries: int = 3,
        retry_delay: float = 2,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            api_key: API key for authentication
            base_url: Base URL for the API
            timeout: Request timeout in seconds
            max_retries: Maximum number of attempts
            retry_delay: Base delay for exponential backoff
            transport: Optional httpx transport (tests inject a MockTransport)
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self.transport = transport
        self.logger = LOGGER

    def _default_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def call_api(
        self,
        endpoint: str = "",
        method: str = "POST",
        payload: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        expect_json: bool = True,
    ) -> Any:
        """Call the API with retry logic.

        Args:
            endpoint: API endpoint (appended to base_url)
            method: HTTP method (POST, GET, etc.)
            payload: JSON body
            params: Query string parameters
            headers: Additional headers
            expect_json: Return the parsed JSON body (otherwise the text)

        Returns:
            Parsed JSON response, or the body text when expect_json is False

        Raises:
            ExternalProviderError: If the API call fails after retries
            ProviderTimeoutError: If the API call times out after retries
        """
        url = f"{self.base_url}{endpoint}" if endpoint else self.base_url

        request_headers = self._default_headers()
        if headers:
            request_headers.update(headers)

        self.logger.debug(f"Calling provider API: {url}", extra={"method": method, "timeout": self.timeout})

        async with self._client() as client:
            for attempt in range(self.max_retries):
                try:
                    response = await client.request(
                        method.upper(),
                        url,
                        headers=request_headers,
                        params=params,
                        json=payload if method.upper() != "GET" else None,
                    )
                    response.raise_for_status()
                    return response.json() if expect_json else response.text

                except HTTPStatusError as e:
                    await self._handle_http_error(e, attempt, url)

                except TimeoutException as e:
                    await self._handle_timeout_error(e, attempt, url)

                except (httpx.HTTPError, ValueError) as e:
                    await self._handle_generic_error(e, attempt, url)

        raise ExternalProviderError(f"Failed to call API {url} after {self.max_retries} attempts")

    async def _handle_http_error(self, error: HTTPStatusError, attempt: int, url: str):
        status_code = error.response.status_code
        error_body = error.response.text

        self.logger.warning(
            f"API HTTP error (Attempt {attempt + 1}/{self.max_retries})",
            extra={"url": url, "status_code": status_code, "error_body": error_body[:500]},
        )

        # Don't retry on client errors (4xx) unless it's rate limiting (429)
        if 400 <= status_code < 500 and status_code != 429:
            raise ExternalProviderError(
                f"API Client Error {status_code}: {error_body[:500]}", error, status_code=status_code
            )

        if attempt < self.max_retries - 1:
            await self._wait_before_retry(attempt)
        else:
            raise ExternalProviderError(
                f"API HTTP Error {status_code} after retries", error, status_code=status_code
            )

    async def _handle_timeout_error(self, error: TimeoutException, attempt: int, url: str):
        self.logger.warning(f"API Timeout (Attempt {attempt + 1}/{self.max_retries})", extra={"url": url})

        if attempt < self.max_retries - 1:
            await self._wait_before_retry(attempt)
        else:
            raise ProviderTimeoutError(f"API Timeout after {self.max_retries} attempts", error)

    async def _handle_generic_error(self, error: Exception, attempt: int, url: str):
        self.logger.warning(
            f"API Generic Error (Attempt {attempt + 1}/{self.max_retries})",
            extra={"url": url, "error": str(error)},
        )

        if attempt < self.max_retries - 1:
            await self._wait_before_retry(attempt)
        else:
            raise ExternalProviderError(f"API Error: {str(error)}", error)

    async def _wait_before_retry(self, attempt: int):
        """Exponential backoff wait."""
        wait_time = self.retry_delay * (2 ** attempt)
        await asyncio.sleep(wait_time)
