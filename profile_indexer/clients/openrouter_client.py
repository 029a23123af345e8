"""OpenRouter chat-completions client implementing the AI capability."""

from typing import Any, Dict, List, Optional

import httpx

from profile_indexer.clients.base_client import BaseHTTPClient
from profile_indexer.clients.interfaces import AIProvider
from profile_indexer.core.config import AISettings
from profile_indexer.core.exceptions import ConfigurationError, ExternalProviderError
from profile_indexer.schemas.providers import AIRequest, AIResponse
from profile_indexer.utils.logging import get_logger

LOGGER = get_logger(__name__)

JSON_ONLY_INSTRUCTION = "IMPORTANT: Respond with valid JSON only."


class OpenRouterClient(AIProvider):
    """AI capability backed by OpenRouter's chat completions API."""

    def __init__(
        self,
        api_key: str,
        model: str = "openai/gpt-4o-mini",
        base_url: str = "https://openrouter.ai/api/v1/chat/completions",
        timeout: int = 60,
        max_retries: int = 3,
        retry_delay: float = 2.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.provider = "openrouter"

        self.client = BaseHTTPClient(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
            retry_delay=retry_delay,
            transport=transport,
        )

        LOGGER.info(f"Initialized OpenRouter client with model {self.model}")

    @classmethod
    def from_settings(cls, ai_settings: AISettings) -> "OpenRouterClient":
        if not ai_settings.api_key:
            raise ConfigurationError("OPENROUTER_API_KEY is not configured")
        return cls(
            api_key=ai_settings.api_key,
            model=ai_settings.default_model,
            base_url=ai_settings.api_url,
            timeout=ai_settings.timeout,
            max_retries=ai_settings.max_retries,
            retry_delay=ai_settings.retry_delay,
        )

    def _build_messages(self, request: AIRequest) -> List[Dict[str, str]]:
        messages = []
        system_prompt = request.system_prompt or ""
        if request.response_json:
            system_prompt = f"{system_prompt}\n\n{JSON_ONLY_INSTRUCTION}".strip()
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": request.prompt})
        return messages

    async def run(self, request: AIRequest) -> AIResponse:
        """Send one prompt and return the raw completion text.

        Raises:
            ExternalProviderError: If the call fails or the response has no choices
        """
        model = request.model or self.model
        payload: Dict[str, Any] = {
            "model": model,
            "messages": self._build_messages(request),
            "temperature": request.temperature,
        }
        if request.max_tokens:
            payload["max_tokens"] = request.max_tokens

        response = await self.client.call_api(endpoint="", method="POST", payload=payload)

        choices = response.get("choices") if isinstance(response, dict) else None
        if not choices:
            LOGGER.error(f"Unexpected OpenRouter response format: {str(response)[:500]}")
            raise ExternalProviderError("Invalid response format from OpenRouter")

        content = (choices[0].get("message") or {}).get("content") or ""
        if not content:
            LOGGER.warning("Empty response from OpenRouter", extra={"model": model})

        usage = response.get("usage") or {}
        return AIResponse(
            raw_text=content,
            tokens_used=usage.get("total_tokens"),
            provider=self.provider,
            model=response.get("model") or model,
        )
