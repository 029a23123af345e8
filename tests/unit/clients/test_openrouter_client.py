import json

import httpx
import pytest

from profile_indexer.clients.openrouter_client import OpenRouterClient
from profile_indexer.core.config import AISettings
from profile_indexer.core.exceptions import ConfigurationError, ExternalProviderError
from profile_indexer.schemas.providers import AIRequest


def client_with(handler):
    return OpenRouterClient(api_key="key", retry_delay=0, transport=httpx.MockTransport(handler))


class TestOpenRouterClient:

    @pytest.mark.asyncio
    async def test_run(self):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(
                200,
                json={
                    "model": "openai/gpt-4o-mini",
                    "choices": [{"message": {"content": '{"minAge": 30}'}}],
                    "usage": {"total_tokens": 42},
                },
            )

        response = await client_with(handler).run(
            AIRequest(prompt="How old?", system_prompt="You estimate ages.", max_tokens=300)
        )

        assert response.raw_text == '{"minAge": 30}'
        assert response.tokens_used == 42
        assert response.provider == "openrouter"
        body = bodies[0]
        assert body["max_tokens"] == 300
        assert body["messages"][0]["role"] == "system"
        assert body["messages"][0]["content"].endswith("IMPORTANT: Respond with valid JSON only.")
        assert body["messages"][1] == {"role": "user", "content": "How old?"}

    @pytest.mark.asyncio
    async def test_missing_choices(self):
        client = client_with(lambda request: httpx.Response(200, json={"error": "overloaded"}))

        with pytest.raises(ExternalProviderError):
            await client.run(AIRequest(prompt="x"))

    def test_from_settings_requires_key(self):
        with pytest.raises(ConfigurationError):
            OpenRouterClient.from_settings(AISettings(OPENROUTER_API_KEY=""))
