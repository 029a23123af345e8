import json

import httpx
import pytest

from profile_indexer.clients.prospect_search_client import PROFILE_PATH, SEARCH_PATH, ProspectSearchClient
from profile_indexer.schemas.providers import SearchRequest


class FakeSearchApi:

    def __init__(self, pages):
        self.pages = list(pages)
        self.search_payloads = []

    def __call__(self, request):
        if request.url.path == SEARCH_PATH:
            self.search_payloads.append(json.loads(request.content))
            data = self.pages.pop(0) if self.pages else []
            return httpx.Response(
                200, json={"body": {"data": data, "scroll_token": "next", "query_id": "q-1", "total": 3}}
            )
        if request.url.path == PROFILE_PATH:
            code = request.url.params["profile_code"]
            if code == "bad":
                return httpx.Response(400, text="bad code")
            return httpx.Response(200, json={"data": {"first_name": code.upper()}})
        return httpx.Response(404)


def client_with(fake):
    return ProspectSearchClient("https://search.example.com", retry_delay=0, transport=httpx.MockTransport(fake))


class TestProspectSearchClient:

    @pytest.mark.asyncio
    async def test_paginates_and_enriches(self):
        fake = FakeSearchApi([[{"profile_code": "a"}, {"profile_code": "bad"}], [{"id": 3}]])

        result = await client_with(fake).search(SearchRequest(payload={"title": "CTO"}, max_pages=5))

        assert result.pages_fetched == 2
        assert result.query_id == "q-1"
        assert result.items[0]["enriched"] == {"first_name": "A"}
        assert "enriched" not in result.items[1]
        assert fake.search_payloads[1]["scroll_token"] == "next"

    @pytest.mark.asyncio
    async def test_max_items_truncates(self):
        fake = FakeSearchApi([[{"id": 1}, {"id": 2}, {"id": 3}]])

        result = await client_with(fake).search(
            SearchRequest(payload={}, max_items=2, enrich_profiles=False)
        )

        assert [item["id"] for item in result.items] == [1, 2]
        assert result.pages_fetched == 1
