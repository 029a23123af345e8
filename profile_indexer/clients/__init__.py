"""httpx-backed provider clients."""

from profile_indexer.clients.apify_client import ApifyClient
from profile_indexer.clients.interfaces import AIProvider, ScraperProvider, SearchProvider
from profile_indexer.clients.openrouter_client import OpenRouterClient
from profile_indexer.clients.prospect_search_client import ProspectSearchClient

__all__ = [
    "AIProvider",
    "ScraperProvider",
    "SearchProvider",
    "ApifyClient",
    "OpenRouterClient",
    "ProspectSearchClient",
]
