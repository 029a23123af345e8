"""Builds the provider clients and services used by worker activities."""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from profile_indexer.clients.apify_client import ApifyClient
from profile_indexer.clients.interfaces import AIProvider, ScraperProvider, SearchProvider
from profile_indexer.clients.openrouter_client import OpenRouterClient
from profile_indexer.clients.prospect_search_client import ProspectSearchClient
from profile_indexer.core.config import Settings, settings
from profile_indexer.core.exceptions import ConfigurationError
from profile_indexer.services.documents.document_service import DocumentService
from profile_indexer.services.flows.flow_filter_service import FlowFilterService
from profile_indexer.services.flows.flow_orchestrator import FlowOrchestrator
from profile_indexer.services.job_queue import JobQueue
from profile_indexer.services.modules.dispatcher import ModuleDispatcher
from profile_indexer.services.modules.executor import ModuleRunExecutor
from profile_indexer.services.modules.registry import build_default_registry
from profile_indexer.utils.logging import get_logger

LOGGER = get_logger(__name__)


@dataclass
class Providers:
    ai: Optional[AIProvider] = None
    scraper: Optional[ScraperProvider] = None
    search: Optional[SearchProvider] = None


def build_providers(app_settings: Optional[Settings] = None) -> Providers:
    """Instantiate every provider that is configured; missing ones stay None."""
    app_settings = app_settings or settings
    providers = Providers()
    try:
        providers.ai = OpenRouterClient.from_settings(app_settings.ai)
    except ConfigurationError as e:
        LOGGER.warning(f"AI provider disabled: {e.message}")
    try:
        providers.scraper = ApifyClient.from_settings(app_settings.scraper)
    except ConfigurationError as e:
        LOGGER.warning(f"Scraper provider disabled: {e.message}")
    try:
        providers.search = ProspectSearchClient.from_settings(app_settings.scraper)
    except ConfigurationError as e:
        LOGGER.warning(f"Search provider disabled: {e.message}")
    return providers


def build_flow_orchestrator(
    session: AsyncSession,
    job_queue: JobQueue,
    providers: Providers,
    app_settings: Optional[Settings] = None,
) -> FlowOrchestrator:
    app_settings = app_settings or settings
    filter_service = FlowFilterService(DocumentService(session), providers.ai, model=app_settings.flows.filter_model)
    return FlowOrchestrator(session, job_queue, filter_service)


def build_module_run_executor(
    session: AsyncSession,
    job_queue: JobQueue,
    providers: Providers,
    app_settings: Optional[Settings] = None,
) -> ModuleRunExecutor:
    registry = build_default_registry(
        session,
        ai_client=providers.ai,
        scraper_client=providers.scraper,
        search_client=providers.search,
        app_settings=app_settings,
    )
    orchestrator = build_flow_orchestrator(session, job_queue, providers, app_settings)
    return ModuleRunExecutor(session, ModuleDispatcher(registry), orchestrator=orchestrator)
