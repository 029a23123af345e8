"""Explicit module key -> handler map."""

from typing import Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from profile_indexer.clients.interfaces import AIProvider, ScraperProvider, SearchProvider
from profile_indexer.core.config import Settings, settings
from profile_indexer.core.exceptions import ConfigurationError
from profile_indexer.services.claims.claim_ledger_service import ClaimLedgerService
from profile_indexer.services.documents.document_service import DocumentService
from profile_indexer.services.modules.base_handler import BaseModuleHandler
from profile_indexer.services.modules.handlers import (
    CoreIdentityEnricherHandler,
    FinalSummaryComposerHandler,
    Layer1ComposerHandler,
    LinkedinCoreIdentityEnricherHandler,
    LinkedinPostsConnectorHandler,
    LinkedinProfileConnectorHandler,
    ManualDocumentConnectorHandler,
    NoopHandler,
    ProspectSearchConnectorHandler,
)
from profile_indexer.services.prospect.prospect_person_upsert_service import ProspectPersonUpsertService
from profile_indexer.services.snapshots.layer_snapshot_service import LayerSnapshotService
from profile_indexer.utils.logging import get_logger

LOGGER = get_logger(__name__)


class ModuleRegistry:
    """Holds one handler per module key; populated once at startup."""

    def __init__(self):
        self._handlers: Dict[str, BaseModuleHandler] = {}

    def register(self, handler: BaseModuleHandler) -> None:
        key = handler.module_key
        if not key:
            raise ConfigurationError(f"{handler.__class__.__name__} has no module_key")
        if key in self._handlers:
            raise ConfigurationError(f"Duplicate handler for module key: {key}")
        self._handlers[key] = handler
        LOGGER.debug(f"Registered module handler {handler.__class__.__name__} for {key}")

    def get(self, module_key: str) -> Optional[BaseModuleHandler]:
        return self._handlers.get(module_key)

    def keys(self) -> List[str]:
        return sorted(self._handlers)

    def __contains__(self, module_key: str) -> bool:
        return module_key in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)


def build_default_registry(
    session: AsyncSession,
    ai_client: Optional[AIProvider] = None,
    scraper_client: Optional[ScraperProvider] = None,
    search_client: Optional[SearchProvider] = None,
    app_settings: Optional[Settings] = None,
) -> ModuleRegistry:
    """Registry with every built-in handler wired to one session.

    Connectors whose provider is not supplied are left unregistered, so a
    run for them fails with the dispatcher's unknown-key error.
    """
    app_settings = app_settings or settings
    document_service = DocumentService(session)
    ledger = ClaimLedgerService(session)

    registry = ModuleRegistry()
    registry.register(NoopHandler())
    registry.register(ManualDocumentConnectorHandler(document_service))
    registry.register(CoreIdentityEnricherHandler(document_service, ledger))
    registry.register(
        LinkedinCoreIdentityEnricherHandler(document_service, ledger, ai_client, model=app_settings.ai.default_model)
    )
    registry.register(Layer1ComposerHandler(ledger, LayerSnapshotService(session)))
    registry.register(
        FinalSummaryComposerHandler(document_service, ledger, ai_client, default_model=app_settings.flows.summary_model)
    )

    if scraper_client is not None:
        registry.register(LinkedinProfileConnectorHandler(document_service, scraper_client, app_settings.scraper))
        registry.register(LinkedinPostsConnectorHandler(document_service, scraper_client, app_settings.scraper))
    else:
        LOGGER.warning("No scraper client configured; LinkedIn connectors are unavailable")

    if search_client is not None:
        registry.register(
            ProspectSearchConnectorHandler(
                document_service,
                search_client,
                ProspectPersonUpsertService(session, document_service=document_service),
            )
        )
    else:
        LOGGER.warning("No search client configured; prospect search connector is unavailable")

    return registry
