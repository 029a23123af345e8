from profile_indexer.services.modules.handlers.core_identity_enricher import CoreIdentityEnricherHandler
from profile_indexer.services.modules.handlers.final_summary_composer import FinalSummaryComposerHandler
from profile_indexer.services.modules.handlers.layer1_composer import Layer1ComposerHandler
from profile_indexer.services.modules.handlers.linkedin_connectors import (
    LinkedinPostsConnectorHandler,
    LinkedinProfileConnectorHandler,
)
from profile_indexer.services.modules.handlers.linkedin_core_identity_enricher import (
    LinkedinCoreIdentityEnricherHandler,
)
from profile_indexer.services.modules.handlers.manual_document_connector import ManualDocumentConnectorHandler
from profile_indexer.services.modules.handlers.noop import NoopHandler
from profile_indexer.services.modules.handlers.prospect_search_connector import ProspectSearchConnectorHandler

__all__ = [
    "CoreIdentityEnricherHandler",
    "FinalSummaryComposerHandler",
    "Layer1ComposerHandler",
    "LinkedinCoreIdentityEnricherHandler",
    "LinkedinPostsConnectorHandler",
    "LinkedinProfileConnectorHandler",
    "ManualDocumentConnectorHandler",
    "NoopHandler",
    "ProspectSearchConnectorHandler",
]
