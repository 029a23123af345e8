"""Connectors that scrape LinkedIn through actor runs and store the dataset as a document."""

from typing import Any, Dict

from profile_indexer.clients.interfaces import ScraperProvider
from profile_indexer.core.config import ScraperSettings
from profile_indexer.core.constants import DocumentKind, DocumentSource, ModuleKey
from profile_indexer.database.models import Document, ModuleRun
from profile_indexer.schemas.module_inputs import LinkedinPostsConnectorInput, LinkedinProfileConnectorInput
from profile_indexer.schemas.providers import ActorRunResult
from profile_indexer.services.documents.document_service import DocumentService
from profile_indexer.services.modules.base_handler import BaseModuleHandler, require_person_id
from profile_indexer.utils.linkedin_url import normalize_linkedin_url


class _LinkedinConnector(BaseModuleHandler):

    document_kind: str = ""

    def __init__(self, document_service: DocumentService, scraper: ScraperProvider, settings: ScraperSettings):
        super().__init__()
        self.document_service = document_service
        self.scraper = scraper
        self.settings = settings

    async def _store(self, run: ModuleRun, person_id: int, result: ActorRunResult) -> Document:
        return await self.document_service.write_and_supersede(
            project_id=run.project_id,
            person_id=person_id,
            source=DocumentSource.LINKEDIN.value,
            document_kind=self.document_kind,
            payload=result.items,
            module_run_id=run.id,
            source_ref=result.run.id,
            storage_uri=result.storage_uri,
        )

    def _result(self, document: Document, result: ActorRunResult, profile_url: str) -> Dict[str, Any]:
        return {
            "documentId": document.id,
            "actorRunId": result.run.id,
            "datasetId": result.run.default_dataset_id,
            "itemCount": len(result.items),
            "profileUrl": profile_url,
        }


class LinkedinProfileConnectorHandler(_LinkedinConnector):
    """Scrapes the full profile of the run's person."""

    module_key = ModuleKey.LINKEDIN_PROFILE_CONNECTOR
    document_kind = DocumentKind.LINKEDIN_PROFILE.value

    async def run(self, run: ModuleRun, config: LinkedinProfileConnectorInput) -> Dict[str, Any]:
        person_id = require_person_id(run)
        profile_url = normalize_linkedin_url(config.profile_url)

        result = await self.scraper.scrape_profile(
            [profile_url],
            actor_id=config.actor_id or self.settings.profile_actor_id,
            actor_input=config.actor_input,
            limit=config.limit,
        )
        self.logger.info(
            f"Profile actor run {result.run.id} returned {len(result.items)} items",
            extra={"module_run_id": run.id, "profile_url": profile_url},
        )
        document = await self._store(run, person_id, result)
        return self._result(document, result, profile_url)


class LinkedinPostsConnectorHandler(_LinkedinConnector):
    """Scrapes the recent posts of the run's person."""

    module_key = ModuleKey.LINKEDIN_POSTS_CONNECTOR
    document_kind = DocumentKind.LINKEDIN_POSTS.value

    async def run(self, run: ModuleRun, config: LinkedinPostsConnectorInput) -> Dict[str, Any]:
        person_id = require_person_id(run)
        profile_url = normalize_linkedin_url(config.profile_url)
        config.profile_url = profile_url

        result = await self.scraper.run_actor_and_fetch_dataset(
            config.actor_id or self.settings.posts_actor_id,
            config.build_actor_input(),
            limit=config.total_posts or config.limit,
        )
        self.logger.info(
            f"Posts actor run {result.run.id} returned {len(result.items)} items",
            extra={"module_run_id": run.id, "profile_url": profile_url},
        )
        document = await self._store(run, person_id, result)
        return self._result(document, result, profile_url)
