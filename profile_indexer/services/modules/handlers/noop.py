from typing import Any, Dict

from profile_indexer.core.constants import ModuleKey
from profile_indexer.database.models import ModuleRun
from profile_indexer.schemas.module_inputs import ModuleInput
from profile_indexer.services.modules.base_handler import BaseModuleHandler


class NoopHandler(BaseModuleHandler):
    """Does nothing; used to exercise the run lifecycle end to end."""

    module_key = ModuleKey.NOOP

    async def run(self, run: ModuleRun, config: ModuleInput) -> Dict[str, Any]:
        self.logger.info(f"Noop module run {run.id}")
        return {"noop": True}
