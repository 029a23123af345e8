from profile_indexer.core.exceptions import AppError, ValidationError
from profile_indexer.database.models import ModuleRun
from profile_indexer.services.modules.base_handler import ModuleResult
from profile_indexer.services.modules.registry import ModuleRegistry
from profile_indexer.utils.logging import get_logger

LOGGER = get_logger(__name__)


class ModuleDispatcher:
    """Routes a module run to the handler registered for its key."""

    def __init__(self, registry: ModuleRegistry):
        self.registry = registry

    async def execute(self, run: ModuleRun) -> ModuleResult:
        module_key = run.module_key
        handler = self.registry.get(module_key)
        if handler is None:
            LOGGER.warning(f"No handler registered for module key: {run.module_key}", extra={"module_run_id": run.id})
            return ModuleResult.failed(ValidationError(f"No handler registered for module key: {run.module_key}"))

        LOGGER.info(
            f"Dispatching module run {run.id} to {handler.__class__.__name__}",
            extra={"module_key": run.module_key, "module_version": run.module_version},
        )
        try:
            return await handler.execute(run)
        except Exception as e:
            LOGGER.error(f"Handler for {module_key} raised: {str(e)}", exc_info=True)
            return ModuleResult.failed(e if isinstance(e, AppError) else AppError(str(e), original_error=e))
