"""Temporal activity executing a module run."""

from temporalio import activity

from profile_indexer.core.database import async_session_maker
from profile_indexer.services.factory import build_module_run_executor, build_providers
from profile_indexer.temporal.core.activity_registry import ActivityRegistry
from profile_indexer.temporal.job_queue import TemporalJobQueue
from profile_indexer.utils.logging import get_logger

LOGGER = get_logger(__name__)


@ActivityRegistry.register("modules", "execute_module_run")
@activity.defn
async def execute_module_run(module_run_id: int) -> dict:
    """Execute one module run in its own session.

    Returns:
        Dict with the module run id and whether the handler succeeded
    """
    LOGGER.info(f"Activity execute_module_run started for module run {module_run_id}")
    async with async_session_maker() as session:
        executor = build_module_run_executor(session, TemporalJobQueue(), build_providers())
        result = await executor.execute_module_run(module_run_id)

    if result is None:
        return {"moduleRunId": module_run_id, "executed": False}
    return {
        "moduleRunId": module_run_id,
        "executed": True,
        "succeeded": result.succeeded,
        "error": str(result.error) if result.error else None,
    }
