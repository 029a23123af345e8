"""Temporal activity starting a flow run."""

from temporalio import activity

from profile_indexer.core.database import async_session_maker
from profile_indexer.core.exceptions import NotFoundError
from profile_indexer.services.factory import build_flow_orchestrator, build_providers
from profile_indexer.temporal.core.activity_registry import ActivityRegistry
from profile_indexer.temporal.job_queue import TemporalJobQueue
from profile_indexer.utils.logging import get_logger

LOGGER = get_logger(__name__)


@ActivityRegistry.register("flows", "run_indexer_flow")
@activity.defn
async def run_indexer_flow(flow_run_id: int) -> dict:
    LOGGER.info(f"Activity run_indexer_flow started for flow run {flow_run_id}")
    async with async_session_maker() as session:
        orchestrator = build_flow_orchestrator(session, TemporalJobQueue(), build_providers())
        try:
            await orchestrator.process_flow_run(flow_run_id)
        except NotFoundError as e:
            # nothing to retry
            LOGGER.error(f"Flow run {flow_run_id} cannot be started: {e.message}")
            return {"flowRunId": flow_run_id, "started": False, "error": e.message}
    return {"flowRunId": flow_run_id, "started": True}
