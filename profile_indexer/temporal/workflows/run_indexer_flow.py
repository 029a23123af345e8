"""Workflow starting a flow run."""

from datetime import timedelta
from typing import Dict

from temporalio import workflow
from temporalio.common import RetryPolicy

from profile_indexer.temporal.core.constants import ACTIVITY_MAX_ATTEMPTS, FLOW_ACTIVITY_TIMEOUT_SECONDS
from profile_indexer.temporal.core.workflow_registry import WorkflowRegistry, WorkflowType


@WorkflowRegistry.register(category=WorkflowType.FLOWS)
@workflow.defn
class RunIndexerFlowWorkflow:
    """Schedules the first stage of a flow run.

    Later stages are scheduled by whichever module run completes its stage
    last, so this workflow finishes as soon as the first stage is queued.
    """

    def __init__(self):
        self._status = "initialized"

    @workflow.query
    def get_status(self) -> dict:
        return {"status": self._status}

    @workflow.run
    async def run(self, payload: Dict) -> dict:
        flow_run_id = payload.get("flowRunId")
        if flow_run_id is None:
            raise ValueError("RunIndexerFlowWorkflow requires flowRunId")

        self._status = "running"
        result = await workflow.execute_activity(
            "run_indexer_flow",
            args=[int(flow_run_id)],
            start_to_close_timeout=timedelta(seconds=FLOW_ACTIVITY_TIMEOUT_SECONDS),
            retry_policy=RetryPolicy(maximum_attempts=ACTIVITY_MAX_ATTEMPTS),
        )
        self._status = "completed"
        return result
