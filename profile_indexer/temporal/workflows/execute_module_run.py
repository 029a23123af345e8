"""Workflow wrapping the execution of one module run."""

from datetime import timedelta
from typing import Dict

from temporalio import workflow
from temporalio.common import RetryPolicy

from profile_indexer.temporal.core.constants import ACTIVITY_MAX_ATTEMPTS, MODULE_RUN_ACTIVITY_TIMEOUT_SECONDS
from profile_indexer.temporal.core.workflow_registry import WorkflowRegistry, WorkflowType


@WorkflowRegistry.register(category=WorkflowType.MODULES)
@workflow.defn
class ExecuteModuleRunWorkflow:
    """Runs a module run's handler and then lets its flow progress.

    Handler failures are recorded on the module run by the activity itself;
    the retry policy only covers worker or infrastructure failures.
    """

    def __init__(self):
        self._status = "initialized"

    @workflow.query
    def get_status(self) -> dict:
        return {"status": self._status}

    @workflow.run
    async def run(self, payload: Dict) -> dict:
        module_run_id = payload.get("moduleRunId")
        if module_run_id is None:
            raise ValueError("ExecuteModuleRunWorkflow requires moduleRunId")

        self._status = "running"
        result = await workflow.execute_activity(
            "execute_module_run",
            args=[int(module_run_id)],
            start_to_close_timeout=timedelta(seconds=MODULE_RUN_ACTIVITY_TIMEOUT_SECONDS),
            retry_policy=RetryPolicy(maximum_attempts=ACTIVITY_MAX_ATTEMPTS),
        )
        self._status = "completed"
        return result
