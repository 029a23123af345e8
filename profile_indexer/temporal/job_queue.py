"""JobQueue backed by Temporal workflows."""

from typing import Any, Awaitable, Callable, Dict, Optional

from temporalio.client import Client as TemporalClient
from temporalio.exceptions import WorkflowAlreadyStartedError

from profile_indexer.core.constants import JobType
from profile_indexer.core.exceptions import ValidationError
from profile_indexer.services.job_queue import JobQueue
from profile_indexer.temporal.client import get_temporal_client
from profile_indexer.temporal.core.constants import (
    DEFAULT_TASK_QUEUE,
    INDEXER_FLOW_WORKFLOW_ID_PREFIX,
    MODULE_RUN_WORKFLOW_ID_PREFIX,
)
from profile_indexer.temporal.workflows.execute_module_run import ExecuteModuleRunWorkflow
from profile_indexer.temporal.workflows.run_indexer_flow import RunIndexerFlowWorkflow
from profile_indexer.utils.logging import get_logger

LOGGER = get_logger(__name__)

# job type -> (workflow run method, workflow id prefix, payload id key)
JOB_WORKFLOWS = {
    JobType.EXECUTE_MODULE_RUN: (ExecuteModuleRunWorkflow.run, MODULE_RUN_WORKFLOW_ID_PREFIX, "moduleRunId"),
    JobType.RUN_INDEXER_FLOW: (RunIndexerFlowWorkflow.run, INDEXER_FLOW_WORKFLOW_ID_PREFIX, "flowRunId"),
}


def workflow_id_for(job_type: JobType, payload: Dict[str, Any]) -> str:
    """Deterministic workflow id, so re-enqueueing the same run is a no-op."""
    _, prefix, id_key = JOB_WORKFLOWS[job_type]
    if payload.get(id_key) is None:
        raise ValidationError(f"{job_type.value} payload requires {id_key}")
    return f"{prefix}-{payload[id_key]}"


class TemporalJobQueue(JobQueue):
    """Starts one workflow per job; the workflow id doubles as the job id."""

    def __init__(
        self,
        client: Optional[TemporalClient] = None,
        task_queue: str = DEFAULT_TASK_QUEUE,
        client_factory: Callable[[], Awaitable[TemporalClient]] = get_temporal_client,
    ):
        self._client = client
        self.task_queue = task_queue
        self.client_factory = client_factory

    async def _get_client(self) -> TemporalClient:
        if self._client is None:
            self._client = await self.client_factory()
        return self._client

    async def enqueue(self, job_type: JobType, payload: Dict[str, Any]) -> str:
        job_type = JobType(job_type)
        run_method = JOB_WORKFLOWS[job_type][0]
        workflow_id = workflow_id_for(job_type, payload)

        client = await self._get_client()
        try:
            await client.start_workflow(
                run_method,
                payload,
                id=workflow_id,
                task_queue=self.task_queue,
            )
            LOGGER.info(f"Started workflow {workflow_id} for {job_type.value}", extra={"payload": payload})
        except WorkflowAlreadyStartedError:
            LOGGER.info(f"Workflow {workflow_id} already started, reusing it")
        return workflow_id
