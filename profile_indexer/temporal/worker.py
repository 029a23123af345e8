"""Temporal worker service for module runs and flow runs.

This worker:
- Connects to the Temporal server with retries
- Dynamically discovers and registers all workflows and activities
- Runs one worker per task queue
- Serves a small health check endpoint alongside
"""

import asyncio

import uvicorn
from fastapi import FastAPI
from temporalio.client import Client
from temporalio.worker import Worker
from temporalio.worker.workflow_sandbox import SandboxedWorkflowRunner, SandboxRestrictions

from profile_indexer.core.config import settings
from profile_indexer.core.database import close_database, db_client, init_database
from profile_indexer.temporal.client import close_temporal_client, set_temporal_client
from profile_indexer.temporal.core.activity_registry import ActivityRegistry
from profile_indexer.temporal.core.discovery import discover_all
from profile_indexer.temporal.core.workflow_registry import WorkflowRegistry
from profile_indexer.utils.logging import get_logger

LOGGER = get_logger(__name__)

MAX_CONNECT_ATTEMPTS = 5
CONNECT_RETRY_DELAY_SECONDS = 5

# Create a minimal FastAPI app for health checks
app = FastAPI(title="Profile Indexer Worker Health Check")


@app.get("/health")
async def health():
    database = await db_client.health_check()
    return {"status": "ok", "service": "profile-indexer-worker", "database": database["status"]}


@app.get("/")
async def root():
    return {"message": "Profile Indexer worker is running", "health": "/health"}


async def run_health_check_server():
    """Run the health check server."""
    port = settings.worker_health_port
    LOGGER.info(f"Starting health check server on port {port}")
    config = uvicorn.Config(app, host="0.0.0.0", port=port, log_level="info")
    server = uvicorn.Server(config)
    await server.serve()


async def connect_with_retries() -> Client:
    target_host = f"{settings.temporal_host}:{settings.temporal_port}"
    for attempt in range(MAX_CONNECT_ATTEMPTS):
        try:
            LOGGER.info(
                f"Connecting to Temporal server at {target_host} (Attempt {attempt + 1}/{MAX_CONNECT_ATTEMPTS})"
            )
            return await Client.connect(target_host=target_host, namespace=settings.temporal_namespace)
        except Exception as e:
            if attempt < MAX_CONNECT_ATTEMPTS - 1:
                LOGGER.warning(
                    f"Connection attempt {attempt + 1} failed: {e}. Retrying in {CONNECT_RETRY_DELAY_SECONDS}s..."
                )
                await asyncio.sleep(CONNECT_RETRY_DELAY_SECONDS)
            else:
                LOGGER.error(f"Failed to connect to Temporal server after {MAX_CONNECT_ATTEMPTS} attempts: {e}")
                raise


async def run_workers():
    """Connect to Temporal and run one worker per task queue."""
    discover_all()
    await init_database(create_tables=settings.db.create_tables)
    client = await connect_with_retries()
    # activities enqueue follow-up jobs through the same connection
    set_temporal_client(client)
    LOGGER.info("Successfully connected to Temporal server")

    all_workflows = WorkflowRegistry.get_all_workflows()
    all_activities = ActivityRegistry.get_all_activities()
    LOGGER.info(f"Registered {len(all_workflows)} workflows and {len(all_activities)} activities")

    # Group workflows by task queue
    queues = {}
    for wf_name, metadata in all_workflows.items():
        queues.setdefault(metadata.task_queue, []).append(metadata.workflow_class)
        LOGGER.debug(f"Workflow '{wf_name}' assigned to queue '{metadata.task_queue}'")

    workers = []
    for queue_name, workflows in queues.items():
        worker = Worker(
            client,
            task_queue=queue_name,
            workflows=workflows,
            activities=list(all_activities.values()),
            max_concurrent_activities=10,
            max_concurrent_workflow_tasks=20,
            workflow_runner=SandboxedWorkflowRunner(
                restrictions=SandboxRestrictions.default.with_passthrough_all_modules()
            ),
        )
        workers.append(worker.run())

    LOGGER.info("=" * 60)
    LOGGER.info("Temporal Workers Initialized Successfully")
    LOGGER.info(f"Queues: {list(queues.keys())}")
    LOGGER.info("=" * 60)

    await asyncio.gather(*workers)


async def main():
    """Start the Temporal worker(s) and the health check server."""
    try:
        await asyncio.gather(run_health_check_server(), run_workers())
    finally:
        await close_temporal_client()
        await close_database()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        LOGGER.info("Workers stopped by user")
    except Exception as e:
        LOGGER.error(f"Worker failed: {e}", exc_info=True)
        raise
