"""Shared constants for Temporal workflows."""

from profile_indexer.core.config import settings

# Task Queues
DEFAULT_TASK_QUEUE = settings.temporal_task_queue

# Timeouts
DEFAULT_WORKFLOW_TIMEOUT_SECONDS = 3600  # 1 hour
# Connectors poll scraper runs for up to APIFY_POLL_TIMEOUT_SECONDS
MODULE_RUN_ACTIVITY_TIMEOUT_SECONDS = 1200  # 20 minutes
FLOW_ACTIVITY_TIMEOUT_SECONDS = 300  # 5 minutes
ACTIVITY_MAX_ATTEMPTS = 3

MODULE_RUN_WORKFLOW_ID_PREFIX = "module-run"
INDEXER_FLOW_WORKFLOW_ID_PREFIX = "indexer-flow"
