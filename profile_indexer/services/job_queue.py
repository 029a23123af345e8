from abc import ABC, abstractmethod
from typing import Any, Dict

from profile_indexer.core.constants import JobType


class JobQueue(ABC):
    """Durable background job submission.

    Payloads carry only ids; every job reloads its state from the database.
    """

    @abstractmethod
    async def enqueue(self, job_type: JobType, payload: Dict[str, Any]) -> str:
        """Submit a job and return its id."""
        pass
