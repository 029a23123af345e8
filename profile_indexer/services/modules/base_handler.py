"""Base class and result type for module handlers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from profile_indexer.core.exceptions import AppError, ValidationError
from profile_indexer.database.models import ModuleRun
from profile_indexer.schemas.module_inputs import ModuleInput, parse_module_input
from profile_indexer.utils.logging import get_logger

LOGGER = get_logger(__name__)


@dataclass
class ModuleResult:
    """Uniform handler outcome: exactly one of ``data`` / ``error`` is meaningful."""
    data: Any = None
    error: Optional[BaseException] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @classmethod
    def ok(cls, data: Any = None) -> "ModuleResult":
        return cls(data=data, error=None)

    @classmethod
    def failed(cls, error: BaseException) -> "ModuleResult":
        return cls(data=None, error=error)


class BaseModuleHandler(ABC):
    """Base class for module handlers.

    ``execute`` is the template method the dispatcher calls:

    1. Input config validation through the model registered for the key
    2. Core logic execution (``run``)
    3. Errors converted into a failed ModuleResult instead of raised
    """

    module_key: str = ""

    def __init__(self):
        self.logger = LOGGER

    def parse_input(self, run: ModuleRun) -> ModuleInput:
        return parse_module_input(self.module_key, run.input_config_json)

    async def execute(self, run: ModuleRun) -> ModuleResult:
        run_id = run.id
        try:
            config = self.parse_input(run)
            data = await self.run(run, config)
            return ModuleResult.ok(data)

        except AppError as e:
            self.logger.error(
                f"{self.__class__.__name__} failed: {e.message}",
                extra={"module_run_id": run_id, "module_key": self.module_key, "error_type": type(e).__name__},
            )
            return ModuleResult.failed(e)

        except Exception as e:
            self.logger.error(
                f"{self.__class__.__name__} failed unexpectedly: {str(e)}",
                exc_info=True,
                extra={"module_run_id": run_id, "module_key": self.module_key},
            )
            return ModuleResult.failed(AppError(f"Module {self.module_key} failed: {str(e)}", original_error=e))

    @abstractmethod
    async def run(self, run: ModuleRun, config: ModuleInput) -> Any:
        """Run the core handler logic. Raise AppError subclasses on failure."""
        pass


def require_person_id(run: ModuleRun) -> int:
    """Person-level handlers need a subject person on the run."""
    if run.person_id is None:
        raise ValidationError(f"Module run {run.id} ({run.module_key}) has no person")
    return run.person_id
