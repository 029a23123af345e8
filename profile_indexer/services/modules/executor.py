"""Worker-side execution of one module run."""

from typing import TYPE_CHECKING, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from profile_indexer.core.constants import FLOW_RUN_ID_KEY, RunStatus
from profile_indexer.core.exceptions import error_to_json
from profile_indexer.database.models import ModuleRun
from profile_indexer.repositories.module_repository import ModuleRunRepository
from profile_indexer.services.modules.base_handler import ModuleResult
from profile_indexer.services.modules.dispatcher import ModuleDispatcher
from profile_indexer.utils.clock import utcnow
from profile_indexer.utils.logging import get_logger

if TYPE_CHECKING:
    from profile_indexer.services.flows.flow_orchestrator import FlowOrchestrator

LOGGER = get_logger(__name__)


def flow_run_id_of(run: ModuleRun) -> Optional[int]:
    value = (run.input_config_json or {}).get(FLOW_RUN_ID_KEY)
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        LOGGER.warning(f"Module run {run.id} has a malformed {FLOW_RUN_ID_KEY}: {value!r}")
        return None


class ModuleRunExecutor:
    """Moves a module run through RUNNING to COMPLETED or FAILED.

    When the run belongs to a flow, the flow orchestrator is asked to check
    its current stage afterwards, whatever the outcome.
    """

    def __init__(
        self,
        session: AsyncSession,
        dispatcher: ModuleDispatcher,
        orchestrator: Optional["FlowOrchestrator"] = None,
        repository: Optional[ModuleRunRepository] = None,
    ):
        self.session = session
        self.dispatcher = dispatcher
        self.orchestrator = orchestrator
        self.repository = repository or ModuleRunRepository(session)

    async def execute_module_run(self, module_run_id: int) -> Optional[ModuleResult]:
        run = await self.repository.get_by_id(module_run_id)
        if run is None:
            LOGGER.error(f"Module run {module_run_id} not found, nothing to execute")
            return None

        if RunStatus(run.status).is_terminal:
            LOGGER.warning(f"Module run {module_run_id} is already {run.status}, skipping execution")
            await self._progress_flow(run.id, flow_run_id_of(run))
            return None

        # handlers may roll the session back, which expires loaded rows
        run_id, module_key = run.id, run.module_key
        flow_run_id = flow_run_id_of(run)

        await self.repository.mark_running(run_id, utcnow())
        LOGGER.info(
            f"Executing module run {run_id} ({module_key}@{run.module_version})",
            extra={"project_id": run.project_id, "person_id": run.person_id},
        )

        result = await self.dispatcher.execute(run)

        if result.succeeded:
            await self.repository.mark_completed(run_id, utcnow())
            LOGGER.info(f"Module run {run_id} completed", extra={"module_key": module_key})
        else:
            await self.session.rollback()
            await self.repository.mark_failed(run_id, utcnow(), error_to_json(result.error))
            LOGGER.warning(f"Module run {run_id} failed: {result.error}", extra={"module_key": module_key})

        await self._progress_flow(run_id, flow_run_id)
        return result

    async def _progress_flow(self, module_run_id: int, flow_run_id: Optional[int]) -> None:
        if flow_run_id is None or self.orchestrator is None:
            return
        try:
            await self.orchestrator.check_and_progress_stage(flow_run_id)
        except Exception as e:
            LOGGER.error(
                f"Stage progression for flow run {flow_run_id} failed after module run {module_run_id}: {str(e)}",
                exc_info=True,
            )
