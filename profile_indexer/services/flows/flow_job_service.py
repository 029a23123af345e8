"""Entry points for creating flow runs and reporting their progress."""

from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from profile_indexer.core.config import FlowSettings
from profile_indexer.core.constants import FlowStage, JobType, RunStatus
from profile_indexer.core.exceptions import NotFoundError
from profile_indexer.database.models import FlowRun, ModuleRun
from profile_indexer.repositories.flow_run_repository import FlowRunRepository
from profile_indexer.repositories.module_repository import ModuleRunRepository
from profile_indexer.schemas.flows import FlowInputSummary, FlowRunCreateResult, FlowRunStatus, StageStatus
from profile_indexer.services.claims.claim_ledger_service import ClaimLedgerService
from profile_indexer.services.flows.flow_definitions import get_flow_definition
from profile_indexer.services.flows.flow_orchestrator import find_flow_final_summary
from profile_indexer.services.job_queue import JobQueue
from profile_indexer.services.subjects import SubjectValidator
from profile_indexer.utils.logging import get_logger

LOGGER = get_logger(__name__)


def derive_status(module_runs: Sequence[ModuleRun], fallback: str) -> str:
    """FAILED if any run failed, COMPLETED if all completed, RUNNING if any runs."""
    if not module_runs:
        return fallback
    statuses = [run.status for run in module_runs]
    if RunStatus.FAILED.value in statuses:
        return RunStatus.FAILED.value
    if all(status == RunStatus.COMPLETED.value for status in statuses):
        return RunStatus.COMPLETED.value
    if RunStatus.RUNNING.value in statuses:
        return RunStatus.RUNNING.value
    return RunStatus.QUEUED.value


def derive_flow_status(flow_run: FlowRun, module_runs: Sequence[ModuleRun]) -> str:
    """Status reported for a flow run.

    A terminal stored status wins. Until the last stage is done a flow never
    reads COMPLETED, and once any of its module runs moved past QUEUED it
    reads RUNNING, including the gap between two stages.
    """
    if RunStatus(flow_run.status).is_terminal:
        return flow_run.status
    status = derive_status(module_runs, flow_run.status)
    if status == RunStatus.COMPLETED.value and flow_run.current_stage != FlowStage.COMPLETED.value:
        return RunStatus.RUNNING.value
    if status == RunStatus.QUEUED.value and (
        flow_run.status == RunStatus.RUNNING.value
        or any(run.status != RunStatus.QUEUED.value for run in module_runs)
    ):
        return RunStatus.RUNNING.value
    return status


def compute_progress(module_runs: Sequence[ModuleRun]) -> int:
    if not module_runs:
        return 0
    completed = sum(1 for run in module_runs if run.status == RunStatus.COMPLETED.value)
    return round(completed / len(module_runs) * 100)


def module_run_entry(run: ModuleRun) -> Dict[str, Any]:
    return {
        "moduleRunId": run.id,
        "moduleKey": run.module_key,
        "status": run.status,
        "error": run.error_json,
        "startedAt": run.started_at.isoformat() if run.started_at else None,
        "finishedAt": run.finished_at.isoformat() if run.finished_at else None,
    }


class FlowJobService:
    def __init__(
        self,
        session: AsyncSession,
        job_queue: JobQueue,
        flow_settings: Optional[FlowSettings] = None,
        flow_run_repository: Optional[FlowRunRepository] = None,
        module_run_repository: Optional[ModuleRunRepository] = None,
        subjects: Optional[SubjectValidator] = None,
        ledger: Optional[ClaimLedgerService] = None,
    ):
        self.session = session
        self.job_queue = job_queue
        self.flow_settings = flow_settings or FlowSettings()
        self.flow_runs = flow_run_repository or FlowRunRepository(session)
        self.module_runs = module_run_repository or ModuleRunRepository(session)
        self.subjects = subjects or SubjectValidator(session)
        self.ledger = ledger or ClaimLedgerService(session)

    async def create_flow_run(
        self,
        project_id: int,
        person_id: int,
        profile_url: Optional[str] = None,
        triggered_by_user_id: Optional[int] = None,
        flow_key: Optional[str] = None,
        filter_instructions: Optional[str] = None,
        company_name: Optional[str] = None,
        company_domain: Optional[str] = None,
        company_description: Optional[str] = None,
        experiment_description: Optional[str] = None,
        custom_prompt: Optional[str] = None,
        flow_set_id: Optional[str] = None,
    ) -> FlowRunCreateResult:
        """Persist a QUEUED flow run and enqueue the job that starts it."""
        await self.subjects.require_subject(project_id, person_id)
        await self.subjects.require_user(triggered_by_user_id)

        flow_key = flow_key or self.flow_settings.default_flow_key
        get_flow_definition(flow_key)

        summary = FlowInputSummary(
            profile_url=profile_url,
            company_name=company_name,
            company_domain=company_domain,
            company_description=company_description,
            experiment_description=experiment_description,
            filter_instructions=filter_instructions,
            custom_prompt=custom_prompt,
            flow_set_id=flow_set_id,
        )
        flow_run = await self.flow_runs.create(
            project_id=project_id,
            person_id=person_id,
            triggered_by_user_id=triggered_by_user_id,
            flow_key=flow_key,
            status=RunStatus.QUEUED.value,
            input_summary_json=summary.model_dump(mode="json", by_alias=True, exclude_none=True),
            version=0,
        )
        flow_run_id = flow_run.id

        job_id = await self.job_queue.enqueue(JobType.RUN_INDEXER_FLOW, {"flowRunId": flow_run_id})
        LOGGER.info(
            f"Queued flow run {flow_run_id} ({flow_key}) as job {job_id}",
            extra={"project_id": project_id, "person_id": person_id, "flow_set_id": flow_set_id},
        )
        return FlowRunCreateResult(flow_run_id=flow_run_id, flow_key=flow_key, job_id=job_id)

    async def get_flow_run(self, flow_run_id: int) -> FlowRun:
        flow_run = await self.flow_runs.get_fresh(flow_run_id)
        if flow_run is None:
            raise NotFoundError(f"Flow run {flow_run_id} not found")
        return flow_run

    def _stage_breakdown(self, flow_run: FlowRun, module_runs: Sequence[ModuleRun]) -> List[StageStatus]:
        definition = get_flow_definition(flow_run.flow_key)
        stages = []
        for stage in definition.stage_order:
            keys = set(definition.modules_for(stage))
            stage_runs = [run for run in module_runs if run.module_key in keys]
            stages.append(
                StageStatus(
                    stage=stage.value,
                    status=derive_status(stage_runs, "PENDING"),
                    modules=[module_run_entry(run) for run in stage_runs],
                )
            )
        return stages

    async def get_flow_run_status(self, flow_run_id: int) -> FlowRunStatus:
        """Recompute a flow's progress from its module runs.

        The module-run summary and final summary are written back onto a
        non-terminal flow run, and only if no transition happened since it was
        read. The stored status is never overwritten here.
        """
        flow_run = await self.get_flow_run(flow_run_id)
        module_runs = await self.module_runs.list_for_flow_run(flow_run_id)

        completed = [run for run in module_runs if run.status == RunStatus.COMPLETED.value]
        failed = [run for run in module_runs if run.status == RunStatus.FAILED.value]
        running = [run for run in module_runs if run.status == RunStatus.RUNNING.value]

        status = derive_flow_status(flow_run, module_runs)

        final_summary = await find_flow_final_summary(self.ledger, flow_run, module_runs)
        if final_summary is None and flow_run.final_summary_json is not None:
            final_summary = flow_run.final_summary_json

        modules_completed = [{"moduleRunId": run.id, "moduleKey": run.module_key} for run in completed]
        modules_failed = [{"moduleRunId": run.id, "moduleKey": run.module_key} for run in failed]
        failure_reasons = [
            {"moduleRunId": run.id, "moduleKey": run.module_key, "error": run.error_json} for run in failed
        ]
        summary = FlowInputSummary.model_validate(flow_run.input_summary_json or {})

        result = FlowRunStatus(
            flow_run_id=flow_run.id,
            flow_key=flow_run.flow_key,
            status=status,
            current_stage=flow_run.current_stage,
            progress=compute_progress(module_runs),
            current_modules=[run.module_key for run in running],
            modules_scheduled=[item.get("moduleKey") for item in (flow_run.modules_scheduled_json or [])],
            modules_completed=[run.module_key for run in completed],
            modules_failed=[run.module_key for run in failed],
            failure_reasons=failure_reasons,
            stages=self._stage_breakdown(flow_run, module_runs),
            filter_result=summary.filter_result,
            final_summary=final_summary,
            error=flow_run.error_json,
            started_at=flow_run.started_at,
            finished_at=flow_run.finished_at,
        )

        # the orchestrator owns a finished run's fields
        if not RunStatus(flow_run.status).is_terminal:
            await self.flow_runs.annotate(
                flow_run_id,
                flow_run.version,
                modules_completed_json=modules_completed,
                modules_failed_json=modules_failed,
                failure_reasons_json=failure_reasons,
                final_summary_json=final_summary,
            )
        return result
