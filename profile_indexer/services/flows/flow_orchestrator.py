"""Stage-by-stage progression of flow runs.

A flow run moves QUEUED -> RUNNING -> COMPLETED | FAILED. The orchestrator
schedules the module runs of one stage at a time and advances when every
run of the current stage is terminal. Progression can be triggered by any
worker finishing a module run, so every transition is a conditional update
on ``FlowRun.version`` and the loser of a race stops.
"""

from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from profile_indexer.core.constants import ClaimType, FlowStage, JobType, ModuleScope, RunStatus
from profile_indexer.core.exceptions import NotFoundError, ValidationError, error_to_json
from profile_indexer.database.models import FlowRun, Module, ModuleRun
from profile_indexer.repositories.flow_run_repository import FlowRunRepository
from profile_indexer.repositories.module_repository import ModuleRepository, ModuleRunRepository
from profile_indexer.schemas.flows import FlowInputSummary
from profile_indexer.services.claims.claim_ledger_service import ClaimLedgerService
from profile_indexer.services.flows.flow_definitions import (
    FlowDefinition,
    build_module_input,
    get_flow_definition,
)
from profile_indexer.services.flows.flow_filter_service import FlowFilterService
from profile_indexer.services.job_queue import JobQueue
from profile_indexer.services.subjects import SubjectValidator
from profile_indexer.utils.clock import utcnow
from profile_indexer.utils.logging import get_logger

LOGGER = get_logger(__name__)


async def find_flow_final_summary(
    ledger: ClaimLedgerService,
    flow_run: FlowRun,
    module_runs: Sequence[ModuleRun],
) -> Optional[Any]:
    """Value of the active final summary claim produced by this flow's runs."""
    if flow_run.person_id is None or not module_runs:
        return None
    claim = await ledger.get_latest_active_claim(
        flow_run.project_id,
        flow_run.person_id,
        ClaimType.FINAL_SUMMARY.value,
        module_run_ids=[run.id for run in module_runs],
    )
    return claim.value_json if claim is not None else None


class FlowOrchestrator:
    def __init__(
        self,
        session: AsyncSession,
        job_queue: JobQueue,
        filter_service: FlowFilterService,
        flow_run_repository: Optional[FlowRunRepository] = None,
        module_repository: Optional[ModuleRepository] = None,
        module_run_repository: Optional[ModuleRunRepository] = None,
        subjects: Optional[SubjectValidator] = None,
        ledger: Optional[ClaimLedgerService] = None,
    ):
        self.session = session
        self.job_queue = job_queue
        self.filter_service = filter_service
        self.flow_runs = flow_run_repository or FlowRunRepository(session)
        self.modules = module_repository or ModuleRepository(session)
        self.module_runs = module_run_repository or ModuleRunRepository(session)
        self.subjects = subjects or SubjectValidator(session)
        self.ledger = ledger or ClaimLedgerService(session)

    async def _load(self, flow_run_id: int) -> FlowRun:
        flow_run = await self.flow_runs.get_fresh(flow_run_id)
        if flow_run is None:
            raise NotFoundError(f"Flow run {flow_run_id} not found")
        return flow_run

    async def _validate_subject(self, flow_run: FlowRun) -> None:
        if flow_run.person_id is None:
            raise ValidationError(f"Flow run {flow_run.id} has no person")
        await self.subjects.require_subject(flow_run.project_id, flow_run.person_id)
        await self.subjects.require_user(flow_run.triggered_by_user_id)

    async def _fail(self, flow_run_id: int, error_json: Dict[str, Any]) -> bool:
        """Mark a flow run FAILED unless it already reached a terminal status."""
        await self.session.rollback()
        flow_run = await self.flow_runs.get_fresh(flow_run_id)
        if flow_run is None or RunStatus(flow_run.status).is_terminal:
            return False
        return await self.flow_runs.transition(
            flow_run_id,
            flow_run.version,
            status=RunStatus.FAILED.value,
            finished_at=utcnow(),
            error_json=error_json,
        )

    async def _resolve_stage_modules(self, module_keys: Sequence[str]) -> List[Module]:
        modules = []
        for module_key in module_keys:
            module = await self.modules.get_latest_enabled(module_key)
            if module is None:
                raise NotFoundError(f"No enabled module registered for key: {module_key}")
            if module.scope == ModuleScope.PROJECT_LEVEL.value:
                raise ValidationError(f"Module {module_key} is PROJECT_LEVEL and cannot run in person flow")
            modules.append(module)
        return modules

    async def _schedule_stage(
        self,
        flow_run_id: int,
        project_id: int,
        person_id: int,
        triggered_by_user_id: Optional[int],
        definition: FlowDefinition,
        stage: FlowStage,
        summary: FlowInputSummary,
        module_keys: Optional[Sequence[str]] = None,
    ) -> List[Dict[str, Any]]:
        # resolve every module before creating any run
        modules = await self._resolve_stage_modules(
            definition.modules_for(stage) if module_keys is None else module_keys
        )
        # a failed insert rolls the session back and expires loaded rows
        versions = [(module.module_key, module.version) for module in modules]

        scheduled = []
        for module_key, module_version in versions:
            try:
                run = await self.module_runs.create(
                    project_id=project_id,
                    person_id=person_id,
                    triggered_by_user_id=triggered_by_user_id,
                    module_key=module_key,
                    module_version=module_version,
                    status=RunStatus.QUEUED.value,
                    input_config_json=build_module_input(
                        module_key,
                        flow_run_id,
                        profile_url=summary.profile_url,
                        custom_prompt=summary.custom_prompt,
                    ),
                )
            except IntegrityError:
                LOGGER.info(f"Flow run {flow_run_id} already has a {module_key} run, another worker scheduled it")
                continue
            scheduled.append({"moduleKey": module_key, "moduleRunId": run.id, "stage": stage.value})

        for item in scheduled:
            await self.job_queue.enqueue(JobType.EXECUTE_MODULE_RUN, {"moduleRunId": item["moduleRunId"]})

        LOGGER.info(
            f"Scheduled stage {stage.value} of flow run {flow_run_id}",
            extra={"module_keys": [item["moduleKey"] for item in scheduled]},
        )
        return scheduled

    async def _enter_stage(
        self,
        flow_run: FlowRun,
        stage: FlowStage,
        expected_version: int,
        module_keys: Optional[Sequence[str]] = None,
        **values: Any,
    ) -> bool:
        """Claim ``stage`` for this worker, then create and enqueue its module runs.

        ``module_keys`` limits scheduling to part of the stage when resuming
        one whose scheduling was interrupted.
        """
        flow_run_id = flow_run.id
        project_id, person_id = flow_run.project_id, flow_run.person_id
        triggered_by_user_id = flow_run.triggered_by_user_id
        definition = get_flow_definition(flow_run.flow_key)
        summary = FlowInputSummary.model_validate(flow_run.input_summary_json or {})
        already_scheduled = list(flow_run.modules_scheduled_json or [])

        applied = await self.flow_runs.transition(
            flow_run_id, expected_version, current_stage=stage.value, **values
        )
        if not applied:
            return False

        scheduled = await self._schedule_stage(
            flow_run_id, project_id, person_id, triggered_by_user_id, definition, stage, summary, module_keys
        )
        await self.flow_runs.update(flow_run_id, modules_scheduled_json=already_scheduled + scheduled)
        return True

    async def process_flow_run(self, flow_run_id: int) -> None:
        """Start a QUEUED flow run.

        A redelivered job for a RUNNING flow resumes its current stage, which
        covers a worker that died after claiming a stage but before scheduling
        all of its module runs.
        """
        flow_run = await self._load(flow_run_id)
        if flow_run.status == RunStatus.RUNNING.value:
            LOGGER.info(f"Flow run {flow_run_id} is already RUNNING, resuming its current stage")
            try:
                await self.check_and_progress_stage(flow_run_id)
            except Exception as e:
                LOGGER.warning(f"Flow run {flow_run_id} could not be resumed: {str(e)}")
            return
        if flow_run.status != RunStatus.QUEUED.value:
            LOGGER.warning(f"Flow run {flow_run_id} is already {flow_run.status}, not starting it again")
            return

        try:
            await self._validate_subject(flow_run)
            definition = get_flow_definition(flow_run.flow_key)

            if definition.is_filter_only:
                await self._run_filter_only(flow_run)
                return

            LOGGER.info(f"Starting flow run {flow_run_id} ({flow_run.flow_key})")
            await self._enter_stage(
                flow_run,
                definition.first_stage,
                flow_run.version,
                status=RunStatus.RUNNING.value,
                started_at=utcnow(),
            )
        except Exception as e:
            LOGGER.error(f"Flow run {flow_run_id} failed to start: {str(e)}", exc_info=True)
            await self._fail(flow_run_id, error_to_json(e))

    async def _run_filter_only(self, flow_run: FlowRun) -> None:
        flow_run_id, version = flow_run.id, flow_run.version
        input_summary = dict(flow_run.input_summary_json or {})
        summary = FlowInputSummary.model_validate(input_summary)

        result = await self.filter_service.evaluate(flow_run, summary.filter_instructions)
        result_json = result.to_json()
        now = utcnow()
        values: Dict[str, Any] = {
            "status": RunStatus.COMPLETED.value,
            "current_stage": FlowStage.COMPLETED.value,
            "started_at": now,
            "finished_at": now,
            "input_summary_json": {**input_summary, "filterResult": result_json},
            "final_summary_json": result_json,
        }
        # a rejected profile completes too, the verdict is in final_summary_json
        if await self.flow_runs.transition(flow_run_id, version, **values):
            LOGGER.info(
                f"Filter-only flow run {flow_run_id} completed",
                extra={"should_proceed": result.should_proceed, "reason": result.reason},
            )

    async def check_and_progress_stage(self, flow_run_id: int) -> None:
        """Advance the flow when every module run of its current stage is terminal.

        Module runs missing from a claimed stage are scheduled and QUEUED ones
        re-enqueued first, so a retried call picks up interrupted scheduling.
        """
        flow_run = await self._load(flow_run_id)
        if RunStatus(flow_run.status).is_terminal or not flow_run.current_stage:
            return
        stage = FlowStage(flow_run.current_stage)
        if stage == FlowStage.COMPLETED:
            return

        try:
            await self._progress(flow_run, stage)
        except Exception as e:
            LOGGER.error(f"Flow run {flow_run_id} failed while leaving stage {stage.value}: {str(e)}", exc_info=True)
            await self._fail(flow_run_id, error_to_json(e))
            raise

    async def _progress(self, flow_run: FlowRun, stage: FlowStage) -> None:
        flow_run_id, version = flow_run.id, flow_run.version
        definition = get_flow_definition(flow_run.flow_key)

        runs = await self.module_runs.list_for_flow_run(flow_run_id, definition.modules_for(stage))
        if await self._resume_stage(flow_run, definition, stage, runs):
            return

        failed = [run for run in runs if run.status == RunStatus.FAILED.value]
        if failed:
            failed_keys = [run.module_key for run in failed]
            await self.flow_runs.transition(
                flow_run_id,
                version,
                status=RunStatus.FAILED.value,
                finished_at=utcnow(),
                modules_failed_json=[{"moduleRunId": run.id, "moduleKey": run.module_key} for run in failed],
                failure_reasons_json=[
                    {"moduleKey": run.module_key, "moduleRunId": run.id, "error": run.error_json} for run in failed
                ],
                error_json={"message": f"Stage {stage.value} had module failures", "failedModules": failed_keys},
            )
            LOGGER.warning(f"Flow run {flow_run_id} failed in stage {stage.value}", extra={"failed": failed_keys})
            return

        input_summary = dict(flow_run.input_summary_json or {})
        summary = FlowInputSummary.model_validate(input_summary)
        if stage == FlowStage.CONNECTORS and summary.filter_instructions:
            result = summary.filter_result
            if result is None:
                result = await self.filter_service.evaluate(flow_run, summary.filter_instructions)
                input_summary["filterResult"] = result.to_json()
                if not await self.flow_runs.transition(flow_run_id, version, input_summary_json=input_summary):
                    return
                version += 1
                flow_run.input_summary_json = input_summary

            if not result.should_proceed:
                await self.flow_runs.transition(
                    flow_run_id,
                    version,
                    status=RunStatus.FAILED.value,
                    finished_at=utcnow(),
                    error_json={"message": f"Filtered out: {result.reason}", "filterResult": result.to_json()},
                )
                LOGGER.info(f"Flow run {flow_run_id} filtered out: {result.reason}")
                return

        next_stage = definition.next_stage(stage)
        if next_stage == FlowStage.COMPLETED:
            await self._complete(flow_run, version)
            return

        if await self._enter_stage(flow_run, next_stage, version):
            LOGGER.info(f"Flow run {flow_run_id} advanced from {stage.value} to {next_stage.value}")

    async def _resume_stage(
        self,
        flow_run: FlowRun,
        definition: FlowDefinition,
        stage: FlowStage,
        runs: Sequence[ModuleRun],
    ) -> bool:
        """Schedule what is missing from the current stage. True while the stage is unfinished."""
        present = {run.module_key for run in runs}
        missing = [module_key for module_key in definition.modules_for(stage) if module_key not in present]

        # job ids are derived from the module run id, so enqueueing twice starts one job
        for run in runs:
            if run.status == RunStatus.QUEUED.value:
                await self.job_queue.enqueue(JobType.EXECUTE_MODULE_RUN, {"moduleRunId": run.id})

        if missing:
            LOGGER.warning(
                f"Flow run {flow_run.id} is missing module runs in stage {stage.value}, scheduling them",
                extra={"module_keys": missing},
            )
            await self._enter_stage(flow_run, stage, flow_run.version, module_keys=missing)
            return True
        return any(not RunStatus(run.status).is_terminal for run in runs)

    async def _complete(self, flow_run: FlowRun, version: int) -> None:
        flow_run_id = flow_run.id
        all_runs = await self.module_runs.list_for_flow_run(flow_run_id)
        final_summary = await find_flow_final_summary(self.ledger, flow_run, all_runs)
        applied = await self.flow_runs.transition(
            flow_run_id,
            version,
            status=RunStatus.COMPLETED.value,
            current_stage=FlowStage.COMPLETED.value,
            finished_at=utcnow(),
            modules_completed_json=[
                {"moduleRunId": run.id, "moduleKey": run.module_key}
                for run in all_runs
                if run.status == RunStatus.COMPLETED.value
            ],
            final_summary_json=final_summary,
        )
        if applied:
            LOGGER.info(f"Flow run {flow_run_id} completed")
