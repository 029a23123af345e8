from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class FilterResult(CamelModel):
    """Outcome of the AI filter gate, stored under input_summary_json.filterResult."""

    should_proceed: bool
    reason: str = "No reason provided"
    confidence: float = 0.5
    unsupported_filters: List[str] = Field(default_factory=list)

    @classmethod
    def pass_through(cls) -> "FilterResult":
        return cls(
            should_proceed=True,
            reason="No filter instructions provided",
            confidence=1.0,
            unsupported_filters=[],
        )


class FlowInputSummary(CamelModel):
    """Context persisted on FlowRun.input_summary_json."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    profile_url: Optional[str] = None
    company_name: Optional[str] = None
    company_domain: Optional[str] = None
    company_description: Optional[str] = None
    experiment_description: Optional[str] = None
    filter_instructions: Optional[str] = None
    custom_prompt: Optional[str] = None
    flow_set_id: Optional[str] = None
    filter_result: Optional[FilterResult] = None


class FlowRunCreateResult(CamelModel):
    flow_run_id: int
    flow_key: str
    job_id: str


class StageStatus(CamelModel):
    stage: str
    status: str
    modules: List[Dict[str, Any]] = Field(default_factory=list)


class FlowRunStatus(CamelModel):
    """Derived status of a flow run, recomputed from its module runs."""

    flow_run_id: int
    flow_key: str
    status: str
    current_stage: Optional[str] = None
    progress: int = 0
    current_modules: List[str] = Field(default_factory=list)
    modules_scheduled: List[str] = Field(default_factory=list)
    modules_completed: List[str] = Field(default_factory=list)
    modules_failed: List[str] = Field(default_factory=list)
    failure_reasons: List[Dict[str, Any]] = Field(default_factory=list)
    stages: List[StageStatus] = Field(default_factory=list)
    filter_result: Optional[FilterResult] = None
    final_summary: Optional[Any] = None
    error: Optional[Dict[str, Any]] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None


class FlowBatchItem(CamelModel):
    """One input of a batch: either the created flow or the error."""

    input: str
    person_id: Optional[int] = None
    flow_run_id: Optional[int] = None
    flow_key: Optional[str] = None
    job_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


class FlowBatchResult(CamelModel):
    flow_set_id: str
    items: List[FlowBatchItem] = Field(default_factory=list)

    @property
    def created_count(self) -> int:
        return sum(1 for item in self.items if item.succeeded)

    @property
    def failed_count(self) -> int:
        return sum(1 for item in self.items if not item.succeeded)


class FlowSetStatus(CamelModel):
    flow_set_id: str
    total: int
    status_counts: Dict[str, int] = Field(default_factory=dict)
    flows: List[FlowRunStatus] = Field(default_factory=list)
