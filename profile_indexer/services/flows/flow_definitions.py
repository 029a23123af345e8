"""Static flow definitions: which modules run in which stage."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from profile_indexer.core.constants import FLOW_RUN_ID_KEY, FlowStage, ModuleKey
from profile_indexer.core.exceptions import ValidationError

DEFAULT_FLOW_KEY = "linkedin-default"
FILTER_ONLY_FLOW_KEY = "linkedin-filter-only"

STAGE_ORDER: Tuple[FlowStage, ...] = (FlowStage.CONNECTORS, FlowStage.ENRICHERS, FlowStage.COMPOSERS)

# Module keys whose input config receives the flow's profile URL
PROFILE_URL_MODULE_KEYS = frozenset(
    {ModuleKey.LINKEDIN_PROFILE_CONNECTOR, ModuleKey.LINKEDIN_POSTS_CONNECTOR}
)

DEFAULT_MODULE_INPUTS: Dict[str, Dict[str, Any]] = {
    ModuleKey.LINKEDIN_PROFILE_CONNECTOR: {"limit": 1},
    ModuleKey.LINKEDIN_POSTS_CONNECTOR: {"limit": 100},
    ModuleKey.LINKEDIN_CORE_IDENTITY_ENRICHER: {"schemaVersion": "v1", "documentKind": "linkedin_profile"},
    ModuleKey.LAYER_1_COMPOSER: {"schemaVersion": "v1", "layerNumber": 1},
    ModuleKey.FINAL_SUMMARY_COMPOSER: {"schemaVersion": "v1"},
}


@dataclass(frozen=True)
class FlowDefinition:
    key: str
    stages: Dict[FlowStage, List[str]] = field(default_factory=dict)

    @property
    def is_filter_only(self) -> bool:
        return not self.stages

    @property
    def stage_order(self) -> List[FlowStage]:
        return [stage for stage in STAGE_ORDER if self.stages.get(stage)]

    @property
    def first_stage(self) -> Optional[FlowStage]:
        order = self.stage_order
        return order[0] if order else None

    def next_stage(self, stage: FlowStage) -> FlowStage:
        """Stage after ``stage``; COMPLETED after the last one or for an unknown stage."""
        order = self.stage_order
        if stage not in order:
            return FlowStage.COMPLETED
        index = order.index(stage)
        return order[index + 1] if index + 1 < len(order) else FlowStage.COMPLETED

    def modules_for(self, stage: FlowStage) -> List[str]:
        return list(self.stages.get(stage, []))

    def stage_of(self, module_key: str) -> Optional[FlowStage]:
        for stage, keys in self.stages.items():
            if module_key in keys:
                return stage
        return None


FLOW_DEFINITIONS: Dict[str, FlowDefinition] = {
    DEFAULT_FLOW_KEY: FlowDefinition(
        key=DEFAULT_FLOW_KEY,
        stages={
            FlowStage.CONNECTORS: [ModuleKey.LINKEDIN_PROFILE_CONNECTOR, ModuleKey.LINKEDIN_POSTS_CONNECTOR],
            FlowStage.ENRICHERS: [ModuleKey.LINKEDIN_CORE_IDENTITY_ENRICHER],
            FlowStage.COMPOSERS: [ModuleKey.LAYER_1_COMPOSER, ModuleKey.FINAL_SUMMARY_COMPOSER],
        },
    ),
    FILTER_ONLY_FLOW_KEY: FlowDefinition(key=FILTER_ONLY_FLOW_KEY),
}


def get_flow_definition(flow_key: str) -> FlowDefinition:
    definition = FLOW_DEFINITIONS.get(flow_key)
    if definition is None:
        raise ValidationError(f"Unknown flow key: {flow_key}")
    return definition


def build_module_input(
    module_key: str,
    flow_run_id: int,
    profile_url: Optional[str] = None,
    custom_prompt: Optional[str] = None,
) -> Dict[str, Any]:
    """Input config of a module run scheduled by a flow."""
    config: Dict[str, Any] = dict(DEFAULT_MODULE_INPUTS.get(module_key, {}))
    if profile_url and module_key in PROFILE_URL_MODULE_KEYS:
        config["profileUrl"] = profile_url
    config[FLOW_RUN_ID_KEY] = flow_run_id
    if custom_prompt:
        config["customPrompt"] = custom_prompt
    return config
