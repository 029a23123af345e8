"""Input config models, one per module key.

ModuleRun.input_config_json is schema-less in the database; handlers parse
it through the model registered for their key before doing any work.
"""

from datetime import datetime
from typing import Any, Dict, Optional, Type

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from profile_indexer.core.constants import DocumentSource, ModuleKey
from profile_indexer.core.exceptions import ValidationError


class ModuleInput(BaseModel):
    """Common base: camelCase keys and the optional FlowRun back-pointer."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    flow_run_id: Optional[int] = Field(default=None, alias="_flowRunId")
    custom_prompt: Optional[str] = None


class NoopInput(ModuleInput):
    pass


class ManualDocumentConnectorInput(ModuleInput):
    payload: Any = Field(..., description="Document payload stored verbatim")
    source: str = DocumentSource.MANUAL.value
    document_kind: Optional[str] = None
    content_type: str = "application/json"
    source_ref: Optional[str] = None
    captured_at: Optional[datetime] = None


class LinkedinProfileConnectorInput(ModuleInput):
    profile_url: str
    limit: int = 1
    actor_id: Optional[str] = None
    actor_input: Dict[str, Any] = Field(default_factory=dict)


class LinkedinPostsConnectorInput(ModuleInput):
    profile_url: str
    total_posts: Optional[int] = None
    limit: int = 100
    actor_id: Optional[str] = None
    actor_input: Dict[str, Any] = Field(default_factory=dict)

    def build_actor_input(self) -> Dict[str, Any]:
        """Actor input: total_posts when given, otherwise the per-page limit; overrides win."""
        base: Dict[str, Any] = {"username": self.profile_url}
        if self.total_posts is not None:
            base["total_posts"] = self.total_posts
        else:
            base["limit"] = self.limit
        return {**base, **self.actor_input}


class ProspectSearchConnectorInput(ModuleInput):
    provider: str
    payload: Dict[str, Any]
    max_pages: int = 10
    max_items: int = 500
    dedupe_key: str = "search"
    is_enrich_profiles: bool = True


class CoreIdentityEnricherInput(ModuleInput):
    schema_version: str
    document_kind: str
    document_source: str = DocumentSource.MANUAL.value


class LinkedinCoreIdentityEnricherInput(ModuleInput):
    schema_version: str = "v1"
    infer_age_range: bool = True


class Layer1ComposerInput(ModuleInput):
    schema_version: str
    layer_number: int = 1


class FinalSummaryComposerInput(ModuleInput):
    schema_version: str = "v1"
    model: Optional[str] = None


MODULE_INPUT_MODELS: Dict[str, Type[ModuleInput]] = {
    ModuleKey.NOOP: NoopInput,
    ModuleKey.MANUAL_DOCUMENT_CONNECTOR: ManualDocumentConnectorInput,
    ModuleKey.LINKEDIN_PROFILE_CONNECTOR: LinkedinProfileConnectorInput,
    ModuleKey.LINKEDIN_POSTS_CONNECTOR: LinkedinPostsConnectorInput,
    ModuleKey.PROSPECT_SEARCH_CONNECTOR: ProspectSearchConnectorInput,
    ModuleKey.CORE_IDENTITY_ENRICHER: CoreIdentityEnricherInput,
    ModuleKey.LINKEDIN_CORE_IDENTITY_ENRICHER: LinkedinCoreIdentityEnricherInput,
    ModuleKey.LAYER_1_COMPOSER: Layer1ComposerInput,
    ModuleKey.FINAL_SUMMARY_COMPOSER: FinalSummaryComposerInput,
}


def _describe(error: PydanticValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ()))
        if item.get("type") == "missing":
            parts.append(f"{location} is required in InputConfigJson")
        else:
            parts.append(f"{location}: {item.get('msg')}")
    return "; ".join(parts)


def parse_module_input(module_key: str, raw: Optional[Dict[str, Any]]) -> ModuleInput:
    """Validate a run's input config for its module key.

    Raises:
        ValidationError: when the key has no model or the config is invalid
    """
    model = MODULE_INPUT_MODELS.get(module_key)
    if model is None:
        raise ValidationError(f"No input model registered for module key: {module_key}")
    try:
        return model.model_validate(raw or {})
    except PydanticValidationError as e:
        raise ValidationError(_describe(e), e)
