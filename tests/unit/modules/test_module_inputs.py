import pytest

from profile_indexer.core.constants import ModuleKey
from profile_indexer.core.exceptions import ValidationError
from profile_indexer.schemas.module_inputs import (
    LinkedinPostsConnectorInput,
    ManualDocumentConnectorInput,
    parse_module_input,
)


class TestParseModuleInput:

    def test_camel_case_keys_and_flow_pointer(self):
        config = parse_module_input(
            ModuleKey.MANUAL_DOCUMENT_CONNECTOR,
            {"payload": {"a": 1}, "documentKind": "note", "_flowRunId": 100},
        )
        assert isinstance(config, ManualDocumentConnectorInput)
        assert config.document_kind == "note"
        assert config.flow_run_id == 100

    def test_missing_required_field(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_module_input(ModuleKey.LINKEDIN_PROFILE_CONNECTOR, {})
        assert "profileUrl is required in InputConfigJson" in exc_info.value.message

    def test_unknown_module_key(self):
        with pytest.raises(ValidationError):
            parse_module_input("does-not-exist", {})

    def test_none_config_is_empty(self):
        assert parse_module_input(ModuleKey.NOOP, None).flow_run_id is None


class TestPostsActorInput:

    def test_total_posts_wins_over_limit(self):
        config = LinkedinPostsConnectorInput(profile_url="https://linkedin.com/in/a", total_posts=20)
        assert config.build_actor_input() == {"username": "https://linkedin.com/in/a", "total_posts": 20}

    def test_overrides_applied_last(self):
        config = LinkedinPostsConnectorInput(profile_url="https://linkedin.com/in/a", actor_input={"limit": 5})
        assert config.build_actor_input()["limit"] == 5
