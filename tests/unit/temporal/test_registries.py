from profile_indexer.temporal.core.activity_registry import ActivityRegistry
from profile_indexer.temporal.core.discovery import discover_all
from profile_indexer.temporal.core.workflow_registry import WorkflowRegistry, WorkflowType


class TestDiscovery:

    def test_workflows_and_activities_are_registered(self):
        discover_all()

        workflows = WorkflowRegistry.get_all_workflows()
        assert {"ExecuteModuleRunWorkflow", "RunIndexerFlowWorkflow"} <= set(workflows)
        assert [metadata.name for metadata in WorkflowRegistry.get_by_category(WorkflowType.FLOWS)] == [
            "RunIndexerFlowWorkflow"
        ]

        activities = ActivityRegistry.get_all_activities()
        assert {"flows:run_indexer_flow", "modules:execute_module_run"} <= set(activities)
