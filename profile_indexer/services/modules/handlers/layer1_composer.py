from typing import Any, Dict

from profile_indexer.core.constants import ModuleKey
from profile_indexer.database.models import ModuleRun
from profile_indexer.schemas.module_inputs import Layer1ComposerInput
from profile_indexer.services.claims.claim_ledger_service import ClaimLedgerService
from profile_indexer.services.modules.base_handler import BaseModuleHandler, require_person_id
from profile_indexer.services.snapshots.layer1_composer import LAYER_1_CLAIM_TYPES, Layer1Composer
from profile_indexer.services.snapshots.layer_snapshot_service import LayerSnapshotService


class Layer1ComposerHandler(BaseModuleHandler):
    """Compiles the active core identity claims into the next layer snapshot version."""

    module_key = ModuleKey.LAYER_1_COMPOSER

    def __init__(self, ledger: ClaimLedgerService, snapshot_service: LayerSnapshotService):
        super().__init__()
        self.ledger = ledger
        self.snapshot_service = snapshot_service

    async def run(self, run: ModuleRun, config: Layer1ComposerInput) -> Dict[str, Any]:
        person_id = require_person_id(run)
        claims = await self.ledger.get_active_claims(run.project_id, person_id, LAYER_1_CLAIM_TYPES)

        composer = Layer1Composer(layer_number=config.layer_number, schema_version=config.schema_version)
        compiled = composer.compose(claims)

        snapshot = await self.snapshot_service.create_next_snapshot_version(
            project_id=run.project_id,
            person_id=person_id,
            layer_number=config.layer_number,
            composer_module_key=self.module_key,
            composer_version=run.module_version,
            compiled_json=compiled,
            module_run_id=run.id,
        )
        return {
            "layerSnapshotId": snapshot.id,
            "snapshotVersion": snapshot.snapshot_version,
            "claimCount": len(claims),
        }
