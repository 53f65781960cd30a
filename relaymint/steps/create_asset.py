"""
Step 1: create the asset with the identity as mint and freeze authority.

The asset keypair is written into the checkpoint before the operation is
submitted. After a crash between settlement and the checkpoint write the
next run finds the asset on the ledger under that keypair's address and
adopts it instead of creating a second one.
"""

from ..checkpoint.model import StepName
from ..core.errors import PreconditionUnmet
from ..identity.keys import Identity
from ..operations.model import Operation
from ..relay.submitter import SubmissionResult
from .base import Step, StepContext


class CreateAssetStep(Step):
    name = StepName.ASSET_CREATED

    def observed_on_ledger(self, ctx: StepContext) -> bool:
        address = ctx.asset_address
        if address is None:
            return False
        found = ctx.ledger.get_asset(address) is not None
        if found:
            ctx.note(self.name, asset_address=address,
                     explorer=ctx.config.explorer_url("address", address))
        return found

    def record(self, ctx: StepContext) -> None:
        if ctx.dry_run:
            return
        if not ctx.record.is_complete(self.name):
            ctx.record.set_asset_address(ctx.asset_address)
        super().record(ctx)

    def _apply(self, ctx: StepContext) -> SubmissionResult:
        if ctx.record.is_complete(self.name):
            raise PreconditionUnmet(
                f"Checkpoint records asset {ctx.record.asset_address} but the ledger "
                f"has no such asset; roll back before starting a new deployment"
            )

        asset = ctx.pending_asset() or ctx.simulated_asset or Identity.generate()
        if ctx.dry_run:
            ctx.simulated_asset = asset
        else:
            ctx.record.pending_asset_secret = list(asset.secret_key_bytes())
            ctx.persist()

        authority = ctx.identity.address
        operation = Operation(
            ctx.builder.create_asset(
                payer=ctx.config.relayer_pubkey,
                asset=asset.address,
                decimals=ctx.config.token.decimals,
                mint_authority=authority,
                freeze_authority=authority,
            ),
            label="create-asset",
        )
        result = ctx.submitter.submit(operation, extra_signers=(asset,), dry_run=ctx.dry_run)
        ctx.note(
            self.name,
            asset_address=asset.address,
            explorer=ctx.config.explorer_url("address", asset.address),
        )
        return result
