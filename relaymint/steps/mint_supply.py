"""
Step 2: mint the configured supply into the treasury's holding account.

The treasury balance is the source of truth. The step mints exactly the
difference between the target and the live balance, creating the holding
account in the same operation when it does not exist yet.
"""

from ..checkpoint.model import StepName
from ..core.errors import PreconditionUnmet
from ..operations.model import Operation
from ..relay.submitter import SubmissionResult
from .base import Step, StepContext
from .create_asset import CreateAssetStep


class MintSupplyStep(Step):
    name = StepName.SUPPLY_MINTED
    requires = (CreateAssetStep,)

    def observed_on_ledger(self, ctx: StepContext) -> bool:
        holding = ctx.holding_address()
        if holding is None:
            return False
        target = ctx.config.token.base_units
        balance = ctx.ledger.get_token_balance(holding)
        if balance == target:
            ctx.note(self.name, holding=holding, balance=balance)
            return True
        return False

    def _apply(self, ctx: StepContext) -> SubmissionResult:
        asset = ctx.asset_address
        holding = ctx.holding_address()
        target = ctx.config.token.base_units

        balance = ctx.ledger.get_token_balance(holding)
        current = balance or 0
        if current > target:
            raise PreconditionUnmet(
                f"Treasury holds {current} base units, more than the target {target}"
            )

        state = ctx.ledger.get_asset(asset)
        if state is not None:
            if state.mint_authority is None:
                raise PreconditionUnmet(
                    "Mint authority has been revoked; supply can no longer change"
                )
            if state.mint_authority != ctx.identity.address:
                raise PreconditionUnmet(
                    f"Mint authority is held by {state.mint_authority}, "
                    f"not this identity ({ctx.identity.address})"
                )

        amount = target - current
        operation = Operation(
            ctx.builder.mint_to(
                asset=asset,
                destination=holding,
                authority=ctx.identity.address,
                amount=amount,
            ),
            label="mint-supply",
        )
        if balance is None:
            operation.prepend(*ctx.builder.create_holding_account(
                payer=ctx.config.relayer_pubkey,
                owner=ctx.config.treasury_pubkey,
                asset=asset,
            ))

        result = ctx.submitter.submit(operation, dry_run=ctx.dry_run)
        ctx.note(self.name, holding=holding, minted=amount, created_holding=balance is None)
        return result
