"""
Step 4: move both authority slots to the policy's target.

Both slot changes go into one operation so they settle together. Revoking
(policy none) is permanent: once a slot is empty it can never be assigned
again, so a slot that is empty while the policy names an address fails
instead of submitting.
"""

from dataclasses import dataclass
from typing import List, Optional

from ..checkpoint.model import StepName
from ..core.errors import PreconditionUnmet
from ..operations.model import AuthoritySlot, Operation
from ..relay.submitter import SubmissionResult
from .base import Step, StepContext
from .mint_supply import MintSupplyStep


@dataclass(frozen=True)
class SlotChange:
    slot: AuthoritySlot
    current: Optional[str]
    target: Optional[str]

    @property
    def at_target(self) -> bool:
        return self.current == self.target

    def describe(self) -> str:
        if self.at_target:
            return "already at target"
        return f"{self.current} -> {self.target or 'revoked'}"


class LockAuthoritiesStep(Step):
    name = StepName.AUTHORITIES_LOCKED
    requires = (MintSupplyStep,)

    def plan(self, ctx: StepContext) -> Optional[List[SlotChange]]:
        """Slot changes needed, or None when the asset is not on the ledger."""
        asset = ctx.asset_address
        if asset is None:
            return None
        target = ctx.config.authority_policy.target
        state = ctx.ledger.get_asset(asset)
        if state is None:
            if StepName.ASSET_CREATED not in ctx.simulated:
                return None
            mint_current = freeze_current = ctx.identity.address
        else:
            mint_current, freeze_current = state.mint_authority, state.freeze_authority
        return [
            SlotChange(AuthoritySlot.MINT_TOKENS, mint_current, target),
            SlotChange(AuthoritySlot.FREEZE_ACCOUNT, freeze_current, target),
        ]

    def _note_plan(self, ctx: StepContext, changes: List[SlotChange]) -> None:
        ctx.note(
            self.name,
            policy=ctx.config.authority_policy.describe(),
            slots={change.slot.value: change.describe() for change in changes},
        )

    def observed_on_ledger(self, ctx: StepContext) -> bool:
        changes = self.plan(ctx)
        if changes is None or not all(change.at_target for change in changes):
            return False
        self._note_plan(ctx, changes)
        return True

    def _apply(self, ctx: StepContext) -> SubmissionResult:
        changes = self.plan(ctx)
        if changes is None:
            raise PreconditionUnmet(f"Asset {ctx.asset_address} not found on the ledger")

        pending = [change for change in changes if not change.at_target]
        for change in pending:
            if change.current is None:
                raise PreconditionUnmet(
                    f"{change.slot.value} authority was revoked and cannot be "
                    f"assigned to {change.target}"
                )
            if change.current != ctx.identity.address:
                raise PreconditionUnmet(
                    f"{change.slot.value} authority is held by {change.current}, "
                    f"not this identity ({ctx.identity.address})"
                )

        operation = Operation(label="lock-authorities")
        for change in pending:
            operation.add(*ctx.builder.set_authority(
                asset=ctx.asset_address,
                current=change.current,
                slot=change.slot,
                new_authority=change.target,
            ))

        self._note_plan(ctx, changes)
        if ctx.config.authority_policy.irreversible:
            ctx.note(self.name, irreversible=True)
        return ctx.submitter.submit(operation, dry_run=ctx.dry_run)
