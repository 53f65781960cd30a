"""
Step executor base: reconcile live state, then act.

Every step follows the same contract:
1. Preconditions: each required step must be complete on the live ledger
   (or simulated earlier in the same dry run)
2. Reconcile: if the step's effect already exists on-chain, record it and
   return ALREADY_COMPLETE without submitting anything
3. Apply: build the operation, submit through the relay, then record

The checkpoint is a cache of ledger truth, never a substitute for it. This
makes every step safe to re-run after a crash between settlement and the
checkpoint write, and against duplicate invocations.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Set, Tuple, Type

from ..checkpoint.model import DeploymentRecord, StepName
from ..checkpoint.store import CheckpointStore
from ..core.config import DeployConfig
from ..core.errors import DeployError, PreconditionUnmet
from ..core.logging_config import get_logger
from ..core.metrics import track_step_duration, track_step_outcome
from ..identity.keys import Identity
from ..ledger.client import LedgerClient
from ..operations.builder import OperationBuilder
from ..relay.submitter import RelaySubmitter, SubmissionResult


class OutcomeStatus(str, Enum):
    ALREADY_COMPLETE = "already_complete"
    APPLIED = "applied"
    SIMULATED = "simulated"
    FAILED = "failed"


@dataclass
class StepOutcome:
    """
    Result of one step execution.

    SIMULATED is a dry-run APPLIED: the signature is the sentinel and no
    checkpoint was written.
    """
    step: StepName
    status: OutcomeStatus
    signature: Optional[str] = None
    error: Optional[DeployError] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status is not OutcomeStatus.FAILED

    @classmethod
    def already_complete(cls, step: StepName, **details) -> "StepOutcome":
        return cls(step, OutcomeStatus.ALREADY_COMPLETE, details=details)

    @classmethod
    def applied(cls, step: StepName, signature: str, **details) -> "StepOutcome":
        return cls(step, OutcomeStatus.APPLIED, signature=signature, details=details)

    @classmethod
    def simulated(cls, step: StepName, signature: str, **details) -> "StepOutcome":
        return cls(step, OutcomeStatus.SIMULATED, signature=signature, details=details)

    @classmethod
    def failed(cls, step: StepName, error: DeployError, **details) -> "StepOutcome":
        return cls(step, OutcomeStatus.FAILED, error=error, details=details)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step": self.step.value,
            "status": self.status.value,
            "signature": self.signature,
            "error": str(self.error) if self.error else None,
            "details": self.details,
        }


@dataclass
class StepContext:
    """
    Everything a step needs for one invocation.

    record is a transient, mutable view of the checkpoint; steps write it
    back through store before reporting success (real runs only).
    """
    config: DeployConfig
    identity: Identity
    ledger: LedgerClient
    builder: OperationBuilder
    submitter: RelaySubmitter
    store: CheckpointStore
    record: DeploymentRecord
    dry_run: bool = False
    simulated: Set[StepName] = field(default_factory=set)
    simulated_asset: Optional[Identity] = None
    notes: Dict[StepName, Dict[str, Any]] = field(default_factory=dict)

    def pending_asset(self) -> Optional[Identity]:
        if self.record.pending_asset_secret is None:
            return None
        return Identity.from_secret_key(self.record.pending_asset_secret)

    @property
    def asset_address(self) -> Optional[str]:
        """Recorded asset, else the write-ahead pending asset, else the dry-run asset."""
        if self.record.asset_address:
            return self.record.asset_address
        pending = self.pending_asset()
        if pending is not None:
            return pending.address
        if self.simulated_asset is not None:
            return self.simulated_asset.address
        return None

    def holding_address(self) -> Optional[str]:
        asset = self.asset_address
        if asset is None:
            return None
        return self.builder.holding_address(self.config.treasury_pubkey, asset)

    def note(self, step: StepName, **values: Any) -> None:
        self.notes.setdefault(step, {}).update(values)

    def persist(self) -> None:
        if not self.dry_run:
            self.store.write(self.record)


class Step(ABC):
    """
    One deployment stage.

    Subclasses set name and requires, and implement observed_on_ledger()
    (read-only live check of the step's effect) and _apply() (build +
    submit).
    """

    name: StepName
    requires: Tuple[Type["Step"], ...] = ()

    def execute(self, ctx: StepContext) -> StepOutcome:
        log = get_logger(__name__, deployment=ctx.config.deployment_key)
        with track_step_duration(self.name.value):
            try:
                outcome = self._execute(ctx)
            except DeployError as e:
                e.with_step(self.name.value)
                log.error(f"{self.name.value} failed: {e}")
                outcome = StepOutcome.failed(self.name, e, **ctx.notes.pop(self.name, {}))

        track_step_outcome(self.name.value, outcome.status.value)
        if outcome.ok:
            log.info(f"{self.name.value}: {outcome.status.value}")
        return outcome

    def _execute(self, ctx: StepContext) -> StepOutcome:
        self.check_preconditions(ctx)

        if self.observed_on_ledger(ctx):
            self.record(ctx)
            return StepOutcome.already_complete(self.name, **ctx.notes.pop(self.name, {}))

        result = self._apply(ctx)
        details = ctx.notes.pop(self.name, {})
        if result.dry_run:
            ctx.simulated.add(self.name)
            return StepOutcome.simulated(self.name, result.signature, **details)

        self.record(ctx)
        return StepOutcome.applied(self.name, result.signature, **details)

    def check_preconditions(self, ctx: StepContext) -> None:
        """
        Require each prerequisite to be complete on the live ledger.

        Raises:
            PreconditionUnmet: A prerequisite has not taken effect
        """
        for required in self.requires:
            prerequisite = required()
            if prerequisite.name in ctx.simulated:
                continue
            if not prerequisite.observed_on_ledger(ctx):
                raise PreconditionUnmet(
                    f"{prerequisite.name.value} has not completed on the ledger; "
                    f"run it before {self.name.value}"
                )
            if not ctx.record.is_complete(prerequisite.name):
                prerequisite.record(ctx)

    def record(self, ctx: StepContext) -> None:
        """Mark this step (and any unmarked prerequisites) in the checkpoint."""
        if ctx.dry_run:
            return
        for required in self.requires:
            prerequisite = required()
            if not ctx.record.is_complete(prerequisite.name):
                prerequisite.record(ctx)
        if not ctx.record.is_complete(self.name):
            ctx.record.mark(self.name)
            ctx.persist()

    @abstractmethod
    def observed_on_ledger(self, ctx: StepContext) -> bool:
        """True when the step's effect already exists on the ledger."""
        ...

    @abstractmethod
    def _apply(self, ctx: StepContext) -> SubmissionResult:
        ...
