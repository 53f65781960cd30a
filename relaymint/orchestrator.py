"""
Deployment orchestrator.

Sequences the step executors, reports live deployment status and rolls back
local state. It owns no on-chain logic of its own: every decision about
whether a step needs to act is made by the step against the live ledger.

Usage:
    config = DeployConfig.from_env(dotenv_path=Path(".env"))
    orchestrator = Orchestrator.from_config(config)
    orchestrator.preflight()
    report = orchestrator.run_all()
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .checkpoint.model import STEP_ORDER, DeploymentRecord, StepName
from .checkpoint.store import CheckpointStore
from .core.config import DeployConfig
from .core.errors import DeployError, StorageFailure
from .core.logging_config import get_logger
from .identity.keys import Identity
from .identity.store import IdentityStore
from .ledger.client import LedgerClient
from .ledger.rpc import RpcLedgerClient
from .operations.builder import OperationBuilder, TokenProgramBuilder
from .relay.submitter import RelaySubmitter
from .steps import STEPS, StepContext, StepOutcome
from .steps.base import Step

STEPS_BY_NAME: Dict[StepName, Step] = {cls.name: cls() for cls in STEPS}


class Command(str, Enum):
    """Interactive menu actions, keyed by their menu number."""
    RUN_ALL = "1"
    CREATE_ASSET = "2"
    MINT_SUPPLY = "3"
    SET_METADATA = "4"
    LOCK_AUTHORITIES = "5"
    STATUS = "6"
    DRY_RUN_ALL = "7"
    ROLLBACK = "8"
    EXIT = "9"

    @property
    def label(self) -> str:
        return COMMAND_LABELS[self]


COMMAND_LABELS = {
    Command.RUN_ALL: "Run full deployment",
    Command.CREATE_ASSET: "Create asset",
    Command.MINT_SUPPLY: "Mint initial supply",
    Command.SET_METADATA: "Set metadata",
    Command.LOCK_AUTHORITIES: "Lock authorities",
    Command.STATUS: "Check deployment status",
    Command.DRY_RUN_ALL: "Run dry-run (all steps)",
    Command.ROLLBACK: "Rollback (delete local checkpoint)",
    Command.EXIT: "Exit",
}

SINGLE_STEP_COMMANDS = {
    Command.CREATE_ASSET: StepName.ASSET_CREATED,
    Command.MINT_SUPPLY: StepName.SUPPLY_MINTED,
    Command.SET_METADATA: StepName.METADATA_SET,
    Command.LOCK_AUTHORITIES: StepName.AUTHORITIES_LOCKED,
}


@dataclass
class RunReport:
    outcomes: List[StepOutcome] = field(default_factory=list)
    dry_run: bool = False

    @property
    def ok(self) -> bool:
        return all(outcome.ok for outcome in self.outcomes)

    @property
    def failed(self) -> Optional[StepOutcome]:
        return next((outcome for outcome in self.outcomes if not outcome.ok), None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "dry_run": self.dry_run,
            "outcomes": [outcome.to_dict() for outcome in self.outcomes],
        }


@dataclass
class DeploymentStatus:
    """
    Live view of a deployment.

    completed is reconciled against the ledger; recorded is what the local
    checkpoint says. They differ after a crash or a deleted checkpoint.
    """
    deployment_key: str
    identity_address: str
    asset_address: Optional[str] = None
    completed: Dict[StepName, bool] = field(default_factory=dict)
    recorded: Dict[StepName, bool] = field(default_factory=dict)
    supply: Optional[int] = None
    decimals: Optional[int] = None
    holding_address: Optional[str] = None
    holding_balance: Optional[int] = None
    mint_authority: Optional[str] = None
    freeze_authority: Optional[str] = None
    metadata_address: Optional[str] = None
    metadata_present: bool = False
    gate_closed: bool = False
    explorer: Dict[str, str] = field(default_factory=dict)

    @property
    def asset_exists(self) -> bool:
        return self.completed.get(StepName.ASSET_CREATED, False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "deployment_key": self.deployment_key,
            "identity_address": self.identity_address,
            "asset_address": self.asset_address,
            "completed": {step.value: done for step, done in self.completed.items()},
            "recorded": {step.value: done for step, done in self.recorded.items()},
            "supply": self.supply,
            "decimals": self.decimals,
            "holding_address": self.holding_address,
            "holding_balance": self.holding_balance,
            "mint_authority": self.mint_authority,
            "freeze_authority": self.freeze_authority,
            "metadata_address": self.metadata_address,
            "metadata_present": self.metadata_present,
            "gate_closed": self.gate_closed,
            "explorer": dict(self.explorer),
        }


@dataclass
class RollbackReport:
    deployment_key: str
    record_deleted: bool
    identity_deleted: bool = False
    asset_address: Optional[str] = None
    asset_exists: bool = False
    metadata_exists: bool = False

    @property
    def residue(self) -> List[str]:
        """On-chain effects the rollback leaves in place."""
        found = []
        if self.asset_exists:
            found.append(f"asset {self.asset_address}")
        if self.metadata_exists:
            found.append("metadata account")
        return found


@dataclass
class CommandOutcome:
    exit_code: int
    message: str
    payload: Any = None


class Orchestrator:
    def __init__(
        self,
        config: DeployConfig,
        identity: Identity,
        ledger: LedgerClient,
        submitter: RelaySubmitter,
        store: CheckpointStore,
        builder: Optional[OperationBuilder] = None,
        identity_store: Optional[IdentityStore] = None,
    ):
        self.config = config
        self.identity = identity
        self.ledger = ledger
        self.submitter = submitter
        self.store = store
        self.builder = builder or TokenProgramBuilder()
        self.identity_store = identity_store
        self.log = get_logger(__name__, deployment=config.deployment_key)

    @classmethod
    def from_config(
        cls,
        config: DeployConfig,
        ledger: Optional[LedgerClient] = None,
        submitter: Optional[RelaySubmitter] = None,
    ) -> "Orchestrator":
        """
        Wire default collaborators: identity file, JSON-RPC ledger, relay
        submitter and checkpoint directory under config.cache_dir.

        Raises:
            StorageFailure: Identity file unreadable or not writable
        """
        identity_store = IdentityStore(config.identity_path)
        identity = identity_store.load_or_create()
        ledger = ledger or RpcLedgerClient(config.rpc_url)
        submitter = submitter or RelaySubmitter(config, ledger, identity)
        return cls(
            config=config,
            identity=identity,
            ledger=ledger,
            submitter=submitter,
            store=CheckpointStore(config.checkpoint_dir),
            identity_store=identity_store,
        )

    def preflight(self) -> None:
        """
        Check ledger reachability.

        Raises:
            LedgerUnavailable: RPC endpoint unreachable
        """
        self.ledger.get_latest_anchor()
        self.log.info(f"Ledger reachable at {self.config.rpc_url}")

    def _load_record(self) -> DeploymentRecord:
        record = self.store.read(self.config.deployment_key)
        return record or DeploymentRecord(deployment_key=self.config.deployment_key)

    def _context(self, dry_run: bool) -> StepContext:
        return StepContext(
            config=self.config,
            identity=self.identity,
            ledger=self.ledger,
            builder=self.builder,
            submitter=self.submitter,
            store=self.store,
            record=self._load_record(),
            dry_run=dry_run,
        )

    def _dry_run(self, dry_run: Optional[bool]) -> bool:
        return self.config.dry_run if dry_run is None else dry_run

    def run_all(self, dry_run: Optional[bool] = None) -> RunReport:
        """
        Run every step in order, stopping at the first failure.

        Completed steps are reported ALREADY_COMPLETE, so re-running after a
        partial deployment resumes where it stopped.
        """
        dry_run = self._dry_run(dry_run)
        ctx = self._context(dry_run)
        report = RunReport(dry_run=dry_run)

        self.log.info(f"Running full deployment{' (dry run)' if dry_run else ''}")
        for name in STEP_ORDER:
            outcome = STEPS_BY_NAME[name].execute(ctx)
            report.outcomes.append(outcome)
            if not outcome.ok:
                self.log.error(f"Deployment stopped at {name.value}")
                break
        return report

    def run_step(self, name: StepName, dry_run: Optional[bool] = None) -> StepOutcome:
        return STEPS_BY_NAME[StepName(name)].execute(self._context(self._dry_run(dry_run)))

    def status(self) -> DeploymentStatus:
        """
        Reconcile every step against the ledger without changing anything.

        Raises:
            LedgerUnavailable: Ledger reads failed
        """
        ctx = self._context(dry_run=True)
        status = DeploymentStatus(
            deployment_key=self.config.deployment_key,
            identity_address=self.identity.address,
            asset_address=ctx.asset_address,
            recorded={name: ctx.record.is_complete(name) for name in STEP_ORDER},
        )
        for name in STEP_ORDER:
            status.completed[name] = STEPS_BY_NAME[name].observed_on_ledger(ctx)
        ctx.notes.clear()

        if status.asset_address is None:
            return status

        asset = status.asset_address
        status.explorer["asset"] = self.config.explorer_url("address", asset)
        state = self.ledger.get_asset(asset)
        if state is not None:
            status.supply = state.supply
            status.decimals = state.decimals
            status.mint_authority = state.mint_authority
            status.freeze_authority = state.freeze_authority
            status.gate_closed = state.mint_authority is None and state.freeze_authority is None

        status.holding_address = ctx.holding_address()
        status.holding_balance = self.ledger.get_token_balance(status.holding_address)
        status.explorer["holding"] = self.config.explorer_url("address", status.holding_address)

        status.metadata_address = self.builder.metadata_address(asset)
        status.metadata_present = self.ledger.get_account_info(status.metadata_address) is not None
        return status

    def rollback(self, forget_identity: bool = False) -> RollbackReport:
        """
        Delete the local checkpoint (and optionally the identity file).

        On-chain effects are permanent and left untouched; the report lists
        what remains on the ledger.
        """
        try:
            asset = self._context(dry_run=True).asset_address
        except StorageFailure as e:
            self.log.warning(f"Checkpoint unreadable, deleting it anyway: {e}")
            asset = None
        report = RollbackReport(
            deployment_key=self.config.deployment_key,
            record_deleted=False,
            asset_address=asset,
        )
        if asset is not None:
            try:
                report.asset_exists = self.ledger.get_asset(asset) is not None
                metadata = self.builder.metadata_address(asset)
                report.metadata_exists = self.ledger.get_account_info(metadata) is not None
            except DeployError as e:
                self.log.warning(f"Could not inspect on-chain residue: {e}")

        report.record_deleted = self.store.delete(self.config.deployment_key)
        if forget_identity and self.identity_store is not None:
            report.identity_deleted = self.identity_store.delete()

        for item in report.residue:
            self.log.warning(f"Rollback leaves {item} on the ledger (on-chain effects are permanent)")
        self.log.info(f"Rollback complete for {self.config.deployment_key}")
        return report

    def dispatch(self, command: Command) -> CommandOutcome:
        """
        Execute one menu command.

        Never raises for DeployError; the caller decides whether a non-zero
        exit_code ends the process.
        """
        try:
            choice = Command(command)
        except ValueError:
            return CommandOutcome(1, f"Invalid choice {command!r}. Please select 1-9.")
        try:
            return self._dispatch(choice)
        except DeployError as e:
            return CommandOutcome(1, str(e))

    def _dispatch(self, command: Command) -> CommandOutcome:
        if command is Command.EXIT:
            return CommandOutcome(0, "Exiting")

        if command in (Command.RUN_ALL, Command.DRY_RUN_ALL):
            report = self.run_all(dry_run=True if command is Command.DRY_RUN_ALL else None)
            if report.ok:
                return CommandOutcome(0, "Deployment steps finished", report)
            return CommandOutcome(1, str(report.failed.error), report)

        if command in SINGLE_STEP_COMMANDS:
            outcome = self.run_step(SINGLE_STEP_COMMANDS[command])
            if outcome.ok:
                return CommandOutcome(0, f"{outcome.step.value}: {outcome.status.value}", outcome)
            return CommandOutcome(1, str(outcome.error), outcome)

        if command is Command.STATUS:
            return CommandOutcome(0, "Deployment status", self.status())

        report = self.rollback()
        return CommandOutcome(0, "Local checkpoint removed", report)


__all__ = [
    "Command",
    "CommandOutcome",
    "DeploymentStatus",
    "Orchestrator",
    "RollbackReport",
    "RunReport",
]
