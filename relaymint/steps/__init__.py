"""Step executors, in deployment order."""

from .base import OutcomeStatus, Step, StepContext, StepOutcome
from .create_asset import CreateAssetStep
from .lock_authorities import LockAuthoritiesStep, SlotChange
from .mint_supply import MintSupplyStep
from .set_metadata import SetMetadataStep, metadata_uri

STEPS = (CreateAssetStep, MintSupplyStep, SetMetadataStep, LockAuthoritiesStep)

__all__ = [
    "OutcomeStatus",
    "Step",
    "StepContext",
    "StepOutcome",
    "CreateAssetStep",
    "MintSupplyStep",
    "SetMetadataStep",
    "LockAuthoritiesStep",
    "SlotChange",
    "metadata_uri",
    "STEPS",
]
