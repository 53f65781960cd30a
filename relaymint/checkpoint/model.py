"""
Deployment record: local checkpoint of which steps completed on-chain.

A record captures:
- The asset address (set once, immutable afterwards)
- The set of completed steps (grows only; rollback deletes the whole record)
- A write-ahead copy of the asset keypair while creation is in flight
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from ..identity.keys import Identity


class StepName(str, Enum):
    ASSET_CREATED = "asset_created"
    SUPPLY_MINTED = "supply_minted"
    METADATA_SET = "metadata_set"
    AUTHORITIES_LOCKED = "authorities_locked"


STEP_ORDER = (
    StepName.ASSET_CREATED,
    StepName.SUPPLY_MINTED,
    StepName.METADATA_SET,
    StepName.AUTHORITIES_LOCKED,
)


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass
class DeploymentRecord:
    """
    Checkpoint for one deployment.

    Fields:
        deployment_key: Local record name (file stem)
        asset_address: Deployed asset; None means not yet created
        steps_completed: Completed steps (monotonic)
        pending_asset_secret: Asset keypair persisted before the create
            operation is submitted; cleared once ASSET_CREATED is marked
        version: Format version (currently 1)
        updated_at: Last write time (UTC), informational only
    """
    deployment_key: str
    asset_address: Optional[str] = None
    steps_completed: Set[StepName] = field(default_factory=set)
    pending_asset_secret: Optional[List[int]] = None
    version: int = 1
    updated_at: Optional[str] = None

    def is_complete(self, step: StepName) -> bool:
        return step in self.steps_completed

    def set_asset_address(self, address: str) -> None:
        """
        Record the asset address.

        Raises:
            ValueError: If a different address was already recorded
        """
        if self.asset_address is not None and self.asset_address != address:
            raise ValueError(
                f"asset address is immutable: recorded {self.asset_address}, got {address}"
            )
        self.asset_address = address

    def mark(self, step: StepName) -> None:
        """
        Mark a step complete.

        Raises:
            ValueError: If a later step is marked before the asset exists
        """
        if step is not StepName.ASSET_CREATED:
            if self.asset_address is None or StepName.ASSET_CREATED not in self.steps_completed:
                raise ValueError(f"cannot mark {step.value} before asset_created")
        if step is StepName.ASSET_CREATED:
            if self.asset_address is None:
                raise ValueError("cannot mark asset_created without an asset address")
            self.pending_asset_secret = None
        self.steps_completed.add(step)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "deployment_key": self.deployment_key,
            "asset_address": self.asset_address,
            "steps_completed": [s.value for s in STEP_ORDER if s in self.steps_completed],
            "pending_asset_secret": self.pending_asset_secret,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeploymentRecord":
        record = cls(
            deployment_key=data["deployment_key"],
            asset_address=data.get("asset_address"),
            steps_completed={StepName(s) for s in data.get("steps_completed", [])},
            pending_asset_secret=data.get("pending_asset_secret"),
            version=data.get("version", 1),
            updated_at=data.get("updated_at"),
        )
        if record.steps_completed - {StepName.ASSET_CREATED} and (
            record.asset_address is None or StepName.ASSET_CREATED not in record.steps_completed
        ):
            raise ValueError("record marks later steps without asset_created")
        if record.pending_asset_secret is not None:
            # wrong length or a public half that does not match the seed
            Identity.from_secret_key(record.pending_asset_secret)
        return record

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    @classmethod
    def from_json(cls, json_str: str) -> "DeploymentRecord":
        return cls.from_dict(json.loads(json_str))

    def touch(self) -> None:
        self.updated_at = _now()
