"""
Checkpoint system for resumable deployments.

Provides:
- DeploymentRecord model with step flags and the asset address
- Atomic, crash-safe record storage
"""

from .model import DeploymentRecord, StepName, STEP_ORDER
from .store import CheckpointStore

__all__ = [
    "DeploymentRecord",
    "StepName",
    "STEP_ORDER",
    "CheckpointStore",
]
