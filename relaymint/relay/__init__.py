"""
Fee-delegated submission through a third-party relay.
"""

from .submitter import (
    DRY_RUN_SIGNATURE,
    RelaySubmitter,
    RelayTransport,
    SubmissionResult,
)

__all__ = [
    "DRY_RUN_SIGNATURE",
    "RelaySubmitter",
    "RelayTransport",
    "SubmissionResult",
]
