"""
Core primitives shared by every deployment component.

- errors: DeployError taxonomy
- config: DeployConfig, TokenSpec, AuthorityPolicy
- ids: address encoding
- logging_config / metrics: ambient observability
"""

from .config import AuthorityKind, AuthorityPolicy, DeployConfig, TokenSpec
from .errors import (
    ConfigInvalid,
    ConfirmationTimeout,
    DeployError,
    LedgerRejected,
    LedgerUnavailable,
    PreconditionUnmet,
    RelayExhausted,
    RelayTransportError,
    StorageFailure,
)
from .ids import decode_address, encode_address, is_valid_address

__all__ = [
    "AuthorityKind",
    "AuthorityPolicy",
    "DeployConfig",
    "TokenSpec",
    "ConfigInvalid",
    "ConfirmationTimeout",
    "DeployError",
    "LedgerRejected",
    "LedgerUnavailable",
    "PreconditionUnmet",
    "RelayExhausted",
    "RelayTransportError",
    "StorageFailure",
    "decode_address",
    "encode_address",
    "is_valid_address",
]
