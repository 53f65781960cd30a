"""
Ledger access (read/await only).

This module provides:
- LedgerClient: Abstract read interface
- RpcLedgerClient: JSON-RPC implementation over urllib
- Anchor, AccountInfo, AssetState: ledger value types
"""

from .client import AccountInfo, Anchor, AssetState, LedgerClient
from .rpc import RpcLedgerClient

__all__ = [
    "AccountInfo",
    "Anchor",
    "AssetState",
    "LedgerClient",
    "RpcLedgerClient",
]
