"""
LedgerClient abstract interface.

Read/await only: the engine never writes to the ledger directly, every
state change goes through the relay.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Anchor:
    """
    Recency reference an operation must carry to be accepted.

    The operation is valid until the ledger passes last_valid_block_height.
    """
    blockhash: str
    last_valid_block_height: int


@dataclass(frozen=True)
class AccountInfo:
    address: str
    owner: str
    lamports: int
    data: bytes = b""


@dataclass(frozen=True)
class AssetState:
    """On-chain state of the token mint."""
    address: str
    supply: int
    decimals: int
    mint_authority: Optional[str]
    freeze_authority: Optional[str]


class LedgerClient(ABC):
    """
    Ledger read interface.

    Implementations raise LedgerUnavailable when a read cannot be served,
    and return None for accounts that do not exist.
    """

    @abstractmethod
    def get_latest_anchor(self) -> Anchor:
        ...

    @abstractmethod
    def get_account_info(self, address: str) -> Optional[AccountInfo]:
        ...

    @abstractmethod
    def get_token_balance(self, account: str) -> Optional[int]:
        """
        Balance of a holding account in base units.

        Returns:
            Amount, or None if the holding account does not exist
        """
        ...

    @abstractmethod
    def get_asset(self, address: str) -> Optional[AssetState]:
        """
        Decoded mint state.

        Returns:
            AssetState, or None if no asset account exists at address
        """
        ...

    @abstractmethod
    def confirm(self, signature: str, anchor: Anchor) -> None:
        """
        Block until the operation is confirmed within the anchor's window.

        Raises:
            LedgerRejected: The operation executed and failed on-chain
            ConfirmationTimeout: The anchor window expired first
        """
        ...
