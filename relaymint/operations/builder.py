"""
Operation builders.

An OperationBuilder encapsulates the asset- and metadata-program specific
encoding: it turns step parameters into instructions and derives the
addresses of program-owned accounts. The steps only ever talk to this
interface.

TokenProgramBuilder is the default. It targets the Token-2022 program for
the asset, the associated-token program for holding accounts and the
token metadata program for name, symbol and URI.
"""

import struct
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from solders.instruction import AccountMeta
from solders.instruction import Instruction as NativeInstruction
from solders.pubkey import Pubkey
from solders.rent import Rent
from solders.system_program import ID as SYSTEM_PROGRAM_ID
from solders.system_program import CreateAccountParams, create_account
from solders.token.associated import get_associated_token_address

from .model import AuthoritySlot, Instruction, MetadataFields

TOKEN_PROGRAM_ID = Pubkey.from_string("TokenzQdBNbLqP5VEhdkAS6EPFLC1PHnBqCXEpPxuEb")
ASSOCIATED_TOKEN_PROGRAM_ID = Pubkey.from_string("ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL")
METADATA_PROGRAM_ID = Pubkey.from_string("metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s")

# Base mint account without extensions.
MINT_ACCOUNT_SIZE = 82

# Token program instruction tags
MINT_TO = 7
SET_AUTHORITY = 6
INITIALIZE_MINT2 = 20
AUTHORITY_TYPES = {AuthoritySlot.MINT_TOKENS: 0, AuthoritySlot.FREEZE_ACCOUNT: 1}

# Associated-token program
CREATE_ASSOCIATED = 0

# Token metadata program
CREATE_METADATA_V3 = 33
UPDATE_METADATA_V2 = 15
METADATA_ACCOUNT_KEY = 4


class OperationBuilder(ABC):
    """Builds unsigned instructions for each deployment step."""

    @abstractmethod
    def holding_address(self, owner: str, asset: str) -> str:
        """Address of owner's holding account for asset."""
        ...

    @abstractmethod
    def metadata_address(self, asset: str) -> str:
        ...

    @abstractmethod
    def create_asset(
        self,
        payer: str,
        asset: str,
        decimals: int,
        mint_authority: str,
        freeze_authority: Optional[str],
    ) -> List[Instruction]:
        ...

    @abstractmethod
    def create_holding_account(self, payer: str, owner: str, asset: str) -> List[Instruction]:
        ...

    @abstractmethod
    def mint_to(self, asset: str, destination: str, authority: str, amount: int) -> List[Instruction]:
        ...

    @abstractmethod
    def create_metadata(
        self, payer: str, asset: str, authority: str, fields: MetadataFields
    ) -> List[Instruction]:
        ...

    @abstractmethod
    def update_metadata(self, asset: str, authority: str, fields: MetadataFields) -> List[Instruction]:
        ...

    @abstractmethod
    def set_authority(
        self,
        asset: str,
        current: str,
        slot: AuthoritySlot,
        new_authority: Optional[str],
    ) -> List[Instruction]:
        ...

    @abstractmethod
    def decode_metadata(self, data: bytes) -> Optional[MetadataFields]:
        """
        Decode metadata account data.

        Returns:
            MetadataFields, or None if the data is not in a known format
        """
        ...


def _key(address: str) -> Pubkey:
    return Pubkey.from_string(address)


def _meta(address: str, signer: bool = False, writable: bool = False) -> AccountMeta:
    return AccountMeta(_key(address), is_signer=signer, is_writable=writable)


def _optional_key(address: Optional[str]) -> bytes:
    """Token program option encoding: tag byte, then the key when present."""
    if address is None:
        return b"\x00"
    return b"\x01" + bytes(_key(address))


def _string(value: str) -> bytes:
    raw = value.encode("utf-8")
    return struct.pack("<I", len(raw)) + raw


def _metadata_data(fields: MetadataFields) -> bytes:
    # name, symbol, uri, seller fee basis points, then no creators,
    # collection or uses
    return (
        _string(fields.name)
        + _string(fields.symbol)
        + _string(fields.uri)
        + struct.pack("<H", 0)
        + b"\x00\x00\x00"
    )


def _read_string(data: bytes, offset: int) -> Tuple[str, int]:
    (length,) = struct.unpack_from("<I", data, offset)
    start = offset + 4
    raw = data[start:start + length]
    if len(raw) != length:
        raise ValueError("truncated string")
    return raw.decode("utf-8").rstrip("\x00"), start + length


class TokenProgramBuilder(OperationBuilder):
    def __init__(
        self,
        token_program: Pubkey = TOKEN_PROGRAM_ID,
        associated_program: Pubkey = ASSOCIATED_TOKEN_PROGRAM_ID,
        metadata_program: Pubkey = METADATA_PROGRAM_ID,
        rent: Optional[Rent] = None,
    ):
        self.token_program = token_program
        self.associated_program = associated_program
        self.metadata_program = metadata_program
        self.rent = rent or Rent.default()

    def holding_address(self, owner: str, asset: str) -> str:
        return str(get_associated_token_address(_key(owner), _key(asset), self.token_program))

    def metadata_address(self, asset: str) -> str:
        address, _ = Pubkey.find_program_address(
            [b"metadata", bytes(self.metadata_program), bytes(_key(asset))],
            self.metadata_program,
        )
        return str(address)

    def create_asset(self, payer, asset, decimals, mint_authority, freeze_authority):
        allocate = create_account(CreateAccountParams(
            from_pubkey=_key(payer),
            to_pubkey=_key(asset),
            lamports=self.rent.minimum_balance(MINT_ACCOUNT_SIZE),
            space=MINT_ACCOUNT_SIZE,
            owner=self.token_program,
        ))
        initialize = NativeInstruction(
            self.token_program,
            bytes([INITIALIZE_MINT2, decimals])
            + bytes(_key(mint_authority))
            + _optional_key(freeze_authority),
            [_meta(asset, writable=True)],
        )
        return [
            Instruction("create_account", allocate, {"space": MINT_ACCOUNT_SIZE}),
            Instruction(
                "initialize_mint2",
                initialize,
                {
                    "decimals": decimals,
                    "mint_authority": mint_authority,
                    "freeze_authority": freeze_authority,
                },
            ),
        ]

    def create_holding_account(self, payer, owner, asset):
        native = NativeInstruction(
            self.associated_program,
            bytes([CREATE_ASSOCIATED]),
            [
                _meta(payer, signer=True, writable=True),
                _meta(self.holding_address(owner, asset), writable=True),
                _meta(owner),
                _meta(asset),
                AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
                AccountMeta(self.token_program, is_signer=False, is_writable=False),
            ],
        )
        return [Instruction("create_associated_account", native, {"owner": owner})]

    def mint_to(self, asset, destination, authority, amount):
        native = NativeInstruction(
            self.token_program,
            struct.pack("<BQ", MINT_TO, amount),
            [
                _meta(asset, writable=True),
                _meta(destination, writable=True),
                _meta(authority, signer=True),
            ],
        )
        return [Instruction("mint_to", native, {"amount": str(amount), "destination": destination})]

    def create_metadata(self, payer, asset, authority, fields):
        native = NativeInstruction(
            self.metadata_program,
            bytes([CREATE_METADATA_V3]) + _metadata_data(fields) + b"\x01\x00",
            [
                _meta(self.metadata_address(asset), writable=True),
                _meta(asset),
                _meta(authority, signer=True),
                _meta(payer, signer=True, writable=True),
                _meta(authority, signer=True),
                AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
            ],
        )
        return [Instruction(
            "create_metadata_account_v3",
            native,
            {"name": fields.name, "symbol": fields.symbol, "is_mutable": True},
        )]

    def update_metadata(self, asset, authority, fields):
        # Some(data), then leave update authority, primary sale and
        # mutability unchanged
        native = NativeInstruction(
            self.metadata_program,
            bytes([UPDATE_METADATA_V2, 1]) + _metadata_data(fields) + b"\x00\x00\x00",
            [
                _meta(self.metadata_address(asset), writable=True),
                _meta(authority, signer=True),
            ],
        )
        return [Instruction(
            "update_metadata_account_v2",
            native,
            {"name": fields.name, "symbol": fields.symbol},
        )]

    def set_authority(self, asset, current, slot, new_authority):
        native = NativeInstruction(
            self.token_program,
            bytes([SET_AUTHORITY, AUTHORITY_TYPES[slot]]) + _optional_key(new_authority),
            [
                _meta(asset, writable=True),
                _meta(current, signer=True),
            ],
        )
        return [Instruction(
            "set_authority",
            native,
            {"authority_type": slot.value, "new_authority": new_authority},
        )]

    def decode_metadata(self, data: bytes) -> Optional[MetadataFields]:
        # key, update authority, mint, then the three strings
        if len(data) < 65 or data[0] != METADATA_ACCOUNT_KEY:
            return None
        try:
            name, offset = _read_string(data, 65)
            symbol, offset = _read_string(data, offset)
            uri, _ = _read_string(data, offset)
        except (struct.error, UnicodeDecodeError, ValueError):
            return None
        return MetadataFields(name=name, symbol=symbol, uri=uri)
