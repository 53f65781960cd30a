"""
Operation model: an ordered batch of instructions submitted atomically.

An operation is built unsigned, then prepared by the relay submitter
(fee payer + anchor), partially signed by the identity and any extra
signers, and serialized as a ledger transaction whose fee-payer signature
slot is left empty for the relay.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from solders.hash import Hash
from solders.instruction import Instruction as NativeInstruction
from solders.message import Message
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import Transaction

from ..identity.keys import Identity
from ..ledger.client import Anchor


class AuthoritySlot(str, Enum):
    """The two permissions over the asset that can be transferred or revoked."""
    MINT_TOKENS = "MintTokens"
    FREEZE_ACCOUNT = "FreezeAccount"


@dataclass(frozen=True)
class MetadataFields:
    name: str
    symbol: str
    uri: str


@dataclass(frozen=True)
class Instruction:
    """
    One program invocation.

    Fields:
        action: Instruction name within the program, for logs and reports
        native: The instruction as it goes on the wire
        params: Readable copy of the instruction arguments
    """
    action: str
    native: NativeInstruction
    params: Dict[str, Any] = field(default_factory=dict)

    @property
    def program(self) -> str:
        return str(self.native.program_id)

    @property
    def signers(self) -> Tuple[str, ...]:
        return tuple(str(meta.pubkey) for meta in self.native.accounts if meta.is_signer)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "program": self.program,
            "action": self.action,
            "params": dict(self.params),
            "signers": list(self.signers),
        }


class Operation:
    """
    Unsigned operation ready for partial signing.

    Usage:
        op = Operation(builder.mint_to(...))
        op.prepare(fee_payer=relay_pubkey, anchor=anchor)
        op.sign(identity)
        payload = op.serialize()
    """

    def __init__(self, instructions: Optional[List[Instruction]] = None, label: str = ""):
        self.instructions: List[Instruction] = list(instructions or [])
        self.label = label
        self.fee_payer: Optional[str] = None
        self.anchor: Optional[Anchor] = None
        self.signatures: Dict[str, bytes] = {}

    def add(self, *instructions: Instruction) -> "Operation":
        self.instructions.extend(instructions)
        self.signatures.clear()
        return self

    def prepend(self, *instructions: Instruction) -> "Operation":
        self.instructions[:0] = instructions
        self.signatures.clear()
        return self

    def _natives(self) -> List[NativeInstruction]:
        return [ix.native for ix in self.instructions]

    @property
    def required_signers(self) -> List[str]:
        """Signature slots in wire order; the fee payer, once set, is first."""
        payer = Pubkey.from_string(self.fee_payer) if self.fee_payer else None
        compiled = Message(self._natives(), payer)
        count = compiled.header.num_required_signatures
        return [str(key) for key in compiled.account_keys[:count]]

    def prepare(self, fee_payer: str, anchor: Anchor) -> None:
        """Set fee payer and anchor. Invalidates existing signatures."""
        self.fee_payer = fee_payer
        self.anchor = anchor
        self.signatures.clear()

    def message(self) -> Message:
        if self.fee_payer is None or self.anchor is None:
            raise ValueError("operation must be prepared (fee payer + anchor) before signing")
        return Message.new_with_blockhash(
            self._natives(),
            Pubkey.from_string(self.fee_payer),
            Hash.from_string(self.anchor.blockhash),
        )

    def message_bytes(self) -> bytes:
        return bytes(self.message())

    def sign(self, *signers: Identity) -> None:
        """
        Partially sign with the given identities.

        Raises:
            ValueError: Unprepared operation, or a signer the message does
                not require
        """
        message = self.message_bytes()
        required = self.required_signers
        for signer in signers:
            if signer.address not in required:
                raise ValueError(f"{signer.address} is not a required signer")
            self.signatures[signer.address] = signer.sign(message)

    def missing_signers(self) -> List[str]:
        return [a for a in self.required_signers if a not in self.signatures]

    def serialize(self) -> bytes:
        """
        Partially-signed wire transaction.

        Unsigned slots (the fee payer's) hold the all-zero signature for the
        relay to fill.
        """
        message = self.message()
        count = message.header.num_required_signatures
        slots = [
            Signature.from_bytes(self.signatures[str(key)])
            if str(key) in self.signatures
            else Signature.default()
            for key in message.account_keys[:count]
        ]
        return bytes(Transaction.populate(message, slots))

    def __len__(self) -> int:
        return len(self.instructions)

    def __repr__(self) -> str:
        actions = ", ".join(ix.action for ix in self.instructions)
        return f"Operation({self.label or 'unnamed'}: {actions})"
