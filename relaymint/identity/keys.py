"""
Ed25519 identity used to sign operations as the nominal initiator.

The identity never pays fees: the relay's address is the fee payer and the
relay adds its own signature before broadcasting.

Key material layout (64 bytes): 32-byte seed followed by the 32-byte public
key, the usual keypair-file layout for this ledger family.
"""

from typing import Iterable

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.exceptions import InvalidSignature

from ..core.ids import decode_address, encode_address

SECRET_KEY_LENGTH = 64


class Identity:
    """
    Ed25519 signing keypair wrapper.

    Provides:
    - Key generation
    - Load from 64-byte secret key material
    - Signing raw message bytes
    - Base58 address of the public key
    """

    def __init__(self, private_key: Ed25519PrivateKey):
        self.private_key = private_key
        self.public_key = private_key.public_key()
        self._public_bytes = self.public_key.public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )
        self.address = encode_address(self._public_bytes)

    @classmethod
    def generate(cls) -> "Identity":
        """Generate new Ed25519 keypair."""
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def from_secret_key(cls, secret: Iterable[int]) -> "Identity":
        """
        Load from 64-byte secret key material.

        Raises:
            ValueError: Wrong length, or the embedded public key does not
                match the seed
        """
        raw = bytes(secret)
        if len(raw) != SECRET_KEY_LENGTH:
            raise ValueError(f"secret key must be {SECRET_KEY_LENGTH} bytes, got {len(raw)}")
        identity = cls(Ed25519PrivateKey.from_private_bytes(raw[:32]))
        if identity._public_bytes != raw[32:]:
            raise ValueError("secret key public half does not match its seed")
        return identity

    def secret_key_bytes(self) -> bytes:
        seed = self.private_key.private_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PrivateFormat.Raw,
            encryption_algorithm=serialization.NoEncryption(),
        )
        return seed + self._public_bytes

    def sign(self, message: bytes) -> bytes:
        return self.private_key.sign(message)

    def __repr__(self) -> str:
        return f"Identity(address={self.address})"


def verify_signature(address: str, message: bytes, signature: bytes) -> bool:
    """
    Verify an Ed25519 signature against a base58 address.

    Returns:
        True if signature is valid, False otherwise
    """
    public_key = Ed25519PublicKey.from_public_bytes(decode_address(address))
    try:
        public_key.verify(signature, message)
        return True
    except InvalidSignature:
        return False
