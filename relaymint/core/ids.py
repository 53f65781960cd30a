"""
Address encoding.

Addresses are 32-byte public keys shown as base58 text. Program-owned
account addresses are derived by the operation builder, not here.
"""

from solders.pubkey import Pubkey

ADDRESS_LENGTH = 32


def encode_address(raw: bytes) -> str:
    """Encode 32 raw bytes as base58 address text."""
    if len(raw) != ADDRESS_LENGTH:
        raise ValueError(f"address must be {ADDRESS_LENGTH} bytes, got {len(raw)}")
    return str(Pubkey.from_bytes(raw))


def decode_address(text: str) -> bytes:
    """
    Decode base58 address text to raw bytes.

    Raises:
        ValueError: If text is not base58 or does not decode to 32 bytes
    """
    try:
        return bytes(Pubkey.from_string(text.strip()))
    except ValueError as e:
        raise ValueError(f"not a {ADDRESS_LENGTH}-byte base58 address: {text!r}") from e


def is_valid_address(text: str) -> bool:
    try:
        decode_address(text)
    except ValueError:
        return False
    return True
