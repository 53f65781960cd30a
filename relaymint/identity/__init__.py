"""
Local signing identity: Ed25519 keypair plus its persistent store.
"""

from .keys import Identity, verify_signature
from .store import IdentityStore

__all__ = ["Identity", "IdentityStore", "verify_signature"]
