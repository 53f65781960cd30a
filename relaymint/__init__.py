"""
Relay-funded token deployment engine.

Idempotent, resumable deployment of a fungible token through a fee-paying
relay: create the asset, mint supply, publish metadata, lock authorities.
"""

__version__ = "0.1.0"
