"""
Shared fakes: an in-memory ledger that executes the token, associated-token,
system and metadata instructions relaymint emits, a relay transport that
verifies and settles the wire transactions on that ledger, and wired
deployment fixtures.
"""

import base64
import copy
import struct
from dataclasses import replace
from typing import Any, Dict, List, Optional, Set, Tuple

import pytest
from solders.hash import Hash
from solders.message import Message
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.system_program import ID as SYSTEM_PROGRAM_ID
from solders.transaction import Transaction

from relaymint.checkpoint.model import DeploymentRecord
from relaymint.checkpoint.store import CheckpointStore
from relaymint.core.config import AuthorityKind, AuthorityPolicy, DeployConfig, TokenSpec
from relaymint.core.errors import LedgerRejected, LedgerUnavailable, RelayTransportError
from relaymint.identity.keys import Identity, verify_signature
from relaymint.identity.store import IdentityStore
from relaymint.ledger.client import AccountInfo, Anchor, AssetState, LedgerClient
from relaymint.operations.builder import (
    ASSOCIATED_TOKEN_PROGRAM_ID,
    METADATA_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
    TokenProgramBuilder,
)
from relaymint.orchestrator import Orchestrator
from relaymint.relay.submitter import RelaySubmitter
from relaymint.steps import StepContext


def metadata_account(update_authority: str, mint: str, name: str, symbol: str, uri: str) -> bytes:
    """Metadata account bytes: key, update authority, mint, then the strings."""
    out = b"\x04" + bytes(Pubkey.from_string(update_authority)) + bytes(Pubkey.from_string(mint))
    for value in (name, symbol, uri):
        raw = value.encode("utf-8")
        out += struct.pack("<I", len(raw)) + raw
    return out


def read_strings(data: bytes, offset: int, count: int = 3) -> Tuple[str, ...]:
    values = []
    for _ in range(count):
        (length,) = struct.unpack_from("<I", data, offset)
        offset += 4
        values.append(data[offset:offset + length].decode("utf-8"))
        offset += length
    return tuple(values)


def optional_key(data: bytes, offset: int) -> Optional[str]:
    if data[offset] == 0:
        return None
    return str(Pubkey.from_bytes(data[offset + 1:offset + 33]))


class FakeLedger(LedgerClient):
    """
    Ledger state held in dicts.

    apply() executes a transaction message all-or-nothing, mirroring the
    atomicity of a settled operation.
    """

    def __init__(self):
        self.assets: Dict[str, Dict[str, Any]] = {}
        self.balances: Dict[str, int] = {}
        self.metadata: Dict[str, bytes] = {}
        self.allocated: Set[str] = set()
        self.confirmed: List[str] = []
        self.anchor_calls = 0
        self.unavailable = False
        self.confirm_error: Optional[Exception] = None
        self.programs = {
            str(SYSTEM_PROGRAM_ID): self._system,
            str(TOKEN_PROGRAM_ID): self._token,
            str(ASSOCIATED_TOKEN_PROGRAM_ID): self._associated,
            str(METADATA_PROGRAM_ID): self._metadata,
        }

    def _check(self):
        if self.unavailable:
            raise LedgerUnavailable("RPC getLatestBlockhash failed: connection refused")

    def get_latest_anchor(self) -> Anchor:
        self._check()
        self.anchor_calls += 1
        return Anchor(blockhash=str(Hash.new_unique()), last_valid_block_height=1000)

    def get_account_info(self, address: str) -> Optional[AccountInfo]:
        self._check()
        if address in self.metadata:
            return AccountInfo(address, str(METADATA_PROGRAM_ID), 1, self.metadata[address])
        if address in self.balances or address in self.assets:
            return AccountInfo(address, str(TOKEN_PROGRAM_ID), 1)
        return None

    def get_token_balance(self, account: str) -> Optional[int]:
        self._check()
        return self.balances.get(account)

    def get_asset(self, address: str) -> Optional[AssetState]:
        self._check()
        asset = self.assets.get(address)
        if asset is None:
            return None
        return AssetState(address=address, **asset)

    def confirm(self, signature: str, anchor: Anchor) -> None:
        if self.confirm_error is not None:
            raise self.confirm_error
        self.confirmed.append(signature)

    def apply(self, message: Message) -> None:
        keys = [str(key) for key in message.account_keys]
        snapshot = copy.deepcopy((self.assets, self.balances, self.metadata, self.allocated))
        try:
            for ix in message.instructions:
                program = keys[ix.program_id_index]
                if program not in self.programs:
                    raise LedgerRejected(f"unknown program {program}")
                self.programs[program]([keys[i] for i in ix.accounts], bytes(ix.data))
        except Exception:
            self.assets, self.balances, self.metadata, self.allocated = snapshot
            raise

    def _system(self, accounts, data):
        (tag,) = struct.unpack_from("<I", data)
        if tag != 0:
            raise LedgerRejected(f"unsupported system instruction {tag}")
        new_account = accounts[1]
        if new_account in self.allocated:
            raise LedgerRejected("account already in use")
        self.allocated.add(new_account)

    def _token(self, accounts, data):
        tag = data[0]
        if tag == 20:
            mint = accounts[0]
            if mint not in self.allocated or mint in self.assets:
                raise LedgerRejected("mint account not allocated or already initialized")
            self.assets[mint] = {
                "supply": 0,
                "decimals": data[1],
                "mint_authority": str(Pubkey.from_bytes(data[2:34])),
                "freeze_authority": optional_key(data, 34),
            }
        elif tag == 7:
            mint, destination, authority = accounts
            asset = self.assets[mint]
            if asset["mint_authority"] != authority:
                raise LedgerRejected("owner does not match mint authority")
            if destination not in self.balances:
                raise LedgerRejected("destination account not initialized")
            (amount,) = struct.unpack_from("<Q", data, 1)
            self.balances[destination] += amount
            asset["supply"] += amount
        elif tag == 6:
            mint, current = accounts
            asset = self.assets[mint]
            key = "mint_authority" if data[1] == 0 else "freeze_authority"
            if asset[key] != current:
                raise LedgerRejected(f"{key} mismatch")
            asset[key] = optional_key(data, 2)
        else:
            raise LedgerRejected(f"unsupported token instruction {tag}")

    def _associated(self, accounts, data):
        holding, owner, mint = accounts[1], accounts[2], accounts[3]
        expected = TokenProgramBuilder().holding_address(owner, mint)
        if holding != expected:
            raise LedgerRejected("holding address does not match its seeds")
        if holding in self.balances:
            raise LedgerRejected("holding account already exists")
        self.balances[holding] = 0

    def _metadata(self, accounts, data):
        tag = data[0]
        address = accounts[0]
        if tag == 33:
            mint, mint_authority, update_authority = accounts[1], accounts[2], accounts[4]
            if address in self.metadata:
                raise LedgerRejected("metadata account already exists")
            if self.assets.get(mint, {}).get("mint_authority") != mint_authority:
                raise LedgerRejected("mint authority mismatch")
            fields = read_strings(data, 1)
        elif tag == 15:
            if address not in self.metadata or data[1] != 1:
                raise LedgerRejected("metadata account not initialized")
            stored = self.metadata[address]
            update_authority = accounts[1]
            if str(Pubkey.from_bytes(stored[1:33])) != update_authority:
                raise LedgerRejected("update authority mismatch")
            mint = str(Pubkey.from_bytes(stored[33:65]))
            fields = read_strings(data, 2)
        else:
            raise LedgerRejected(f"unsupported metadata instruction {tag}")
        self.metadata[address] = metadata_account(update_authority, mint, *fields)


class FakeRelayTransport:
    """
    Relay that checks signatures, then settles the transaction on the ledger.

    script entries are consumed first: a (status, body) tuple is returned
    as-is, an exception instance is raised.
    """

    def __init__(self, ledger: FakeLedger, fee_payer: str):
        self.ledger = ledger
        self.fee_payer = fee_payer
        self.script: List[Any] = []
        self.calls: List[Dict[str, Any]] = []
        self.transactions: List[Transaction] = []
        self.settled = 0

    def post(self, url, body, headers):
        self.calls.append({"url": url, "body": body, "headers": headers})
        if self.script:
            step = self.script.pop(0)
            if isinstance(step, Exception):
                raise step
            return step

        transaction = Transaction.from_bytes(base64.b64decode(body["signedPayloadBase64"]))
        self.transactions.append(transaction)
        message = transaction.message
        signers = message.account_keys[:message.header.num_required_signatures]
        assert str(signers[0]) == self.fee_payer
        assert transaction.signatures[0] == Signature.default()
        message_bytes = bytes(message)
        for key, signature in zip(signers[1:], transaction.signatures[1:]):
            if not verify_signature(str(key), message_bytes, bytes(signature)):
                return 400, {"success": False, "error": "signature verification failed"}

        try:
            self.ledger.apply(message)
        except LedgerRejected as e:
            return 422, {"success": False, "rejected": True, "error": e.message}
        self.settled += 1
        return 200, {"success": True, "txSignature": f"sig{self.settled}"}


def transport_error(message="connection reset"):
    return RelayTransportError(message)


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def config(tmp_path):
    relayer = Identity.generate().address
    treasury = Identity.generate().address
    return DeployConfig(
        rpc_url="http://ledger.test",
        relayer_url="http://relay.test/relay/sendRawTransaction",
        relayer_pubkey=relayer,
        treasury_pubkey=treasury,
        authority_policy=AuthorityPolicy(AuthorityKind.NONE),
        token=TokenSpec(name="Test Token", symbol="TEST", decimals=6, supply=1000),
        cache_dir=tmp_path / "cache",
        relay_retry_delay=0.0,
    )


@pytest.fixture
def identity():
    return Identity.generate()


@pytest.fixture
def transport(ledger, config):
    return FakeRelayTransport(ledger, config.relayer_pubkey)


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def submitter(config, ledger, identity, transport, sleeps):
    return RelaySubmitter(config, ledger, identity, transport=transport, sleep=sleeps.append)


@pytest.fixture
def store(config):
    return CheckpointStore(config.checkpoint_dir)


@pytest.fixture
def make_ctx(config, identity, ledger, submitter, store):
    """Build a StepContext from the current checkpoint (fresh record if absent)."""

    def _make(dry_run=False, cfg=None):
        cfg = cfg or config
        record = store.read(cfg.deployment_key) or DeploymentRecord(deployment_key=cfg.deployment_key)
        sub = submitter if cfg is config else RelaySubmitter(
            cfg, ledger, identity, transport=submitter.transport, sleep=lambda _: None
        )
        return StepContext(
            config=cfg,
            identity=identity,
            ledger=ledger,
            builder=TokenProgramBuilder(),
            submitter=sub,
            store=store,
            record=record,
            dry_run=dry_run,
        )

    return _make


@pytest.fixture
def make_orchestrator(identity, ledger, transport, store):
    def _make(cfg):
        submitter = RelaySubmitter(cfg, ledger, identity, transport=transport, sleep=lambda _: None)
        return Orchestrator(
            config=cfg,
            identity=identity,
            ledger=ledger,
            submitter=submitter,
            store=store,
            identity_store=IdentityStore(cfg.identity_path),
        )

    return _make


@pytest.fixture
def orchestrator(make_orchestrator, config):
    return make_orchestrator(config)


def with_policy(config, kind, address=None):
    return replace(config, authority_policy=AuthorityPolicy(kind, address))
