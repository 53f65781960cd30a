"""
Tests for the JSON-RPC ledger client against scripted responses.
"""

import pytest
from solders.hash import Hash

from relaymint.core.errors import ConfirmationTimeout, LedgerRejected, LedgerUnavailable
from relaymint.ledger import Anchor, RpcLedgerClient


class ScriptedRpc(RpcLedgerClient):
    def __init__(self, responses):
        super().__init__("http://rpc.test", sleep=lambda _: None)
        self.responses = responses
        self.methods = []

    def _call(self, method, params=None):
        self.methods.append(method)
        return self.responses[method].pop(0)


ANCHOR = Anchor(blockhash="hash", last_valid_block_height=100)


def test_latest_anchor():
    blockhash = str(Hash.new_unique())
    rpc = ScriptedRpc({"getLatestBlockhash": [
        {"value": {"blockhash": blockhash, "lastValidBlockHeight": 150}},
    ]})
    assert rpc.get_latest_anchor() == Anchor(blockhash, 150)


def test_malformed_anchor_raises_unavailable():
    rpc = ScriptedRpc({"getLatestBlockhash": [{"value": None}]})
    with pytest.raises(LedgerUnavailable):
        rpc.get_latest_anchor()


def test_anchor_with_invalid_blockhash_raises_unavailable():
    rpc = ScriptedRpc({"getLatestBlockhash": [
        {"value": {"blockhash": "abc", "lastValidBlockHeight": 150}},
    ]})
    with pytest.raises(LedgerUnavailable):
        rpc.get_latest_anchor()


def test_get_asset_parses_mint():
    rpc = ScriptedRpc({"getAccountInfo": [{"value": {"data": {"parsed": {
        "type": "mint",
        "info": {"supply": "42", "decimals": 9, "mintAuthority": None, "freezeAuthority": "F"},
    }}}}]})

    asset = rpc.get_asset("A")

    assert asset.supply == 42
    assert asset.mint_authority is None
    assert asset.freeze_authority == "F"


def test_token_balance_absent_account():
    rpc = ScriptedRpc({"getAccountInfo": [{"value": None}]})
    assert rpc.get_token_balance("H") is None
    assert rpc.methods == ["getAccountInfo"]


def test_confirm_polls_until_confirmed():
    rpc = ScriptedRpc({
        "getSignatureStatuses": [
            {"value": [None]},
            {"value": [{"err": None, "confirmationStatus": "processed"}]},
            {"value": [{"err": None, "confirmationStatus": "confirmed"}]},
        ],
        "getBlockHeight": [90, 95],
    })

    rpc.confirm("sig", ANCHOR)

    assert rpc.methods.count("getSignatureStatuses") == 3


def test_confirm_on_chain_error():
    rpc = ScriptedRpc({"getSignatureStatuses": [
        {"value": [{"err": {"InstructionError": [0, "Custom"]}, "confirmationStatus": "confirmed"}]},
    ]})
    with pytest.raises(LedgerRejected):
        rpc.confirm("sig", ANCHOR)


def test_confirm_expires_with_anchor():
    rpc = ScriptedRpc({
        "getSignatureStatuses": [{"value": [None]}],
        "getBlockHeight": [101],
    })
    with pytest.raises(ConfirmationTimeout):
        rpc.confirm("sig", ANCHOR)
