"""
Tests for operation signing, wire serialization and the token program builder.
"""

import struct

import pytest
from solders.hash import Hash
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.system_program import ID as SYSTEM_PROGRAM_ID
from solders.transaction import Transaction

from relaymint.identity import Identity, verify_signature
from relaymint.ledger import Anchor
from relaymint.operations import AuthoritySlot, MetadataFields, Operation, TokenProgramBuilder
from relaymint.operations.builder import (
    ASSOCIATED_TOKEN_PROGRAM_ID,
    METADATA_PROGRAM_ID,
    MINT_ACCOUNT_SIZE,
    TOKEN_PROGRAM_ID,
)

from relaymint.tests.conftest import metadata_account

ANCHOR = Anchor(blockhash=str(Hash.new_unique()), last_valid_block_height=10)


def address():
    return Identity.generate().address


def test_holding_address_is_associated_token_account():
    """Holding accounts live at the associated-token address for the Token-2022 program."""
    builder = TokenProgramBuilder()
    owner, asset = address(), address()

    expected, _ = Pubkey.find_program_address(
        [bytes(Pubkey.from_string(owner)), bytes(TOKEN_PROGRAM_ID), bytes(Pubkey.from_string(asset))],
        ASSOCIATED_TOKEN_PROGRAM_ID,
    )

    assert builder.holding_address(owner, asset) == str(expected)
    assert builder.holding_address(owner, asset) != builder.holding_address(asset, owner)


def test_metadata_address_is_program_derived():
    builder = TokenProgramBuilder()
    asset = address()

    expected, _ = Pubkey.find_program_address(
        [b"metadata", bytes(METADATA_PROGRAM_ID), bytes(Pubkey.from_string(asset))],
        METADATA_PROGRAM_ID,
    )

    assert builder.metadata_address(asset) == str(expected)


def test_fee_payer_first_and_left_unsigned():
    """The relay's slot stays empty; the identity's signature covers the message."""
    builder = TokenProgramBuilder()
    relay = address()
    identity = Identity.generate()
    op = Operation(builder.set_authority(address(), identity.address, AuthoritySlot.MINT_TOKENS, None))

    op.prepare(fee_payer=relay, anchor=ANCHOR)
    op.sign(identity)

    assert op.required_signers == [relay, identity.address]
    assert op.missing_signers() == [relay]
    assert verify_signature(identity.address, op.message_bytes(), op.signatures[identity.address])

    wire = Transaction.from_bytes(op.serialize())
    assert wire.signatures[0] == Signature.default()
    assert wire.signatures[1] == Signature.from_bytes(op.signatures[identity.address])
    assert wire.verify_with_results() == [False, True]
    assert str(wire.message.recent_blockhash) == ANCHOR.blockhash


def test_sign_requires_prepare():
    op = Operation()
    with pytest.raises(ValueError):
        op.sign(Identity.generate())


def test_unrequired_signer_rejected():
    builder = TokenProgramBuilder()
    identity = Identity.generate()
    op = Operation(builder.mint_to(address(), address(), identity.address, 5))
    op.prepare(fee_payer=address(), anchor=ANCHOR)

    with pytest.raises(ValueError):
        op.sign(Identity.generate())


def test_prepend_puts_instructions_first_and_invalidates_signatures():
    builder = TokenProgramBuilder()
    identity = Identity.generate()
    relay, owner, asset = address(), address(), address()
    op = Operation(builder.mint_to(asset, builder.holding_address(owner, asset), identity.address, 5), label="mint")
    op.prepare(fee_payer=relay, anchor=ANCHOR)
    op.sign(identity)

    op.prepend(*builder.create_holding_account(relay, owner, asset))

    assert op.signatures == {}
    assert len(op) == 2
    assert repr(op) == "Operation(mint: create_associated_account, mint_to)"
    message = op.message()
    assert message.program_id(0) == ASSOCIATED_TOKEN_PROGRAM_ID
    assert message.program_id(1) == TOKEN_PROGRAM_ID


def test_create_asset_allocates_and_initializes_mint():
    builder = TokenProgramBuilder()
    relay, asset, authority = address(), address(), address()

    allocate, initialize = builder.create_asset(relay, asset, 6, authority, None)

    assert allocate.native.program_id == SYSTEM_PROGRAM_ID
    assert set(allocate.signers) == {relay, asset}
    lamports, space = struct.unpack_from("<QQ", allocate.native.data, 4)
    assert space == MINT_ACCOUNT_SIZE
    assert lamports == builder.rent.minimum_balance(MINT_ACCOUNT_SIZE)
    assert initialize.native.data == bytes([20, 6]) + bytes(Pubkey.from_string(authority)) + b"\x00"
    assert initialize.signers == ()


def test_token_instruction_data():
    builder = TokenProgramBuilder()
    asset, current, target = address(), address(), address()

    (mint,) = builder.mint_to(asset, address(), current, 1000)
    (revoke,) = builder.set_authority(asset, current, AuthoritySlot.MINT_TOKENS, None)
    (transfer,) = builder.set_authority(asset, current, AuthoritySlot.FREEZE_ACCOUNT, target)

    assert mint.native.data == bytes([7]) + (1000).to_bytes(8, "little")
    assert mint.signers == (current,)
    assert revoke.native.data == bytes([6, 0, 0])
    assert transfer.native.data == bytes([6, 1, 1]) + bytes(Pubkey.from_string(target))


def test_metadata_instructions_carry_fields():
    builder = TokenProgramBuilder()
    relay, asset, authority = address(), address(), address()
    fields = MetadataFields(name="Test Token", symbol="TEST", uri="data:,x")

    (create,) = builder.create_metadata(relay, asset, authority, fields)
    (update,) = builder.update_metadata(asset, authority, fields)

    assert create.program == str(METADATA_PROGRAM_ID)
    assert create.native.data[0] == 33
    assert create.native.data[1:5] == struct.pack("<I", len("Test Token"))
    assert create.native.accounts[0].pubkey == Pubkey.from_string(builder.metadata_address(asset))
    assert update.native.data[:2] == bytes([15, 1])
    assert update.signers == (authority,)


def test_decode_metadata():
    builder = TokenProgramBuilder()
    fields = MetadataFields(name="N", symbol="S", uri="data:,x")
    stored = metadata_account(address(), address(), "N\x00\x00\x00", "S", "data:,x")

    assert builder.decode_metadata(stored) == fields
    assert builder.decode_metadata(b"\x04\x00binary") is None
    assert builder.decode_metadata(b"\x01" + stored[1:]) is None
