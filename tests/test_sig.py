from __future__ import annotations

import base64

import pytest
from cryptography.hazmat.primitives.serialization import Encoding, NoEncryption, PrivateFormat

from vestmint.crypto.sig import address_from_pubkey, canonical_tx_message, sign_tx_envelope_dict, verify_tx_signature
from vestmint.testing.sigtools import address_for, deterministic_ed25519_keypair, make_tx


def test_address_is_last_20_bytes_of_pubkey_hash() -> None:
    pk_hex, _ = deterministic_ed25519_keypair(label="owner")
    addr = address_from_pubkey(pk_hex)
    assert addr.startswith("0x")
    assert len(addr) == 42
    assert addr == address_for("owner")
    assert address_from_pubkey(base64.b64encode(bytes.fromhex(pk_hex)).decode()) == addr

    with pytest.raises(ValueError):
        address_from_pubkey("abcd")


def test_canonical_message_is_key_order_independent() -> None:
    a = canonical_tx_message(tx_type="X", signer="0xa", nonce=1, payload={"b": 1, "a": 2})
    b = canonical_tx_message(tx_type="X", signer="0xa", nonce=1, payload={"a": 2, "b": 1})
    assert a == b


def test_signed_tx_verifies_and_nonce_is_covered() -> None:
    tx = make_tx("VESTING_CLAIM", label="alice", nonce=3, payload={"pool": "team"})
    ok, info = verify_tx_signature(tx)
    assert ok, info

    tx["nonce"] = 4
    ok, info = verify_tx_signature(tx)
    assert not ok
    assert info["reason"] == "invalid_signature"


def test_sign_envelope_with_raw_seed_in_b64() -> None:
    pk_hex, sk = deterministic_ed25519_keypair(label="bob")
    seed = sk.private_bytes(Encoding.Raw, PrivateFormat.Raw, NoEncryption())
    tx = {
        "tx_type": "vesting_claim",
        "signer": address_for("bob").upper().replace("0X", "0x"),
        "nonce": 1,
        "payload": {"pool": "private"},
        "pubkey": pk_hex,
    }
    signed = sign_tx_envelope_dict(tx=tx, privkey=seed.hex(), encoding="b64")
    assert signed["tx_type"] == "VESTING_CLAIM"
    ok, _ = verify_tx_signature(signed)
    assert ok
