from __future__ import annotations

from vestmint.runtime.tx_admission import admit_tx
from vestmint.testing.sigtools import address_for, make_tx, sign_tx_dict


def _schedule(nonce: int = 1, label: str = "owner"):
    return make_tx("SCHEDULE_SET", label=label, nonce=nonce, payload={"pool": "team", "start": 1, "duration": 1})


def test_signed_tx_with_next_nonce_is_admitted(state) -> None:
    ok, rej = admit_tx(_schedule(), state)
    assert ok is True
    assert rej is None


def test_nonce_must_be_next(state, owner) -> None:
    v = admit_tx(_schedule(nonce=2), state)
    assert not v.ok
    assert (v.code, v.reason) == ("bad_nonce", "nonce_must_be_next")
    assert v.details == {"expected": 1, "got": 2}

    state["accounts"][owner] = {"nonce": 4}
    assert admit_tx(_schedule(nonce=5), state).ok
    assert admit_tx(_schedule(nonce=4), state).code == "bad_nonce"


def test_unsigned_tx_is_rejected(state, owner) -> None:
    tx = {"tx_type": "SCHEDULE_SET", "signer": owner, "nonce": 1, "payload": {}}
    v = admit_tx(tx, state)
    assert v.code == "bad_sig"
    assert v.details["reason"] == "missing_pubkey"


def test_signature_from_another_key_is_rejected(state, owner) -> None:
    tx = sign_tx_dict({"tx_type": "SCHEDULE_SET", "signer": owner, "nonce": 1, "payload": {}}, label="mallory")
    v = admit_tx(tx, state)
    assert v.code == "bad_sig"
    assert v.details["reason"] == "pubkey_signer_mismatch"


def test_tampered_payload_fails_signature(state) -> None:
    tx = _schedule()
    tx["payload"]["start"] = 2
    v = admit_tx(tx, state)
    assert v.code == "bad_sig"
    assert v.details["reason"] == "invalid_signature"


def test_signatures_can_be_disabled_by_params(state, owner) -> None:
    state["params"]["require_signatures"] = False
    tx = {"tx_type": "SCHEDULE_SET", "signer": owner, "nonce": 1, "payload": {}}
    assert admit_tx(tx, state).ok


def test_shape_and_type_checks_come_first(state) -> None:
    assert admit_tx({"signer": "0xa", "nonce": 1, "payload": {}}, state).reason == "missing_tx_type"
    assert admit_tx({"tx_type": "VESTING_CLAIM", "nonce": 1, "payload": {}}, state).reason == "missing_signer"
    assert admit_tx({"tx_type": "X", "signer": "0xa", "nonce": "one", "payload": {}}, state).reason == "malformed_envelope"

    v = admit_tx({"tx_type": "TOKEN_BURN", "signer": "0xa", "nonce": 1, "payload": {}}, state)
    assert (v.code, v.reason) == ("unknown_tx_type", "tx_type_not_supported")


def test_float_payload_values_are_rejected(state) -> None:
    tx = make_tx("ALLOCATION_SET", label="owner", nonce=1, payload={"pool": "private", "addresses": ["0xa"], "percents": [1.5]})
    v = admit_tx(tx, state)
    assert (v.code, v.reason) == ("invalid_payload", "float_not_allowed")


def test_payload_limits_are_configurable(state, monkeypatch) -> None:
    monkeypatch.setenv("VESTMINT_MAX_TX_LIST_LEN", "2")
    addrs = [address_for(f"b{i}") for i in range(3)]
    tx = make_tx("ALLOCATION_SET", label="owner", nonce=1, payload={"pool": "private", "addresses": addrs, "percents": [1, 1, 1]})
    v = admit_tx(tx, state)
    assert (v.code, v.reason) == ("invalid_payload", "list_too_long")


def test_explicit_limits_override_env(state) -> None:
    from vestmint.runtime.tx_admission import PayloadLimits, check_payload

    lim = PayloadLimits(depth=1)
    v = check_payload({"a": {"b": {"c": 1}}}, lim)
    assert (v.code, v.reason) == ("invalid_payload", "payload_too_deep")
    assert check_payload({"a": 1, "b": "x"}, lim) is None

    tx = make_tx("SCHEDULE_SET", label="owner", nonce=1, payload={"pool": "team", "start": 1, "duration": 1})
    v = admit_tx(tx, state, limits=PayloadLimits(envelope_bytes=64))
    assert v.reason == "tx_envelope_exceeds_size_limit"
