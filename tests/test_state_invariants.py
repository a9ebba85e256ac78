from __future__ import annotations

import pytest

from vestmint.runtime.domain_apply import apply_tx_atomic
from vestmint.runtime.errors import ApplyError
from vestmint.runtime.state_invariants import StateInvariantError, check_invariants, ensure_state, find_invariant_violations
from vestmint.testing.sigtools import address_for

ALICE = address_for("alice")


def test_fresh_genesis_is_clean(state) -> None:
    check_invariants(state)


def test_detects_total_percent_mismatch(state) -> None:
    state["vesting"]["pools"]["team"]["allocations"][ALICE] = 10
    assert "vesting.team:total_percent_mismatch" in find_invariant_violations(state)


def test_detects_over_claim(state) -> None:
    pool = state["vesting"]["pools"]["private"]
    pool["total_locked"] = 1000
    pool["allocations"][ALICE] = 1000
    pool["total_percent"] = 1000
    pool["claimed"][ALICE] = 101
    with pytest.raises(StateInvariantError) as e:
        check_invariants(state)
    assert "over_claimed" in str(e.value)


def test_detects_mint_counter_drift(state) -> None:
    state["mint_auth"]["0xd"] = {
        "expiry": 0,
        "max_total_count": 1,
        "id_range_start": 0,
        "id_range_end": 0,
        "type_quota": [1, 0, 0, 0, 0],
        "type_issued": [2, 0, 0, 0, 0],
        "total_issued": 1,
    }
    bad = find_invariant_violations(state)
    assert "mint_auth.0xd:total_issued_mismatch" in bad
    assert "mint_auth.0xd:type_0_over_quota" in bad


def test_detects_supply_drift(state) -> None:
    state["fungible"]["balances"][ALICE] = 1
    assert "fungible:supply_mismatch" in find_invariant_violations(state)


def test_atomic_apply_rejects_commit_that_breaks_invariants(state, owner) -> None:
    # Corrupt the working state so any successful apply fails the post-check.
    state["fungible"]["balances"][ALICE] = 1
    with pytest.raises(ApplyError) as e:
        apply_tx_atomic(
            state,
            {"tx_type": "SCHEDULE_SET", "signer": owner, "nonce": 1, "payload": {"pool": "team", "start": 1, "duration": 1}},
        )
    assert (e.value.code, e.value.reason) == ("invariant", "state_invariant_violated")
    assert state["vesting"]["pools"]["team"]["schedule"] == {"start": 0, "duration": 0}


def test_ensure_state_creates_core_containers() -> None:
    st = ensure_state({})
    assert st == {"accounts": {}, "params": {}}
    with pytest.raises(TypeError):
        ensure_state([])
    with pytest.raises(TypeError):
        ensure_state({"accounts": []})
