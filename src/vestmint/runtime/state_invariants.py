# src/vestmint/runtime/state_invariants.py
from __future__ import annotations

"""State normalization and standing-invariant checks.

State is a nested JSON-like dict mutated by the apply/* modules. This module:

  - ensure_state(): validates the state is dict-like and creates the core
    containers every applier relies on (accounts + params)
  - check_invariants(): verifies the accounting invariants that must hold in
    every committed state:
      * per pool: sum(allocations) == total_percent <= precision
      * per pool and beneficiary: claimed <= percent_of(total_locked, allocation)
      * per delegate: total_issued == sum(type_issued), both within quota
      * fungible: total_supply <= cap and == sum(balances)

Domain containers (vesting, mint_auth, nft, fungible) remain the
responsibility of their apply/ledger modules.
"""

from collections.abc import MutableMapping
from typing import Any, Dict, List

from vestmint.ledger.constants import PRECISION
from vestmint.ledger.precision import percent_of

Json = Dict[str, Any]


class StateInvariantError(RuntimeError):
    pass


def ensure_state(st: Any) -> Json:
    """Ensure `st` is a dict and contains core keys.

    Raises:
        TypeError: if st is not a MutableMapping
    """
    if not isinstance(st, MutableMapping):
        raise TypeError(f"state must be MutableMapping, got {type(st)}")

    acc = st.get("accounts")
    if acc is None:
        st["accounts"] = {}
    elif not isinstance(acc, dict):
        raise TypeError(f"state['accounts'] must be dict, got {type(acc)}")

    params = st.get("params")
    if params is None:
        st["params"] = {}
    elif not isinstance(params, dict):
        raise TypeError(f"state['params'] must be dict, got {type(params)}")

    return st  # type: ignore[return-value]


def state_precision(st: Json) -> int:
    params = st.get("params") if isinstance(st.get("params"), dict) else {}
    try:
        p = int(params.get("precision", PRECISION))
    except (TypeError, ValueError):
        return PRECISION
    return p if p > 0 else PRECISION


def _violations_vesting(st: Json, out: List[str]) -> None:
    vesting = st.get("vesting")
    if not isinstance(vesting, dict):
        return
    pools = vesting.get("pools")
    if not isinstance(pools, dict):
        return

    precision = state_precision(st)
    for name, pool in pools.items():
        if not isinstance(pool, dict):
            out.append(f"vesting.{name}:not_object")
            continue
        allocs = pool.get("allocations") or {}
        claimed = pool.get("claimed") or {}
        total_percent = int(pool.get("total_percent", 0))
        total_locked = int(pool.get("total_locked", 0))

        if sum(int(v) for v in allocs.values()) != total_percent:
            out.append(f"vesting.{name}:total_percent_mismatch")
        if total_percent > precision:
            out.append(f"vesting.{name}:total_percent_exceeds_precision")

        for addr, amt in claimed.items():
            cap = percent_of(total_locked, int(allocs.get(addr, 0)), precision)
            if int(amt) > cap:
                out.append(f"vesting.{name}:over_claimed:{addr}")


def _violations_mint_auth(st: Json, out: List[str]) -> None:
    grants = st.get("mint_auth")
    if not isinstance(grants, dict):
        return
    for delegate, g in grants.items():
        if not isinstance(g, dict):
            out.append(f"mint_auth.{delegate}:not_object")
            continue
        issued = [int(x) for x in g.get("type_issued") or []]
        quota = [int(x) for x in g.get("type_quota") or []]
        total = int(g.get("total_issued", 0))
        if total != sum(issued):
            out.append(f"mint_auth.{delegate}:total_issued_mismatch")
        if total > int(g.get("max_total_count", 0)):
            out.append(f"mint_auth.{delegate}:total_over_cap")
        for i, (n, q) in enumerate(zip(issued, quota)):
            if n > q:
                out.append(f"mint_auth.{delegate}:type_{i}_over_quota")


def _violations_fungible(st: Json, out: List[str]) -> None:
    f = st.get("fungible")
    if not isinstance(f, dict):
        return
    supply = int(f.get("total_supply", 0))
    if supply > int(f.get("cap", supply)):
        out.append("fungible:supply_over_cap")
    balances = f.get("balances") or {}
    if sum(int(v) for v in balances.values()) != supply:
        out.append("fungible:supply_mismatch")


def find_invariant_violations(st: Json) -> List[str]:
    out: List[str] = []
    _violations_vesting(st, out)
    _violations_mint_auth(st, out)
    _violations_fungible(st, out)
    return out


def check_invariants(st: Json) -> None:
    """Raise StateInvariantError listing every violated invariant."""
    bad = find_invariant_violations(st)
    if bad:
        raise StateInvariantError(",".join(bad))


__all__ = ["StateInvariantError", "check_invariants", "ensure_state", "find_invariant_violations", "state_precision"]
