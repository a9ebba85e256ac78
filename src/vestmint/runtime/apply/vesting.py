# src/vestmint/runtime/apply/vesting.py
from __future__ import annotations

"""Vesting pools: allocation table, unlock schedule and claims.

State layout (under state["vesting"]["pools"][pool]):

  total_locked   int   amount of the fungible asset reserved for the pool
  total_percent  int   running sum of allocations, in precision units
  allocations    {address: percent}
  claimed        {address: amount}
  schedule       {"start": int, "duration": int}   start == 0 means unset

Claims follow checks-effects-interactions: the claimed counter is written
before the fungible ledger mints, so a listener that re-enters a claim sees
the settled counter and is paid nothing.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from vestmint.ledger.constants import POOLS
from vestmint.ledger.fungible import FungibleLedger
from vestmint.ledger.precision import percent_of, vested_amount
from vestmint.runtime.apply.ownership import require_owner
from vestmint.runtime.hooks import ApplyHooks
from vestmint.runtime.state_invariants import state_precision
from vestmint.runtime.tx_admission_types import TxEnvelope

Json = Dict[str, Any]

VESTING_TX_TYPES = {"ALLOCATION_SET", "SCHEDULE_SET", "VESTING_CLAIM"}


@dataclass
class VestingApplyError(Exception):
    code: str
    reason: str
    details: Optional[Json] = None

    def __str__(self) -> str:
        return f"{self.code}:{self.reason}"


def _as_str(v: Any) -> str:
    return str(v).strip() if isinstance(v, (str, int)) and not isinstance(v, bool) else ""


def _as_dict(v: Any) -> Json:
    return v if isinstance(v, dict) else {}


def _as_uint(v: Any) -> Optional[int]:
    """Strict non-negative int (decimal strings accepted); None when invalid."""
    if isinstance(v, bool):
        return None
    if isinstance(v, int):
        return v if v >= 0 else None
    if isinstance(v, str) and v.strip().isdigit():
        return int(v.strip())
    return None


def _now(state: Json) -> int:
    try:
        return int(state.get("time", 0))
    except (TypeError, ValueError):
        return 0


def _ensure_vesting_root(state: Json) -> Json:
    v = state.get("vesting")
    if not isinstance(v, dict):
        v = {}
        state["vesting"] = v
    pools = v.get("pools")
    if not isinstance(pools, dict):
        pools = {}
        v["pools"] = pools
    for name in POOLS:
        _ensure_pool(pools, name)
    return v


def _ensure_pool(pools: Json, name: str) -> Json:
    p = pools.get(name)
    if not isinstance(p, dict):
        p = {}
        pools[name] = p
    p.setdefault("total_locked", 0)
    p.setdefault("total_percent", 0)
    for k in ("allocations", "claimed"):
        if not isinstance(p.get(k), dict):
            p[k] = {}
    sched = p.get("schedule")
    if not isinstance(sched, dict):
        p["schedule"] = {"start": 0, "duration": 0}
    return p


def _pool(state: Json, pool: Any) -> Tuple[str, Json]:
    name = _as_str(pool).lower()
    pools = _ensure_vesting_root(state)["pools"]
    if name not in POOLS:
        raise VestingApplyError("config", "invalid_pool", {"pool": name, "allowed": list(POOLS)})
    return name, pools[name]


# ---------------------------------------------------------------------------
# Queries (read-only; usable against any state snapshot)
# ---------------------------------------------------------------------------


def _read_pool(state: Json, pool: str) -> Json:
    pools = _as_dict(_as_dict(state.get("vesting")).get("pools"))
    return _as_dict(pools.get(str(pool).lower()))


def allocation_of(state: Json, pool: str, address: str) -> int:
    return int(_as_dict(_read_pool(state, pool).get("allocations")).get(str(address).lower(), 0))


def total_allocated_percent(state: Json, pool: str) -> int:
    return int(_read_pool(state, pool).get("total_percent", 0))


def total_locked(state: Json, pool: str) -> int:
    return int(_read_pool(state, pool).get("total_locked", 0))


def claimed_of(state: Json, pool: str, address: str) -> int:
    return int(_as_dict(_read_pool(state, pool).get("claimed")).get(str(address).lower(), 0))


def schedule_of(state: Json, pool: str) -> Json:
    sched = _as_dict(_read_pool(state, pool).get("schedule"))
    return {"start": int(sched.get("start", 0)), "duration": int(sched.get("duration", 0))}


def locked_funds_of(state: Json, pool: str, address: str) -> int:
    return percent_of(total_locked(state, pool), allocation_of(state, pool, address), state_precision(state))


def claimable_of(state: Json, pool: str, address: str, now: int) -> int:
    """Amount a claim at `now` would pay. 0 when locked or unallocated."""
    alloc = allocation_of(state, pool, address)
    sched = schedule_of(state, pool)
    start = sched["start"]
    if alloc == 0 or start == 0 or int(now) < start:
        return 0
    allocated = percent_of(total_locked(state, pool), alloc, state_precision(state))
    vested = vested_amount(allocated, int(now) - start, sched["duration"])
    return max(0, vested - claimed_of(state, pool, address))


# ---------------------------------------------------------------------------
# Appliers
# ---------------------------------------------------------------------------


def _apply_allocation_set(state: Json, env: TxEnvelope) -> Json:
    require_owner(state, env)

    payload = _as_dict(env.payload)
    name, pool = _pool(state, payload.get("pool"))
    addresses = payload.get("addresses")
    percents = payload.get("percents")
    if not isinstance(addresses, list) or not isinstance(percents, list):
        raise VestingApplyError("config", "invalid_payload", {"expected": "addresses[] and percents[]"})
    if len(addresses) != len(percents):
        raise VestingApplyError(
            "config", "length_mismatch", {"addresses": len(addresses), "percents": len(percents)}
        )

    precision = state_precision(state)
    clean: List[Tuple[str, int]] = []
    for i, (a, p) in enumerate(zip(addresses, percents)):
        addr = _as_str(a).lower()
        if not addr:
            raise VestingApplyError("config", "invalid_address", {"index": i})
        pct = _as_uint(p)
        if pct is None or pct > precision:
            raise VestingApplyError("config", "invalid_percent", {"index": i, "percent": p, "precision": precision})
        clean.append((addr, pct))

    new_total = int(pool["total_percent"]) + sum(p for _, p in clean)
    if new_total > precision:
        raise VestingApplyError(
            "config",
            "quota_exceeded",
            {"pool": name, "total_percent": int(pool["total_percent"]), "requested_total": new_total, "precision": precision},
        )

    allocs = pool["allocations"]
    for addr, pct in clean:
        allocs[addr] = int(allocs.get(addr, 0)) + pct
    pool["total_percent"] = new_total

    return {
        "applied": "ALLOCATION_SET",
        "pool": name,
        "total_percent": new_total,
        "events": [
            {
                "event": "AllocationsSet",
                "pool": name,
                "addresses": [a for a, _ in clean],
                "percents": [p for _, p in clean],
                "total_percent": new_total,
            }
        ],
    }


def _apply_schedule_set(state: Json, env: TxEnvelope) -> Json:
    require_owner(state, env)

    payload = _as_dict(env.payload)
    name, pool = _pool(state, payload.get("pool"))
    start = _as_uint(payload.get("start"))
    duration = _as_uint(payload.get("duration"))
    if start is None or duration is None:
        raise VestingApplyError(
            "config", "invalid_schedule", {"start": payload.get("start"), "duration": payload.get("duration")}
        )

    prev = schedule_of(state, name)
    pool["schedule"] = {"start": start, "duration": duration}

    return {
        "applied": "SCHEDULE_SET",
        "pool": name,
        "events": [
            {
                "event": "ScheduleChanged",
                "pool": name,
                "start": start,
                "duration": duration,
                "previous_start": prev["start"],
                "previous_duration": prev["duration"],
            }
        ],
    }


def _apply_vesting_claim(state: Json, env: TxEnvelope, hooks: ApplyHooks) -> Json:
    payload = _as_dict(env.payload)
    name, pool = _pool(state, payload.get("pool"))
    who = _as_str(env.signer).lower()
    now = _now(state)

    alloc = int(pool["allocations"].get(who, 0))
    if alloc == 0:
        raise VestingApplyError("config", "no_allocation", {"pool": name, "beneficiary": who})

    sched = pool["schedule"]
    start = int(sched.get("start", 0))
    duration = int(sched.get("duration", 0))
    if start == 0:
        raise VestingApplyError("temporal", "still_locked", {"pool": name, "detail": "schedule_unset"})
    if now < start:
        raise VestingApplyError("temporal", "still_locked", {"pool": name, "now": now, "start": start})

    # Recomputed from the live pool total on every call.
    allocated = percent_of(int(pool["total_locked"]), alloc, state_precision(state))
    vested = vested_amount(allocated, now - start, duration)
    already = int(pool["claimed"].get(who, 0))
    claimable = vested - already

    if claimable <= 0:
        return {"applied": "VESTING_CLAIM", "pool": name, "amount": 0, "total_claimed": already, "events": []}

    total_claimed = already + claimable
    pool["claimed"][who] = total_claimed

    events: List[Json] = []
    FungibleLedger(state, listeners=hooks.on_fungible_transfer, events=events).mint(who, claimable)
    events.append(
        {"event": "Claimed", "pool": name, "beneficiary": who, "amount": claimable, "total_claimed": total_claimed}
    )

    return {
        "applied": "VESTING_CLAIM",
        "pool": name,
        "amount": claimable,
        "total_claimed": total_claimed,
        "events": events,
    }


def apply_vesting(state: Json, env: TxEnvelope, hooks: Optional[ApplyHooks] = None) -> Optional[Json]:
    t = _as_str(env.tx_type).upper()
    if t not in VESTING_TX_TYPES:
        return None

    if t == "ALLOCATION_SET":
        return _apply_allocation_set(state, env)
    if t == "SCHEDULE_SET":
        return _apply_schedule_set(state, env)
    if t == "VESTING_CLAIM":
        return _apply_vesting_claim(state, env, hooks if hooks is not None else ApplyHooks())

    return None


__all__ = [
    "VestingApplyError",
    "allocation_of",
    "apply_vesting",
    "claimable_of",
    "claimed_of",
    "locked_funds_of",
    "schedule_of",
    "total_allocated_percent",
    "total_locked",
]
