# src/vestmint/runtime/apply/minting.py
from __future__ import annotations

"""Mint authorizations and the NFT mint controller.

A grant (state["mint_auth"][delegate]) lets a delegate mint token ids inside
[id_range_start, id_range_end], at most type_quota[t] tokens of each type t and
at most max_total_count tokens overall, until `expiry` (inclusive).

Delegate mints check, in order: grant present and unexpired, type, id range,
per-type quota, total quota, recipient, uniqueness. Counters are committed
before the NFT mint listeners run.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from vestmint.ledger.constants import NFT_TYPE_COUNT, ZERO_ADDRESS
from vestmint.ledger.nft import NftLedger
from vestmint.runtime.apply.ownership import require_owner
from vestmint.runtime.hooks import ApplyHooks
from vestmint.runtime.tx_admission_types import TxEnvelope

Json = Dict[str, Any]

MINTING_TX_TYPES = {"MINT_AUTH_GRANT", "NFT_OWNER_MINT", "NFT_DELEGATE_MINT", "NFT_BASE_URI_SET"}


@dataclass
class MintingApplyError(Exception):
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


def _ensure_mint_auth_root(state: Json) -> Json:
    root = state.get("mint_auth")
    if not isinstance(root, dict):
        root = {}
        state["mint_auth"] = root
    return root


def _type_id(v: Any) -> int:
    t = _as_uint(v)
    if t is None or t >= NFT_TYPE_COUNT:
        raise MintingApplyError("config", "invalid_type", {"type_id": v, "allowed": [0, NFT_TYPE_COUNT - 1]})
    return t


def _token_id(v: Any) -> int:
    tid = _as_uint(v)
    if tid is None:
        raise MintingApplyError("config", "invalid_payload", {"token_id": v})
    return tid


def _recipient(v: Any) -> str:
    to = _as_str(v).lower()
    if not to or to == ZERO_ADDRESS:
        raise MintingApplyError("config", "invalid_address", {"field": "to"})
    return to


def authorization_of(state: Json, delegate: str) -> Optional[Json]:
    g = _as_dict(state.get("mint_auth")).get(str(delegate).strip().lower())
    return dict(g) if isinstance(g, dict) else None


# ---------------------------------------------------------------------------
# Appliers
# ---------------------------------------------------------------------------


def _apply_mint_auth_grant(state: Json, env: TxEnvelope) -> Json:
    require_owner(state, env)

    payload = _as_dict(env.payload)
    delegate = _as_str(payload.get("delegate")).lower()
    if not delegate:
        raise MintingApplyError("config", "invalid_address", {"field": "delegate"})

    quota_raw = payload.get("type_quota")
    if not isinstance(quota_raw, list) or len(quota_raw) != NFT_TYPE_COUNT:
        raise MintingApplyError(
            "config",
            "invalid_type_quota_length",
            {"expected": NFT_TYPE_COUNT, "got": len(quota_raw) if isinstance(quota_raw, list) else None},
        )

    fields: Dict[str, int] = {}
    for k in ("expiry", "max_total_count", "id_range_start", "id_range_end"):
        n = _as_uint(payload.get(k))
        if n is None:
            raise MintingApplyError("config", "invalid_payload", {"field": k, "value": payload.get(k)})
        fields[k] = n

    quota: List[int] = []
    for i, q in enumerate(quota_raw):
        n = _as_uint(q)
        if n is None:
            raise MintingApplyError("config", "invalid_payload", {"field": f"type_quota[{i}]", "value": q})
        quota.append(n)

    # Overwrites any previous grant, counters included.
    _ensure_mint_auth_root(state)[delegate] = {
        **fields,
        "type_quota": quota,
        "type_issued": [0] * NFT_TYPE_COUNT,
        "total_issued": 0,
    }

    return {
        "applied": "MINT_AUTH_GRANT",
        "delegate": delegate,
        "events": [{"event": "MintAuthorized", "delegate": delegate, **fields, "type_quota": list(quota)}],
    }


def _apply_nft_owner_mint(state: Json, env: TxEnvelope, hooks: ApplyHooks) -> Json:
    require_owner(state, env)

    payload = _as_dict(env.payload)
    type_id = _type_id(payload.get("type_id"))
    token_id = _token_id(payload.get("token_id"))
    to = _recipient(payload.get("to"))

    events: List[Json] = []
    nft = NftLedger(state, listeners=hooks.on_nft_minted, events=events)
    if nft.exists(token_id):
        raise MintingApplyError("uniqueness", "already_minted", {"token_id": token_id})

    nft.create(to, token_id, type_id)
    nft.notify_minted(to, token_id, type_id)

    return {"applied": "NFT_OWNER_MINT", "token_id": token_id, "type_id": type_id, "to": to, "events": events}


def _apply_nft_delegate_mint(state: Json, env: TxEnvelope, hooks: ApplyHooks) -> Json:
    payload = _as_dict(env.payload)
    caller = _as_str(env.signer).lower()

    grant = _ensure_mint_auth_root(state).get(caller)
    if not isinstance(grant, dict):
        raise MintingApplyError("authorization", "unauthorized", {"delegate": caller})
    now = _now(state)
    if now > int(grant.get("expiry", 0)):
        raise MintingApplyError(
            "temporal", "unauthorized", {"detail": "grant_expired", "now": now, "expiry": int(grant.get("expiry", 0))}
        )

    type_id = _type_id(payload.get("type_id"))

    token_id = _token_id(payload.get("token_id"))
    lo = int(grant.get("id_range_start", 0))
    hi = int(grant.get("id_range_end", 0))
    if token_id < lo or token_id > hi:
        raise MintingApplyError("capacity", "out_of_range", {"token_id": token_id, "id_range": [lo, hi]})

    issued = grant["type_issued"]
    quota = grant["type_quota"]
    if int(issued[type_id]) >= int(quota[type_id]):
        raise MintingApplyError(
            "capacity",
            "type_quota_exhausted",
            {"type_id": type_id, "issued": int(issued[type_id]), "quota": int(quota[type_id])},
        )

    total = int(grant.get("total_issued", 0))
    if total >= int(grant.get("max_total_count", 0)):
        raise MintingApplyError(
            "capacity", "total_quota_exhausted", {"issued": total, "max_total_count": int(grant.get("max_total_count", 0))}
        )

    to = _recipient(payload.get("to"))

    events: List[Json] = []
    nft = NftLedger(state, listeners=hooks.on_nft_minted, events=events)
    if nft.exists(token_id):
        raise MintingApplyError("uniqueness", "already_minted", {"token_id": token_id})

    nft.create(to, token_id, type_id)
    issued[type_id] = int(issued[type_id]) + 1
    grant["total_issued"] = total + 1

    nft.notify_minted(to, token_id, type_id)

    return {
        "applied": "NFT_DELEGATE_MINT",
        "delegate": caller,
        "token_id": token_id,
        "type_id": type_id,
        "to": to,
        "total_issued": total + 1,
        "events": events,
    }


def _apply_nft_base_uri_set(state: Json, env: TxEnvelope) -> Json:
    require_owner(state, env)

    payload = _as_dict(env.payload)
    base_uri = payload.get("base_uri", "")
    if not isinstance(base_uri, str):
        raise MintingApplyError("config", "invalid_payload", {"field": "base_uri"})

    NftLedger(state).set_base_uri(base_uri)
    return {"applied": "NFT_BASE_URI_SET", "events": [{"event": "BaseURISet", "base_uri": base_uri}]}


def apply_minting(state: Json, env: TxEnvelope, hooks: Optional[ApplyHooks] = None) -> Optional[Json]:
    t = _as_str(env.tx_type).upper()
    if t not in MINTING_TX_TYPES:
        return None

    h = hooks if hooks is not None else ApplyHooks()

    if t == "MINT_AUTH_GRANT":
        return _apply_mint_auth_grant(state, env)
    if t == "NFT_OWNER_MINT":
        return _apply_nft_owner_mint(state, env, h)
    if t == "NFT_DELEGATE_MINT":
        return _apply_nft_delegate_mint(state, env, h)
    if t == "NFT_BASE_URI_SET":
        return _apply_nft_base_uri_set(state, env)

    return None


__all__ = ["MintingApplyError", "apply_minting", "authorization_of"]
