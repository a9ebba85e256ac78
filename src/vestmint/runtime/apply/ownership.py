# src/vestmint/runtime/apply/ownership.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from vestmint.ledger.constants import ZERO_ADDRESS
from vestmint.runtime.hooks import ApplyHooks
from vestmint.runtime.tx_admission_types import TxEnvelope

Json = Dict[str, Any]

OWNERSHIP_TX_TYPES = {"OWNERSHIP_TRANSFER"}


@dataclass
class OwnershipApplyError(Exception):
    code: str
    reason: str
    details: Optional[Json] = None

    def __str__(self) -> str:
        return f"{self.code}:{self.reason}"


def _as_str(v: Any) -> str:
    return str(v).strip() if isinstance(v, (str, int)) and not isinstance(v, bool) else ""


def _as_dict(v: Any) -> Json:
    return v if isinstance(v, dict) else {}


def owner_of_contract(state: Json) -> str:
    return _as_str(_as_dict(state.get("params")).get("owner")).lower()


def require_owner(state: Json, env: TxEnvelope) -> None:
    """Raise forbidden:not_owner unless env.signer is the configured owner."""
    owner = owner_of_contract(state)
    signer = _as_str(env.signer).lower()
    if not owner or signer != owner:
        raise OwnershipApplyError("forbidden", "not_owner", {"tx_type": env.tx_type, "signer": signer})


def _apply_ownership_transfer(state: Json, env: TxEnvelope) -> Json:
    require_owner(state, env)

    payload = _as_dict(env.payload)
    new_owner = _as_str(payload.get("new_owner")).lower()
    if not new_owner or new_owner == ZERO_ADDRESS:
        raise OwnershipApplyError("config", "invalid_address", {"field": "new_owner"})

    params = state.setdefault("params", {})
    previous = owner_of_contract(state)
    params["owner"] = new_owner

    return {
        "applied": "OWNERSHIP_TRANSFER",
        "events": [{"event": "OwnershipTransferred", "previous_owner": previous, "new_owner": new_owner}],
    }


def apply_ownership(state: Json, env: TxEnvelope, hooks: Optional[ApplyHooks] = None) -> Optional[Json]:
    t = _as_str(env.tx_type).upper()
    if t not in OWNERSHIP_TX_TYPES:
        return None

    if t == "OWNERSHIP_TRANSFER":
        return _apply_ownership_transfer(state, env)

    return None


__all__ = ["OwnershipApplyError", "apply_ownership", "owner_of_contract", "require_owner"]
