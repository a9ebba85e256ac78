# src/vestmint/runtime/domain_dispatch.py
from __future__ import annotations

from typing import Any, Callable, Dict, FrozenSet, Optional

from vestmint.runtime.apply.minting import MINTING_TX_TYPES, apply_minting
from vestmint.runtime.apply.ownership import OWNERSHIP_TX_TYPES, apply_ownership
from vestmint.runtime.apply.vesting import VESTING_TX_TYPES, apply_vesting
from vestmint.runtime.errors import ApplyError
from vestmint.runtime.hooks import ApplyHooks
from vestmint.runtime.state_invariants import ensure_state
from vestmint.runtime.tx_admission_types import TxEnvelope

Json = Dict[str, Any]
ApplyFn = Callable[[Json, TxEnvelope, Optional[ApplyHooks]], Optional[Json]]

_DOMAINS: Dict[str, tuple[FrozenSet[str], ApplyFn]] = {
    "ownership": (frozenset(OWNERSHIP_TX_TYPES), apply_ownership),
    "vesting": (frozenset(VESTING_TX_TYPES), apply_vesting),
    "minting": (frozenset(MINTING_TX_TYPES), apply_minting),
}

# tx_type -> (domain name, applier)
_ROUTES: Dict[str, tuple[str, ApplyFn]] = {t: (name, fn) for name, (types, fn) in _DOMAINS.items() for t in types}

SUPPORTED_TX_TYPES = frozenset(_ROUTES)


def apply_tx(state: Json, env: Any, *, hooks: Optional[ApplyHooks] = None) -> Json:
    """Route a tx to the applier owning its type and return the receipt.

    Mutates `state` in place even when the applier fails part way; use
    domain_apply.apply_tx_atomic() for all-or-nothing semantics.
    """
    ensure_state(state)
    tx = TxEnvelope.from_json(env) if isinstance(env, dict) else env

    t = str(getattr(tx, "tx_type", "") or "").strip().upper()
    if not t:
        raise ApplyError("invalid_tx", "missing_tx_type", {"tx_type": t})

    route = _ROUTES.get(t)
    if route is None:
        raise ApplyError("tx_unimplemented", "tx_type_not_implemented", {"tx_type": t})
    domain, fn = route

    try:
        out = fn(state, tx, hooks)
    except ApplyError:
        raise
    except Exception as e:
        raise ApplyError.from_domain(e, tx_type=t, domain=domain) from e

    if out is None:
        raise ApplyError("tx_unimplemented", "tx_type_not_claimed", {"tx_type": t, "domain": domain})
    return out


__all__ = ["SUPPORTED_TX_TYPES", "apply_tx"]
