# src/vestmint/runtime/domain_apply.py
from __future__ import annotations

"""All-or-nothing tx application.

apply_tx_atomic() is what the executor (and tests) call. It runs the domain
dispatcher against a scratch copy of the state and swaps the copy in only
when every step succeeded:

  1. the domain applier accepted the tx,
  2. the signer nonce was recorded,
  3. the standing invariants still hold.

Anything else raises ApplyError and the caller's state is untouched, nonce
included, so a rejected tx can be fixed and resubmitted with the same nonce.

The flip side: a rejected signed envelope stays valid until its signer
consumes that nonce with another tx. Anyone holding it can replay it, and it
applies once its preconditions hold (a stale owner ALLOCATION_SET, say). A
signer who wants to withdraw a rejected tx should spend the nonce on a
different one.
"""

import copy
from typing import Any, Dict, Optional, Union

from vestmint.runtime.domain_dispatch import apply_tx
from vestmint.runtime.errors import ApplyError
from vestmint.runtime.hooks import ApplyHooks
from vestmint.runtime.state_invariants import StateInvariantError, check_invariants
from vestmint.runtime.tx_admission_types import TxEnvelope

Json = Dict[str, Any]


def _record_nonce(scratch: Json, tx: TxEnvelope) -> None:
    signer = str(tx.signer or "").strip().lower()
    if signer:
        acct = scratch.setdefault("accounts", {}).setdefault(signer, {"nonce": 0})
        acct["nonce"] = int(tx.nonce)


def _swap_in(state: Json, scratch: Json) -> None:
    # In place, so holders of a reference to `state` see the new contents.
    state.clear()
    state.update(scratch)


def apply_tx_atomic(state: Json, env: Union[TxEnvelope, Json], *, hooks: Optional[ApplyHooks] = None) -> Json:
    tx = TxEnvelope.from_json(env) if isinstance(env, dict) else env
    scratch = copy.deepcopy(state)

    receipt = apply_tx(scratch, tx, hooks=hooks)
    _record_nonce(scratch, tx)

    try:
        check_invariants(scratch)
    except StateInvariantError as e:
        raise ApplyError("invariant", "state_invariant_violated", {"tx_type": tx.tx_type, "violations": str(e)}) from e

    _swap_in(state, scratch)
    return receipt


__all__ = ["apply_tx_atomic"]
