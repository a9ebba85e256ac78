from __future__ import annotations

"""Pre-apply gate for submitted envelopes.

admit_tx() decides whether a tx may reach the appliers at all. It reads
state (signature policy, account nonce) but never writes it, so a rejection
here leaves no receipt and consumes no nonce.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional, Tuple

from vestmint.crypto.sig import verify_tx_signature
from vestmint.env import env_int
from vestmint.runtime.domain_dispatch import SUPPORTED_TX_TYPES
from vestmint.runtime.tx_admission_types import TxEnvelope, TxVerdict

Json = Dict[str, Any]
Violation = Tuple[str, Json]


@dataclass(frozen=True)
class PayloadLimits:
    envelope_bytes: int = 96 * 1024
    payload_bytes: int = 64 * 1024
    keys: int = 64
    string_bytes: int = 2 * 1024
    list_len: int = 1_000
    depth: int = 4

    @classmethod
    def from_env(cls) -> "PayloadLimits":
        d = cls()
        return cls(
            envelope_bytes=env_int("VESTMINT_MAX_TX_ENVELOPE_BYTES", d.envelope_bytes),
            payload_bytes=env_int("VESTMINT_MAX_TX_PAYLOAD_BYTES", d.payload_bytes),
            keys=env_int("VESTMINT_MAX_TX_PAYLOAD_KEYS", d.keys),
            string_bytes=env_int("VESTMINT_MAX_TX_STRING_BYTES", d.string_bytes),
            list_len=env_int("VESTMINT_MAX_TX_LIST_LEN", d.list_len),
            depth=env_int("VESTMINT_MAX_TX_NESTING", d.depth),
        )


def _encoded_size(obj: Any) -> int:
    """UTF-8 size of the compact JSON form, or -1 when obj is not JSON."""
    if isinstance(obj, TxEnvelope):
        obj = obj.to_json()
    try:
        return len(json.dumps(obj, separators=(",", ":"), ensure_ascii=False, sort_keys=True).encode("utf-8"))
    except (TypeError, ValueError):
        return -1


def _violations(v: Any, depth: int, lim: PayloadLimits) -> Iterator[Violation]:
    if depth > lim.depth:
        yield "payload_too_deep", {"max_depth": lim.depth}
    elif isinstance(v, float):
        # Amounts and percents are integers; floats never enter the ledger.
        yield "float_not_allowed", {}
    elif v is None or isinstance(v, (bool, int)):
        return
    elif isinstance(v, str):
        size = len(v.encode("utf-8", errors="ignore"))
        if size > lim.string_bytes:
            yield "string_too_large", {"bytes": size, "max_bytes": lim.string_bytes}
    elif isinstance(v, list):
        if len(v) > lim.list_len:
            yield "list_too_long", {"len": len(v), "max_len": lim.list_len}
        for item in v:
            yield from _violations(item, depth + 1, lim)
    elif isinstance(v, dict):
        if len(v) > lim.keys:
            yield "object_too_many_keys", {"keys": len(v), "max_keys": lim.keys}
        for k, item in v.items():
            if not isinstance(k, str):
                yield "invalid_key_type", {"key_type": type(k).__name__}
            yield from _violations(item, depth + 1, lim)
    else:
        yield "invalid_value_type", {"type": type(v).__name__}


def check_payload(payload: Any, lim: PayloadLimits) -> Optional[TxVerdict]:
    """First payload problem found (shape, size, then contents), else None."""
    if payload is None:
        return TxVerdict.reject("invalid_payload", "payload_required", {"expected": "object"})
    if not isinstance(payload, dict):
        return TxVerdict.reject("invalid_payload", "payload_must_be_object", {"type": type(payload).__name__})
    if len(payload) > lim.keys:
        return TxVerdict.reject("invalid_payload", "payload_too_many_keys", {"keys": len(payload), "max_keys": lim.keys})

    size = _encoded_size(payload)
    if size < 0:
        return TxVerdict.reject("invalid_payload", "payload_not_json", None)
    if size > lim.payload_bytes:
        return TxVerdict.reject("invalid_payload", "payload_exceeds_size_limit", {"bytes": size, "max_bytes": lim.payload_bytes})

    for reason, details in _violations(payload, 0, lim):
        return TxVerdict.reject("invalid_payload", reason, details)
    return None


def _signatures_required(state: Json) -> bool:
    params = state.get("params") if isinstance(state.get("params"), dict) else {}
    return bool(params.get("require_signatures", True))


def _expected_nonce(state: Json, signer: str) -> int:
    accounts = state.get("accounts") if isinstance(state.get("accounts"), dict) else {}
    acct = accounts.get(signer)
    return int(acct.get("nonce", 0)) + 1 if isinstance(acct, dict) else 1


def admit_tx(tx: Any, state: Json, *, limits: Optional[PayloadLimits] = None) -> TxVerdict:
    """Envelope size, shape, known type, payload limits, signature, nonce; in that order."""
    lim = limits or PayloadLimits.from_env()

    size = _encoded_size(tx)
    if size > lim.envelope_bytes:
        return TxVerdict.reject("invalid_payload", "tx_envelope_exceeds_size_limit", {"bytes": size, "max_bytes": lim.envelope_bytes})

    try:
        env = TxEnvelope.from_json(tx)
    except (TypeError, ValueError) as e:
        return TxVerdict.reject("bad_shape", "malformed_envelope", {"error": str(e)})

    if not env.tx_type:
        return TxVerdict.reject("bad_shape", "missing_tx_type", None)
    if not env.signer:
        return TxVerdict.reject("bad_shape", "missing_signer", None)
    if env.nonce < 0:
        return TxVerdict.reject("bad_shape", "nonce_must_be_nonnegative", {"nonce": env.nonce})
    if env.tx_type not in SUPPORTED_TX_TYPES:
        return TxVerdict.reject("unknown_tx_type", "tx_type_not_supported", {"tx_type": env.tx_type})

    bad_payload = check_payload(tx.get("payload") if isinstance(tx, dict) else env.payload, lim)
    if bad_payload is not None:
        return bad_payload

    if _signatures_required(state):
        ok, info = verify_tx_signature(env.to_json())
        if not ok:
            return TxVerdict.reject("bad_sig", "signature_verification_failed", {"signer": env.signer, "tx_type": env.tx_type, **info})

    expected = _expected_nonce(state, env.signer)
    if env.nonce != expected:
        return TxVerdict.reject("bad_nonce", "nonce_must_be_next", {"expected": expected, "got": env.nonce})

    return TxVerdict.admit()


__all__ = ["PayloadLimits", "admit_tx", "check_payload"]
