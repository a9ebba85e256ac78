from __future__ import annotations

"""Envelope and verdict types shared by admission, apply and the executor.

An envelope is what a client signs and submits:

  {"tx_type": "VESTING_CLAIM", "signer": "0x..", "nonce": 3,
   "payload": {"pool": "team"}, "sig": "<hex>", "pubkey": "<hex>"}

tx_type is matched upper-case and signer lower-case everywhere, so both are
normalized once here.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional

Json = Dict[str, Any]

# Rejection codes admit_tx() can produce. Anything else comes from apply.
ADMISSION_CODES = frozenset({"bad_shape", "unknown_tx_type", "invalid_payload", "bad_sig", "bad_nonce"})


@dataclass(frozen=True)
class TxReject:
    code: str
    reason: str
    details: Optional[Json] = None

    def to_json(self) -> Json:
        return {"code": self.code, "reason": self.reason, "details": self.details}


@dataclass(frozen=True)
class TxVerdict:
    ok: bool
    rejection: Optional[TxReject] = None

    @property
    def code(self) -> str:
        return self.rejection.code if self.rejection else "ok"

    @property
    def reason(self) -> str:
        return self.rejection.reason if self.rejection else "admitted"

    @property
    def details(self) -> Optional[Json]:
        return self.rejection.details if self.rejection else None

    def __iter__(self) -> Iterator[Any]:
        """Allow `ok, rej = admit_tx(...)` unpacking."""
        yield self.ok
        yield self.rejection

    @staticmethod
    def admit() -> "TxVerdict":
        return TxVerdict(True, None)

    @staticmethod
    def reject(code: str, reason: str, details: Optional[Json] = None) -> "TxVerdict":
        if code not in ADMISSION_CODES:
            raise ValueError(f"unknown admission code: {code!r}")
        return TxVerdict(False, TxReject(code, reason, details))


def _nonce(v: Any) -> int:
    if isinstance(v, bool):
        raise ValueError("nonce must be an integer")
    if isinstance(v, int):
        return v
    if isinstance(v, str) and v.strip().lstrip("-").isdigit():
        return int(v.strip())
    raise ValueError(f"nonce must be an integer, got {type(v).__name__}")


@dataclass(frozen=True)
class TxEnvelope:
    tx_type: str
    signer: str
    nonce: int
    payload: Json
    sig: str = ""
    pubkey: str = ""

    @staticmethod
    def from_json(j: Any) -> "TxEnvelope":
        if isinstance(j, TxEnvelope):
            return j
        if not isinstance(j, dict):
            j = dict(j)  # type: ignore[arg-type]
        payload = j.get("payload")
        if payload is not None and not isinstance(payload, dict):
            raise ValueError("payload must be an object")
        return TxEnvelope(
            tx_type=str(j.get("tx_type") or "").strip().upper(),
            signer=str(j.get("signer") or "").strip().lower(),
            nonce=_nonce(j.get("nonce", 0)),
            payload=dict(payload or {}),
            sig=str(j.get("sig") or ""),
            pubkey=str(j.get("pubkey") or ""),
        )

    def signed_fields(self) -> Json:
        """The fields the signature covers (everything but sig/pubkey)."""
        return {"tx_type": self.tx_type, "signer": self.signer, "nonce": self.nonce, "payload": self.payload}

    def to_json(self) -> Json:
        return {**self.signed_fields(), "sig": self.sig, "pubkey": self.pubkey}


__all__ = ["ADMISSION_CODES", "TxEnvelope", "TxReject", "TxVerdict"]
