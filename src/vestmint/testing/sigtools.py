from __future__ import annotations

"""Deterministic test keys. TEST ONLY: the seeds are public."""

import hashlib
from functools import lru_cache
from typing import Any, Dict, Optional, Tuple

from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from vestmint.crypto.sig import address_from_pubkey, sign_tx_with_key

Json = Dict[str, Any]

_SEED_PREFIX = "vestmint-test-ed25519:"


@lru_cache(maxsize=None)
def deterministic_ed25519_keypair(*, label: str) -> Tuple[str, Ed25519PrivateKey]:
    """(pubkey_hex, private_key) seeded by sha256(prefix + label)."""
    seed = hashlib.sha256((_SEED_PREFIX + (label or "")).encode("utf-8")).digest()
    sk = Ed25519PrivateKey.from_private_bytes(seed)
    return sk.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw).hex(), sk


def address_for(label: str) -> str:
    return address_from_pubkey(deterministic_ed25519_keypair(label=label)[0])


def sign_tx_dict(tx: Json, *, label: str) -> Json:
    """Sign tx with the key for `label`, filling 'pubkey' and (if absent) 'signer'.

    An explicit 'signer' is kept even when it is not the label's address, which
    is how tests forge envelopes.
    """
    if not isinstance(tx, dict):
        raise TypeError("tx must be a dict")
    pk_hex, sk = deterministic_ed25519_keypair(label=label)
    return sign_tx_with_key({**tx, "signer": tx.get("signer") or address_from_pubkey(pk_hex), "pubkey": pk_hex}, sk)


def make_tx(tx_type: str, *, label: str, nonce: int, payload: Optional[Json] = None) -> Json:
    return sign_tx_dict({"tx_type": tx_type, "nonce": int(nonce), "payload": dict(payload or {})}, label=label)
