# src/vestmint/crypto/sig.py
from __future__ import annotations

"""Ed25519 envelope signatures and address derivation.

Keys and signatures travel as hex or (url-safe) base64 text. An account
address is "0x" + the last 20 bytes of sha256(raw 32-byte public key), and a
signature covers the canonical JSON of (tx_type, signer, nonce, payload).
"""

import base64
import binascii
import hashlib
import json
from typing import Any, Dict, Tuple

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey

Json = Dict[str, Any]

ADDRESS_BYTES = 20
KEY_BYTES = 32


def decode_blob(text: str) -> bytes:
    """Hex first, then standard or url-safe base64 (padding optional)."""
    s = str(text or "").strip()
    if not s:
        raise ValueError("empty key/signature text")
    try:
        return bytes.fromhex(s)
    except ValueError:
        pass
    try:
        padded = s.replace("-", "+").replace("_", "/") + "=" * (-len(s) % 4)
        return base64.b64decode(padded, validate=True)
    except binascii.Error as e:
        raise ValueError("not hex or base64") from e


def _encode_sig(raw: bytes, encoding: str) -> str:
    if encoding == "hex":
        return raw.hex()
    if encoding in ("b64", "base64"):
        return base64.b64encode(raw).decode("ascii")
    raise ValueError(f"unsupported signature encoding: {encoding!r}")


def address_from_pubkey(pubkey: str) -> str:
    raw = decode_blob(pubkey)
    if len(raw) != KEY_BYTES:
        raise ValueError(f"ed25519 pubkey must be {KEY_BYTES} bytes, got {len(raw)}")
    return "0x" + hashlib.sha256(raw).digest()[-ADDRESS_BYTES:].hex()


def canonical_tx_message(*, tx_type: str, signer: str, nonce: int, payload: Json) -> bytes:
    obj = {"tx_type": str(tx_type), "signer": str(signer), "nonce": int(nonce), "payload": payload if isinstance(payload, dict) else {}}
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def signing_fields(tx: Json) -> Json:
    """The envelope fields a signature covers, normalised the way admission sees them."""
    payload = tx.get("payload")
    return {
        "tx_type": str(tx.get("tx_type") or "").strip().upper(),
        "signer": str(tx.get("signer") or "").strip().lower(),
        "nonce": int(tx.get("nonce") or 0),
        "payload": payload if isinstance(payload, dict) else {},
    }


def verify_tx_signature(tx: Json) -> Tuple[bool, Json]:
    """(ok, info). On failure info["reason"] names the check that failed."""
    pubkey = str(tx.get("pubkey") or "").strip()
    sig = str(tx.get("sig") or "").strip()
    if not pubkey:
        return False, {"reason": "missing_pubkey"}
    if not sig:
        return False, {"reason": "missing_sig"}

    fields = signing_fields(tx)
    try:
        derived = address_from_pubkey(pubkey)
    except ValueError:
        return False, {"reason": "invalid_pubkey"}
    if derived != fields["signer"]:
        return False, {"reason": "pubkey_signer_mismatch", "derived": derived}

    try:
        Ed25519PublicKey.from_public_bytes(decode_blob(pubkey)).verify(decode_blob(sig), canonical_tx_message(**fields))
    except (InvalidSignature, ValueError):
        return False, {"reason": "invalid_signature"}
    return True, {"pubkey": pubkey}


def private_key_from_text(privkey: str) -> Ed25519PrivateKey:
    """32-byte seed, or a 64-byte seed||pubkey blob (seed half used)."""
    raw = decode_blob(privkey)
    if len(raw) == 2 * KEY_BYTES:
        raw = raw[:KEY_BYTES]
    if len(raw) != KEY_BYTES:
        raise ValueError("ed25519 privkey must be a 32-byte seed (or 64-byte expanded key)")
    return Ed25519PrivateKey.from_private_bytes(raw)


def sign_tx_with_key(tx: Json, key: Ed25519PrivateKey, *, encoding: str = "hex") -> Json:
    """Copy of tx with normalised signing fields and 'sig' filled in."""
    fields = signing_fields(tx)
    return {**tx, **fields, "sig": _encode_sig(key.sign(canonical_tx_message(**fields)), encoding)}


def sign_tx_envelope_dict(*, tx: Json, privkey: str, encoding: str = "hex") -> Json:
    return sign_tx_with_key(tx, private_key_from_text(privkey), encoding=encoding)
