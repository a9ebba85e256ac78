from __future__ import annotations

"""HTTP input models.

Only the envelope shape is checked here (422 on mismatch). Payload contents,
signatures and nonces are judged by tx admission and the domain appliers.
"""

from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TxSubmitRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    tx_type: str = Field(..., min_length=1, description="Transaction type, e.g. VESTING_CLAIM")
    signer: str = Field(..., min_length=1, description="Signer address (0x + 40 hex)")
    nonce: int = Field(..., ge=0, description="Signer nonce; must be the account nonce + 1")
    payload: Dict[str, Any] = Field(default_factory=dict)
    sig: str = Field(default="", description="Hex or base64 ed25519 signature")
    pubkey: str = Field(default="", description="Hex or base64 ed25519 public key")

    @field_validator("tx_type", "signer", "sig", "pubkey")
    @classmethod
    def _strip(cls, v: str) -> str:
        return v.strip()
