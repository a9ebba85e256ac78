from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from vestmint.api.errors import ApiError
from vestmint.api.routes_public_parts.common import address_arg, executor_of, int_arg
from vestmint.api.schemas import TxSubmitRequest

router = APIRouter()

Json = Dict[str, Any]

# Admission codes that mean "who you are" rather than "what you sent".
_FORBIDDEN_CODES = {"bad_sig"}


@router.post("/tx/submit")
def tx_submit(body: TxSubmitRequest, request: Request) -> Json:
    """Submit a signed tx envelope and apply it.

    Returns the receipt on success. Admission rejections map to 400 (403 for
    signature failures); apply rejections map to 409 and carry the receipt.
    """
    ex = executor_of(request)
    out = ex.submit_tx(body.model_dump())

    if out.get("ok"):
        return out

    code = str(out.get("code") or "rejected")
    reason = str(out.get("reason") or "")
    details = {"reason": reason, "stage": out.get("stage"), "details": out.get("details")}
    if out.get("stage") == "apply":
        details["receipt_seq"] = out.get("seq")
        raise ApiError.conflict(code, reason or "tx rejected", details)
    if code in _FORBIDDEN_CODES:
        raise ApiError.forbidden(code, reason or "tx rejected", details)
    raise ApiError.bad_request(code, reason or "tx rejected", details)


@router.get("/tx/receipts/{signer}")
def tx_receipts(signer: str, request: Request, limit: int = 50) -> Json:
    ex = executor_of(request)
    addr = address_arg(signer)
    return {"ok": True, "signer": addr, "receipts": ex.store.receipts_for(addr, int_arg(limit, 50))}
