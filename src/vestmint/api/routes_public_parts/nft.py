from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from vestmint.api.errors import ApiError
from vestmint.api.routes_public_parts.common import address_arg, ledger_view
from vestmint.runtime.errors import ApplyError

router = APIRouter()

Json = Dict[str, Any]


@router.get("/nft")
def nft_collection(request: Request) -> Json:
    return {"ok": True, **ledger_view(request).collection()}


@router.get("/nft/balance/{address}")
def nft_balance(address: str, request: Request) -> Json:
    addr = address_arg(address)
    return {"ok": True, "address": addr, "balance": ledger_view(request).nft_balance_of(addr)}


@router.get("/nft/{token_id}")
def nft_token(token_id: int, request: Request) -> Json:
    try:
        tok = ledger_view(request).token(token_id)
    except ApplyError as e:
        raise ApiError.not_found(e.code, e.reason, {"token_id": token_id}) from e
    return {"ok": True, **tok}
