from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from vestmint.api.errors import ApiError
from vestmint.api.routes_public_parts.common import address_arg, ledger_view

router = APIRouter()

Json = Dict[str, Any]


@router.get("/mint/authorizations/{delegate}")
def mint_authorization(delegate: str, request: Request) -> Json:
    addr = address_arg(delegate)
    grant = ledger_view(request).authorization(addr)
    if grant is None:
        raise ApiError.not_found("no_authorization", "no mint authorization for delegate", {"delegate": addr})
    return {"ok": True, "delegate": addr, "authorization": grant}
