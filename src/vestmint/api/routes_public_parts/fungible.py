from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from vestmint.api.routes_public_parts.common import address_arg, ledger_view

router = APIRouter()

Json = Dict[str, Any]


@router.get("/fungible/supply")
def fungible_supply(request: Request) -> Json:
    return {"ok": True, **ledger_view(request).fungible_supply()}


@router.get("/fungible/balance/{address}")
def fungible_balance(address: str, request: Request) -> Json:
    addr = address_arg(address)
    return {"ok": True, "address": addr, "balance": ledger_view(request).fungible_balance_of(addr)}
