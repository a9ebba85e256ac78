from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Request

from vestmint.api.routes_public_parts.common import address_arg, pool_arg, ledger_view

router = APIRouter()

Json = Dict[str, Any]


@router.get("/vesting/{pool}")
def vesting_pool(pool: str, request: Request) -> Json:
    view = ledger_view(request)
    return {"ok": True, **view.pool_summary(pool_arg(pool))}


@router.get("/vesting/{pool}/{address}")
def vesting_beneficiary(pool: str, address: str, request: Request, at: Optional[int] = None) -> Json:
    """Allocation, locked funds, claimed so far and claimable at `at` (default: ledger time)."""
    view = ledger_view(request)
    return {"ok": True, **view.beneficiary(pool_arg(pool), address_arg(address), at)}
