from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from vestmint.api.routes_public_parts.common import committed_state

router = APIRouter()


@router.get("/state/snapshot")
def state_snapshot(request: Request) -> Dict[str, Any]:
    st = committed_state(request)
    return {"ok": True, "state": st}
