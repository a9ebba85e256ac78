from __future__ import annotations

import time
from typing import Any, Dict

from fastapi import APIRouter, Request

from vestmint import __version__
from vestmint.env import node_mode

router = APIRouter()


@router.get("/health")
def health(request: Request) -> Dict[str, Any]:
    """Liveness plus readiness. Always 200; `ready` is false until an executor is attached."""
    ex = getattr(request.app.state, "executor", None)
    return {
        "ok": True,
        "service": "vestmint-node",
        "version": __version__,
        "mode": node_mode(),
        "ts_ms": int(time.time() * 1000),
        "ready": ex is not None,
        "chain_id": getattr(ex, "chain_id", None),
    }
