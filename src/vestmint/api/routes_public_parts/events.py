from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from vestmint.api.routes_public_parts.common import executor_of, int_arg

router = APIRouter()

Json = Dict[str, Any]

_MAX_LIMIT = 500


@router.get("/events")
def events(request: Request, since: int = 0, limit: int = 100) -> Json:
    """Events with seq > since, oldest first. Use the last seq as the next cursor."""
    lim = max(1, min(_MAX_LIMIT, int_arg(limit, 100)))
    evs = executor_of(request).events(since=max(0, int_arg(since, 0)), limit=lim)
    next_since = evs[-1]["seq"] if evs else max(0, since)
    return {"ok": True, "events": evs, "next_since": next_since}
