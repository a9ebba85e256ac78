from __future__ import annotations

import re
from typing import Any, Dict

from fastapi import Request

from vestmint.api.errors import ApiError
from vestmint.ledger.constants import POOLS
from vestmint.ledger.state import LedgerView

Json = Dict[str, Any]

_ADDRESS_RE = re.compile(r"^0x[0-9a-f]{40}$")


def executor_of(request: Request):
    ex = getattr(request.app.state, "executor", None)
    if ex is None:
        raise ApiError.internal("not_ready", "executor not attached to app.state", {})
    return ex


def committed_state(request: Request) -> Json:
    st = executor_of(request).read_state()
    return st if isinstance(st, dict) else dict(st)


def ledger_view(request: Request) -> LedgerView:
    return LedgerView.from_ledger(committed_state(request))


def pool_arg(pool: str) -> str:
    p = str(pool or "").strip().lower()
    if p not in POOLS:
        raise ApiError.not_found("unknown_pool", f"unknown pool {pool!r}", {"allowed": list(POOLS)})
    return p


def address_arg(address: str) -> str:
    """Path addresses are normalised to lower-case 0x + 40 hex."""
    a = str(address or "").strip().lower()
    if not _ADDRESS_RE.match(a):
        raise ApiError.bad_request("bad_address", "address must be 0x followed by 40 hex chars", {"address": address})
    return a


def int_arg(v: Any, default: int) -> int:
    s = "" if v is None else str(v).strip()
    return int(s) if s.lstrip("-").isdigit() else int(default)
