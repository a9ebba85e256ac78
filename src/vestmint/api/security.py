from __future__ import annotations

"""HTTP edge protection: request size cap and per-client token buckets.

Both are best-effort and per-process. Anything stronger belongs in the
reverse proxy in front of the node.
"""

import ipaddress
import math
import time
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from vestmint.api.errors import ApiError
from vestmint.env import env_flag, env_int

_EXEMPT_PREFIXES: Tuple[str, ...] = ("/docs", "/openapi.json", "/v1/health")


def _is_valid_ip(raw: str) -> bool:
    try:
        ipaddress.ip_address(raw)
        return True
    except ValueError:
        return False


def _client_ip(request: Request) -> str:
    """Client IP used as the rate-limit key (never for auth decisions).

    X-Forwarded-For is honored only with VESTMINT_TRUST_PROXY_HEADERS=1, which
    must only be set behind a proxy that rewrites the header.
    """
    if env_flag("VESTMINT_TRUST_PROXY_HEADERS"):
        first = (request.headers.get("x-forwarded-for") or "").split(",")[0].strip()
        if first and _is_valid_ip(first):
            return first

    host = str(request.client.host) if request.client and request.client.host else ""
    return host if host and _is_valid_ip(host) else "unknown"


def _exempt(path: str, prefixes: Tuple[str, ...]) -> bool:
    return any(path.startswith(p) for p in prefixes)


def _error(status: int, code: str, message: str, headers: Optional[Dict[str, str]] = None, **details) -> JSONResponse:
    return ApiError(status, code, message, details).to_response(headers)


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject bodies over VESTMINT_MAX_REQUEST_BYTES (default 256 KiB) with 413.

    Content-Length is checked first; bodies without one (chunked) are
    buffered and measured. VESTMINT_SIZE_LIMIT_DISABLE=1 turns it off when the
    proxy already enforces a cap.
    """

    def __init__(self, app, *, max_bytes: Optional[int] = None, exempt_prefixes: Tuple[str, ...] = _EXEMPT_PREFIXES):
        super().__init__(app)
        self._enabled = not env_flag("VESTMINT_SIZE_LIMIT_DISABLE")
        self._max_bytes = int(max_bytes) if max_bytes is not None else env_int("VESTMINT_MAX_REQUEST_BYTES", 256 * 1024)
        self._exempt_prefixes = exempt_prefixes

    def _too_large(self, size: int) -> JSONResponse:
        return _error(413, "request_too_large", "Request body too large", bytes=size, max_bytes=self._max_bytes)

    async def dispatch(self, request: Request, call_next):
        if not self._enabled or _exempt(request.url.path or "", self._exempt_prefixes):
            return await call_next(request)

        cl = (request.headers.get("content-length") or "").strip()
        if cl.isdigit() and int(cl) > self._max_bytes:
            return self._too_large(int(cl))

        if (request.method or "").upper() in {"POST", "PUT", "PATCH"}:
            body = await request.body()
            if len(body) > self._max_bytes:
                return self._too_large(len(body))

        return await call_next(request)


@dataclass(frozen=True)
class TokenBucket:
    rate_per_sec: float
    burst: float

    def refill(self, tokens: float, elapsed_s: float) -> float:
        return min(self.burst, tokens + max(0.0, elapsed_s) * self.rate_per_sec)

    def wait_s(self, tokens: float) -> int:
        """Whole seconds until one token is available."""
        if self.rate_per_sec <= 0:
            return 60
        return max(1, int(math.ceil((1.0 - tokens) / self.rate_per_sec)))


class BucketTable:
    """Token balances keyed by client, with TTL and size-cap eviction.

    Value per key: (tokens_remaining, last_seen_ts).
    """

    def __init__(self, *, ttl_s: int, max_keys: int, prune_every: int) -> None:
        self._buckets: Dict[str, Tuple[float, float]] = {}
        self._ttl_s = int(ttl_s)
        self._max_keys = int(max_keys)
        self._prune_every = max(1, int(prune_every))
        self._takes = 0

    def __len__(self) -> int:
        return len(self._buckets)

    def take(self, key: str, bucket: TokenBucket, now: float) -> Tuple[bool, float]:
        """Spend one token. Returns (allowed, tokens_left)."""
        self._takes += 1
        if self._takes % self._prune_every == 0:
            self.prune(now)

        tokens, last = self._buckets.get(key, (bucket.burst, now))
        tokens = bucket.refill(tokens, now - last)
        allowed = tokens >= 1.0
        if allowed:
            tokens -= 1.0
        self._buckets[key] = (tokens, now)

        if self._max_keys > 0 and len(self._buckets) > self._max_keys:
            self.prune(now)
        return allowed, tokens

    def prune(self, now: float) -> None:
        if self._ttl_s > 0:
            cutoff = now - float(self._ttl_s)
            for k in [k for k, (_, seen) in self._buckets.items() if seen < cutoff]:
                del self._buckets[k]

        if self._max_keys > 0 and len(self._buckets) > self._max_keys:
            oldest = sorted(self._buckets.items(), key=lambda kv: kv[1][1])
            for k, _ in oldest[: len(oldest) - self._max_keys]:
                del self._buckets[k]


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-client token buckets: one for writes (tx submission), one for reads.

    429 responses carry Retry-After.

    Configure:
      VESTMINT_RATE_LIMIT_DISABLE=1
      VESTMINT_RL_TTL_S (default 900), VESTMINT_RL_MAX_KEYS (default 20000),
      VESTMINT_RL_PRUNE_EVERY (default 256)
    """

    def __init__(
        self,
        app,
        *,
        write_bucket: TokenBucket | None = None,
        read_bucket: TokenBucket | None = None,
        ttl_s: int | None = None,
        max_keys: int | None = None,
        prune_every: int | None = None,
        exempt_prefixes: Tuple[str, ...] = _EXEMPT_PREFIXES,
    ):
        super().__init__(app)
        self._enabled = not env_flag("VESTMINT_RATE_LIMIT_DISABLE")
        self._write = write_bucket or TokenBucket(rate_per_sec=4.0, burst=20.0)
        self._read = read_bucket or TokenBucket(rate_per_sec=12.0, burst=40.0)
        self._exempt_prefixes = exempt_prefixes
        self.table = BucketTable(
            ttl_s=int(ttl_s) if ttl_s is not None else env_int("VESTMINT_RL_TTL_S", 900),
            max_keys=int(max_keys) if max_keys is not None else env_int("VESTMINT_RL_MAX_KEYS", 20_000),
            prune_every=int(prune_every) if prune_every is not None else env_int("VESTMINT_RL_PRUNE_EVERY", 256),
        )

    def _pick(self, request: Request) -> Tuple[str, TokenBucket]:
        if (request.method or "").upper() in {"POST", "PUT", "PATCH", "DELETE"}:
            return "w", self._write
        return "r", self._read

    async def dispatch(self, request: Request, call_next):
        if not self._enabled or _exempt(request.url.path or "", self._exempt_prefixes):
            return await call_next(request)

        kind, bucket = self._pick(request)
        allowed, tokens = self.table.take(f"{_client_ip(request)}:{kind}", bucket, time.time())
        if not allowed:
            wait = bucket.wait_s(tokens)
            return _error(429, "rate_limited", "Too many requests", headers={"Retry-After": str(wait)}, retry_after_s=wait)

        return await call_next(request)
