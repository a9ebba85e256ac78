# src/vestmint/api/structured_logging.py
from __future__ import annotations

import json
import logging
import time
import uuid
from typing import Any, Dict, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from vestmint.env import env_flag, env_str

Json = Dict[str, Any]

# Paths polled by load balancers and dashboards; logged at DEBUG only.
_QUIET_PATHS = ("/v1/health", "/v1/events")


def _now_ms() -> int:
    return int(time.time() * 1000)


class JsonLineFormatter(logging.Formatter):
    """One JSON object per line.

    Messages produced by log_event() are already JSON objects and only gain
    `level` and `logger`. Anything else (uvicorn, library warnings) is wrapped
    as {"event": "log", "msg": ...}.
    """

    def format(self, record: logging.LogRecord) -> str:
        msg = record.getMessage()
        obj: Optional[Json] = None
        if msg.startswith("{"):
            try:
                parsed = json.loads(msg)
            except ValueError:
                parsed = None
            if isinstance(parsed, dict):
                obj = parsed
        if obj is None:
            obj = {"ts_ms": int(record.created * 1000), "event": "log", "msg": msg}
        obj.setdefault("level", record.levelname)
        obj.setdefault("logger", record.name)
        if record.exc_info:
            obj["exc"] = self.formatException(record.exc_info)
        return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def configure_structured_logging(level_name: Optional[str] = None) -> None:
    """Send all logging to stdout as JSON lines.

    Level comes from the argument, else VESTMINT_LOG_LEVEL (default INFO).
    Calling again only adjusts the level.
    """
    raw = level_name or env_str("VESTMINT_LOG_LEVEL", "INFO")
    level = getattr(logging, raw.strip().upper(), logging.INFO)

    root = logging.getLogger()
    if getattr(root, "_vestmint_configured", False):  # type: ignore[attr-defined]
        root.setLevel(level)
        return

    handler = logging.StreamHandler()
    handler.setFormatter(JsonLineFormatter())

    root.handlers = [handler]
    root.setLevel(level)
    setattr(root, "_vestmint_configured", True)  # type: ignore[attr-defined]


def log_event(logger: logging.Logger, event: str, *, level: int = logging.INFO, **fields: Any) -> None:
    """Log a named event with flat key/value fields as a single JSON line."""
    if not logger.isEnabledFor(level):
        return
    payload: Json = {"ts_ms": _now_ms(), "event": event}
    payload.update(fields)
    try:
        msg = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError):
        msg = " ".join([f"event={event}"] + [f"{k}={fields.get(k)!r}" for k in sorted(fields.keys())])
    logger.log(level, msg)


def tx_fields(tx: Any) -> Json:
    """Identifying fields of a tx envelope (dict or TxEnvelope) for log lines."""
    if not isinstance(tx, dict):
        tx = {k: getattr(tx, k, None) for k in ("tx_type", "signer", "nonce")}
    return {
        "tx_type": str(tx.get("tx_type") or "").upper(),
        "signer": str(tx.get("signer") or "").lower(),
        "nonce": tx.get("nonce"),
    }


class RequestLogMiddleware(BaseHTTPMiddleware):
    """One `http_request` line per request, tagged with an x-request-id.

    Controls:
      - VESTMINT_LOG_REQUESTS=0 to disable (default on)
      - VESTMINT_LOG_REQUEST_HEADERS=1 to include a small header subset
    """

    def __init__(self, app) -> None:
        super().__init__(app)
        self._enabled = env_flag("VESTMINT_LOG_REQUESTS", default=True)
        self._log_headers = env_flag("VESTMINT_LOG_REQUEST_HEADERS")
        self._logger = logging.getLogger("vestmint.http")

    def _header_subset(self, request: Request) -> Json:
        if not self._log_headers:
            return {}
        out: Json = {}
        for k in ("user-agent", "content-type", "content-length", "x-forwarded-for"):
            v = request.headers.get(k)
            if v:
                out[k] = v
        return out

    def _level(self, path: str, status: int) -> int:
        if status >= 500:
            return logging.ERROR
        if path.startswith(_QUIET_PATHS) and status < 400:
            return logging.DEBUG
        return logging.INFO

    async def dispatch(self, request: Request, call_next):
        if not self._enabled:
            return await call_next(request)

        started = time.monotonic()
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.request_id = request_id
        path = str(request.url.path or "")

        status = 500
        err: Optional[str] = None
        response: Optional[Response] = None

        try:
            response = await call_next(request)
            status = int(getattr(response, "status_code", 200) or 200)
            return response
        except Exception as e:
            err = str(e)
            raise
        finally:
            ex = getattr(request.app.state, "executor", None)
            log_event(
                self._logger,
                "http_request",
                level=self._level(path, status),
                request_id=request_id,
                method=request.method,
                path=path,
                status=status,
                duration_ms=int((time.monotonic() - started) * 1000),
                client=str(request.client.host) if request.client else "",
                chain_id=getattr(ex, "chain_id", None),
                headers=self._header_subset(request),
                error=err,
            )
            if response is not None:
                response.headers.setdefault("x-request-id", request_id)
