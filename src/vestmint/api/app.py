from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import List

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from vestmint import __version__
from vestmint.api.errors import ApiError, api_error_handler
from vestmint.api.routes_public import public_router
from vestmint.api.security import RateLimitMiddleware, RequestSizeLimitMiddleware
from vestmint.api.structured_logging import RequestLogMiddleware, configure_structured_logging, log_event
from vestmint.env import env_str, node_mode
from vestmint.runtime.executor import VestMintExecutor
from vestmint.runtime.node_config import load_node_config

log = logging.getLogger("vestmint.api")


def build_executor() -> VestMintExecutor:
    """Executor for the serving process; tests monkeypatch this name."""
    return VestMintExecutor.from_config(load_node_config())


def cors_origins(mode: str) -> List[str]:
    """Origins from VESTMINT_CORS_ORIGINS (comma separated); empty disables CORS.

    "*" is refused in prod mode and collapses the list to ["*"] elsewhere.
    """
    origins = [o.strip() for o in env_str("VESTMINT_CORS_ORIGINS").split(",") if o.strip()]
    if "*" not in origins:
        return origins
    if mode == "prod":
        raise RuntimeError("VESTMINT_CORS_ORIGINS='*' is not allowed when VESTMINT_MODE=prod; list explicit origins")
    return ["*"]


def create_app(*, boot_runtime: bool = True) -> FastAPI:
    """Build the API app.

    With boot_runtime=False no executor is attached; callers (tests) set
    app.state.executor themselves and routes answer 500 not_ready until then.
    """
    configure_structured_logging()
    mode = node_mode()
    origins = cors_origins(mode)

    @asynccontextmanager
    async def _lifespan(app: FastAPI):
        ex = getattr(app.state, "executor", None)
        log_event(log, "api_start", mode=mode, version=__version__, chain_id=getattr(ex, "chain_id", None))
        yield
        log_event(log, "api_stop", mode=mode)

    docs = {} if mode != "prod" else {"docs_url": None, "redoc_url": None, "openapi_url": None}
    app = FastAPI(title="vestmint node API", version=__version__, lifespan=_lifespan, **docs)
    app.state.executor = build_executor() if boot_runtime else None
    app.add_exception_handler(ApiError, api_error_handler)

    # Starlette runs the last-added middleware first: logging wraps CORS wraps
    # the size cap wraps the rate limiter.
    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(RequestSizeLimitMiddleware)
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=origins != ["*"],
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Content-Type", "X-Request-Id"],
        )
    app.add_middleware(RequestLogMiddleware)

    app.include_router(public_router)
    return app
