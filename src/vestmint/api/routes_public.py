# src/vestmint/api/routes_public.py
from __future__ import annotations

from fastapi import APIRouter

from vestmint.api.routes_public_parts.events import router as events_router
from vestmint.api.routes_public_parts.fungible import router as fungible_router
from vestmint.api.routes_public_parts.health import router as health_router
from vestmint.api.routes_public_parts.mint import router as mint_router
from vestmint.api.routes_public_parts.nft import router as nft_router
from vestmint.api.routes_public_parts.state import router as state_router
from vestmint.api.routes_public_parts.tx import router as tx_router
from vestmint.api.routes_public_parts.vesting import router as vesting_router

public_router = APIRouter()

# Versioned API surface
public_router.include_router(health_router, prefix="/v1", tags=["health"])
public_router.include_router(state_router, prefix="/v1", tags=["state"])
public_router.include_router(tx_router, prefix="/v1", tags=["tx"])
public_router.include_router(vesting_router, prefix="/v1", tags=["vesting"])
public_router.include_router(mint_router, prefix="/v1", tags=["mint"])
public_router.include_router(nft_router, prefix="/v1", tags=["nft"])
public_router.include_router(fungible_router, prefix="/v1", tags=["fungible"])
public_router.include_router(events_router, prefix="/v1", tags=["events"])
