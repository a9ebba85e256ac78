# src/vestmint/runtime/genesis.py
from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

from vestmint.ledger.constants import NFT_NAME, NFT_SYMBOL, POOL_LOCK_PERCENT, POOLS, PRECISION, TOTAL_SUPPLY
from vestmint.ledger.fungible import FungibleLedger
from vestmint.ledger.nft import ensure_nft_root
from vestmint.runtime.state_invariants import check_invariants

Json = Dict[str, Any]


@dataclass(frozen=True)
class GenesisConfig:
    owner: str
    chain_id: str = "vestmint-dev"
    precision: int = PRECISION
    require_signatures: bool = True
    genesis_time: int = 0
    total_supply: int = TOTAL_SUPPLY
    pool_lock_percent: Dict[str, int] = field(default_factory=lambda: dict(POOL_LOCK_PERCENT))
    nft_name: str = NFT_NAME
    nft_symbol: str = NFT_SYMBOL


def _uint(obj: Json, key: str, default: int) -> int:
    v = obj.get(key, default)
    if isinstance(v, bool) or not isinstance(v, (int, str)):
        raise ValueError(f"genesis {key} must be an integer")
    n = int(v)
    if n < 0:
        raise ValueError(f"genesis {key} must be >= 0")
    return n


def load_genesis(path: str) -> GenesisConfig:
    """Load GenesisConfig from a JSON file.

    Shape:
      {"owner": "0x..", "chain_id": "...", "precision": 10000,
       "require_signatures": true, "genesis_time": 0,
       "total_supply": "5000000000000000000000000000",
       "pool_lock_percent": {"private": 16, "adviser": 2, "team": 15},
       "nft_name": "AiWatchNFT", "nft_symbol": "AiWatch"}
    """
    p = Path(path)
    if not p.is_file():
        raise FileNotFoundError(str(p))

    with p.open("r", encoding="utf-8") as f:
        obj = json.load(f)

    if not isinstance(obj, dict):
        raise ValueError("genesis config must be a JSON object")

    owner = str(obj.get("owner") or "").strip().lower()
    if not owner:
        raise ValueError("genesis owner is required")

    locks = obj.get("pool_lock_percent")
    if locks is None:
        locks = dict(POOL_LOCK_PERCENT)
    if not isinstance(locks, dict):
        raise ValueError("genesis pool_lock_percent must be an object")

    return GenesisConfig(
        owner=owner,
        chain_id=str(obj.get("chain_id") or "vestmint-dev").strip(),
        precision=_uint(obj, "precision", PRECISION),
        require_signatures=bool(obj.get("require_signatures", True)),
        genesis_time=_uint(obj, "genesis_time", 0),
        total_supply=_uint(obj, "total_supply", TOTAL_SUPPLY),
        pool_lock_percent={str(k).lower(): _uint(locks, k, 0) for k in locks},
        nft_name=str(obj.get("nft_name") or NFT_NAME).strip(),
        nft_symbol=str(obj.get("nft_symbol") or NFT_SYMBOL).strip(),
    )


def build_genesis_state(cfg: GenesisConfig) -> Json:
    """Build the initial ledger state.

    Each pool locks `total_supply * pct // 100`. Locked amounts are not minted
    up front: claims mint them. The remainder is minted to the owner.
    """
    if not cfg.owner.strip():
        raise ValueError("genesis owner is required")
    if cfg.precision <= 0:
        raise ValueError("precision must be > 0")
    unknown = set(cfg.pool_lock_percent) - set(POOLS)
    if unknown:
        raise ValueError(f"unknown pools in pool_lock_percent: {sorted(unknown)}")
    if sum(cfg.pool_lock_percent.values()) > 100:
        raise ValueError("pool_lock_percent must not exceed 100 in total")
    if not cfg.nft_name.strip() or not cfg.nft_symbol.strip():
        raise ValueError("nft_name and nft_symbol must be non-empty")

    owner = cfg.owner.strip().lower()
    state: Json = {
        "chain_id": cfg.chain_id,
        "time": int(cfg.genesis_time),
        "params": {
            "owner": owner,
            "precision": int(cfg.precision),
            "require_signatures": bool(cfg.require_signatures),
            "genesis_time": int(cfg.genesis_time),
        },
        "accounts": {},
        "fungible": {"cap": int(cfg.total_supply), "total_supply": 0, "balances": {}},
        "vesting": {"pools": {}},
        "mint_auth": {},
    }

    locked_sum = 0
    for name in POOLS:
        locked = int(cfg.total_supply) * int(cfg.pool_lock_percent.get(name, 0)) // 100
        locked_sum += locked
        state["vesting"]["pools"][name] = {
            "total_locked": locked,
            "total_percent": 0,
            "allocations": {},
            "claimed": {},
            "schedule": {"start": 0, "duration": 0},
        }

    remainder = int(cfg.total_supply) - locked_sum
    if remainder > 0:
        FungibleLedger(state).mint(owner, remainder)

    nft = ensure_nft_root(state)
    nft["name"] = cfg.nft_name
    nft["symbol"] = cfg.nft_symbol
    check_invariants(state)
    return state


__all__ = ["GenesisConfig", "build_genesis_state", "load_genesis"]
