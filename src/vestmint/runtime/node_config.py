# src/vestmint/runtime/node_config.py
from __future__ import annotations

import json
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

from vestmint.env import env_str

Json = Dict[str, Any]


@dataclass(frozen=True)
class NodeConfig:
    chain_id: str
    mode: str  # "dev" | "testnet" | "prod"

    # One SQLite file holds state, receipts and events.
    db_path: str
    # Genesis JSON; empty means an empty ledger with no owner.
    genesis_path: str

    api_host: str
    api_port: int

    log_level: str


_MODES = ("dev", "testnet", "prod")
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Field -> environment variable consulted when no config file is given.
_ENV_VARS: Dict[str, str] = {
    "chain_id": "VESTMINT_CHAIN_ID",
    "mode": "VESTMINT_MODE",
    "db_path": "VESTMINT_DB_PATH",
    "genesis_path": "VESTMINT_GENESIS_PATH",
    "api_host": "VESTMINT_API_HOST",
    "api_port": "VESTMINT_API_PORT",
    "log_level": "VESTMINT_LOG_LEVEL",
}


def default_node_config() -> NodeConfig:
    return NodeConfig(
        chain_id="vestmint-dev",
        mode="prod",
        db_path="./data/vestmint.db",
        genesis_path="",
        api_host="127.0.0.1",
        api_port=8000,
        log_level="INFO",
    )


def _coerce(name: str, value: Any, fallback: Any) -> Any:
    """Best-effort conversion of a raw file/env value; blanks keep the fallback."""
    if value is None or isinstance(value, bool):
        return fallback
    if name == "api_port":
        try:
            return int(value)
        except (TypeError, ValueError):
            return fallback
    s = str(value).strip()
    if not s:
        return fallback
    if name == "mode":
        return s.lower()
    if name == "log_level":
        return s.upper()
    return s


def _overlay(base: NodeConfig, raw: Json) -> NodeConfig:
    changes = {f.name: _coerce(f.name, raw.get(f.name), getattr(base, f.name)) for f in fields(NodeConfig)}
    return replace(base, **changes)


def validate_node_config(cfg: NodeConfig) -> None:
    """Raise ValueError on the first operator mistake found."""
    if not isinstance(cfg.chain_id, str) or not cfg.chain_id.strip():
        raise ValueError("chain_id must be a non-empty string")
    if str(cfg.mode or "").strip().lower() not in _MODES:
        raise ValueError(f"mode must be one of {list(_MODES)}; got: {cfg.mode!r}")
    if not 0 < int(cfg.api_port) <= 65535:
        raise ValueError(f"api_port must be 1..65535; got: {cfg.api_port}")
    if not isinstance(cfg.db_path, str) or not cfg.db_path.strip():
        raise ValueError("db_path must be a non-empty string")
    if cfg.genesis_path and not Path(cfg.genesis_path).is_file():
        raise ValueError(f"genesis_path does not exist or is not a file: {cfg.genesis_path!r}")
    if str(cfg.log_level).strip().upper() not in _LOG_LEVELS:
        raise ValueError(f"log_level must be one of {list(_LOG_LEVELS)}; got: {cfg.log_level!r}")


def read_node_config_file(path: str) -> NodeConfig:
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError("node config must be a JSON object")
    cfg = _overlay(default_node_config(), raw)
    validate_node_config(cfg)
    return cfg


def load_node_config(*, config_path: Optional[str] = None) -> NodeConfig:
    """Config file (argument or VESTMINT_CONFIG_PATH) if any, else defaults plus env.

    A config file is taken as a whole; per-field env vars do not override it.
    """
    p = config_path or env_str("VESTMINT_CONFIG_PATH")
    if p:
        return read_node_config_file(p)

    cfg = _overlay(default_node_config(), {name: env_str(var) for name, var in _ENV_VARS.items()})
    validate_node_config(cfg)
    return cfg
