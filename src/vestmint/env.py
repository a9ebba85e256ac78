# src/vestmint/env.py
from __future__ import annotations

"""Process environment: optional .env loading and typed VESTMINT_* readers.

Every tunable in the node is an environment variable. Readers never raise on
a malformed value; they fall back to the default so a typo cannot take the
node down.
"""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

_LOADED = False

_TRUE = {"1", "true", "yes", "y", "on"}
_FALSE = {"0", "false", "no", "n", "off"}


def env_str(name: str, default: str = "") -> str:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


def env_int(name: str, default: int) -> int:
    try:
        return int(env_str(name, str(int(default))))
    except ValueError:
        return int(default)


def env_flag(name: str, default: bool = False) -> bool:
    raw = env_str(name).lower()
    if raw in _TRUE:
        return True
    if raw in _FALSE:
        return False
    return default


def node_mode() -> str:
    """VESTMINT_MODE, lower-cased; "prod" unless set."""
    return env_str("VESTMINT_MODE", "prod").lower()


def load_dotenv_if_present(dotenv_path: Optional[str] = None) -> bool:
    """Load a .env file once per process, never overriding set variables.

    Path: the argument, else VESTMINT_DOTENV_PATH, else ./.env.
    Returns True only when a file was found and loaded.
    """
    global _LOADED
    if _LOADED:
        return False
    _LOADED = True

    path = Path(dotenv_path or env_str("VESTMINT_DOTENV_PATH", ".env")).expanduser()
    if not path.is_file():
        return False

    load_dotenv(dotenv_path=str(path), override=False)
    return True


def reset_dotenv_loaded_for_tests() -> None:
    global _LOADED
    _LOADED = False
