from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict

import pytest

# Ensure local "src/" takes precedence over any globally-installed "vestmint" package.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

src_str = str(SRC)
if src_str not in sys.path:
    sys.path.insert(0, src_str)

from vestmint.runtime.genesis import GenesisConfig, build_genesis_state  # noqa: E402
from vestmint.testing.sigtools import address_for  # noqa: E402


@pytest.fixture
def owner() -> str:
    return address_for("owner")


@pytest.fixture
def state(owner: str) -> Dict[str, Any]:
    """Fresh genesis state owned by the "owner" test key, clock at t=1000."""
    st = build_genesis_state(GenesisConfig(owner=owner, chain_id="vestmint-test", genesis_time=1000))
    return st
