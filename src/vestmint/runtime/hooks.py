# src/vestmint/runtime/hooks.py
from __future__ import annotations

"""Listener registry handed to appliers for the external ledger calls.

Fungible transfer listeners fire after a claim's mint; NFT mint listeners fire
after a mint has committed its issued counters. Both receive the live working
state, so they observe exactly what a re-entrant caller would.
"""

from dataclasses import dataclass, field
from typing import List

from vestmint.ledger.fungible import TransferListener
from vestmint.ledger.nft import MintListener


@dataclass
class ApplyHooks:
    on_fungible_transfer: List[TransferListener] = field(default_factory=list)
    on_nft_minted: List[MintListener] = field(default_factory=list)


__all__ = ["ApplyHooks"]
