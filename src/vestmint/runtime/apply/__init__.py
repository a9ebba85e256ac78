# src/vestmint/runtime/apply/__init__.py
"""Per-domain appliers: vesting (allocations, schedules, claims), minting
(authorizations and NFT mints) and ownership. domain_dispatch routes each
tx type to exactly one of them.
"""

from __future__ import annotations

__all__ = ["minting", "ownership", "vesting"]
