# src/vestmint/__init__.py
"""vestmint: vesting/claim engine and authorization-gated NFT mint controller."""

from __future__ import annotations

__version__ = "0.1.0"
