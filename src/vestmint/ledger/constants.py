# src/vestmint/ledger/constants.py
from __future__ import annotations

"""Genesis monetary and collection constants.

Fungible asset:
- 18 decimals
- Fixed supply cap: 5,000,000,000 tokens
- Locked pools (share of the cap): private 16%, adviser 2%, team 15%
- The remainder is minted to the owner at genesis; locked pools are minted on claim

Non-fungible asset:
- 5 token types (indices 0..4)
"""

from typing import Dict, Tuple

# Fixed-point percentages: 10_000 == 100% (basis points)
PRECISION: int = 10_000
ONE_HUNDRED_PERCENT: int = PRECISION

TOKEN_DECIMALS: int = 18
TOKEN_UNIT: int = 10**TOKEN_DECIMALS

TOTAL_SUPPLY_TOKENS: int = 5_000_000_000
TOTAL_SUPPLY: int = TOTAL_SUPPLY_TOKENS * TOKEN_UNIT

POOL_PRIVATE: str = "private"
POOL_ADVISER: str = "adviser"
POOL_TEAM: str = "team"
POOLS: Tuple[str, ...] = (POOL_PRIVATE, POOL_ADVISER, POOL_TEAM)

# Whole-number percent of TOTAL_SUPPLY locked per pool.
POOL_LOCK_PERCENT: Dict[str, int] = {
    POOL_PRIVATE: 16,
    POOL_ADVISER: 2,
    POOL_TEAM: 15,
}

NFT_TYPE_COUNT: int = 5
NFT_NAME: str = "AiWatchNFT"
NFT_SYMBOL: str = "AiWatch"

# Mint/burn sentinel used as the "from" side of creation events.
ZERO_ADDRESS: str = "0x" + "00" * 20
