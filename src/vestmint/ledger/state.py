from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from vestmint.ledger.fungible import FungibleLedger
from vestmint.ledger.nft import NftLedger, NftLedgerError
from vestmint.runtime.apply import minting, vesting
from vestmint.runtime.errors import ApplyError

Json = Dict[str, Any]


@dataclass(frozen=True)
class LedgerView:
    """
    Immutable read-only view over a committed state snapshot.

    Built from a deep copy, so queries never observe a later commit and can
    never mutate the live state.
    """

    state: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_ledger(cls, state: Dict[str, Any]) -> "LedgerView":
        return cls(state=copy.deepcopy(state))

    @property
    def now(self) -> int:
        return int(self.state.get("time", 0) or 0)

    @property
    def params(self) -> Json:
        p = self.state.get("params")
        return p if isinstance(p, dict) else {}

    @property
    def owner(self) -> str:
        return str(self.params.get("owner") or "")

    def get_nonce(self, account_id: str) -> int:
        acct = (self.state.get("accounts") or {}).get(str(account_id).lower())
        return int(acct.get("nonce", 0)) if isinstance(acct, dict) else 0

    # -- vesting --------------------------------------------------------------

    def pool_summary(self, pool: str) -> Json:
        return {
            "pool": pool,
            "total_locked": vesting.total_locked(self.state, pool),
            "total_percent": vesting.total_allocated_percent(self.state, pool),
            "schedule": vesting.schedule_of(self.state, pool),
        }

    def beneficiary(self, pool: str, address: str, now: Optional[int] = None) -> Json:
        t = self.now if now is None else int(now)
        return {
            "pool": pool,
            "address": address.lower(),
            "allocation": vesting.allocation_of(self.state, pool, address),
            "locked_funds": vesting.locked_funds_of(self.state, pool, address),
            "claimed": vesting.claimed_of(self.state, pool, address),
            "claimable": vesting.claimable_of(self.state, pool, address, t),
            "now": t,
        }

    # -- minting --------------------------------------------------------------

    def authorization(self, delegate: str) -> Optional[Json]:
        return minting.authorization_of(self.state, delegate)

    def _nft(self) -> NftLedger:
        # NftLedger fills in missing roots; work on a private copy.
        return NftLedger(copy.deepcopy(self.state))

    def token(self, token_id: int) -> Json:
        nft = self._nft()
        try:
            uri = nft.token_uri(token_id)
        except NftLedgerError as e:
            raise ApplyError("not_found", "token_not_minted", {"token_id": token_id}) from e
        return {
            "token_id": int(token_id),
            "owner": nft.owner_of(token_id),
            "type_id": nft.type_of(token_id),
            "uri": uri,
        }

    def token_uri(self, token_id: int) -> str:
        return str(self.token(token_id)["uri"])

    def nft_balance_of(self, address: str) -> int:
        return self._nft().balance_of(address.lower())

    def collection(self) -> Json:
        nft = self._nft()
        return {"name": nft.name, "symbol": nft.symbol, "base_uri": nft.base_uri}

    # -- fungible -------------------------------------------------------------

    def fungible_supply(self) -> Json:
        f = FungibleLedger(copy.deepcopy(self.state))
        return {"total_supply": f.total_supply(), "cap": f.cap()}

    def fungible_balance_of(self, address: str) -> int:
        return FungibleLedger(copy.deepcopy(self.state)).balance_of(address.lower())
