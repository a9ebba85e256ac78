# src/vestmint/ledger/fungible.py
from __future__ import annotations

"""Fungible asset ledger (balances + supply) stored under state["fungible"].

Only what the vesting engine needs: balances, total supply under a hard cap,
and mint. Holder-to-holder transfers and approvals live elsewhere.

Listeners run AFTER the balance update. They receive the live state dict, so a
listener can re-enter apply_tx() the way a receiving contract could.
"""

from typing import Any, Callable, Dict, Iterable, List, Optional

from vestmint.ledger.constants import TOTAL_SUPPLY, ZERO_ADDRESS

Json = Dict[str, Any]
TransferListener = Callable[[Json, str, str, int], None]


class FungibleLedgerError(ValueError):
    pass


def ensure_fungible_root(state: Json) -> Json:
    root = state.get("fungible")
    if not isinstance(root, dict):
        root = {}
        state["fungible"] = root
    root.setdefault("cap", TOTAL_SUPPLY)
    root.setdefault("total_supply", 0)
    bal = root.get("balances")
    if not isinstance(bal, dict):
        root["balances"] = {}
    return root


class FungibleLedger:
    def __init__(
        self,
        state: Json,
        *,
        listeners: Optional[Iterable[TransferListener]] = None,
        events: Optional[List[Json]] = None,
    ) -> None:
        self._state = state
        self._root = ensure_fungible_root(state)
        self._listeners: List[TransferListener] = list(listeners or [])
        self.events: List[Json] = events if events is not None else []

    def balance_of(self, address: str) -> int:
        return int(self._root["balances"].get(str(address), 0))

    def total_supply(self) -> int:
        return int(self._root.get("total_supply", 0))

    def cap(self) -> int:
        return int(self._root.get("cap", TOTAL_SUPPLY))

    def mint(self, to: str, amount: int) -> None:
        to_s = str(to or "").strip()
        if not to_s or to_s == ZERO_ADDRESS:
            raise FungibleLedgerError("mint to the zero address")
        if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
            raise FungibleLedgerError(f"invalid mint amount: {amount!r}")

        supply = self.total_supply()
        if supply + amount > self.cap():
            raise FungibleLedgerError("mint exceeds supply cap")

        bal = self._root["balances"]
        bal[to_s] = int(bal.get(to_s, 0)) + int(amount)
        self._root["total_supply"] = supply + int(amount)

        self.events.append({"event": "Transfer", "asset": "fungible", "from": ZERO_ADDRESS, "to": to_s, "value": int(amount)})

        for fn in list(self._listeners):
            fn(self._state, ZERO_ADDRESS, to_s, int(amount))


__all__ = ["FungibleLedger", "FungibleLedgerError", "TransferListener", "ensure_fungible_root"]
