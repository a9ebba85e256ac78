# src/vestmint/ledger/nft.py
from __future__ import annotations

"""Non-fungible asset ledger stored under state["nft"].

Token ids are ints; they are stored under their decimal string because the
state must stay JSON-serializable.

create() only writes the record. notify_minted() runs the mint listeners and is
called by the mint controller once all of its own counters are committed.
"""

from typing import Any, Callable, Dict, Iterable, List, Optional

from vestmint.ledger.constants import NFT_NAME, NFT_SYMBOL, ZERO_ADDRESS

Json = Dict[str, Any]
MintListener = Callable[[Json, str, int, int], None]


class NftLedgerError(ValueError):
    pass


def ensure_nft_root(state: Json) -> Json:
    root = state.get("nft")
    if not isinstance(root, dict):
        root = {}
        state["nft"] = root
    root.setdefault("name", NFT_NAME)
    root.setdefault("symbol", NFT_SYMBOL)
    root.setdefault("base_uri", "")
    for k in ("tokens", "balances"):
        if not isinstance(root.get(k), dict):
            root[k] = {}
    return root


def _token_key(token_id: int) -> str:
    if isinstance(token_id, bool) or not isinstance(token_id, int) or token_id < 0:
        raise NftLedgerError(f"invalid token id: {token_id!r}")
    return str(token_id)


class NftLedger:
    def __init__(
        self,
        state: Json,
        *,
        listeners: Optional[Iterable[MintListener]] = None,
        events: Optional[List[Json]] = None,
    ) -> None:
        self._state = state
        self._root = ensure_nft_root(state)
        self._listeners: List[MintListener] = list(listeners or [])
        self.events: List[Json] = events if events is not None else []

    @property
    def name(self) -> str:
        return str(self._root.get("name") or "")

    @property
    def symbol(self) -> str:
        return str(self._root.get("symbol") or "")

    @property
    def base_uri(self) -> str:
        return str(self._root.get("base_uri") or "")

    def set_base_uri(self, url: str) -> None:
        self._root["base_uri"] = str(url or "")

    def exists(self, token_id: int) -> bool:
        return _token_key(token_id) in self._root["tokens"]

    def owner_of(self, token_id: int) -> Optional[str]:
        rec = self._root["tokens"].get(_token_key(token_id))
        return str(rec["owner"]) if isinstance(rec, dict) else None

    def type_of(self, token_id: int) -> Optional[int]:
        rec = self._root["tokens"].get(_token_key(token_id))
        return int(rec["type"]) if isinstance(rec, dict) else None

    def balance_of(self, address: str) -> int:
        return int(self._root["balances"].get(str(address), 0))

    def token_uri(self, token_id: int) -> str:
        if not self.exists(token_id):
            raise NftLedgerError("token not minted")
        base = self.base_uri
        if not base:
            return ""
        return base + str(int(token_id))

    def create(self, to: str, token_id: int, type_id: int) -> None:
        key = _token_key(token_id)
        to_s = str(to or "").strip()
        if not to_s or to_s == ZERO_ADDRESS:
            raise NftLedgerError("mint to the zero address")
        if key in self._root["tokens"]:
            raise NftLedgerError("token already minted")

        self._root["tokens"][key] = {"owner": to_s, "type": int(type_id)}
        bal = self._root["balances"]
        bal[to_s] = int(bal.get(to_s, 0)) + 1

        self.events.append({"event": "Transfer", "asset": "nft", "from": ZERO_ADDRESS, "to": to_s, "token_id": int(token_id)})

    def notify_minted(self, to: str, token_id: int, type_id: int) -> None:
        for fn in list(self._listeners):
            fn(self._state, str(to), int(token_id), int(type_id))


__all__ = ["MintListener", "NftLedger", "NftLedgerError", "ensure_nft_root"]
