from __future__ import annotations

import copy
import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional

from vestmint.api.structured_logging import log_event, tx_fields
from vestmint.env import env_str
from vestmint.ledger.state import LedgerView
from vestmint.runtime.domain_apply import apply_tx_atomic
from vestmint.runtime.errors import ApplyError
from vestmint.runtime.genesis import GenesisConfig, build_genesis_state, load_genesis
from vestmint.runtime.hooks import ApplyHooks
from vestmint.runtime.node_config import NodeConfig, load_node_config
from vestmint.runtime.sqlite_db import SqliteDB, SqliteLedgerStore
from vestmint.runtime.tx_admission import admit_tx
from vestmint.runtime.tx_admission_types import TxEnvelope

Json = Dict[str, Any]

log = logging.getLogger("vestmint.executor")


def _now_s() -> int:
    return int(time.time())


class ExecutorError(RuntimeError):
    pass


class VestMintExecutor:
    """Single-writer executor: admission, atomic apply, SQLite persistence.

    Every submit_tx() runs under one lock. The tx is applied to a copy of the
    committed state; the copy replaces it (in memory and on disk) only when
    apply succeeds and the standing invariants hold.
    """

    def __init__(
        self,
        *,
        db_path: str,
        chain_id: str,
        genesis: Optional[GenesisConfig] = None,
        now_fn: Optional[Callable[[], int]] = None,
        hooks: Optional[ApplyHooks] = None,
    ) -> None:
        self.chain_id = str(chain_id)
        self.db_path = str(db_path)
        self.hooks = hooks if hooks is not None else ApplyHooks()
        self._now_fn = now_fn or _now_s
        self._lock = threading.Lock()

        self._db = SqliteDB(path=self.db_path)
        self._store = SqliteLedgerStore(db=self._db)

        if self._store.exists():
            self.state = self._store.read()
        else:
            if genesis is None:
                raise ExecutorError("ledger is empty and no genesis config was provided")
            self.state = build_genesis_state(genesis)
            self._store.write(self.state)
            self._store.set_meta("chain_id", str(self.state.get("chain_id") or self.chain_id))
            log_event(log, "genesis_written", chain_id=self.state.get("chain_id"), owner=genesis.owner)

        st_chain_id = str(self.state.get("chain_id") or self._store.get_meta("chain_id") or "").strip()
        if st_chain_id and st_chain_id != self.chain_id:
            raise ExecutorError(f"chain_id mismatch: db={st_chain_id!r} executor={self.chain_id!r}. Refuse to start.")

    # ----------------------------
    # Public accessors
    # ----------------------------

    @property
    def store(self) -> SqliteLedgerStore:
        return self._store

    def read_state(self) -> Json:
        with self._lock:
            return copy.deepcopy(self.state)

    def view(self) -> LedgerView:
        with self._lock:
            return LedgerView.from_ledger(self.state)

    def events(self, *, since: int = 0, limit: int = 100) -> List[Json]:
        return self._store.events_since(since, limit)

    # ----------------------------
    # Tx submission
    # ----------------------------

    def submit_tx(self, env: Json) -> Json:
        if not isinstance(env, dict):
            return {"ok": False, "stage": "admission", "code": "bad_shape", "reason": "envelope_not_object", "details": None}

        with self._lock:
            verdict = admit_tx(env, self.state)
            if not verdict.ok:
                log_event(
                    log,
                    "tx_rejected",
                    level=logging.WARNING,
                    stage="admission",
                    **tx_fields(env),
                    code=verdict.code,
                    reason=verdict.reason,
                )
                return {"ok": False, "stage": "admission", **verdict.rejection.to_json()}

            tx = TxEnvelope.from_json(env)
            work = copy.deepcopy(self.state)
            # Time never moves backwards.
            work["time"] = max(int(self._now_fn()), int(work.get("time", 0)))

            try:
                meta = apply_tx_atomic(work, tx, hooks=self.hooks)
            except ApplyError as e:
                receipt: Json = {
                    "ok": False,
                    "stage": "apply",
                    "tx_type": tx.tx_type,
                    "signer": tx.signer,
                    "nonce": tx.nonce,
                    "time": work["time"],
                    **e.to_json(),
                }
                receipt["seq"] = self._store.append_receipt(receipt)
                log_event(
                    log,
                    "tx_rejected",
                    level=logging.WARNING,
                    stage="apply",
                    **tx_fields(tx),
                    code=e.code,
                    reason=e.reason,
                )
                return receipt

            events = list(meta.pop("events", []) or [])
            work["tx_count"] = int(work.get("tx_count", 0)) + 1
            receipt = {
                "ok": True,
                "tx_type": tx.tx_type,
                "signer": tx.signer,
                "nonce": tx.nonce,
                "time": work["time"],
                "result": meta,
                "events": events,
            }
            receipt["seq"] = self._store.commit(work, receipt, events)
            self.state = work

            log_event(
                log,
                "tx_applied",
                **tx_fields(tx),
                seq=receipt["seq"],
                events=[str(ev.get("event")) for ev in events],
            )
            return receipt

    # ----------------------------
    # Boot
    # ----------------------------

    @classmethod
    def from_config(cls, cfg: NodeConfig) -> "VestMintExecutor":
        genesis: Optional[GenesisConfig] = None
        if cfg.genesis_path:
            genesis = load_genesis(cfg.genesis_path)
        else:
            owner = env_str("VESTMINT_GENESIS_OWNER").lower()
            if owner:
                genesis = GenesisConfig(owner=owner, chain_id=cfg.chain_id)
        return cls(db_path=cfg.db_path, chain_id=cfg.chain_id, genesis=genesis)

    @classmethod
    def from_env(cls) -> "VestMintExecutor":
        return cls.from_config(load_node_config())
