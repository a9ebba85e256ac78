# src/vestmint/runtime/sqlite_db.py
from __future__ import annotations

"""SQLite persistence for the ledger.

One WAL-mode file holds the state snapshot (a single row), the receipt log
and the event log. Connections are opened per operation and never shared
across threads.
"""

import json
import random
import sqlite3
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional

from vestmint.env import env_int, env_str, node_mode

Json = Dict[str, Any]

SCHEMA_VERSION = 1

_SCHEMA = (
    "CREATE TABLE IF NOT EXISTS meta (key TEXT PRIMARY KEY, value TEXT NOT NULL);",
    """
    CREATE TABLE IF NOT EXISTS ledger_state (
      id INTEGER PRIMARY KEY CHECK (id = 1),
      tx_count INTEGER NOT NULL,
      state_json TEXT NOT NULL,
      updated_ts_ms INTEGER NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS receipts (
      seq INTEGER PRIMARY KEY AUTOINCREMENT,
      tx_type TEXT NOT NULL,
      signer TEXT NOT NULL,
      nonce INTEGER NOT NULL,
      ok INTEGER NOT NULL,
      receipt_json TEXT NOT NULL,
      created_ts_ms INTEGER NOT NULL
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_receipts_signer ON receipts(signer);",
    """
    CREATE TABLE IF NOT EXISTS events (
      seq INTEGER PRIMARY KEY AUTOINCREMENT,
      receipt_seq INTEGER NOT NULL REFERENCES receipts(seq),
      event TEXT NOT NULL,
      event_json TEXT NOT NULL,
      created_ts_ms INTEGER NOT NULL
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_events_event ON events(event);",
)

_SYNC_LEVELS = ("OFF", "NORMAL", "FULL", "EXTRA")


def _now_ms() -> int:
    return int(time.time() * 1000)


def _dumps(obj: Any) -> str:
    # No default=str: a non-JSON value reaching persisted state is a bug and must raise.
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _is_lock_contention(e: sqlite3.OperationalError) -> bool:
    msg = str(e).lower()
    return "database is locked" in msg or "database is busy" in msg


@dataclass(frozen=True)
class SqliteTuning:
    """Connection and writer-retry knobs (VESTMINT_SQLITE_*)."""

    synchronous: str
    connect_timeout_ms: int
    busy_timeout_ms: int
    write_deadline_ms: int
    backoff_base_ms: int
    backoff_max_ms: int

    @classmethod
    def from_env(cls) -> "SqliteTuning":
        # Durability over throughput in prod.
        default_sync = "FULL" if node_mode() == "prod" else "NORMAL"
        sync = env_str("VESTMINT_SQLITE_SYNCHRONOUS", default_sync).upper()
        connect_ms = max(0, env_int("VESTMINT_SQLITE_CONNECT_TIMEOUT_MS", 30_000))
        base_ms = max(1, env_int("VESTMINT_SQLITE_WRITE_BACKOFF_BASE_MS", 5))
        return cls(
            synchronous=sync if sync in _SYNC_LEVELS else default_sync,
            connect_timeout_ms=connect_ms,
            busy_timeout_ms=max(0, env_int("VESTMINT_SQLITE_BUSY_TIMEOUT_MS", connect_ms)),
            write_deadline_ms=max(250, env_int("VESTMINT_SQLITE_WRITE_DEADLINE_MS", 30_000)),
            backoff_base_ms=base_ms,
            backoff_max_ms=max(base_ms, env_int("VESTMINT_SQLITE_WRITE_BACKOFF_MAX_MS", 250)),
        )

    def backoff_s(self, attempt: int) -> float:
        """Exponential backoff with +/-50% jitter."""
        step = min(float(self.backoff_max_ms), self.backoff_base_ms * (2.0 ** min(attempt, 8)))
        return step / 1000.0 * (0.5 + random.random())


class SqliteDB:
    """Connection factory plus a write transaction that rides out writer-lock contention."""

    def __init__(self, *, path: str, tuning: Optional[SqliteTuning] = None) -> None:
        self.path = str(path)
        self.tuning = tuning or SqliteTuning.from_env()

    def _connect(self) -> sqlite3.Connection:
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        t = self.tuning
        # isolation_level=None: BEGIN/COMMIT are issued explicitly by write_tx().
        con = sqlite3.connect(self.path, timeout=t.connect_timeout_ms / 1000.0, isolation_level=None, check_same_thread=False)
        con.row_factory = sqlite3.Row

        row = con.execute("PRAGMA journal_mode=WAL;").fetchone()
        journal = str(row[0]).strip().lower() if row is not None else ""
        if journal and journal != "wal":
            con.close()
            raise RuntimeError(f"sqlite journal_mode is {journal!r}, expected 'wal'")

        for pragma in (f"synchronous={t.synchronous}", "foreign_keys=ON", "temp_store=MEMORY", f"busy_timeout={t.busy_timeout_ms}"):
            con.execute(f"PRAGMA {pragma};")
        return con

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        con = self._connect()
        try:
            yield con
        finally:
            con.close()

    def _retry_locked(self, con: sqlite3.Connection, sql: str, deadline_ms: int) -> None:
        attempt = 0
        while True:
            try:
                con.execute(sql)
                return
            except sqlite3.OperationalError as e:
                if not _is_lock_contention(e) or _now_ms() >= deadline_ms:
                    raise
                time.sleep(self.tuning.backoff_s(attempt))
                attempt += 1

    @contextmanager
    def write_tx(self) -> Iterator[sqlite3.Connection]:
        """BEGIN IMMEDIATE ... COMMIT, retrying lock contention until the write deadline.

        Any exception inside the block rolls back and propagates.
        """
        deadline = _now_ms() + self.tuning.write_deadline_ms
        with self.connection() as con:
            self._retry_locked(con, "BEGIN IMMEDIATE;", deadline)
            try:
                yield con
                self._retry_locked(con, "COMMIT;", deadline)
            except BaseException:
                if con.in_transaction:
                    con.execute("ROLLBACK;")
                raise

    def init_schema(self) -> None:
        with self.write_tx() as con:
            for stmt in _SCHEMA:
                con.execute(stmt)
            row = con.execute("SELECT value FROM meta WHERE key='schema_version';").fetchone()
            if row is None:
                con.execute("INSERT INTO meta(key, value) VALUES('schema_version', ?);", (str(SCHEMA_VERSION),))
                return
            have = str(row["value"])
            if have != str(SCHEMA_VERSION):
                raise RuntimeError(f"sqlite schema_version mismatch: have={have} want={SCHEMA_VERSION}; refusing to open")


def _rows_with_seq(rows: List[sqlite3.Row], column: str, extra: Callable[[sqlite3.Row, Json], None] = lambda r, j: None) -> List[Json]:
    out: List[Json] = []
    for r in rows:
        obj = json.loads(str(r[column]))
        obj["seq"] = int(r["seq"])
        extra(r, obj)
        out.append(obj)
    return out


class SqliteLedgerStore:
    """Snapshot, receipt log and event log over one SqliteDB.

    commit() writes all three in a single transaction, so a crash can never
    leave a snapshot without the receipt and events that produced it.
    """

    def __init__(self, *, db: SqliteDB) -> None:
        self._db = db
        self._db.init_schema()

    # ----------------------------
    # Snapshot
    # ----------------------------

    def exists(self) -> bool:
        with self._db.connection() as con:
            return con.execute("SELECT 1 FROM ledger_state WHERE id=1;").fetchone() is not None

    def read(self) -> Json:
        with self._db.connection() as con:
            row = con.execute("SELECT state_json FROM ledger_state WHERE id=1;").fetchone()
        if row is None:
            raise FileNotFoundError("sqlite ledger_state is missing")
        st = json.loads(str(row["state_json"]))
        if not isinstance(st, dict):
            raise ValueError("ledger_state is not a JSON object")
        return st

    @staticmethod
    def _put_state(con: sqlite3.Connection, st: Json) -> None:
        if not isinstance(st, dict):
            raise ValueError("ledger state must be a dict")
        con.execute(
            "INSERT INTO ledger_state(id, tx_count, state_json, updated_ts_ms) VALUES(1, ?, ?, ?) "
            "ON CONFLICT(id) DO UPDATE SET tx_count=excluded.tx_count, state_json=excluded.state_json, "
            "updated_ts_ms=excluded.updated_ts_ms;",
            (int(st.get("tx_count", 0)), _dumps(st), _now_ms()),
        )

    def write(self, st: Json) -> None:
        with self._db.write_tx() as con:
            self._put_state(con, st)

    # ----------------------------
    # Receipts / events
    # ----------------------------

    @staticmethod
    def _put_receipt(con: sqlite3.Connection, receipt: Json) -> int:
        cur = con.execute(
            "INSERT INTO receipts(tx_type, signer, nonce, ok, receipt_json, created_ts_ms) VALUES(?, ?, ?, ?, ?, ?);",
            (
                str(receipt.get("tx_type") or ""),
                str(receipt.get("signer") or ""),
                int(receipt.get("nonce") or 0),
                int(bool(receipt.get("ok"))),
                _dumps(receipt),
                _now_ms(),
            ),
        )
        return int(cur.lastrowid)

    def commit(self, st: Json, receipt: Json, events: List[Json]) -> int:
        """Persist an applied tx; returns the receipt seq the events hang off."""
        with self._db.write_tx() as con:
            self._put_state(con, st)
            seq = self._put_receipt(con, receipt)
            now = _now_ms()
            con.executemany(
                "INSERT INTO events(receipt_seq, event, event_json, created_ts_ms) VALUES(?, ?, ?, ?);",
                [(seq, str(ev.get("event") or ""), _dumps(ev), now) for ev in events],
            )
            return seq

    def append_receipt(self, receipt: Json) -> int:
        """Log a rejected tx; the snapshot is not touched."""
        with self._db.write_tx() as con:
            return self._put_receipt(con, receipt)

    def events_since(self, since: int = 0, limit: int = 100) -> List[Json]:
        with self._db.connection() as con:
            rows = con.execute(
                "SELECT seq, receipt_seq, event_json FROM events WHERE seq > ? ORDER BY seq ASC LIMIT ?;",
                (int(since), max(1, int(limit))),
            ).fetchall()

        def _receipt_seq(r: sqlite3.Row, ev: Json) -> None:
            ev["receipt_seq"] = int(r["receipt_seq"])

        return _rows_with_seq(rows, "event_json", _receipt_seq)

    def receipts_for(self, signer: str, limit: int = 100) -> List[Json]:
        """Newest first."""
        with self._db.connection() as con:
            rows = con.execute(
                "SELECT seq, receipt_json FROM receipts WHERE signer = ? ORDER BY seq DESC LIMIT ?;",
                (str(signer).lower(), max(1, int(limit))),
            ).fetchall()
        return _rows_with_seq(rows, "receipt_json")

    # ----------------------------
    # Meta
    # ----------------------------

    def get_meta(self, key: str) -> Optional[str]:
        with self._db.connection() as con:
            row = con.execute("SELECT value FROM meta WHERE key=?;", (str(key),)).fetchone()
        return None if row is None else str(row["value"])

    def set_meta(self, key: str, value: str) -> None:
        with self._db.write_tx() as con:
            con.execute(
                "INSERT INTO meta(key, value) VALUES(?, ?) ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
                (str(key), str(value)),
            )
