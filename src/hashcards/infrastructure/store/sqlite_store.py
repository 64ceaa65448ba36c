"""
SQLite review store: infrastructure adapter for the ReviewStore port.

Keeps one row per card fingerprint in a single database file inside the
collection directory.
"""

import logging
import sqlite3
import threading
from collections.abc import Iterator
from datetime import datetime, timedelta
from pathlib import Path

from hashcards.domain.constants import SCHEMA_VERSION, STORE_TIMEOUT
from hashcards.domain.errors import StoreError
from hashcards.domain.models import CardState, ReviewRecord
from hashcards.domain.ports import ReviewStore

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS metadata (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS reviews (
    fingerprint TEXT PRIMARY KEY,
    state TEXT NOT NULL CHECK(state IN ('new','learning','review','relearning')),
    due TEXT NOT NULL,
    interval_us INTEGER NOT NULL CHECK(interval_us >= 0),
    ease REAL NOT NULL CHECK(ease >= 1.3),
    reps INTEGER NOT NULL DEFAULT 0 CHECK(reps >= 0),
    lapses INTEGER NOT NULL DEFAULT 0 CHECK(lapses >= 0),
    last_reviewed TEXT,
    lapsed_interval_us INTEGER
);
"""

_COLUMNS = (
    "fingerprint, state, due, interval_us, ease, reps, lapses, "
    "last_reviewed, lapsed_interval_us"
)

_MICROSECOND = timedelta(microseconds=1)


def _to_us(delta: timedelta | None) -> int | None:
    if delta is None:
        return None
    return delta // _MICROSECOND


def _from_us(value: int | None) -> timedelta | None:
    if value is None:
        return None
    return timedelta(microseconds=value)


def _to_text(instant: datetime | None) -> str | None:
    return instant.isoformat() if instant is not None else None


def _from_text(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value is not None else None


def record_to_row(fingerprint: str, record: ReviewRecord) -> tuple:
    return (
        fingerprint,
        record.state.value,
        _to_text(record.due),
        _to_us(record.interval),
        record.ease,
        record.reps,
        record.lapses,
        _to_text(record.last_reviewed),
        _to_us(record.lapsed_interval),
    )


def row_to_record(row: sqlite3.Row) -> ReviewRecord:
    try:
        return ReviewRecord(
            state=CardState(row["state"]),
            due=_from_text(row["due"]),
            interval=_from_us(row["interval_us"]),
            ease=row["ease"],
            reps=row["reps"],
            lapses=row["lapses"],
            last_reviewed=_from_text(row["last_reviewed"]),
            lapsed_interval=_from_us(row["lapsed_interval_us"]),
        )
    except (TypeError, ValueError) as e:
        raise StoreError(f"corrupt review record {row['fingerprint']}: {e}") from e


class SqliteReviewStore(ReviewStore):
    """
    Review store backed by SQLite in WAL mode.

    One connection is shared by every worker thread; a lock serializes access
    to it. Each write runs in its own transaction with synchronous=FULL, so a
    record is durable once `put` returns.
    """

    def __init__(self, db_path: Path | str):
        self.db_path = db_path
        self._lock = threading.Lock()
        self._conn: sqlite3.Connection | None = None
        try:
            self._conn = self._connect(db_path)
            self._check_schema()
        except sqlite3.Error as e:
            self.close()
            raise StoreError(f"cannot open review database {db_path}: {e}") from e
        except StoreError:
            self.close()
            raise

    @staticmethod
    def _connect(db_path: Path | str) -> sqlite3.Connection:
        in_memory = str(db_path) == ":memory:"
        conn = sqlite3.connect(
            str(db_path), timeout=STORE_TIMEOUT, check_same_thread=False, isolation_level=None
        )
        conn.row_factory = sqlite3.Row
        if not in_memory:
            conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=FULL")
        conn.executescript(SCHEMA)
        return conn

    def _check_schema(self) -> None:
        row = self._conn.execute(
            "SELECT value FROM metadata WHERE key = 'schema_version'"
        ).fetchone()
        if row is None:
            self._conn.execute(
                "INSERT INTO metadata (key, value) VALUES ('schema_version', ?)",
                (str(SCHEMA_VERSION),),
            )
            logger.debug(f"Initialized review database {self.db_path} (v{SCHEMA_VERSION})")
            return

        try:
            version = int(row["value"])
        except ValueError as e:
            raise StoreError(f"unreadable schema version {row['value']!r} in {self.db_path}") from e

        if version > SCHEMA_VERSION:
            raise StoreError(
                f"{self.db_path} uses schema version {version}, but this version of "
                f"hashcards only understands version {SCHEMA_VERSION}. "
                "Upgrade hashcards to open this collection."
            )

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StoreError("review store is closed")
        return self._conn

    def get(self, fingerprint: str) -> ReviewRecord | None:
        try:
            with self._lock:
                row = self.conn.execute(
                    f"SELECT {_COLUMNS} FROM reviews WHERE fingerprint = ?", (fingerprint,)
                ).fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"failed to read record {fingerprint}: {e}") from e
        return row_to_record(row) if row is not None else None

    def _write(self, sql: str, params: tuple) -> None:
        """Run one statement in its own transaction. A failure anywhere,
        COMMIT included, leaves the connection outside any transaction."""
        with self._lock:
            conn = self.conn
            conn.execute("BEGIN IMMEDIATE")
            try:
                conn.execute(sql, params)
                conn.execute("COMMIT")
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise

    def put(self, fingerprint: str, record: ReviewRecord) -> None:
        row = record_to_row(fingerprint, record)
        try:
            self._write(
                f"INSERT OR REPLACE INTO reviews ({_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                row,
            )
        except sqlite3.Error as e:
            raise StoreError(f"failed to write record {fingerprint}: {e}") from e

    def iter_all(self) -> Iterator[tuple[str, ReviewRecord]]:
        try:
            with self._lock:
                rows = self.conn.execute(
                    f"SELECT {_COLUMNS} FROM reviews ORDER BY fingerprint"
                ).fetchall()
        except sqlite3.Error as e:
            raise StoreError(f"failed to read review records: {e}") from e
        for row in rows:
            yield row["fingerprint"], row_to_record(row)

    def delete(self, fingerprint: str) -> None:
        try:
            self._write("DELETE FROM reviews WHERE fingerprint = ?", (fingerprint,))
        except sqlite3.Error as e:
            raise StoreError(f"failed to delete record {fingerprint}: {e}") from e

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
