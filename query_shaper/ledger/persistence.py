"""
Ledger persistence — durable snapshots of the usage ledger.

Two backing stores share the same contract:
- JsonSnapshotStore writes the learned_patterns.json format.
- SqliteSnapshotStore keeps the same data in normalized tables.

Both raise PersistenceError; callers decide whether that is fatal.
load_ledger() never is: an unreadable snapshot means a cold start.
"""

import json
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Optional, Protocol

from pydantic import ValidationError

from query_shaper.ledger.store import UsageLedger
from query_shaper.models.ledger import LedgerSnapshot

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """Raised when a ledger snapshot cannot be read or written."""
    pass


class SnapshotStore(Protocol):
    """Protocol for snapshot backends."""

    def load(self) -> Optional[LedgerSnapshot]: ...

    def save(self, snapshot: LedgerSnapshot) -> None: ...


class JsonSnapshotStore:
    """Snapshot stored as a single JSON document on disk."""

    def __init__(self, path: str):
        self.path = Path(path)
        self._write_lock = threading.Lock()

    def load(self) -> Optional[LedgerSnapshot]:
        """Load the snapshot, or None if none was ever written."""
        if not self.path.exists():
            return None
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            return LedgerSnapshot.model_validate(raw)
        except (OSError, ValueError, ValidationError) as e:
            raise PersistenceError(f"Cannot read snapshot {self.path}: {e}") from e

    def save(self, snapshot: LedgerSnapshot) -> None:
        """Write the snapshot atomically (temp file + rename)."""
        payload = json.dumps(snapshot.to_wire(), indent=2, sort_keys=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with self._write_lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                tmp.write_text(payload, encoding="utf-8")
                tmp.replace(self.path)
            except OSError as e:
                raise PersistenceError(f"Cannot write snapshot {self.path}: {e}") from e


class SqliteSnapshotStore:
    """
    Snapshot stored in SQLite.
    Each save replaces the stored ledger inside a single transaction.
    """

    def __init__(self, db_path: str = ":memory:"):
        self.db_path = db_path
        self._lock = threading.Lock()
        try:
            self._conn = sqlite3.connect(db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._init_schema()
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot open snapshot database {db_path}: {e}") from e

    def _init_schema(self) -> None:
        """Create the ledger tables if they don't exist."""
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS observation_counts (
                surface TEXT NOT NULL,
                operation TEXT NOT NULL,
                observation_count INTEGER NOT NULL,
                PRIMARY KEY (surface, operation)
            )
        """)
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS field_counts (
                surface TEXT NOT NULL,
                operation TEXT NOT NULL,
                path TEXT NOT NULL,
                field_count INTEGER NOT NULL,
                PRIMARY KEY (surface, operation, path)
            )
        """)
        self._conn.commit()

    def load(self) -> Optional[LedgerSnapshot]:
        """Load the stored ledger, or None if the tables are empty."""
        try:
            with self._lock:
                count_rows = self._conn.execute(
                    "SELECT surface, operation, observation_count FROM observation_counts"
                ).fetchall()
                field_rows = self._conn.execute(
                    "SELECT surface, operation, path, field_count FROM field_counts"
                ).fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot read snapshot database {self.db_path}: {e}") from e

        if not count_rows and not field_rows:
            return None

        snapshot = LedgerSnapshot()
        for row in count_rows:
            snapshot.screen_request_counts.setdefault(row["surface"], {})[
                row["operation"]
            ] = row["observation_count"]
        for row in field_rows:
            snapshot.screen_patterns.setdefault(row["surface"], {}).setdefault(
                row["operation"], {}
            )[row["path"]] = row["field_count"]
        return snapshot

    def save(self, snapshot: LedgerSnapshot) -> None:
        """Replace the stored ledger with ``snapshot``."""
        counts = [
            (surface, operation, count)
            for surface, ops in snapshot.screen_request_counts.items()
            for operation, count in ops.items()
        ]
        fields = [
            (surface, operation, path, count)
            for surface, ops in snapshot.screen_patterns.items()
            for operation, paths in ops.items()
            for path, count in paths.items()
        ]
        try:
            with self._lock, self._conn:
                self._conn.execute("DELETE FROM observation_counts")
                self._conn.execute("DELETE FROM field_counts")
                self._conn.executemany(
                    "INSERT INTO observation_counts (surface, operation, observation_count) "
                    "VALUES (?, ?, ?)",
                    counts,
                )
                self._conn.executemany(
                    "INSERT INTO field_counts (surface, operation, path, field_count) "
                    "VALUES (?, ?, ?, ?)",
                    fields,
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot write snapshot database {self.db_path}: {e}") from e

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()


def open_snapshot_store(path: Optional[str]) -> Optional[SnapshotStore]:
    """Pick a snapshot store for ``path``: SQLite for .db/.sqlite files, JSON otherwise."""
    if not path:
        return None
    if Path(path).suffix.lower() in (".db", ".sqlite", ".sqlite3"):
        return SqliteSnapshotStore(path)
    return JsonSnapshotStore(path)


def load_ledger(store: Optional[SnapshotStore]) -> UsageLedger:
    """Restore the ledger from ``store``; any failure means starting empty."""
    if store is None:
        return UsageLedger()

    try:
        snapshot = store.load()
    except PersistenceError as e:
        logger.warning("Ledger snapshot unreadable, starting fresh: %s", e)
        return UsageLedger()

    if snapshot is None:
        logger.info("No ledger snapshot found, starting a fresh learning session")
        return UsageLedger()

    ledger = UsageLedger.from_snapshot(snapshot)
    logger.info("Ledger restored from snapshot: %d entries", ledger.count())
    return ledger
