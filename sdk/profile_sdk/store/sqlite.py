"""
SQLite-backed pending mutation store.

Keeps the in-memory merge policy and writes a snapshot of every queue to a
local SQLite file on each persist(), so buffered mutations survive a process
restart. The file is read back when the store is opened.

Table schema:
    pending_mutations:
        - action TEXT PRIMARY KEY (wire action key, e.g. "$set")
        - payload_json TEXT (queue contents)
        - updated_at INTEGER (Unix ms)

Invariants:
    - One file per client installation
    - A persist() rewrites every queue in a single transaction
    - Values are stored in their wire JSON form (dates as strings, unknown
      types via str())
"""

from __future__ import annotations

import json
import logging
import sqlite3
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from ..codec import json_encode
from ..errors import StoreError
from .memory import InMemoryPendingStore

logger = logging.getLogger(__name__)


class SqlitePendingStore(InMemoryPendingStore):
    """Pending mutation store persisted to a SQLite file.

    Example:
        >>> store = SqlitePendingStore("/tmp/profile-queue.db")
        >>> store.enqueue(ActionKind.SET, {"plan": "pro"})
        >>> SqlitePendingStore("/tmp/profile-queue.db").current_queue_for(ActionKind.SET)
        {'plan': 'pro'}
    """

    def __init__(self, path: str | Path, busy_timeout_ms: int = 5000) -> None:
        """Open (or create) the store.

        Args:
            path: SQLite database file
            busy_timeout_ms: SQLite busy timeout

        Raises:
            StoreError: If the file cannot be opened or read
        """
        super().__init__()
        self.path = Path(path)
        self.busy_timeout_ms = busy_timeout_ms

        with self._get_connection() as conn:
            self._create_schema(conn)
            self.load_snapshot(self._read_rows(conn))

        logger.info(
            "Opened pending mutation store",
            extra={"path": str(self.path), "pending": self.pending_count()},
        )

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        """Open a connection to the store file.

        Raises:
            StoreError: On any SQLite failure
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(
                str(self.path),
                timeout=self.busy_timeout_ms / 1000.0,
                isolation_level=None,  # Autocommit by default, explicit transactions
            )
        except (OSError, sqlite3.Error) as e:
            raise StoreError(f"Failed to open pending store: {e}", path=str(self.path)) from e

        try:
            conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
            yield conn
        except sqlite3.Error as e:
            raise StoreError(f"Pending store I/O failed: {e}", path=str(self.path)) from e
        finally:
            conn.close()

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS pending_mutations (
                action TEXT PRIMARY KEY,
                payload_json TEXT NOT NULL,
                updated_at INTEGER NOT NULL
            );
        """)

    def _read_rows(self, conn: sqlite3.Connection) -> dict[str, Any]:
        data: dict[str, Any] = {}
        for action, payload_json in conn.execute(
            "SELECT action, payload_json FROM pending_mutations"
        ):
            try:
                data[action] = json.loads(payload_json)
            except json.JSONDecodeError as e:
                raise StoreError(
                    f"Corrupt queue for {action}: {e}", path=str(self.path)
                ) from e
        return data

    def _save(self) -> None:
        now = int(time.time() * 1000)
        try:
            rows = [
                (action, json_encode(queue), now)
                for action, queue in self.snapshot().items()
            ]
        except (TypeError, ValueError, RecursionError) as e:
            raise StoreError(f"Cannot serialize pending queue: {e}", path=str(self.path)) from e

        with self._get_connection() as conn:
            conn.execute("BEGIN")
            try:
                conn.executemany(
                    """
                    INSERT OR REPLACE INTO pending_mutations (action, payload_json, updated_at)
                    VALUES (?, ?, ?)
                    """,
                    rows,
                )
                conn.execute("COMMIT")
            except sqlite3.Error:
                conn.execute("ROLLBACK")
                raise
