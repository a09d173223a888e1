"""SQLite store for the incremental scan state."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime
from pathlib import Path

from loguru import logger

from gmail_sender_tally.errors import CorruptState, StateConflict
from gmail_sender_tally.models import ScanState

_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS scan_state (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    version INTEGER NOT NULL,
    processed_ids_json TEXT NOT NULL,
    sender_counts_json TEXT NOT NULL,
    headerless_count INTEGER NOT NULL DEFAULT 0,
    page_cursor TEXT,
    started INTEGER NOT NULL,
    done INTEGER NOT NULL,
    updated_at TEXT NOT NULL
);
"""


def _state_from_row(row: sqlite3.Row) -> ScanState:
    """Decode and validate a persisted record."""
    try:
        processed_ids = json.loads(row["processed_ids_json"])
        sender_counts = json.loads(row["sender_counts_json"])
    except (TypeError, ValueError) as exc:
        raise CorruptState(f"Scan state is not valid JSON: {exc}") from exc

    if not isinstance(processed_ids, list) or not all(isinstance(i, str) for i in processed_ids):
        raise CorruptState("Scan state processed ids must be a list of strings")
    if len(set(processed_ids)) != len(processed_ids):
        raise CorruptState("Scan state contains duplicate message ids")
    if not isinstance(sender_counts, dict) or not all(
        isinstance(c, int) and not isinstance(c, bool) and c >= 0 for c in sender_counts.values()
    ):
        raise CorruptState("Scan state sender counts must map senders to non-negative integers")

    headerless = row["headerless_count"]
    if sum(sender_counts.values()) + headerless != len(processed_ids):
        raise CorruptState(
            f"Scan state tally ({sum(sender_counts.values())} + {headerless} headerless) "
            f"does not match {len(processed_ids)} processed messages"
        )

    return ScanState(
        processed_ids=processed_ids,
        sender_counts=sender_counts,
        headerless_count=headerless,
        page_cursor=row["page_cursor"],
        started=bool(row["started"]),
        done=bool(row["done"]),
        version=row["version"],
    )


class StateStore:
    """Persistent single-record store for ``ScanState``.

    Every ``save`` replaces the whole record in one transaction and checks
    the record version, so a writer holding a stale state gets
    ``StateConflict`` instead of overwriting newer progress.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        try:
            self._create_tables()
        except sqlite3.DatabaseError as exc:
            self._conn.close()
            raise CorruptState(f"Cannot open scan state database {self.db_path}: {exc}") from exc

    def _create_tables(self) -> None:
        self._conn.executescript(_CREATE_TABLES_SQL)

    # --- public API ---

    def load(self) -> ScanState:
        """Load the persisted state, or a fresh one if nothing was saved yet."""
        try:
            row = self._conn.execute("SELECT * FROM scan_state WHERE id = 1").fetchone()
        except sqlite3.DatabaseError as exc:
            raise CorruptState(f"Cannot read scan state: {exc}") from exc

        if row is None:
            return ScanState()
        return _state_from_row(row)

    def save(self, state: ScanState) -> None:
        """Replace the persisted record with ``state`` and bump its version."""
        params = (
            state.version + 1,
            json.dumps(state.processed_ids),
            json.dumps(state.sender_counts),
            state.headerless_count,
            state.page_cursor,
            int(state.started),
            int(state.done),
            datetime.now().isoformat(),
        )
        with self._conn:
            if state.version == 0:
                try:
                    self._conn.execute(
                        "INSERT INTO scan_state (id, version, processed_ids_json, sender_counts_json, "
                        "headerless_count, page_cursor, started, done, updated_at) "
                        "VALUES (1, ?, ?, ?, ?, ?, ?, ?, ?)",
                        params,
                    )
                except sqlite3.IntegrityError as exc:
                    raise StateConflict("Scan state was created by another writer") from exc
            else:
                cursor = self._conn.execute(
                    "UPDATE scan_state SET version = ?, processed_ids_json = ?, sender_counts_json = ?, "
                    "headerless_count = ?, page_cursor = ?, started = ?, done = ?, updated_at = ? "
                    "WHERE id = 1 AND version = ?",
                    (*params, state.version),
                )
                if cursor.rowcount != 1:
                    raise StateConflict(
                        f"Scan state changed since revision {state.version} was loaded"
                    )
        state.version += 1
        logger.debug(f"Saved scan state revision {state.version}")

    def reset(self) -> None:
        """Delete the persisted state. The next scan starts from scratch."""
        with self._conn:
            self._conn.execute("DELETE FROM scan_state")
        logger.info("Scan state reset")

    def get_info(self) -> dict:
        """Return store statistics without validating the tally."""
        file_size = self.db_path.stat().st_size if self.db_path.exists() else 0

        row = self._conn.execute(
            "SELECT updated_at, version, done FROM scan_state WHERE id = 1"
        ).fetchone()

        return {
            "db_file_size": file_size,
            "updated_at": row["updated_at"] if row else None,
            "version": row["version"] if row else 0,
            "done": bool(row["done"]) if row else False,
        }

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    # --- context manager ---

    def __enter__(self) -> StateStore:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        self.close()
