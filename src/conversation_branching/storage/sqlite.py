"""SQLite branch repository.

Stores branches, messages and merge attempts in a single SQLite database
file using the Python standard library ``sqlite3`` module.

Classes
-------
- SQLiteBranchRepository  — SQLite-backed branch storage
"""
from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from conversation_branching.branching.records import Branch, BranchMessage
from conversation_branching.merge.engine import MergeRecord
from conversation_branching.storage.base import BranchRepository

logger = logging.getLogger(__name__)

_DEFAULT_DB_PATH: Path = Path.home() / ".conversation-branches" / "branches.db"
_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS conversation_branches (
    id               TEXT PRIMARY KEY,
    conversation_id  TEXT NOT NULL,
    parent_branch_id TEXT,
    created_at       TEXT NOT NULL,
    payload          TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_branches_conversation
    ON conversation_branches (conversation_id);
CREATE TABLE IF NOT EXISTS branch_messages (
    id            TEXT PRIMARY KEY,
    branch_id     TEXT NOT NULL REFERENCES conversation_branches (id) ON DELETE CASCADE,
    message_index INTEGER NOT NULL,
    payload       TEXT NOT NULL,
    UNIQUE (branch_id, message_index)
);
CREATE TABLE IF NOT EXISTS branch_merges (
    id               TEXT PRIMARY KEY,
    conversation_id  TEXT NOT NULL,
    source_branch_id TEXT NOT NULL,
    target_branch_id TEXT NOT NULL,
    merged_branch_id TEXT,
    conflict_count   INTEGER NOT NULL DEFAULT 0,
    created_at       TEXT NOT NULL,
    payload          TEXT NOT NULL
);
"""
_UPSERT_BRANCH_SQL = """
INSERT INTO conversation_branches (id, conversation_id, parent_branch_id, created_at, payload)
VALUES (?, ?, ?, ?, ?)
ON CONFLICT(id) DO UPDATE SET
    conversation_id  = excluded.conversation_id,
    parent_branch_id = excluded.parent_branch_id,
    payload          = excluded.payload
"""


class SQLiteBranchRepository(BranchRepository):
    """Persists branches in a local SQLite database.

    Each record is stored as a JSON payload next to the columns needed for
    lookups and ordering.

    Parameters
    ----------
    db_path:
        Path to the SQLite file.  Defaults to
        ``~/.conversation-branches/branches.db``.  The parent directory
        and tables are created automatically on first use.
    """

    def __init__(self, db_path: str | Path | None = None) -> None:
        self._db_path: Path = Path(db_path) if db_path is not None else _DEFAULT_DB_PATH
        self._schema_ready = False

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _get_connection(self) -> sqlite3.Connection:
        """Open a connection; the schema is created on the first one only."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self._db_path))
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys=ON")
        if not self._schema_ready:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.executescript(_SCHEMA_SQL)
            conn.commit()
            self._schema_ready = True
        return conn

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection inside one transaction, then close it."""
        conn = self._get_connection()
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # BranchRepository interface
    # ------------------------------------------------------------------

    def save_branch(self, branch: Branch) -> None:
        with self._connection() as conn:
            conn.execute(
                _UPSERT_BRANCH_SQL,
                (
                    branch.branch_id,
                    branch.conversation_id,
                    branch.parent_branch_id,
                    branch.created_at.isoformat(timespec="microseconds"),
                    branch.model_dump_json(),
                ),
            )
        logger.debug("SQLiteBranchRepository: saved branch %r", branch.branch_id)

    def get_branch(self, branch_id: str) -> Branch:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT payload FROM conversation_branches WHERE id = ?", (branch_id,)
            ).fetchone()
        if row is None:
            raise KeyError(f"Branch {branch_id!r} not found in SQLiteBranchRepository.")
        return Branch.model_validate_json(row["payload"])

    def list_branches(self, conversation_id: str) -> list[Branch]:
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT payload FROM conversation_branches WHERE conversation_id = ? "
                "ORDER BY created_at, rowid",
                (conversation_id,),
            ).fetchall()
        return [Branch.model_validate_json(row["payload"]) for row in rows]

    def delete_branch(self, branch_id: str) -> None:
        with self._connection() as conn:
            conn.execute("DELETE FROM branch_messages WHERE branch_id = ?", (branch_id,))
            deleted = conn.execute(
                "DELETE FROM conversation_branches WHERE id = ?", (branch_id,)
            ).rowcount
        if deleted == 0:
            raise KeyError(f"Branch {branch_id!r} not found in SQLiteBranchRepository.")
        logger.debug("SQLiteBranchRepository: deleted branch %r", branch_id)

    def branch_exists(self, branch_id: str) -> bool:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT 1 FROM conversation_branches WHERE id = ?", (branch_id,)
            ).fetchone()
        return row is not None

    def save_message(self, message: BranchMessage) -> None:
        if not self.branch_exists(message.branch_id):
            raise KeyError(f"Branch {message.branch_id!r} not found in SQLiteBranchRepository.")
        try:
            with self._connection() as conn:
                conn.execute(
                    "INSERT INTO branch_messages (id, branch_id, message_index, payload) "
                    "VALUES (?, ?, ?, ?)",
                    (
                        message.message_id,
                        message.branch_id,
                        message.message_index,
                        message.model_dump_json(),
                    ),
                )
        except sqlite3.IntegrityError as exc:
            raise ValueError(
                f"Branch {message.branch_id!r} already has a message at index "
                f"{message.message_index}."
            ) from exc

    def list_messages(self, branch_id: str) -> list[BranchMessage]:
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT payload FROM branch_messages WHERE branch_id = ? "
                "ORDER BY message_index",
                (branch_id,),
            ).fetchall()
        return [BranchMessage.model_validate_json(row["payload"]) for row in rows]

    def record_merge(self, record: MergeRecord) -> None:
        with self._connection() as conn:
            conn.execute(
                "INSERT INTO branch_merges (id, conversation_id, source_branch_id, "
                "target_branch_id, merged_branch_id, conflict_count, created_at, payload) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    record.merge_id,
                    record.conversation_id,
                    record.source_branch_id,
                    record.target_branch_id,
                    record.merged_branch_id,
                    record.conflict_count,
                    record.created_at.isoformat(timespec="microseconds"),
                    record.model_dump_json(),
                ),
            )

    def list_merges(self, conversation_id: str) -> list[MergeRecord]:
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT payload FROM branch_merges WHERE conversation_id = ? "
                "ORDER BY created_at, rowid",
                (conversation_id,),
            ).fetchall()
        return [MergeRecord.model_validate_json(row["payload"]) for row in rows]

    def __repr__(self) -> str:
        return f"SQLiteBranchRepository(db_path={str(self._db_path)!r})"
