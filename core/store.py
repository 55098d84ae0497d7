"""SQLite persistence for registered bots and their ban/appeal fields.

One row per bot in ``bots``; blocked users and appeal counters live in
child tables keyed by ``(token, user_id)`` and cascade on bot deletion.
Every public method opens its own connection, so the store can be called
from worker threads via :func:`asyncio.to_thread`.
"""

import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator

from core.logger import ForwardMeLogger

logger = ForwardMeLogger.get_logger()


class StoreError(Exception):
    """Raised when the underlying database rejects or fails an operation."""


@dataclass
class BotRecord:
    """Persisted state of one registered bot."""

    token: str
    creator_id: int
    blocked_users: set[int] = field(default_factory=set)
    appeal_counts: dict[int, int] = field(default_factory=dict)


class BotStore:
    """SQLite-backed store for bot registrations and ban bookkeeping."""

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()
        logger.info("Bot store ready", extra={"db_path": str(self.db_path)})

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database connections."""
        try:
            conn = sqlite3.connect(self.db_path, timeout=30)
        except sqlite3.Error as exc:
            raise StoreError(f"Cannot open database '{self.db_path}': {exc}") from exc
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise StoreError(str(exc)) from exc
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        """Create tables if they do not exist yet."""
        with self._get_connection() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS bots (
                    token TEXT PRIMARY KEY,
                    creator_id INTEGER NOT NULL
                )
            """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS blocked_users (
                    token TEXT NOT NULL REFERENCES bots(token) ON DELETE CASCADE,
                    user_id INTEGER NOT NULL,
                    PRIMARY KEY (token, user_id)
                )
            """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS appeal_counts (
                    token TEXT NOT NULL REFERENCES bots(token) ON DELETE CASCADE,
                    user_id INTEGER NOT NULL,
                    count INTEGER NOT NULL DEFAULT 0 CHECK (count >= 0),
                    PRIMARY KEY (token, user_id)
                )
            """
            )

    # ── Bot records ──────────────────────────────────────────────────────

    def get_by_token(self, token: str) -> BotRecord | None:
        """Return the full record for *token*, or ``None`` if unregistered."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT token, creator_id FROM bots WHERE token = ?", (token,)
            ).fetchone()
            if row is None:
                return None
            blocked = {
                r["user_id"]
                for r in conn.execute(
                    "SELECT user_id FROM blocked_users WHERE token = ?", (token,)
                )
            }
            counts = {
                r["user_id"]: r["count"]
                for r in conn.execute(
                    "SELECT user_id, count FROM appeal_counts WHERE token = ?", (token,)
                )
            }
        return BotRecord(row["token"], row["creator_id"], blocked, counts)

    def list_bots(self) -> list[tuple[str, int]]:
        """Return ``(token, creator_id)`` for every registered bot."""
        with self._get_connection() as conn:
            rows = conn.execute("SELECT token, creator_id FROM bots ORDER BY rowid").fetchall()
        return [(r["token"], r["creator_id"]) for r in rows]

    def insert(self, token: str, creator_id: int) -> bool:
        """Insert a new bot row.

        Returns ``False`` without writing when *token* already exists, so a
        racing duplicate registration loses harmlessly on the primary key.
        """
        with self._get_connection() as conn:
            cursor = conn.execute(
                "INSERT OR IGNORE INTO bots (token, creator_id) VALUES (?, ?)",
                (token, creator_id),
            )
            return cursor.rowcount == 1

    def upsert(self, token: str, creator_id: int) -> None:
        """Insert *token* or update its operator."""
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO bots (token, creator_id) VALUES (?, ?)
                ON CONFLICT(token) DO UPDATE SET creator_id = excluded.creator_id
            """,
                (token, creator_id),
            )

    def delete(self, token: str) -> bool:
        """Delete *token* and its ban/appeal rows. Returns whether a row existed."""
        with self._get_connection() as conn:
            cursor = conn.execute("DELETE FROM bots WHERE token = ?", (token,))
            return cursor.rowcount == 1

    # ── Ban / appeal fields ──────────────────────────────────────────────

    def is_blocked(self, token: str, user_id: int) -> bool:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT 1 FROM blocked_users WHERE token = ? AND user_id = ?",
                (token, user_id),
            ).fetchone()
        return row is not None

    def list_blocked(self, token: str) -> list[int]:
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT user_id FROM blocked_users WHERE token = ? ORDER BY rowid",
                (token,),
            ).fetchall()
        return [r["user_id"] for r in rows]

    def add_blocked(self, token: str, user_id: int) -> bool:
        """Add *user_id* to the blocked set. Returns ``False`` if already present.

        Raises:
            StoreError: If *token* is not a registered bot.
        """
        with self._get_connection() as conn:
            cursor = conn.execute(
                "INSERT OR IGNORE INTO blocked_users (token, user_id) VALUES (?, ?)",
                (token, user_id),
            )
            return cursor.rowcount == 1

    def remove_blocked(self, token: str, user_id: int) -> bool:
        """Remove *user_id* from the blocked set and reset its appeal count.

        Both changes commit in one transaction.  Returns whether the user
        was blocked.
        """
        with self._get_connection() as conn:
            cursor = conn.execute(
                "DELETE FROM blocked_users WHERE token = ? AND user_id = ?",
                (token, user_id),
            )
            conn.execute(
                "DELETE FROM appeal_counts WHERE token = ? AND user_id = ?",
                (token, user_id),
            )
            return cursor.rowcount == 1

    def get_appeal_count(self, token: str, user_id: int) -> int:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT count FROM appeal_counts WHERE token = ? AND user_id = ?",
                (token, user_id),
            ).fetchone()
        return row["count"] if row is not None else 0

    def increment_appeal_count(self, token: str, user_id: int, limit: int | None = None) -> int:
        """Atomically add one to the appeal counter and return the new value.

        With *limit* set the counter never exceeds it.
        """
        ceiling = limit if limit is not None else -1
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO appeal_counts (token, user_id, count) VALUES (?, ?, 1)
                ON CONFLICT(token, user_id) DO UPDATE SET count = CASE
                    WHEN ? >= 0 AND count >= ? THEN count
                    ELSE count + 1
                END
            """,
                (token, user_id, ceiling, ceiling),
            )
            row = conn.execute(
                "SELECT count FROM appeal_counts WHERE token = ? AND user_id = ?",
                (token, user_id),
            ).fetchone()
        return row["count"]
