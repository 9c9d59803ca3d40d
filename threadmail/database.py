"""SQLite message store with a trigger-maintained full-text index."""

import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional, Union

from threadmail.models import MESSAGE_COLUMNS, Direction, Message, ThreadCounts

logger = logging.getLogger(__name__)

MEMORY_DB = ":memory:"

# SQL expression for "now" in Unix seconds, matching the column defaults
NOW_SQL = "strftime('%s', 'now')"

FTS_TRIGGERS = ("emails_fts_insert", "emails_fts_update", "emails_fts_delete")


def _to_timestamp(value: Union[datetime, int, None]) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return int(value.timestamp())
    return int(value)


class MailDatabase:
    """SQLite database holding email messages and their search index.

    Schema:
    - emails: One row per message, flags stored as 0/1, timestamps as Unix seconds
    - emails_fts: FTS5 table over subject/from/to/content keyed by email_id,
      kept in sync by triggers on emails

    The FTS table is optional. When it cannot be created (SQLite built without
    FTS5) or has been dropped, fts_available() reports False and searches fall
    back to substring matching.
    """

    def __init__(self, db_path: Union[Path, str], enable_fts: bool = True):
        """Initialize the database.

        Args:
            db_path: Path to the SQLite file, or ":memory:" for a private
                     in-process database
            enable_fts: Create the full-text index if it does not exist
        """
        self.db_path = db_path if str(db_path) == MEMORY_DB else Path(db_path)
        self._shared_conn: Optional[sqlite3.Connection] = None
        self._fts_available: Optional[bool] = None
        self._lock = threading.RLock()

        if self.is_memory:
            # A :memory: database only lives as long as its connection
            self._shared_conn = self._open()
        else:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            if not self.db_path.exists():
                logger.info("Creating new database: %s", self.db_path)

        self._init_db()
        if enable_fts:
            self.init_fts()

    @property
    def is_memory(self) -> bool:
        return str(self.db_path) == MEMORY_DB

    def _open(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        conn.row_factory = sqlite3.Row
        if not self.is_memory:
            conn.execute("PRAGMA journal_mode = WAL")
        return conn

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection; commit on success, roll back on error.

        Everything executed inside one block is a single transaction.
        """
        if self._shared_conn is not None:
            # The shared :memory: connection is serialized across threads
            with self._lock, self._shared_conn:
                yield self._shared_conn
            return

        conn = self._open()
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def close(self) -> None:
        if self._shared_conn is not None:
            self._shared_conn.close()
            self._shared_conn = None

    def _init_db(self) -> None:
        """Initialize the database schema."""
        with self.connection() as conn:
            conn.execute(f"""
                CREATE TABLE IF NOT EXISTS emails (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    thread_id TEXT NOT NULL,
                    subject TEXT NOT NULL,
                    "from" TEXT NOT NULL,
                    "to" TEXT NOT NULL,
                    cc TEXT,
                    bcc TEXT,
                    content TEXT,
                    is_read INTEGER NOT NULL DEFAULT 0,
                    is_important INTEGER NOT NULL DEFAULT 0,
                    is_deleted INTEGER NOT NULL DEFAULT 0,
                    direction TEXT NOT NULL DEFAULT '{Direction.INCOMING.value}',
                    created_at INTEGER NOT NULL DEFAULT ({NOW_SQL}),
                    updated_at INTEGER NOT NULL DEFAULT ({NOW_SQL})
                )
            """)

            # Single column indexes
            conn.execute("CREATE INDEX IF NOT EXISTS thread_id_idx ON emails(thread_id)")
            conn.execute("CREATE INDEX IF NOT EXISTS direction_idx ON emails(direction)")
            conn.execute("CREATE INDEX IF NOT EXISTS is_important_idx ON emails(is_important)")
            conn.execute("CREATE INDEX IF NOT EXISTS is_deleted_idx ON emails(is_deleted)")
            conn.execute("CREATE INDEX IF NOT EXISTS created_at_idx ON emails(created_at)")
            conn.execute("CREATE INDEX IF NOT EXISTS is_read_idx ON emails(is_read)")
            # Composite indexes for the inbox/sent and important view paths
            conn.execute("""
                CREATE INDEX IF NOT EXISTS filter_idx
                ON emails(is_deleted, direction, created_at)
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS important_filter_idx
                ON emails(is_deleted, is_important, created_at)
            """)
            # Per-thread ordering for the thread aggregation
            conn.execute("CREATE INDEX IF NOT EXISTS thread_agg_idx ON emails(thread_id, created_at)")

    # -------------------------------------------------------------------------
    # Full-Text Index
    # -------------------------------------------------------------------------

    def fts_available(self) -> bool:
        """Return True if emails_fts and all of its sync triggers exist.

        A table without its triggers would silently stop indexing new rows,
        so it counts as unavailable. Checked once and cached;
        init_fts()/drop_fts() reset the cache.
        """
        if self._fts_available is None:
            with self.connection() as conn:
                found = conn.execute(
                    f"""
                    SELECT COUNT(*) FROM sqlite_master
                    WHERE (type = 'table' AND name = 'emails_fts')
                       OR (type = 'trigger' AND name IN ({', '.join('?' * len(FTS_TRIGGERS))}))
                    """,
                    FTS_TRIGGERS
                ).fetchone()[0]
            self._fts_available = found == len(FTS_TRIGGERS) + 1
        return self._fts_available

    def init_fts(self) -> bool:
        """Create the FTS table and its sync triggers if missing.

        Backfills the index from the current emails table. The email_id
        column is stored UNINDEXED and used instead of the FTS rowid, which
        can diverge from emails.id after deletes. A partial index left by an
        earlier failure is dropped and rebuilt. Everything runs in one
        explicit transaction so the table never exists without its triggers.

        Returns:
            True if the index is available afterwards
        """
        self._fts_available = None
        if self.fts_available():
            return True

        try:
            with self.connection() as conn:
                # DDL does not open a transaction implicitly
                conn.execute("BEGIN")
                self._drop_fts_objects(conn)
                conn.execute("""
                    CREATE VIRTUAL TABLE emails_fts USING fts5(
                        email_id UNINDEXED,
                        subject,
                        from_addr,
                        to_addr,
                        content
                    )
                """)
                conn.execute("""
                    INSERT INTO emails_fts(email_id, subject, from_addr, to_addr, content)
                    SELECT id, subject, "from", "to", content FROM emails
                """)
                conn.execute("""
                    CREATE TRIGGER emails_fts_insert AFTER INSERT ON emails
                    BEGIN
                        INSERT INTO emails_fts(email_id, subject, from_addr, to_addr, content)
                        VALUES (new.id, new.subject, new."from", new."to", new.content);
                    END
                """)
                conn.execute("""
                    CREATE TRIGGER emails_fts_delete AFTER DELETE ON emails
                    BEGIN
                        DELETE FROM emails_fts WHERE email_id = old.id;
                    END
                """)
                conn.execute("""
                    CREATE TRIGGER emails_fts_update AFTER UPDATE ON emails
                    BEGIN
                        DELETE FROM emails_fts WHERE email_id = old.id;
                        INSERT INTO emails_fts(email_id, subject, from_addr, to_addr, content)
                        VALUES (new.id, new.subject, new."from", new."to", new.content);
                    END
                """)
        except sqlite3.DatabaseError as e:
            # e.g. "no such module: fts5"; searches use the substring path
            logger.warning("Full-text index unavailable: %s", e)
            self._fts_available = False
            return False

        self._fts_available = True
        return True

    @staticmethod
    def _drop_fts_objects(conn: sqlite3.Connection) -> None:
        for trigger in FTS_TRIGGERS:
            conn.execute(f"DROP TRIGGER IF EXISTS {trigger}")
        conn.execute("DROP TABLE IF EXISTS emails_fts")

    def drop_fts(self) -> None:
        """Remove the FTS table and its triggers."""
        with self.connection() as conn:
            conn.execute("BEGIN")
            self._drop_fts_objects(conn)
        self._fts_available = False

    def rebuild_fts(self) -> bool:
        """Re-derive the full-text index from the emails table."""
        self.drop_fts()
        return self.init_fts()

    def get_fts_count(self) -> int:
        if not self.fts_available():
            return 0
        with self.connection() as conn:
            return conn.execute("SELECT COUNT(*) FROM emails_fts").fetchone()[0]

    # -------------------------------------------------------------------------
    # Messages
    # -------------------------------------------------------------------------

    def _fetch_message(self, conn: sqlite3.Connection, email_id: int) -> Optional[Message]:
        row = conn.execute(
            f"SELECT {MESSAGE_COLUMNS} FROM emails WHERE id = ?",
            (email_id,)
        ).fetchone()
        return Message.from_row(row) if row else None

    def insert_message(
        self,
        thread_id: str,
        subject: str,
        sender: str,
        recipient: str,
        cc: Optional[str] = None,
        bcc: Optional[str] = None,
        content: Optional[str] = None,
        is_read: bool = False,
        is_important: bool = False,
        is_deleted: bool = False,
        direction: Direction = Direction.INCOMING,
        created_at: Union[datetime, int, None] = None,
    ) -> Message:
        """Insert a message and return it with its generated id and timestamps.

        Args:
            thread_id: Conversation the message belongs to
            subject, sender, recipient, cc, bcc, content: Message fields
            is_read, is_important, is_deleted: Initial flags
            direction: INCOMING or OUTGOING
            created_at: Creation time (defaults to now); updated_at starts equal to it

        Returns:
            The persisted Message
        """
        created_ts = _to_timestamp(created_at)
        with self.connection() as conn:
            cursor = conn.execute(
                f"""
                INSERT INTO emails
                (thread_id, subject, "from", "to", cc, bcc, content,
                 is_read, is_important, is_deleted, direction, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?,
                        COALESCE(?, {NOW_SQL}), COALESCE(?, {NOW_SQL}))
                """,
                (
                    thread_id, subject, sender, recipient, cc, bcc, content,
                    int(is_read), int(is_important), int(is_deleted),
                    Direction(direction).value, created_ts, created_ts,
                )
            )
            return self._fetch_message(conn, cursor.lastrowid)

    def get_message(self, email_id: int) -> Optional[Message]:
        """Get a message by id, deleted or not. None if it does not exist."""
        with self.connection() as conn:
            return self._fetch_message(conn, email_id)

    def update_flags(
        self,
        email_id: int,
        is_read: Optional[bool] = None,
        is_important: Optional[bool] = None,
    ) -> Optional[Message]:
        """Set read/important flags and refresh updated_at.

        Flags left as None are unchanged.

        Returns:
            The updated Message, or None if no message has this id
        """
        assignments = [f"updated_at = {NOW_SQL}"]
        params = []
        if is_read is not None:
            assignments.append("is_read = ?")
            params.append(int(is_read))
        if is_important is not None:
            assignments.append("is_important = ?")
            params.append(int(is_important))

        with self.connection() as conn:
            cursor = conn.execute(
                f"UPDATE emails SET {', '.join(assignments)} WHERE id = ?",
                params + [email_id]
            )
            if cursor.rowcount == 0:
                return None
            return self._fetch_message(conn, email_id)

    def soft_delete_message(self, email_id: int) -> bool:
        """Mark one message deleted. Returns False if it does not exist."""
        with self.connection() as conn:
            cursor = conn.execute(
                f"UPDATE emails SET is_deleted = 1, updated_at = {NOW_SQL} WHERE id = ?",
                (email_id,)
            )
            return cursor.rowcount > 0

    def _set_thread_deleted(self, thread_id: str, deleted: bool) -> bool:
        # One UPDATE statement in one transaction: every member changes or none does
        with self.connection() as conn:
            cursor = conn.execute(
                f"UPDATE emails SET is_deleted = ?, updated_at = {NOW_SQL} WHERE thread_id = ?",
                (int(deleted), thread_id)
            )
            return cursor.rowcount > 0

    def soft_delete_thread(self, thread_id: str) -> bool:
        """Mark every message of a conversation deleted.

        Returns:
            False if the conversation has no messages
        """
        return self._set_thread_deleted(thread_id, True)

    def restore_thread(self, thread_id: str) -> bool:
        """Clear the deleted flag on every message of a conversation."""
        return self._set_thread_deleted(thread_id, False)

    def hard_delete_thread(self, thread_id: str) -> bool:
        """Permanently remove every message of a conversation."""
        with self.connection() as conn:
            cursor = conn.execute("DELETE FROM emails WHERE thread_id = ?", (thread_id,))
            return cursor.rowcount > 0

    # -------------------------------------------------------------------------
    # Statistics
    # -------------------------------------------------------------------------

    def get_message_count(self) -> int:
        with self.connection() as conn:
            return conn.execute("SELECT COUNT(*) FROM emails").fetchone()[0]

    def get_thread_counts(self) -> ThreadCounts:
        """Count distinct conversations per mailbox view.

        Unread counts conversations with at least one unread, non-deleted message.
        """
        with self.connection() as conn:
            row = conn.execute(
                """
                SELECT
                    COUNT(DISTINCT CASE WHEN is_deleted = 0 AND direction = ? THEN thread_id END),
                    COUNT(DISTINCT CASE WHEN is_deleted = 0 AND direction = ? THEN thread_id END),
                    COUNT(DISTINCT CASE WHEN is_deleted = 0 AND is_important = 1 THEN thread_id END),
                    COUNT(DISTINCT CASE WHEN is_deleted = 1 THEN thread_id END),
                    COUNT(DISTINCT CASE WHEN is_deleted = 0 AND is_read = 0 THEN thread_id END)
                FROM emails
                """,
                (Direction.INCOMING.value, Direction.OUTGOING.value)
            ).fetchone()
        inbox, sent, important, trash, unread = (value or 0 for value in row)
        return ThreadCounts(inbox=inbox, sent=sent, important=important, trash=trash, unread=unread)
