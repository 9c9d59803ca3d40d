"""Thread aggregation and flat pagination over the emails table.

Both entry points take an open connection and a combined Condition and
return a PaginatedResult.
"""

import sqlite3

from threadmail.filters import Condition
from threadmail.models import MESSAGE_COLUMNS, Message, PaginatedResult, Pagination

# Latest message per thread within the filtered set. Ranking must happen on
# the filtered rows: under "sent" a thread is represented by its latest
# outgoing message, not its latest message overall.
LATEST_PER_THREAD_SQL = """
    filtered AS (
        SELECT * FROM emails WHERE {where}
    ),
    ranked AS (
        SELECT *,
            ROW_NUMBER() OVER (
                PARTITION BY thread_id
                ORDER BY created_at DESC, id DESC
            ) AS rn
        FROM filtered
    ),
    latest_per_thread AS (
        SELECT * FROM ranked WHERE rn = 1
    )
"""


def list_threads(
    conn: sqlite3.Connection,
    condition: Condition,
    page: int,
    page_size: int,
) -> PaginatedResult:
    """One row per conversation: its latest matching message.

    The is_important of each returned message is the conversation's
    importance, computed over every non-deleted message of the thread in
    the whole table regardless of the filter.

    Args:
        conn: Open database connection
        condition: Combined filter/search/thread condition
        page: Zero-based page index (already clamped)
        page_size: Rows per page (already clamped)
    """
    latest = LATEST_PER_THREAD_SQL.format(where=condition.sql)

    total = conn.execute(
        f"""
        WITH {latest}
        SELECT COUNT(DISTINCT thread_id) FROM latest_per_thread
        """,
        condition.params
    ).fetchone()[0]

    rows = conn.execute(
        f"""
        WITH {latest},
        thread_importance AS (
            SELECT
                thread_id,
                MAX(CASE WHEN is_deleted = 0 AND is_important = 1 THEN 1 ELSE 0 END)
                    AS thread_important
            FROM emails
            WHERE thread_id IN (SELECT thread_id FROM latest_per_thread)
            GROUP BY thread_id
        )
        SELECT
            lpt.id, lpt.thread_id, lpt.subject, lpt."from" AS sender, lpt."to" AS recipient,
            lpt.cc, lpt.bcc, lpt.content, lpt.is_read,
            COALESCE(ti.thread_important, 0) AS is_important,
            lpt.is_deleted, lpt.direction, lpt.created_at, lpt.updated_at
        FROM latest_per_thread lpt
        LEFT JOIN thread_importance ti ON ti.thread_id = lpt.thread_id
        ORDER BY lpt.created_at DESC, lpt.id DESC
        LIMIT ? OFFSET ?
        """,
        condition.params + (page_size, page * page_size)
    ).fetchall()

    return PaginatedResult(
        data=[Message.from_row(row) for row in rows],
        pagination=Pagination.build(page, page_size, total),
    )


def list_flat(
    conn: sqlite3.Connection,
    condition: Condition,
    page: int,
    page_size: int,
    chronological: bool = False,
) -> PaginatedResult:
    """Every matching message, without grouping.

    Args:
        chronological: Oldest first (reading order for one thread);
                       otherwise newest first
    """
    total = conn.execute(
        f"SELECT COUNT(*) FROM emails WHERE {condition.sql}",
        condition.params
    ).fetchone()[0]

    direction = "ASC" if chronological else "DESC"
    rows = conn.execute(
        f"""
        SELECT {MESSAGE_COLUMNS}
        FROM emails
        WHERE {condition.sql}
        ORDER BY created_at {direction}, id {direction}
        LIMIT ? OFFSET ?
        """,
        condition.params + (page_size, page * page_size)
    ).fetchall()

    return PaginatedResult(
        data=[Message.from_row(row) for row in rows],
        pagination=Pagination.build(page, page_size, total),
    )
