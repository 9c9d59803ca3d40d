"""Data types shared by the store, the query engine and the web layer."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

# Columns selected for every Message read, aliased to the Message field names.
MESSAGE_COLUMNS = (
    'id, thread_id, subject, "from" AS sender, "to" AS recipient, cc, bcc, content, '
    "is_read, is_important, is_deleted, direction, created_at, updated_at"
)


class Direction(str, Enum):
    """Which way a message travelled."""
    INCOMING = "incoming"
    OUTGOING = "outgoing"


def _from_timestamp(value: int) -> datetime:
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


@dataclass
class Message:
    """A single stored email message."""
    id: int
    thread_id: str
    subject: str
    sender: str
    recipient: str
    cc: Optional[str]
    bcc: Optional[str]
    content: Optional[str]
    is_read: bool
    is_important: bool
    is_deleted: bool
    direction: Direction
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, row) -> "Message":
        """Build a Message from a row selected with MESSAGE_COLUMNS.

        Integer flags become booleans and Unix-second timestamps become
        timezone-aware UTC datetimes.
        """
        return cls(
            id=row["id"],
            thread_id=row["thread_id"],
            subject=row["subject"],
            sender=row["sender"],
            recipient=row["recipient"],
            cc=row["cc"],
            bcc=row["bcc"],
            content=row["content"],
            is_read=bool(row["is_read"]),
            is_important=bool(row["is_important"]),
            is_deleted=bool(row["is_deleted"]),
            direction=Direction(row["direction"]),
            created_at=_from_timestamp(row["created_at"]),
            updated_at=_from_timestamp(row["updated_at"]),
        )

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly form with the camelCase keys the web client expects."""
        return {
            "id": self.id,
            "threadId": self.thread_id,
            "subject": self.subject,
            "from": self.sender,
            "to": self.recipient,
            "cc": self.cc,
            "bcc": self.bcc,
            "content": self.content,
            "isRead": self.is_read,
            "isImportant": self.is_important,
            "isDeleted": self.is_deleted,
            "direction": self.direction.value,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


@dataclass
class ListOptions:
    """Options accepted by MailService.list_messages.

    Attributes:
        search: Raw user search text; fewer than 3 characters is ignored
        filter: View name (inbox, sent, important, trash); None means all non-deleted
        thread_id: Restrict results to one conversation
        thread_only: Group results to one row per conversation
        page: Zero-based page index
        page_size: Rows per page
    """
    search: Optional[str] = None
    filter: Optional[str] = None
    thread_id: Optional[str] = None
    thread_only: bool = False
    page: Optional[int] = None
    page_size: Optional[int] = None


def clamp_page(page: Optional[int]) -> int:
    return max(0, page if page is not None else 0)


def clamp_page_size(page_size: Optional[int]) -> int:
    return min(MAX_PAGE_SIZE, max(1, page_size if page_size is not None else DEFAULT_PAGE_SIZE))


@dataclass
class Pagination:
    page: int
    page_size: int
    total: int
    total_pages: int
    has_more: bool

    @classmethod
    def build(cls, page: int, page_size: int, total: int) -> "Pagination":
        total_pages = math.ceil(total / page_size)
        return cls(
            page=page,
            page_size=page_size,
            total=total,
            total_pages=total_pages,
            has_more=page < total_pages - 1,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "page": self.page,
            "pageSize": self.page_size,
            "total": self.total,
            "totalPages": self.total_pages,
            "hasMore": self.has_more,
        }


@dataclass
class PaginatedResult:
    data: List[Message] = field(default_factory=list)
    pagination: Optional[Pagination] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "data": [m.to_dict() for m in self.data],
            "pagination": self.pagination.to_dict() if self.pagination else None,
        }


@dataclass
class ThreadCounts:
    """Distinct-conversation counts per mailbox view."""
    inbox: int = 0
    sent: int = 0
    important: int = 0
    trash: int = 0
    unread: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "inbox": self.inbox,
            "sent": self.sent,
            "important": self.important,
            "trash": self.trash,
            "unread": self.unread,
        }
