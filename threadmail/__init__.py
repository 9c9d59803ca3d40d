"""
threadmail - A local single-user mail client backend.

Stores messages in SQLite, groups them into threads and searches them
through a trigger-maintained FTS5 index.
"""

__version__ = "0.1.0"

from threadmail.database import MailDatabase
from threadmail.errors import ServiceError
from threadmail.models import Direction, ListOptions, Message, PaginatedResult, ThreadCounts
from threadmail.service import MailService

__all__ = [
    "MailDatabase",
    "MailService",
    "ServiceError",
    "Direction",
    "ListOptions",
    "Message",
    "PaginatedResult",
    "ThreadCounts",
]
