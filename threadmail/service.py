"""Mail service: the query and mutation entry points used by the web layer."""

import logging
import uuid
from typing import Any, Dict, Optional, Union

from threadmail.database import MailDatabase
from threadmail.errors import with_error_handling
from threadmail.filters import combine, filter_condition, thread_condition
from threadmail.models import (
    Direction,
    ListOptions,
    Message,
    PaginatedResult,
    ThreadCounts,
    clamp_page,
    clamp_page_size,
)
from threadmail.search import SearchResolver
from threadmail.threads import list_flat, list_threads
from threadmail.validation import CreateMessageInput, ListQuery, UpdateMessageInput, validate

logger = logging.getLogger(__name__)


class MailService:
    """Single-user mailbox operations over a MailDatabase.

    Storage failures surface as ServiceError(DB_ERROR) naming the
    operation; "not found" is reported as None/False.
    """

    def __init__(self, db: MailDatabase, user_email: str = "user@example.com"):
        self.db = db
        self.user_email = user_email
        self.resolver = SearchResolver(db)

    @with_error_handling("list_messages")
    def list_messages(self, options: Union[ListOptions, Dict[str, Any], None] = None) -> PaginatedResult:
        """List messages, optionally grouped to one row per conversation.

        Args:
            options: ListOptions, or a dict of wire parameters (camelCase)
                validated like the GET /api/emails query string

        Returns:
            PaginatedResult with data and pagination metadata
        """
        if options is None:
            options = ListOptions()
        elif isinstance(options, dict):
            options = validate(ListQuery, options, "Invalid list options").to_options()

        page = clamp_page(options.page)
        page_size = clamp_page_size(options.page_size)

        condition = combine([
            thread_condition(options.thread_id),
            self.resolver.condition(options.search),
            filter_condition(options.filter),
        ])

        with self.db.connection() as conn:
            if options.thread_only:
                return list_threads(conn, condition, page, page_size)
            return list_flat(
                conn, condition, page, page_size,
                chronological=bool(options.thread_id),
            )

    @with_error_handling("get_message")
    def get_message(self, email_id: int) -> Optional[Message]:
        return self.db.get_message(email_id)

    @with_error_handling("get_thread_counts")
    def get_thread_counts(self) -> ThreadCounts:
        return self.db.get_thread_counts()

    @with_error_handling("create_message")
    def create_message(self, data: Union[CreateMessageInput, Dict[str, Any]]) -> Message:
        """Store a message composed by the user.

        Always OUTGOING and read. Starts a new conversation unless
        thread_id is given (a reply).
        """
        if isinstance(data, dict):
            data = validate(CreateMessageInput, data)

        message = self.db.insert_message(
            thread_id=data.thread_id or str(uuid.uuid4()),
            subject=data.subject,
            sender=self.user_email,
            recipient=data.to,
            cc=data.cc or None,
            bcc=data.bcc or None,
            content=data.content or None,
            is_read=True,
            direction=Direction.OUTGOING,
        )
        logger.info("Created message %d in thread %s", message.id, message.thread_id)
        return message

    @with_error_handling("update_message")
    def update_message(
        self,
        email_id: int,
        data: Union[UpdateMessageInput, Dict[str, Any]],
    ) -> Optional[Message]:
        if isinstance(data, dict):
            data = validate(UpdateMessageInput, data)
        return self.db.update_flags(email_id, is_read=data.is_read, is_important=data.is_important)

    @with_error_handling("delete_message")
    def delete_message(self, email_id: int) -> bool:
        return self.db.soft_delete_message(email_id)

    @with_error_handling("delete_thread")
    def delete_thread(self, thread_id: str) -> bool:
        return self.db.soft_delete_thread(thread_id)

    @with_error_handling("restore_thread")
    def restore_thread(self, thread_id: str) -> bool:
        return self.db.restore_thread(thread_id)

    @with_error_handling("permanently_delete_thread")
    def permanently_delete_thread(self, thread_id: str) -> bool:
        deleted = self.db.hard_delete_thread(thread_id)
        if deleted:
            logger.info("Permanently deleted thread %s", thread_id)
        return deleted

    @with_error_handling("rebuild_search_index")
    def rebuild_search_index(self) -> bool:
        return self.db.rebuild_fts()
