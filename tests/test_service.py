"""Tests for MailService: listing, thread aggregation and mutations."""

import sqlite3
import uuid
from unittest.mock import MagicMock

import pytest

from threadmail.errors import ServiceError
from threadmail.models import Direction, ListOptions
from threadmail.service import MailService


def _ids(result):
    return [m.id for m in result.data]


class TestPaginationClamping:
    """Tests for page and page size clamping."""

    @pytest.mark.parametrize("requested,effective", [
        (None, 20), (0, 1), (-5, 1), (1, 1), (50, 50), (100, 100), (101, 100), (500, 100),
    ])
    def test_page_size(self, service, requested, effective):
        result = service.list_messages(ListOptions(page_size=requested))
        assert result.pagination.page_size == effective

    @pytest.mark.parametrize("requested,effective", [(None, 0), (-1, 0), (-100, 0), (3, 3)])
    def test_page(self, service, requested, effective):
        result = service.list_messages(ListOptions(page=requested))
        assert result.pagination.page == effective

    def test_accepts_camel_case_dict(self, service, make_message):
        make_message("t1")
        make_message("t1")
        result = service.list_messages({"threadOnly": True, "pageSize": 5})
        assert result.pagination.page_size == 5
        assert result.pagination.total == 1


class TestListOptionsDict:
    """Tests for dict options, validated like the list query string."""

    def test_thread_only_false_string(self, service, make_message):
        make_message("t1")
        make_message("t1")
        result = service.list_messages({"threadOnly": "false"})
        assert result.pagination.total == 2

    def test_thread_only_true_string(self, service, make_message):
        make_message("t1")
        make_message("t1")
        result = service.list_messages({"threadOnly": "true"})
        assert result.pagination.total == 1

    def test_numeric_strings_are_coerced(self, service):
        result = service.list_messages({"page": "1", "pageSize": "5"})
        assert result.pagination.page == 1
        assert result.pagination.page_size == 5

    def test_snake_case_keys(self, service, make_message):
        first = make_message("c1")
        make_message("c2")
        result = service.list_messages({"thread_id": "c1", "page_size": 10})
        assert _ids(result) == [first.id]
        assert result.pagination.page_size == 10

    @pytest.mark.parametrize("options,field", [
        ({"page": "x"}, "page"),
        ({"pageSize": 2.5}, "pageSize"),
        ({"filter": "archive"}, "filter"),
        ({"search": "a" * 201}, "search"),
    ])
    def test_malformed_options_rejected(self, options, field):
        db = MagicMock()
        service = MailService(db)

        with pytest.raises(ServiceError) as exc_info:
            service.list_messages(options)

        assert exc_info.value.code == "VALIDATION_ERROR"
        assert exc_info.value.status_code == 400
        assert field in exc_info.value.details
        db.connection.assert_not_called()


class TestThreadAggregation:
    """Tests for one-row-per-thread listing."""

    def test_representative_is_latest_message(self, service, make_message):
        make_message("c1", subject="First")
        latest = make_message("c1", subject="Re: First")

        result = service.list_messages(ListOptions(thread_only=True))

        assert _ids(result) == [latest.id]
        assert result.pagination.total == 1

    def test_ties_broken_by_highest_id(self, service, make_message):
        make_message("c1", minutes=5)
        second = make_message("c1", minutes=5)

        result = service.list_messages(ListOptions(thread_only=True))

        assert _ids(result) == [second.id]

    def test_importance_inherited_from_older_sibling(self, service, make_message):
        """The representative shows thread importance, not its own flag."""
        make_message("c1", is_important=True)
        latest = make_message("c1", is_important=False)

        result = service.list_messages(ListOptions(thread_only=True, thread_id="c1"))

        assert _ids(result) == [latest.id]
        assert result.data[0].is_important is True

    def test_importance_when_representative_is_important(self, service, make_message):
        make_message("c1", is_important=False)
        latest = make_message("c1", is_important=True)

        result = service.list_messages(ListOptions(thread_only=True, thread_id="c1"))

        assert _ids(result) == [latest.id]
        assert result.data[0].is_important is True

    def test_importance_ignores_deleted_members(self, service, db, make_message):
        old = make_message("c1", is_important=True)
        make_message("c1", is_important=False)
        db.soft_delete_message(old.id)

        result = service.list_messages(ListOptions(thread_only=True))

        assert result.data[0].is_important is False

    def test_importance_computed_outside_active_filter(self, service, make_message):
        """Under 'sent', an important incoming sibling still marks the thread."""
        make_message("c1", direction=Direction.INCOMING, is_important=True)
        sent = make_message("c1", direction=Direction.OUTGOING, is_important=False)

        result = service.list_messages(ListOptions(thread_only=True, filter="sent"))

        assert _ids(result) == [sent.id]
        assert result.data[0].is_important is True

    def test_representative_ranked_within_filtered_set(self, service, make_message):
        """Under 'sent', a thread is represented by its latest outgoing message."""
        sent = make_message("c1", direction=Direction.OUTGOING)
        make_message("c1", direction=Direction.INCOMING)

        result = service.list_messages(ListOptions(thread_only=True, filter="sent"))

        assert _ids(result) == [sent.id]

    def test_threads_ordered_by_latest_activity(self, service, make_message):
        a1 = make_message("a", minutes=1)
        b = make_message("b", minutes=2)
        a2 = make_message("a", minutes=3)

        result = service.list_messages(ListOptions(thread_only=True))

        assert _ids(result) == [a2.id, b.id]
        assert a1.id not in _ids(result)

    def test_total_counts_threads_not_messages(self, service, make_message):
        for thread in ("a", "b", "c"):
            make_message(thread)
            make_message(thread)

        threaded = service.list_messages(ListOptions(thread_only=True))
        flat = service.list_messages(ListOptions(thread_only=False))

        assert threaded.pagination.total == 3
        assert flat.pagination.total == 6

    def test_pages(self, service, make_message):
        threads = [make_message(f"t{i}") for i in range(5)]
        newest_first = [m.id for m in reversed(threads)]

        first = service.list_messages(ListOptions(thread_only=True, page=0, page_size=2))
        last = service.list_messages(ListOptions(thread_only=True, page=2, page_size=2))

        assert _ids(first) == newest_first[:2]
        assert first.pagination.total_pages == 3
        assert first.pagination.has_more is True
        assert _ids(last) == newest_first[4:]
        assert last.pagination.has_more is False

    def test_page_past_end_keeps_total(self, service, make_message):
        for i in range(3):
            make_message(f"t{i}")

        result = service.list_messages(ListOptions(thread_only=True, page=10, page_size=2))

        assert result.data == []
        assert result.pagination.total == 3
        assert result.pagination.total_pages == 2
        assert result.pagination.has_more is False

    def test_empty_store(self, service):
        result = service.list_messages(ListOptions(thread_only=True))
        assert result.data == []
        assert result.pagination.total == 0
        assert result.pagination.total_pages == 0
        assert result.pagination.has_more is False


class TestViews:
    """Tests for mailbox view filtering."""

    @pytest.fixture
    def mailbox(self, db, make_message):
        messages = {
            "incoming": make_message("in", direction=Direction.INCOMING),
            "outgoing": make_message("out", direction=Direction.OUTGOING),
            "important": make_message("imp", direction=Direction.INCOMING, is_important=True),
            "deleted_in": make_message("del-in", direction=Direction.INCOMING),
            "deleted_out": make_message("del-out", direction=Direction.OUTGOING, is_important=True),
        }
        db.soft_delete_thread("del-in")
        db.soft_delete_thread("del-out")
        return messages

    def _list(self, service, view):
        return set(_ids(service.list_messages(ListOptions(filter=view, page_size=100))))

    def test_inbox(self, service, mailbox):
        assert self._list(service, "inbox") == {mailbox["incoming"].id, mailbox["important"].id}

    def test_sent(self, service, mailbox):
        assert self._list(service, "sent") == {mailbox["outgoing"].id}

    def test_important(self, service, mailbox):
        assert self._list(service, "important") == {mailbox["important"].id}

    def test_trash(self, service, mailbox):
        assert self._list(service, "trash") == {mailbox["deleted_in"].id, mailbox["deleted_out"].id}

    def test_default_excludes_deleted(self, service, mailbox):
        assert self._list(service, None) == {
            mailbox["incoming"].id, mailbox["outgoing"].id, mailbox["important"].id,
        }

    @pytest.mark.parametrize("thread_only", [False, True])
    def test_inbox_and_sent_never_contain_deleted(self, service, mailbox, thread_only):
        for view in ("inbox", "sent"):
            result = service.list_messages(ListOptions(filter=view, thread_only=thread_only))
            assert not any(m.is_deleted for m in result.data)


class TestFlatListing:
    """Tests for ungrouped listing."""

    def test_thread_is_chronological(self, service, make_message):
        first = make_message("c1", minutes=1)
        second = make_message("c1", minutes=2)
        make_message("c2", minutes=3)

        result = service.list_messages(ListOptions(thread_id="c1"))

        assert _ids(result) == [first.id, second.id]
        assert result.pagination.total == 2

    def test_mailbox_is_newest_first(self, service, make_message):
        first = make_message("c1", minutes=1)
        second = make_message("c2", minutes=2)

        result = service.list_messages(ListOptions())

        assert _ids(result) == [second.id, first.id]

    def test_flat_keeps_own_importance(self, service, make_message):
        make_message("c1", is_important=True)
        latest = make_message("c1", is_important=False)

        result = service.list_messages(ListOptions(thread_id="c1"))

        assert [m.is_important for m in result.data] == [True, False]
        assert result.data[1].id == latest.id

    def test_page_past_end_keeps_total(self, service, make_message):
        for _ in range(3):
            make_message("c1")

        result = service.list_messages(ListOptions(page=5, page_size=2))

        assert result.data == []
        assert result.pagination.total == 3


class TestSearch:
    """Tests for search through list_messages."""

    def test_address_search(self, service, make_message):
        match = make_message("c1", sender="isabella.young@uniquedomain.test")
        make_message("c2", sender="other@domain.test")

        result = service.list_messages(ListOptions(search="isabella.young", thread_only=True))

        assert _ids(result) == [match.id]

    def test_zero_matches(self, service, make_message):
        make_message("c1", subject="Hello")

        result = service.list_messages(ListOptions(search="zzzqqq", thread_only=True))

        assert result.data == []
        assert result.pagination.total == 0

    @pytest.mark.parametrize("term", ["", "a", "ab"])
    def test_short_terms_behave_like_no_search(self, service, make_message, term):
        make_message("c1", subject="Alpha")
        make_message("c2", subject="Beta")

        baseline = service.list_messages(ListOptions(thread_only=True))
        result = service.list_messages(ListOptions(search=term, thread_only=True))

        assert _ids(result) == _ids(baseline)
        assert result.pagination.total == baseline.pagination.total

    def test_search_combined_with_view(self, service, make_message):
        make_message("c1", subject="Planning", direction=Direction.INCOMING)
        sent = make_message("c2", subject="Planning", direction=Direction.OUTGOING)

        result = service.list_messages(ListOptions(search="plan", filter="sent"))

        assert _ids(result) == [sent.id]

    def test_search_representative_is_latest_matching(self, service, make_message):
        match = make_message("c1", subject="Budget numbers")
        make_message("c1", subject="Re: lunch")

        result = service.list_messages(ListOptions(search="budget", thread_only=True))

        assert _ids(result) == [match.id]

    def test_substring_fallback_without_index(self, db_no_fts):
        service = MailService(db_no_fts)
        match = db_no_fts.insert_message(
            "c1", "Hello", "isabella.young@uniquedomain.test", "me@test.com"
        )
        db_no_fts.insert_message("c2", "Other", "someone@test.com", "me@test.com")

        result = service.list_messages(ListOptions(search="ISABELLA.young"))

        assert _ids(result) == [match.id]

    def test_fallback_after_index_breaks(self, service, db, make_message):
        match = make_message("c1", subject="Planning")
        with sqlite3.connect(db.db_path) as conn:
            conn.execute("DROP TRIGGER emails_fts_insert")
            conn.execute("DROP TRIGGER emails_fts_update")
            conn.execute("DROP TRIGGER emails_fts_delete")
            conn.execute("DROP TABLE emails_fts")

        result = service.list_messages(ListOptions(search="Plan"))

        assert _ids(result) == [match.id]


class TestMutations:
    """Tests for create/update/delete entry points."""

    def test_create_new_thread(self, service):
        message = service.create_message({
            "to": "bob@test.com",
            "subject": "Hi",
            "content": "Hello Bob",
        })
        assert message.direction == Direction.OUTGOING
        assert message.is_read is True
        assert message.sender == "me@example.com"
        assert str(uuid.UUID(message.thread_id)) == message.thread_id

    def test_create_reply(self, service, make_message):
        original = make_message("c1")
        reply = service.create_message({
            "to": "bob@test.com",
            "subject": "Re: Hi",
            "threadId": original.thread_id,
        })
        assert reply.thread_id == "c1"

    def test_create_empty_optional_fields_are_null(self, service):
        message = service.create_message({
            "to": "bob@test.com",
            "subject": "Hi",
            "cc": "",
            "bcc": "",
            "content": "",
        })
        assert message.cc is None
        assert message.bcc is None
        assert message.content is None

    def test_create_rejects_invalid_input(self, service, db):
        with pytest.raises(ServiceError) as exc_info:
            service.create_message({"to": "not-an-address", "subject": ""})
        assert exc_info.value.code == "VALIDATION_ERROR"
        assert "to" in exc_info.value.details
        assert "subject" in exc_info.value.details
        assert db.get_message_count() == 0

    def test_update_message(self, service, make_message):
        message = make_message()
        updated = service.update_message(message.id, {"isRead": True, "isImportant": True})
        assert updated.is_read is True
        assert updated.is_important is True

    def test_update_missing(self, service):
        assert service.update_message(404, {"isRead": True}) is None

    def test_delete_restore_round_trip(self, service, db, make_message):
        members = [make_message("c1") for _ in range(3)]

        assert service.delete_thread("c1") is True
        assert service.list_messages(ListOptions(thread_id="c1")).pagination.total == 0
        assert service.list_messages(ListOptions(thread_id="c1", filter="trash")).pagination.total == 3

        assert service.restore_thread("c1") is True
        assert not any(db.get_message(m.id).is_deleted for m in members)

    def test_permanent_delete(self, service, make_message):
        members = [make_message("c1") for _ in range(2)]
        assert service.permanently_delete_thread("c1") is True
        assert all(service.get_message(m.id) is None for m in members)

    def test_delete_single_message(self, service, make_message):
        message = make_message()
        assert service.delete_message(message.id) is True
        assert service.get_message(message.id).is_deleted is True
        assert service.delete_message(9999) is False

    def test_thread_counts(self, service, make_message):
        make_message("c1", is_read=False)
        counts = service.get_thread_counts()
        assert counts.inbox == 1
        assert counts.unread == 1

    def test_rebuild_search_index(self, service, make_message):
        make_message(subject="Reindexed")
        assert service.rebuild_search_index() is True
        assert service.db.get_fts_count() == 1


class TestErrorHandling:
    """Tests for storage failure wrapping."""

    def test_storage_error_becomes_db_error(self):
        db = MagicMock()
        db.get_message.side_effect = sqlite3.OperationalError("disk I/O error")
        service = MailService(db)

        with pytest.raises(ServiceError) as exc_info:
            service.get_message(1)

        assert exc_info.value.code == "DB_ERROR"
        assert exc_info.value.status_code == 500
        assert "get_message" in exc_info.value.message
        assert isinstance(exc_info.value.__cause__, sqlite3.OperationalError)

    def test_thread_mutation_error_names_operation(self):
        db = MagicMock()
        db.hard_delete_thread.side_effect = sqlite3.OperationalError("locked")
        service = MailService(db)

        with pytest.raises(ServiceError) as exc_info:
            service.permanently_delete_thread("c1")

        assert "permanently_delete_thread" in exc_info.value.message
