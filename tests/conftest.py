"""Pytest fixtures for threadmail tests."""

import itertools
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from threadmail.database import MailDatabase
from threadmail.models import Direction
from threadmail.service import MailService

BASE_TIME = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def db(temp_dir):
    """A fresh on-disk database with the full-text index."""
    return MailDatabase(temp_dir / "threadmail.db")


@pytest.fixture
def db_no_fts(temp_dir):
    """A database created without the full-text index."""
    return MailDatabase(temp_dir / "plain.db", enable_fts=False)


@pytest.fixture
def service(db):
    return MailService(db, user_email="me@example.com")


@pytest.fixture
def make_message(db):
    """Insert messages with strictly increasing created_at by default.

    Each call advances the clock by one minute unless `minutes` (offset
    from BASE_TIME) is given.
    """
    clock = itertools.count()

    def _make(thread_id="t1", minutes=None, **overrides):
        offset = next(clock) if minutes is None else minutes
        fields = {
            "subject": "Test Subject",
            "sender": "sender@test.com",
            "recipient": "recipient@test.com",
            "content": "Test content",
            "direction": Direction.INCOMING,
            "created_at": BASE_TIME + timedelta(minutes=offset),
        }
        fields.update(overrides)
        return db.insert_message(thread_id=thread_id, **fields)

    return _make
