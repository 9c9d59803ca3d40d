"""Search term resolution against the full-text index.

Search terms go through two tiers:

1. FTS5 lookup on emails_fts, returning the matching message ids. Each
   token of the normalized term is matched as a prefix, so "Plan" finds
   "Planning" and "isabella.young" finds "isabella.young@example.test".
2. When the index is missing or errors, a case-insensitive substring
   match over subject/from/to/content on the emails table.

Terms shorter than MIN_SEARCH_LENGTH are not searched at all.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, List, Optional

from threadmail.filters import Condition, ids_condition

if TYPE_CHECKING:
    from threadmail.database import MailDatabase

logger = logging.getLogger(__name__)

MIN_SEARCH_LENGTH = 3

# Characters the unicode61 tokenizer treats as separators inside addresses
ADDRESS_DELIMITERS_RE = re.compile(r"[.@\-_]")
NON_WORD_RE = re.compile(r"[^a-zA-Z0-9\s]")
WHITESPACE_RE = re.compile(r"\s+")

SUBSTRING_FIELDS = ("subject", '"from"', '"to"', "content")


def is_searchable(term: Optional[str]) -> bool:
    """Return True if the term is long enough to search for."""
    return bool(term) and len(term) >= MIN_SEARCH_LENGTH


def normalize_search_term(term: str) -> str:
    """Normalize a raw term into whitespace-separated index tokens.

    Address delimiters become spaces, other punctuation is dropped and
    whitespace runs collapse.

    >>> normalize_search_term("isabella.young@x-y.test")
    'isabella young x y test'
    """
    term = ADDRESS_DELIMITERS_RE.sub(" ", term)
    term = NON_WORD_RE.sub("", term)
    return WHITESPACE_RE.sub(" ", term).strip()


def build_match_query(normalized: str) -> str:
    """Build an FTS5 MATCH expression with every token as a prefix query.

    Tokens are quoted so words like AND/OR/NOT stay plain terms.
    """
    return " ".join(f'"{token}"*' for token in normalized.split())


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def substring_condition(term: str) -> Condition:
    """OR of case-insensitive substring matches across the searchable fields."""
    pattern = f"%{_escape_like(term)}%"
    sql = " OR ".join(f"{column} LIKE ? ESCAPE '\\'" for column in SUBSTRING_FIELDS)
    return Condition(sql, (pattern,) * len(SUBSTRING_FIELDS))


class SearchResolver:
    """Turns a raw search term into a condition over the emails table."""

    def __init__(self, db: "MailDatabase"):
        self.db = db

    def resolve(self, term: str) -> Optional[List[int]]:
        """Look up message ids for a term in the full-text index.

        Returns:
            List of matching ids (possibly empty, meaning nothing matches),
            or None if the index is unavailable and the caller should fall
            back to substring matching
        """
        try:
            if not self.db.fts_available():
                return None

            normalized = normalize_search_term(term)
            if not normalized:
                return []

            with self.db.connection() as conn:
                rows = conn.execute(
                    "SELECT email_id FROM emails_fts WHERE emails_fts MATCH ?",
                    (build_match_query(normalized),)
                ).fetchall()
            return [row[0] for row in rows]
        except Exception as e:
            logger.warning("[search] Full-text lookup failed, falling back to substring match: %s", e)
            return None

    def condition(self, term: Optional[str]) -> Optional[Condition]:
        """Condition restricting results to messages matching the term.

        Returns None (no constraint) for terms shorter than three characters.
        """
        if not is_searchable(term):
            return None

        ids = self.resolve(term)
        if ids is None:
            logger.debug("[search] Using substring path for %r", term)
            return substring_condition(term)
        logger.debug("[search] Full-text path matched %d messages", len(ids))
        return ids_condition(ids)
