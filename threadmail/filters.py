"""Composable SQL conditions for mailbox views.

A Condition is a SQL boolean fragment plus its bound parameters. Views map
to fixed conditions over the emails table; the search resolver and the
thread scope contribute further conditions and everything is ANDed.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional

from threadmail.models import Direction


@dataclass(frozen=True)
class Condition:
    """A SQL WHERE fragment with positional (?) parameters."""
    sql: str
    params: tuple = field(default_factory=tuple)


TRUE = Condition("1=1")
FALSE = Condition("1=0")

FILTER_CONDITIONS: Dict[str, Callable[[], Condition]] = {
    "trash": lambda: Condition("is_deleted = 1"),
    "inbox": lambda: Condition(
        "is_deleted = 0 AND direction = ?", (Direction.INCOMING.value,)
    ),
    "sent": lambda: Condition(
        "is_deleted = 0 AND direction = ?", (Direction.OUTGOING.value,)
    ),
    "important": lambda: Condition("is_deleted = 0 AND is_important = 1"),
    "default": lambda: Condition("is_deleted = 0"),
}

VIEW_NAMES = ("inbox", "sent", "important", "trash")


def filter_condition(view: Optional[str]) -> Condition:
    """Condition for a named view; unknown or missing views mean all non-deleted."""
    builder = FILTER_CONDITIONS.get(view or "default", FILTER_CONDITIONS["default"])
    return builder()


def thread_condition(thread_id: Optional[str]) -> Optional[Condition]:
    if not thread_id:
        return None
    return Condition("thread_id = ?", (thread_id,))


def ids_condition(ids: List[int]) -> Condition:
    """Membership test on message id. An empty id list matches nothing."""
    if not ids:
        return FALSE
    # json_each keeps this a single bound parameter regardless of list size
    return Condition("id IN (SELECT value FROM json_each(?))", (json.dumps(list(ids)),))


def combine(conditions: Iterable[Optional[Condition]]) -> Condition:
    """AND together every non-None condition."""
    parts = [c for c in conditions if c is not None]
    if not parts:
        return TRUE
    if len(parts) == 1:
        return parts[0]
    sql = " AND ".join(f"({c.sql})" for c in parts)
    params: tuple = ()
    for c in parts:
        params += c.params
    return Condition(sql, params)
