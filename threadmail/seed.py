"""Sample conversations for trying out the web interface."""

import logging
import random
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from threadmail.database import MailDatabase
from threadmail.models import Direction

logger = logging.getLogger(__name__)

TEAM = "team@company.com"
ENGINEERING = "engineering@company.com"

SENDERS = [
    "sarah.johnson@company.com",
    "mike.chen@company.com",
    "lisa.wang@company.com",
    "david.kim@company.com",
    "alex.rodriguez@company.com",
    "emma.thompson@company.com",
    "isabella.garcia@company.com",
    "henry.moore@company.com",
    "contact@acmecorp.com",
]

# Each message: (sender index or "user", content, flags)
STORYLINES: List[Dict] = [
    {
        "subject": "Q1 Planning Kickoff",
        "recipient": TEAM,
        "messages": [
            (0, "Hi team, I'd like to kick off our Q1 planning session. Can we schedule "
                "a two-hour session next week?", {"is_important": True}),
            (1, "Great idea Sarah! I'm available Tuesday or Thursday afternoon.", {}),
            ("user", "Thursday works for me. I can summarize our Q4 learnings.", {}),
            (2, "Perfect, Thursday it is. I'll send out the calendar invite.", {}),
            (0, "I'll share the strategic objectives doc by EOD.", {"is_read": False}),
        ],
    },
    {
        "subject": "Sprint 24 Retro Notes",
        "recipient": ENGINEERING,
        "messages": [
            (4, "Key takeaways: shipped the dashboard on time, test coverage needs work.", {}),
            ("user", "I can help set up automated integration tests next sprint.", {}),
            (4, "Perfect. Let me know if you need time allocated for this.", {"is_read": False}),
        ],
    },
    {
        "subject": "Budget Approval: New Development Tools",
        "recipient": "user",
        "messages": [
            (7, "Could you approve licenses and a better CI/CD platform from the "
                "engineering budget?", {"is_important": True}),
            ("user", "Makes sense. Can you include a comparison of the CI/CD options?", {}),
            (7, "Attached a comparison; GitHub Actions looks the most cost-effective.", {"is_read": False}),
        ],
    },
    {
        "subject": "Workshop: Server Components",
        "recipient": TEAM,
        "messages": [
            (5, "I'll run a workshop next Friday at 2pm. All levels welcome!", {}),
            (3, "Count me in! Will it be recorded?", {}),
            (5, "Yes, I'll record it and share the link afterward.", {"is_read": False}),
        ],
    },
    {
        "subject": "Contract renewal",
        "recipient": "user",
        "messages": [
            (8, "Our contract is up for renewal next month. Can we set up a call?", {}),
            ("user", "Sure, does Wednesday at 10am work?", {}),
        ],
    },
    {
        "subject": "Design review feedback",
        "recipient": "user",
        "messages": [
            (6, "Left comments on the onboarding mockups, mostly spacing and copy.", {}),
        ],
    },
]


def seed_database(
    db: MailDatabase,
    user_email: str = "user@example.com",
    start: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
) -> int:
    """Insert the sample conversations unless the table already has rows.

    Args:
        db: Target database
        user_email: Address used for the user's own messages
        start: Timestamp of the first message (default: 60 days ago)
        rng: Random source for the gaps between messages

    Returns:
        Number of messages inserted (0 when skipped)
    """
    if db.get_message_count() > 0:
        logger.info("Database already contains data; skipping seed")
        return 0

    rng = rng or random.Random()
    current = start or datetime.now(timezone.utc) - timedelta(days=60)
    inserted = 0

    for storyline in STORYLINES:
        thread_id = str(uuid.uuid4())
        recipient = user_email if storyline["recipient"] == "user" else storyline["recipient"]
        when = current

        for author, content, flags in storyline["messages"]:
            if author == "user":
                sender, to, direction = user_email, recipient, Direction.OUTGOING
                if to == user_email:
                    to = SENDERS[storyline["messages"][0][0]]
            else:
                sender, to, direction = SENDERS[author], recipient, Direction.INCOMING

            db.insert_message(
                thread_id=thread_id,
                subject=storyline["subject"],
                sender=sender,
                recipient=to,
                content=content,
                is_read=flags.get("is_read", True),
                is_important=flags.get("is_important", False),
                direction=direction,
                created_at=when,
            )
            inserted += 1
            # 30 minutes to 2 days between messages in a thread
            when += timedelta(hours=rng.random() * 48 + 0.5)

        # 1 to 7 days between threads
        current += timedelta(days=rng.random() * 6 + 1)

    return inserted
