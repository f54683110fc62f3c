"""
Study Session Composition

Turns a user's scheduling records for one collection into a bounded daily
queue. Read-only: nothing here writes to storage or changes a record.

Algorithm:
1. Due items: records with history and due_at <= now, learning-phase items
   first, then by due time plus a small per-item random jitter so the order
   varies across sessions. Capped at the daily review limit.
2. New items: collection items without review history, in collection order
   (or shuffled for random study order). Capped at the daily new limit.
3. estimated_minutes = ceil(minutes_per_item × total).

Records still in state NEW (created eagerly when a book is started) have no
history; their items are introduced through the new set, not the due set.

Usage:
    from vocab_srs.services.learning.session_composer import compose_session

    session = compose_session(
        records, unseen_ids, now,
        daily_new_limit=20, daily_review_limit=100,
        rng=random.Random(42),
    )
"""

import logging
import math
import random
from datetime import datetime, timedelta
from typing import Iterable, Optional, Sequence

from vocab_srs.enums.learning import StudyOrder
from vocab_srs.exceptions import ContractViolationError
from vocab_srs.models.learning import SessionItem, StudySession
from vocab_srs.services.learning.card_state import SchedulingRecord

logger = logging.getLogger(__name__)

DEFAULT_JITTER_MINUTES = 5.0
DEFAULT_MINUTES_PER_ITEM = 0.5


def estimate_minutes(item_count: int, minutes_per_item: float = DEFAULT_MINUTES_PER_ITEM) -> int:
    """Time budget for ``item_count`` items, rounded up to whole minutes."""
    return math.ceil(item_count * minutes_per_item)


def select_due_records(
    records: Iterable[SchedulingRecord],
    now: datetime,
    limit: int,
    rng: random.Random,
    jitter_minutes: float = DEFAULT_JITTER_MINUTES,
) -> list[SchedulingRecord]:
    """
    Pick due records in priority order.

    Learning-phase records come first. Within each group records are ordered
    by due_at shifted by a uniform jitter in [0, jitter_minutes].
    """
    due = [r for r in records if not r.is_new() and r.due_at <= now]

    keyed = [
        (
            not record.is_learning_phase,
            record.due_at + timedelta(minutes=rng.uniform(0, jitter_minutes)),
            index,
            record,
        )
        for index, record in enumerate(due)
    ]
    keyed.sort(key=lambda entry: entry[:3])

    return [entry[3] for entry in keyed[:limit]]


def select_new_item_ids(
    unseen_item_ids: Sequence[str],
    limit: int,
    rng: random.Random,
    study_order: StudyOrder = StudyOrder.SEQUENTIAL,
    exclude: Optional[set[str]] = None,
) -> list[str]:
    """Pick never-seen items in collection order or shuffled."""
    exclude = exclude or set()
    candidates = [item_id for item_id in unseen_item_ids if item_id not in exclude]

    if study_order == StudyOrder.RANDOM:
        rng.shuffle(candidates)

    return candidates[:limit]


def compose_session(
    records: Iterable[SchedulingRecord],
    unseen_item_ids: Sequence[str],
    now: datetime,
    daily_new_limit: int,
    daily_review_limit: int,
    rng: Optional[random.Random] = None,
    study_order: StudyOrder = StudyOrder.SEQUENTIAL,
    jitter_minutes: float = DEFAULT_JITTER_MINUTES,
    minutes_per_item: float = DEFAULT_MINUTES_PER_ITEM,
) -> StudySession:
    """
    Compose today's study session.

    Args:
        records: Scheduling records of the user × collection
        unseen_item_ids: Collection items without review history, in
            collection order
        now: Reference time
        daily_new_limit: Max new items (0 yields no new items)
        daily_review_limit: Max due items (0 yields no due items)
        rng: Random source for jitter and shuffling
        study_order: Order of new items
        jitter_minutes: Upper bound of the per-item due-time jitter
        minutes_per_item: Time budget per item

    Returns:
        StudySession with due items first, then new items

    Raises:
        ContractViolationError: If a limit is negative
    """
    if daily_new_limit < 0 or daily_review_limit < 0:
        raise ContractViolationError(
            "Session limits must be non-negative",
            details={
                "daily_new_limit": daily_new_limit,
                "daily_review_limit": daily_review_limit,
            },
        )

    rng = rng or random.Random()
    records = list(records)

    due_records = select_due_records(
        records, now, daily_review_limit, rng, jitter_minutes=jitter_minutes
    )
    seen = {record.item_id for record in records if not record.is_new()}
    new_ids = select_new_item_ids(
        unseen_item_ids, daily_new_limit, rng, study_order=study_order, exclude=seen
    )

    review_items = [SessionItem.from_record(record) for record in due_records]
    new_items = [SessionItem.unseen(item_id) for item_id in new_ids]
    total = len(review_items) + len(new_items)

    logger.debug(
        f"Composed session: {len(review_items)} due (limit {daily_review_limit}), "
        f"{len(new_items)} new (limit {daily_new_limit})"
    )

    return StudySession(
        review_items=review_items,
        new_items=new_items,
        total_count=total,
        estimated_minutes=estimate_minutes(total, minutes_per_item),
    )
