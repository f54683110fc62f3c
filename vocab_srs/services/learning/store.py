"""
Scheduling Storage Contract

The engine never touches storage. Services reach persistence only through
SchedulingStore, a structural protocol that any backend can satisfy.

Implementations:
- InMemorySchedulingStore (this module): dict-backed, for tests and
  single-process use
- SqlAlchemySchedulingStore (vocab_srs.db.repository): async SQLAlchemy

Concurrency contract:
    Records and aggregates both carry a version. Inserting a record or an
    aggregate that has none stored always succeeds. Replacing a stored one
    succeeds only if the new version == stored.version + 1; otherwise the
    store raises ConcurrentUpdateError and nothing is written.

    commit_review() writes the reviewed record, its log entry and the book
    aggregate as one unit. Either all three land or none do.
"""

from typing import Optional, Protocol, Sequence, runtime_checkable

from vocab_srs.exceptions import ConcurrentUpdateError
from vocab_srs.models.learning import BookProgress
from vocab_srs.services.learning.card_state import ReviewLog, SchedulingRecord


@runtime_checkable
class SchedulingStore(Protocol):
    """Protocol for scheduling persistence backends."""

    async def load_record(self, user_id: str, item_id: str) -> Optional[SchedulingRecord]:
        """Load one record; None if the item has never been scheduled."""
        ...

    async def save_record(self, record: SchedulingRecord) -> None:
        """Insert or replace a full record (optimistic lock on version)."""
        ...

    async def append_review_log(self, entry: ReviewLog) -> None:
        """Append one review log entry."""
        ...

    async def commit_review(
        self, record: SchedulingRecord, entry: ReviewLog, aggregate: BookProgress
    ) -> None:
        """Atomically save a reviewed record, its log entry and the aggregate."""
        ...

    async def load_pool(self, user_id: str, collection_id: str) -> list[SchedulingRecord]:
        """Load every record of a user × collection."""
        ...

    async def load_unseen_item_ids(
        self, collection_id: str, excluding: set[str]
    ) -> list[str]:
        """Collection items not in ``excluding``, in collection order."""
        ...

    async def count_items(self, collection_id: str) -> int:
        """Number of items in a collection."""
        ...

    async def load_aggregate(self, user_id: str, collection_id: str) -> Optional[BookProgress]:
        """Load the progress aggregate; None if the book was never started."""
        ...

    async def save_aggregate(self, aggregate: BookProgress) -> None:
        """Insert or replace the progress aggregate (optimistic lock on version)."""
        ...


class InMemorySchedulingStore:
    """
    Dict-backed SchedulingStore.

    Every method completes without awaiting, so each call is atomic with
    respect to other coroutines on the same event loop.
    """

    def __init__(self):
        self._records: dict[tuple[str, str], SchedulingRecord] = {}
        self._logs: list[ReviewLog] = []
        self._aggregates: dict[tuple[str, str], BookProgress] = {}
        self._collections: dict[str, list[str]] = {}

    # Collection content (managed outside the engine)

    def add_collection(self, collection_id: str, item_ids: Sequence[str]) -> None:
        """Register the items of a collection, in collection order."""
        self._collections[collection_id] = list(item_ids)

    @property
    def review_logs(self) -> list[ReviewLog]:
        return list(self._logs)

    # SchedulingStore

    async def load_record(self, user_id: str, item_id: str) -> Optional[SchedulingRecord]:
        return self._records.get((user_id, item_id))

    async def save_record(self, record: SchedulingRecord) -> None:
        self._check_record(record)
        self._records[(record.user_id, record.item_id)] = record

    async def append_review_log(self, entry: ReviewLog) -> None:
        self._logs.append(entry)

    async def commit_review(
        self, record: SchedulingRecord, entry: ReviewLog, aggregate: BookProgress
    ) -> None:
        # Both checks run before any write, so a conflict leaves nothing behind.
        self._check_record(record)
        self._check_aggregate(aggregate)
        self._records[(record.user_id, record.item_id)] = record
        self._logs.append(entry)
        self._aggregates[(aggregate.user_id, aggregate.collection_id)] = aggregate

    async def load_pool(self, user_id: str, collection_id: str) -> list[SchedulingRecord]:
        return [
            record
            for (owner, _), record in self._records.items()
            if owner == user_id and record.collection_id == collection_id
        ]

    async def load_unseen_item_ids(
        self, collection_id: str, excluding: set[str]
    ) -> list[str]:
        return [
            item_id
            for item_id in self._collections.get(collection_id, [])
            if item_id not in excluding
        ]

    async def count_items(self, collection_id: str) -> int:
        return len(self._collections.get(collection_id, []))

    async def load_aggregate(self, user_id: str, collection_id: str) -> Optional[BookProgress]:
        return self._aggregates.get((user_id, collection_id))

    async def save_aggregate(self, aggregate: BookProgress) -> None:
        self._check_aggregate(aggregate)
        self._aggregates[(aggregate.user_id, aggregate.collection_id)] = aggregate

    # Version checks

    def _check_record(self, record: SchedulingRecord) -> None:
        stored = self._records.get((record.user_id, record.item_id))
        if stored is not None and record.version != stored.version + 1:
            raise ConcurrentUpdateError(
                f"Stale write for item {record.item_id}",
                details={
                    "item_id": record.item_id,
                    "stored_version": stored.version,
                    "attempted_version": record.version,
                },
            )

    def _check_aggregate(self, aggregate: BookProgress) -> None:
        stored = self._aggregates.get((aggregate.user_id, aggregate.collection_id))
        if stored is not None and aggregate.version != stored.version + 1:
            raise ConcurrentUpdateError(
                f"Stale progress write for collection {aggregate.collection_id}",
                details={
                    "collection_id": aggregate.collection_id,
                    "stored_version": stored.version,
                    "attempted_version": aggregate.version,
                },
            )
