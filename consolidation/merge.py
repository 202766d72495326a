# ============================================================================
# File: consolidation/merge.py
# Description: Last-write-wins consolidation of staged change events
# ============================================================================
"""
Merge Engine - reconciles the staging table into the latest-state table.

One pass:
1. Snapshot every staged event
2. Group by document_id and pick the latest event per document
3. Insert / update / delete latest-state rows
4. Delete the consumed staging rows

Steps 3 and 4 run in the same transaction as the snapshot, writes first and
the staging delete last, so readers see either the whole pass or none of it.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set
from sqlalchemy import select, insert, update, delete
from sqlalchemy.ext.asyncio import async_sessionmaker, AsyncSession
from pydantic import ValidationError
import logging

from core.clock import utcnow
from core.config import settings
from core.exceptions import MergeFailed
from models.base import Operation
from models.change_event import ChangeEvent, EntityRecord
from schemas.events import StagedEvent

logger = logging.getLogger(__name__)


@dataclass
class MergePlan:
    """Entity-level mutations decided by one pass"""
    inserts: List[StagedEvent] = field(default_factory=list)
    updates: List[StagedEvent] = field(default_factory=list)
    deletes: List[str] = field(default_factory=list)
    consumed_event_ids: Set[str] = field(default_factory=set)
    skipped: int = 0

    @property
    def rows_affected(self) -> int:
        return len(self.inserts) + len(self.updates) + len(self.deletes)


@dataclass
class MergeResult:
    """Statistics of a committed pass"""
    events_consumed: int = 0
    rows_inserted: int = 0
    rows_updated: int = 0
    rows_deleted: int = 0
    entities_skipped: int = 0

    @property
    def rows_affected(self) -> int:
        # Net effective mutations: an entity created and deleted within the
        # same pass is never written, so it does not count.
        return self.rows_inserted + self.rows_updated + self.rows_deleted

    @classmethod
    def from_plan(cls, plan: MergePlan) -> "MergeResult":
        return cls(
            events_consumed=len(plan.consumed_event_ids),
            rows_inserted=len(plan.inserts),
            rows_updated=len(plan.updates),
            rows_deleted=len(plan.deletes),
            entities_skipped=plan.skipped
        )

    def to_dict(self) -> Dict[str, int]:
        return {
            "events_consumed": self.events_consumed,
            "rows_inserted": self.rows_inserted,
            "rows_updated": self.rows_updated,
            "rows_deleted": self.rows_deleted,
            "entities_skipped": self.entities_skipped,
            "rows_affected": self.rows_affected,
        }


def group_by_document(events: Iterable[StagedEvent]) -> Dict[str, List[StagedEvent]]:
    groups: Dict[str, List[StagedEvent]] = {}
    for event in events:
        groups.setdefault(event.document_id, []).append(event)
    return groups


def select_latest(events: List[StagedEvent]) -> StagedEvent:
    """
    Pick the authoritative event of a group: greatest timestamp, exact ties
    broken by the lexicographically highest event_id.
    """
    return max(events, key=lambda e: (e.timestamp, e.event_id))


def plan_merge(
    events: Iterable[StagedEvent],
    current_latest: Mapping[str, Any]
) -> MergePlan:
    """
    Decide the mutations of one pass.

    Args:
        events: Staged events of the snapshot
        current_latest: Existing latest-state rows by document_id; only
            their ``timestamp`` attribute is read

    Returns:
        MergePlan. Every event of every group is consumed, including events
        superseded within the pass and stale ones.
    """
    plan = MergePlan()

    for document_id, group in group_by_document(events).items():
        plan.consumed_event_ids.update(e.event_id for e in group)
        latest = select_latest(group)
        existing = current_latest.get(document_id)

        if existing is None:
            if latest.operation in (Operation.CREATE, Operation.UPDATE):
                plan.inserts.append(latest)
            else:
                plan.skipped += 1  # nothing to delete
            continue

        if latest.timestamp <= existing.timestamp:
            plan.skipped += 1  # stale
            continue

        if latest.operation == Operation.DELETE:
            plan.deletes.append(document_id)
        elif latest.operation == Operation.UPDATE:
            plan.updates.append(latest)
        else:
            # CREATE never overwrites an existing entity
            plan.skipped += 1

    return plan


class MergeEngine:
    """
    Transactional consolidation of one staging / latest-state table pair.

    Guarantees:
    - All-or-nothing visibility of entity mutations and staging clear
    - Only the snapshot's events are cleared; events staged during the
      pass remain for the next one
    - Idempotent: an empty staging table is a no-op
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        staging_model=ChangeEvent,
        latest_model=EntityRecord,
        batch_size: Optional[int] = None
    ):
        self.session_factory = session_factory
        self.staging_model = staging_model
        self.latest_model = latest_model
        self.batch_size = batch_size or settings.SYNC_BATCH_SIZE

    @property
    def tables(self) -> Dict[str, str]:
        return {
            "staging_table": self.staging_model.__table__.fullname,
            "latest_table": self.latest_model.__table__.fullname,
        }

    async def consolidate(self) -> MergeResult:
        """
        Run one consolidation pass.

        Raises:
            MergeFailed: The pass could not complete; nothing was committed
        """
        phase = "snapshot"

        try:
            async with self.session_factory() as session:
                async with session.begin():
                    events = await self._snapshot_staging(session)

                    if not events:
                        logger.info(f"No staged events in {self.tables['staging_table']}")
                        return MergeResult()

                    phase = "plan"
                    current = await self._load_latest(session, {e.document_id for e in events})
                    plan = plan_merge(events, current)

                    phase = "apply"
                    await self._apply(session, plan)

                    phase = "clear"
                    await self._clear_staging(session, plan.consumed_event_ids)

        except MergeFailed:
            raise

        except Exception as e:
            logger.error(f"Consolidation failed during {phase}: {str(e)}")
            raise MergeFailed(
                "Consolidation pass could not complete",
                context={**self.tables, "phase": phase},
                original_exception=e
            )

        result = MergeResult.from_plan(plan)
        logger.info(
            f"Consolidated {result.events_consumed} events: "
            f"inserted={result.rows_inserted}, updated={result.rows_updated}, "
            f"deleted={result.rows_deleted}, skipped={result.entities_skipped}"
        )
        return result

    async def _snapshot_staging(self, session: AsyncSession) -> List[StagedEvent]:
        result = await session.execute(
            select(self.staging_model).order_by(
                self.staging_model.document_id,
                self.staging_model.timestamp
            )
        )
        events = []

        for row in result.scalars().all():
            try:
                events.append(StagedEvent.model_validate(row))
            except ValidationError as e:
                raise MergeFailed(
                    "Malformed staged event",
                    context={**self.tables, "phase": "snapshot", "event_id": row.event_id},
                    original_exception=e
                )

        logger.info(f"Snapshot holds {len(events)} staged events")
        return events

    async def _load_latest(self, session: AsyncSession, document_ids: Set[str]) -> Dict[str, Any]:
        latest = {}
        ids = sorted(document_ids)

        for i in range(0, len(ids), self.batch_size):
            result = await session.execute(
                select(self.latest_model).where(
                    self.latest_model.document_id.in_(ids[i:i + self.batch_size])
                )
            )
            for record in result.scalars().all():
                latest[record.document_id] = record

        return latest

    def _entity_values(self, event: StagedEvent, now) -> Dict[str, Any]:
        return {
            "timestamp": event.timestamp,
            "operation": event.operation,
            "event_id": event.event_id,
            "payload": event.payload,
            "consolidated_at": now,
        }

    async def _apply(self, session: AsyncSession, plan: MergePlan) -> None:
        now = utcnow()

        if plan.inserts:
            await session.execute(
                insert(self.latest_model),
                [
                    {"document_id": e.document_id, **self._entity_values(e, now)}
                    for e in plan.inserts
                ]
            )

        for event in plan.updates:
            await session.execute(
                update(self.latest_model)
                .where(self.latest_model.document_id == event.document_id)
                .values(**self._entity_values(event, now))
                .execution_options(synchronize_session=False)
            )

        for i in range(0, len(plan.deletes), self.batch_size):
            await session.execute(
                delete(self.latest_model)
                .where(self.latest_model.document_id.in_(plan.deletes[i:i + self.batch_size]))
                .execution_options(synchronize_session=False)
            )

    async def _clear_staging(self, session: AsyncSession, event_ids: Set[str]) -> None:
        ids = sorted(event_ids)

        for i in range(0, len(ids), self.batch_size):
            await session.execute(
                delete(self.staging_model)
                .where(self.staging_model.event_id.in_(ids[i:i + self.batch_size]))
                .execution_options(synchronize_session=False)
            )

        logger.info(f"Cleared {len(ids)} events from {self.tables['staging_table']}")
