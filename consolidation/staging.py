"""
Append change events to the staging table.

Redelivered events (same event_id) are ignored, so writers may retry freely.
"""

from typing import Any, Dict, Iterable, Union
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker
from pydantic import ValidationError
import logging

from core.database import dialect_insert
from core.exceptions import StagingError
from models.change_event import ChangeEvent
from schemas.events import StagedEvent

logger = logging.getLogger(__name__)


class StagingWriter:

    def __init__(self, session_factory: async_sessionmaker, staging_model=ChangeEvent):
        self.session_factory = session_factory
        self.staging_model = staging_model

    async def append(self, events: Iterable[Union[StagedEvent, Dict[str, Any]]]) -> int:
        """
        Validate and stage events in one transaction.

        Returns:
            Number of newly staged events (duplicates excluded)

        Raises:
            StagingError: An event failed validation or the insert failed
        """
        staged = []
        for event in events:
            try:
                staged.append(event if isinstance(event, StagedEvent) else StagedEvent(**event))
            except ValidationError as e:
                raise StagingError(
                    "Invalid change event",
                    context={
                        "staging_table": self.staging_model.__table__.fullname,
                        "event_id": event.get("event_id") if isinstance(event, dict) else None
                    },
                    original_exception=e
                )

        if not staged:
            return 0

        inserted = 0

        try:
            async with self.session_factory() as session:
                async with session.begin():
                    insert = dialect_insert(session)
                    for event in staged:
                        result = await session.execute(
                            insert(self.staging_model)
                            .values(**event.model_dump())
                            .on_conflict_do_nothing(index_elements=["event_id"])
                        )
                        if result.rowcount == 1:
                            inserted += 1
                        else:
                            logger.info(f"Duplicate event ignored: {event.event_id}")
        except SQLAlchemyError as e:
            raise StagingError(
                "Failed to stage change events",
                context={"staging_table": self.staging_model.__table__.fullname},
                original_exception=e
            )

        logger.info(f"Staged {inserted} of {len(staged)} change events")
        return inserted
