"""Calendar events for confirmed reservations."""

from __future__ import annotations

import sqlite3
import uuid
from datetime import datetime
from typing import Optional

from space_rental.repository.data_repository import CalendarEventRecord, DataRepository
from space_rental.utils.logger import get_logger


logger = get_logger(__name__)


class CalendarError(Exception):
    """Raised when the calendar cannot create or remove an event."""


class CalendarService:
    """Event store backed by the ``CalendarEvents`` table."""

    def __init__(self, repository: DataRepository) -> None:
        self._repository = repository

    def create_event(
        self,
        title: str,
        start: datetime,
        end: datetime,
        description: str = "",
        location: str = "",
    ) -> str:
        if end <= start:
            raise CalendarError("Calendar event must end after it starts")
        event_id = uuid.uuid4().hex
        try:
            self._repository.insert_calendar_event(
                CalendarEventRecord(
                    event_id=event_id,
                    title=title,
                    start_at=start.isoformat(timespec="minutes"),
                    end_at=end.isoformat(timespec="minutes"),
                    description=description,
                    location=location,
                )
            )
        except sqlite3.Error as exc:
            raise CalendarError("Calendar event creation failed") from exc
        logger.info("Calendar event %s created for %s", event_id, title)
        return event_id

    def delete_event(self, event_id: str) -> bool:
        try:
            deleted = self._repository.delete_calendar_event(event_id)
        except sqlite3.Error:
            logger.warning("Calendar event %s could not be deleted", event_id, exc_info=True)
            return False
        if not deleted:
            logger.info("Calendar event %s was already absent", event_id)
        return deleted

    def get_event(self, event_id: str) -> Optional[CalendarEventRecord]:
        return self._repository.get_calendar_event(event_id)
