"""Best-effort audit trail for availability queries and reservation activity."""

from __future__ import annotations

import sqlite3
from typing import Any

from space_rental.repository.data_repository import DataRepository
from space_rental.utils.logger import get_logger


logger = get_logger(__name__)

CHECK_AVAILABILITY = "CHECK_AVAILABILITY"
SUBMIT_RESERVATION = "SUBMIT_RESERVATION"
CONFIRM_PAYMENT = "CONFIRM_PAYMENT"


class ActivityLogService:
    """Writes audit rows; storage failures are logged and never raised."""

    def __init__(self, repository: DataRepository) -> None:
        self._repository = repository

    def record(self, action: str, **detail: Any) -> None:
        try:
            self._repository.append_activity_log(action, detail)
        except (sqlite3.Error, OSError):
            logger.warning("Activity log write failed for %s", action, exc_info=True)
