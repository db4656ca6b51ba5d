"""Date-scoped reservation number generation."""

from __future__ import annotations

from datetime import date
from typing import Optional

from space_rental.repository.data_repository import DataRepository
from space_rental.utils.config import Settings, get_settings
from space_rental.utils.time_utils import compact_date, now_in

NUMBER_PREFIX = "RES"
SEQUENCE_DIGITS = 3
MAX_SEQUENCE = 10**SEQUENCE_DIGITS - 1


class ReservationNumberCapacityError(Exception):
    """Raised when a date already holds the maximum sequence number."""


class ReservationNumberGenerator:
    """Produces ``RES<YYYYMMDD>-<NNN>`` from the highest number issued that day.

    Not safe on its own: callers must hold the submission lock between
    ``generate`` and persisting the reservation.
    """

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)

    def generate(self, today: Optional[date] = None) -> str:
        issue_date = today or now_in(self._settings.timezone).date()
        prefix = f"{NUMBER_PREFIX}{compact_date(issue_date)}-"

        highest = 0
        for number in self._repository.list_reservation_numbers(prefix):
            suffix = number[len(prefix):]
            if suffix.isdigit():
                highest = max(highest, int(suffix))

        next_sequence = highest + 1
        if next_sequence > MAX_SEQUENCE:
            raise ReservationNumberCapacityError(
                f"Daily reservation capacity of {MAX_SEQUENCE} reached for {issue_date.isoformat()}"
            )
        return f"{prefix}{next_sequence:0{SEQUENCE_DIGITS}d}"
