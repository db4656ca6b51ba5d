"""Slot conflict detection against the reservation table."""

from __future__ import annotations

import sqlite3
from typing import Optional

from space_rental.domain.constraints import intervals_overlap, rooms_conflict
from space_rental.domain.models import (
    AvailabilityResult,
    ConflictRef,
    Reservation,
    Room,
    TimeSlot,
)
from space_rental.repository.data_repository import DataRepository
from space_rental.services.activity_log_service import CHECK_AVAILABILITY, ActivityLogService
from space_rental.utils.config import Settings, get_settings
from space_rental.utils.logger import get_logger, log_fields
from space_rental.utils.time_utils import parse_time


logger = get_logger(__name__)


class AvailabilityError(Exception):
    """Base exception for availability lookups."""


class AvailabilityValidationError(AvailabilityError):
    """Raised when the queried slot itself is malformed."""


class AvailabilityLookupError(AvailabilityError):
    """Raised when the reservation table cannot be read."""


class AvailabilityService:
    """Decides whether a slot is free by scanning every stored reservation.

    Only confirmed reservations are binding unless the deployment opts into
    blocking on pending holds as well. Reads take no lock: callers that need
    check-then-write atomicity hold the submission lock themselves.
    """

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
        activity_log: Optional[ActivityLogService] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._activity_log = activity_log or ActivityLogService(self._repository)

    def _is_binding(self, reservation: Reservation, include_pending: Optional[bool] = None) -> bool:
        if include_pending is None:
            include_pending = self._settings.block_on_pending_reservations
        return reservation.is_confirmed or include_pending

    def check_availability(
        self,
        date: str,
        start_time: str,
        end_time: str,
        room: str | Room,
        *,
        exclude_reservation_number: Optional[str] = None,
        include_pending: Optional[bool] = None,
        audit: bool = True,
    ) -> AvailabilityResult:
        try:
            requested_room = room if isinstance(room, Room) else Room.parse(room)
            requested = TimeSlot(date, parse_time(start_time), parse_time(end_time))
        except ValueError as exc:
            raise AvailabilityValidationError(str(exc)) from exc

        try:
            reservations = self._repository.list_reservations()
        except sqlite3.Error as exc:
            logger.exception(
                "Availability read failed %s",
                log_fields(date=date, room=requested_room.value),
            )
            raise AvailabilityLookupError("Reservation data is temporarily unavailable") from exc

        conflicts: list[ConflictRef] = []
        for existing in reservations:
            if not self._is_binding(existing, include_pending):
                continue
            if existing.date != date:
                continue
            if existing.reservation_number == exclude_reservation_number:
                continue
            if not rooms_conflict(requested_room, existing.room):
                continue
            if intervals_overlap(
                requested.start_minutes,
                requested.end_minutes,
                parse_time(existing.start_time),
                parse_time(existing.end_time),
            ):
                conflicts.append(
                    ConflictRef(
                        reservation_number=existing.reservation_number,
                        date=existing.date,
                        start_time=existing.start_time,
                        end_time=existing.end_time,
                        room=existing.room.value,
                    )
                )

        result = AvailabilityResult(available=not conflicts, conflicts=conflicts)
        if audit:
            self._activity_log.record(
                CHECK_AVAILABILITY,
                date=date,
                start_time=start_time,
                end_time=end_time,
                room=requested_room.value,
                available=result.available,
                conflict_count=len(conflicts),
            )
        logger.info(
            "Availability checked %s",
            log_fields(
                date=date,
                start=start_time,
                end=end_time,
                room=requested_room.value,
                available=result.available,
            ),
        )
        return result

    def list_booked_slots(self, date: str) -> list[ConflictRef]:
        """Binding reservations on a date, ordered by start time."""
        try:
            reservations = self._repository.list_reservations()
        except sqlite3.Error as exc:
            logger.exception("Booked-slot read failed %s", log_fields(date=date))
            raise AvailabilityLookupError("Reservation data is temporarily unavailable") from exc

        booked = [
            ConflictRef(
                reservation_number=item.reservation_number,
                date=item.date,
                start_time=item.start_time,
                end_time=item.end_time,
                room=item.room.value,
            )
            for item in reservations
            if item.date == date and self._is_binding(item)
        ]
        return sorted(booked, key=lambda slot: (parse_time(slot.start_time), slot.room))
