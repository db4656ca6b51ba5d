from __future__ import annotations

import sqlite3
import threading
from dataclasses import replace
from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from space_rental.domain.models import PaymentStatus, ReservationForm
from space_rental.repository.data_repository import DataRepository
from space_rental.services.activity_log_service import CONFIRM_PAYMENT
from space_rental.services.calendar_service import CalendarError, CalendarService
from space_rental.services.reservation_service import (
    AlreadyConfirmedError,
    ReservationConflictError,
    ReservationNotFoundError,
    ReservationWorkflowService,
)
from space_rental.services.settings_service import default_setting_rows
from space_rental.utils.config import get_settings


FIXED_NOW = datetime(2025, 1, 1, 9, 0, tzinfo=ZoneInfo("Asia/Seoul"))


class CountingCalendar(CalendarService):
    def __init__(self, repository: DataRepository, fail: bool = False) -> None:
        super().__init__(repository)
        self.created: list[str] = []
        self.fail = fail

    def create_event(self, title, start, end, description="", location=""):
        if self.fail:
            raise CalendarError("calendar backend unavailable")
        event_id = super().create_event(title, start, end, description, location)
        self.created.append(event_id)
        return event_id


def _build_service(tmp_path, fail_calendar: bool = False):
    get_settings.cache_clear()
    settings = replace(
        get_settings(),
        database_path=tmp_path / "confirmation.db",
        upload_dir=tmp_path / "uploads",
        calendar_location="Studio Seongsu",
        notification_status_tag="CONFIRMATION_SENT",
    )
    repository = DataRepository(settings)
    repository.initialize_database()
    repository.seed_default_settings(default_setting_rows())
    calendar = CountingCalendar(repository, fail=fail_calendar)
    service = ReservationWorkflowService(
        repository=repository,
        settings=settings,
        calendar_service=calendar,
        lock=threading.Lock(),
        clock=lambda: FIXED_NOW,
    )
    return service, repository, calendar


def _submit(service: ReservationWorkflowService, room: str = "A", start: str = "10:00") -> str:
    result = service.submit(
        ReservationForm(
            date="2025-01-20",
            start_time=start,
            end_time="13:00",
            room=room,
            name="Lee Hana",
            company="Hana Films",
            phone="010-9876-5432",
            email="hana@example.com",
            headcount=6,
            notes="Needs a projector",
        )
    )
    assert result.success
    return result.reservation_number


def test_confirmation_sets_all_fields_and_creates_event(tmp_path):
    service, repository, calendar = _build_service(tmp_path)
    number = _submit(service)

    result = service.confirm_payment(number)

    stored = repository.get_reservation(number)
    assert stored.payment_status is PaymentStatus.CONFIRMED
    assert stored.payment_confirmed_at == FIXED_NOW.isoformat(timespec="seconds")
    assert stored.calendar_event_id == result.calendar_event_id
    assert stored.notification_status == "CONFIRMATION_SENT"
    assert calendar.created == [result.calendar_event_id]

    event = calendar.get_event(result.calendar_event_id)
    assert event.title == "[A] Hana Films (6)"
    assert event.start_at == "2025-01-20T10:00"
    assert event.end_at == "2025-01-20T13:00"
    assert event.location == "Studio Seongsu"
    assert number in event.description
    assert "Needs a projector" in event.description
    assert repository.count_activity_logs(CONFIRM_PAYMENT) == 1


def test_second_confirmation_is_rejected_and_calendar_called_once(tmp_path):
    service, _, calendar = _build_service(tmp_path)
    number = _submit(service)

    service.confirm_payment(number)
    with pytest.raises(AlreadyConfirmedError):
        service.confirm_payment(number)

    assert len(calendar.created) == 1


def test_unknown_reservation_is_not_found(tmp_path):
    service, _, calendar = _build_service(tmp_path)
    with pytest.raises(ReservationNotFoundError):
        service.confirm_payment("RES20250101-404")
    assert calendar.created == []


def test_calendar_failure_writes_nothing(tmp_path):
    service, repository, _ = _build_service(tmp_path, fail_calendar=True)
    number = _submit(service)

    with pytest.raises(CalendarError):
        service.confirm_payment(number)

    stored = repository.get_reservation(number)
    assert stored.payment_status is PaymentStatus.PENDING
    assert stored.payment_confirmed_at == ""
    assert stored.calendar_event_id == ""
    assert stored.notification_status == ""
    assert repository.count_calendar_events() == 0


def test_failed_update_removes_created_event(tmp_path, monkeypatch):
    service, repository, calendar = _build_service(tmp_path)
    number = _submit(service)

    def broken_confirm(*args, **kwargs):
        raise sqlite3.OperationalError("database is locked")

    monkeypatch.setattr(repository, "confirm_reservation", broken_confirm)
    with pytest.raises(sqlite3.OperationalError):
        service.confirm_payment(number)

    assert len(calendar.created) == 1
    assert repository.count_calendar_events() == 0


def test_overlapping_pending_hold_cannot_be_confirmed_after_first(tmp_path):
    service, repository, calendar = _build_service(tmp_path)
    first = _submit(service, room="A")
    second = _submit(service, room="A+B", start="11:00")

    service.confirm_payment(first)
    with pytest.raises(ReservationConflictError):
        service.confirm_payment(second)

    assert repository.get_reservation(second).payment_status is PaymentStatus.PENDING
    assert len(calendar.created) == 1


def test_confirmed_reservation_blocks_later_submissions(tmp_path):
    service, _, _ = _build_service(tmp_path)
    number = _submit(service)
    service.confirm_payment(number)

    result = service.submit(
        ReservationForm(
            date="2025-01-20",
            start_time="11:00",
            end_time="14:00",
            room="A+B",
            name="Late Guest",
            phone="010-1111-2222",
            email="late@example.com",
            headcount=2,
        )
    )

    assert not result.success
    assert result.error_code == "conflict"


def test_calendar_delete_event(tmp_path):
    service, repository, calendar = _build_service(tmp_path)
    number = _submit(service)
    event_id = service.confirm_payment(number).calendar_event_id

    assert calendar.delete_event(event_id) is True
    assert calendar.delete_event(event_id) is False
    assert repository.count_calendar_events() == 0
