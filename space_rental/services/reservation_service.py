"""Reservation submission and payment confirmation workflow."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from space_rental.domain.constraints import FormRules, parse_count, validate_reservation_form
from space_rental.domain.models import (
    ConflictRef,
    PaymentStatus,
    PriceBreakdown,
    Reservation,
    ReservationForm,
    Room,
)
from space_rental.repository.data_repository import DataRepository
from space_rental.services.activity_log_service import (
    CONFIRM_PAYMENT,
    SUBMIT_RESERVATION,
    ActivityLogService,
)
from space_rental.services.availability_service import AvailabilityLookupError, AvailabilityService
from space_rental.services.calendar_service import CalendarError, CalendarService
from space_rental.services.document_service import (
    LocalDocumentStore,
    UploadError,
    UploadTooLargeError,
    decode_document,
)
from space_rental.services.numbering_service import (
    ReservationNumberCapacityError,
    ReservationNumberGenerator,
)
from space_rental.services.pricing_service import PriceCalculator
from space_rental.services.settings_service import SettingsProvider
from space_rental.utils.config import Settings, get_settings
from space_rental.utils.logger import get_logger, log_fields
from space_rental.utils.time_utils import combine, duration_hours, now_in, parse_date


logger = get_logger(__name__)

# One submission pipeline at a time per process.
SUBMISSION_LOCK = threading.Lock()

GENERIC_FAILURE_MESSAGE = "The reservation could not be processed. Please try again later."


class ReservationError(Exception):
    """Base exception for reservation workflow failures."""


class ReservationValidationError(ReservationError):
    """Raised with every problem found in a submitted form."""

    def __init__(self, errors: list[str]) -> None:
        super().__init__("; ".join(errors))
        self.errors = list(errors)


class ReservationConflictError(ReservationError):
    """Raised when the requested slot is taken at re-check time."""

    def __init__(self, conflicts: list[ConflictRef]) -> None:
        super().__init__("The requested time is no longer available")
        self.conflicts = list(conflicts)


class LockTimeoutError(ReservationError):
    """Raised when the submission lock is not acquired in time."""


class ReservationNotFoundError(ReservationError):
    """Raised when a reservation number does not exist."""


class AlreadyConfirmedError(ReservationError):
    """Raised when payment was already confirmed for a reservation."""


@dataclass(frozen=True)
class SubmissionResult:
    success: bool
    reservation_number: Optional[str] = None
    total_amount: Optional[int] = None
    price: Optional[PriceBreakdown] = None
    message: str = ""
    error: str = ""
    error_code: str = ""
    errors: list[str] = field(default_factory=list)
    conflicts: list[ConflictRef] = field(default_factory=list)


@dataclass(frozen=True)
class ConfirmationResult:
    reservation_number: str
    calendar_event_id: str
    confirmed_at: str
    message: str


class ReservationWorkflowService:
    """Runs validate -> re-check -> number -> price -> upload -> persist atomically.

    Every step after lock acquisition happens while holding the lock, so the
    availability re-check and the number scan see all earlier submissions.
    """

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
        availability_service: Optional[AvailabilityService] = None,
        price_calculator: Optional[PriceCalculator] = None,
        number_generator: Optional[ReservationNumberGenerator] = None,
        document_store: Optional[LocalDocumentStore] = None,
        calendar_service: Optional[CalendarService] = None,
        settings_provider: Optional[SettingsProvider] = None,
        activity_log: Optional[ActivityLogService] = None,
        lock: Optional[threading.Lock] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._activity_log = activity_log or ActivityLogService(self._repository)
        self._settings_provider = settings_provider or SettingsProvider(self._repository)
        self._availability = availability_service or AvailabilityService(
            repository=self._repository,
            settings=self._settings,
            activity_log=self._activity_log,
        )
        self._price_calculator = price_calculator or PriceCalculator(self._settings_provider)
        self._number_generator = number_generator or ReservationNumberGenerator(
            repository=self._repository,
            settings=self._settings,
        )
        self._document_store = document_store or LocalDocumentStore(self._settings)
        self._calendar = calendar_service or CalendarService(self._repository)
        self._lock = lock or SUBMISSION_LOCK
        self._clock = clock or (lambda: now_in(self._settings.timezone))
        self._form_rules = FormRules(
            phone_regex=self._settings.phone_regex,
            email_regex=self._settings.email_regex,
            time_regex=self._settings.time_regex,
        )

    def _acquire(self, operation: str) -> None:
        if not self._lock.acquire(timeout=self._settings.submission_lock_timeout_seconds):
            logger.warning("Lock wait timed out for %s", operation)
            raise LockTimeoutError("The system is busy. Please try again in a moment.")

    def submit(self, form: ReservationForm) -> SubmissionResult:
        """Create a pending reservation; never raises."""
        context = log_fields(date=form.date, start=form.start_time, end=form.end_time, room=form.room)
        try:
            reservation = self._submit_exclusive(form)
        except ReservationValidationError as exc:
            logger.info("Submission rejected by validation %s errors=%s", context, exc.errors)
            return SubmissionResult(
                success=False,
                error="Please correct the highlighted fields.",
                error_code="validation_error",
                errors=exc.errors,
            )
        except ReservationConflictError as exc:
            logger.info(
                "Submission conflicts with %s %s",
                [item.reservation_number for item in exc.conflicts],
                context,
            )
            return SubmissionResult(
                success=False,
                error=str(exc),
                error_code="conflict",
                conflicts=exc.conflicts,
            )
        except LockTimeoutError as exc:
            return SubmissionResult(success=False, error=str(exc), error_code="busy")
        except UploadTooLargeError as exc:
            logger.info("Submission upload rejected %s: %s", context, exc)
            return SubmissionResult(success=False, error=str(exc), error_code="upload_too_large")
        except UploadError as exc:
            logger.warning("Submission upload failed %s: %s", context, exc)
            return SubmissionResult(
                success=False,
                error="The attached document could not be uploaded.",
                error_code="upload_failed",
            )
        except ReservationNumberCapacityError:
            logger.error("Daily reservation number capacity exhausted %s", context)
            return SubmissionResult(
                success=False,
                error="No more reservations can be accepted today.",
                error_code="capacity_reached",
            )
        except AvailabilityLookupError:
            return SubmissionResult(
                success=False,
                error=GENERIC_FAILURE_MESSAGE,
                error_code="unavailable",
            )
        except Exception:
            logger.exception("Unexpected submission failure %s", context)
            return SubmissionResult(
                success=False,
                error=GENERIC_FAILURE_MESSAGE,
                error_code="internal_error",
            )

        return SubmissionResult(
            success=True,
            reservation_number=reservation.reservation_number,
            total_amount=reservation.total,
            price=PriceBreakdown(
                base_price=reservation.base_price,
                extra_person_fee=reservation.extra_person_fee,
                subtotal=reservation.subtotal,
                vat=reservation.vat,
                total=reservation.total,
            ),
            message=(
                f"Reservation {reservation.reservation_number} received. "
                "It is held until payment is confirmed."
            ),
        )

    def _submit_exclusive(self, form: ReservationForm) -> Reservation:
        self._acquire("submit")
        try:
            return self._submit_locked(form)
        finally:
            self._lock.release()

    def _submit_locked(self, form: ReservationForm) -> Reservation:
        pricing = self._settings_provider.get_pricing_settings()
        now = self._clock()

        errors = validate_reservation_form(form, pricing, self._form_rules, now.date())
        if errors:
            raise ReservationValidationError(errors)

        room = Room.parse(form.room)
        date = parse_date(form.date).isoformat()
        start_time = form.start_time.strip()
        end_time = form.end_time.strip()

        availability = self._availability.check_availability(date, start_time, end_time, room)
        if not availability.available:
            raise ReservationConflictError(availability.conflicts)

        reservation_number = self._number_generator.generate(now.date())
        hours = duration_hours(start_time, end_time)
        headcount = parse_count(form.headcount) or 0
        price = self._price_calculator.calculate_price(headcount, hours, room, pricing)

        document_url = ""
        if form.document is not None:
            content, mime_type = decode_document(form.document, self._settings.upload_max_bytes)
            document_url = self._document_store.store(
                content,
                mime_type,
                form.document.filename,
                reservation_number,
            )

        reservation = Reservation(
            reservation_number=reservation_number,
            created_at=now.isoformat(timespec="seconds"),
            date=date,
            start_time=start_time,
            end_time=end_time,
            duration_hours=hours,
            room=room,
            name=form.name.strip(),
            company=form.company.strip(),
            phone=form.phone.strip(),
            email=form.email.strip(),
            headcount=headcount,
            vehicle_count=parse_count(form.vehicle_count) or 0,
            tax_invoice=form.tax_invoice,
            referral_source=form.referral_source.strip(),
            activity=form.activity.strip(),
            base_price=price.base_price,
            extra_person_fee=price.extra_person_fee,
            subtotal=price.subtotal,
            vat=price.vat,
            total=price.total,
            payment_status=PaymentStatus.PENDING,
            document_url=document_url,
            notes=form.notes.strip(),
        )
        try:
            self._repository.append_reservation(reservation)
        except Exception:
            # The number is reused by the next submission; its folder must be empty.
            if form.document is not None:
                self._document_store.discard(reservation_number, form.document.filename)
            raise
        self._activity_log.record(
            SUBMIT_RESERVATION,
            reservation_number=reservation_number,
            date=date,
            start_time=start_time,
            end_time=end_time,
            room=room.value,
            total=price.total,
        )
        logger.info(
            "Reservation created %s",
            log_fields(reservation=reservation_number, date=date, room=room.value, total=price.total),
        )
        return reservation

    def get_reservation(self, reservation_number: str) -> Reservation:
        reservation = self._repository.get_reservation(reservation_number)
        if reservation is None:
            raise ReservationNotFoundError(f"Reservation {reservation_number} was not found")
        return reservation

    def confirm_payment(self, reservation_number: str) -> ConfirmationResult:
        """Mark a pending reservation paid and put it on the calendar.

        Calendar failure leaves the reservation untouched and propagates.
        """
        self._acquire("confirm_payment")
        try:
            return self._confirm_locked(reservation_number)
        finally:
            self._lock.release()

    def _confirm_locked(self, reservation_number: str) -> ConfirmationResult:
        reservation = self.get_reservation(reservation_number)
        if reservation.is_confirmed:
            raise AlreadyConfirmedError(f"Reservation {reservation_number} is already confirmed")

        # Pending holds may overlap; the first one confirmed keeps the slot.
        availability = self._availability.check_availability(
            reservation.date,
            reservation.start_time,
            reservation.end_time,
            reservation.room,
            exclude_reservation_number=reservation_number,
            include_pending=False,
            audit=False,
        )
        if not availability.available:
            raise ReservationConflictError(availability.conflicts)

        day = parse_date(reservation.date)
        try:
            event_id = self._calendar.create_event(
                title=_event_title(reservation),
                start=combine(day, reservation.start_time),
                end=combine(day, reservation.end_time),
                description=_event_description(reservation),
                location=self._settings.calendar_location,
            )
        except CalendarError:
            logger.exception(
                "Calendar event creation failed %s",
                log_fields(reservation=reservation_number),
            )
            raise

        confirmed_at = self._clock().isoformat(timespec="seconds")
        try:
            updated = self._repository.confirm_reservation(
                reservation_number,
                confirmed_at=confirmed_at,
                calendar_event_id=event_id,
                notification_status=self._settings.notification_status_tag,
            )
        except Exception:
            self._calendar.delete_event(event_id)
            raise
        if not updated:
            self._calendar.delete_event(event_id)
            raise AlreadyConfirmedError(f"Reservation {reservation_number} is already confirmed")

        self._activity_log.record(
            CONFIRM_PAYMENT,
            reservation_number=reservation_number,
            calendar_event_id=event_id,
        )
        logger.info(
            "Payment confirmed %s",
            log_fields(reservation=reservation_number, calendar_event=event_id),
        )
        return ConfirmationResult(
            reservation_number=reservation_number,
            calendar_event_id=event_id,
            confirmed_at=confirmed_at,
            message=f"Payment for {reservation_number} confirmed.",
        )


def _event_title(reservation: Reservation) -> str:
    requester = reservation.company or reservation.name
    return f"[{reservation.room.value}] {requester} ({reservation.headcount})"


def _event_description(reservation: Reservation) -> str:
    lines = [
        f"Reservation: {reservation.reservation_number}",
        f"Name: {reservation.name}",
        f"Phone: {reservation.phone}",
        f"Email: {reservation.email}",
        f"Headcount: {reservation.headcount}",
        f"Vehicles: {reservation.vehicle_count}",
        f"Total: {reservation.total}",
    ]
    if reservation.activity:
        lines.append(f"Activity: {reservation.activity}")
    if reservation.notes:
        lines.append(f"Notes: {reservation.notes}")
    return "\n".join(lines)
