"""Domain-level rules for room conflicts, slot overlap, and form validation."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date

from space_rental.domain.models import PricingSettings, ReservationForm, Room
from space_rental.utils.time_utils import duration_hours, parse_date, parse_time


@dataclass(frozen=True)
class FormRules:
    phone_regex: str
    email_regex: str
    time_regex: str


def rooms_conflict(requested: Room, existing: Room) -> bool:
    """Two rooms conflict when they share at least one physical space."""
    return bool(requested.physical_rooms & existing.physical_rooms)


def conflicting_rooms(requested: Room) -> set[Room]:
    return {room for room in Room if rooms_conflict(requested, room)}


def intervals_overlap(
    request_start: int,
    request_end: int,
    existing_start: int,
    existing_end: int,
) -> bool:
    """Strict half-open overlap; touching boundaries do not conflict."""
    return request_start < existing_end and request_end > existing_start


def parse_count(value: int | str | None) -> int | None:
    """Whole-number form field; blank means missing, anything else non-integral raises."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"not a count: {value!r}")
    if isinstance(value, int):
        return value
    cleaned = value.strip().replace(",", "")
    if not cleaned:
        return None
    return int(cleaned)


def validate_pricing_settings(settings: PricingSettings) -> None:
    if settings.base_occupancy < 0:
        raise ValueError("base_occupancy must be >= 0")
    if settings.base_rate < 0:
        raise ValueError("base_rate must be >= 0")
    if settings.min_hours <= 0:
        raise ValueError("min_hours must be > 0")
    if settings.extra_person_rate < 0:
        raise ValueError("extra_person_rate must be >= 0")
    if settings.combined_room_threshold <= 0:
        raise ValueError("combined_room_threshold must be > 0")
    if not 0 <= settings.vat_rate <= 100:
        raise ValueError("vat_rate must be between 0 and 100")


def validate_reservation_form(
    form: ReservationForm,
    pricing: PricingSettings,
    rules: FormRules,
    today: date,
) -> list[str]:
    """Collect every problem with a submitted form instead of stopping at the first."""
    errors: list[str] = []

    required = {
        "date": form.date,
        "start_time": form.start_time,
        "end_time": form.end_time,
        "room": form.room,
        "name": form.name,
        "phone": form.phone,
        "email": form.email,
    }
    for field_name, value in required.items():
        if not (value or "").strip():
            errors.append(f"{field_name} is required")

    if form.date.strip():
        try:
            requested_date = parse_date(form.date)
        except ValueError:
            errors.append("date must follow YYYY-MM-DD format")
        else:
            if requested_date < today:
                errors.append("date must not be in the past")

    time_pattern = re.compile(rules.time_regex)
    times_valid = True
    for field_name, value in (("start_time", form.start_time), ("end_time", form.end_time)):
        if value.strip() and time_pattern.fullmatch(value.strip()) is None:
            errors.append(f"{field_name} must follow HH:MM format")
            times_valid = False
    if times_valid and form.start_time.strip() and form.end_time.strip():
        if parse_time(form.end_time) <= parse_time(form.start_time):
            errors.append("end_time must be after start_time")
        elif duration_hours(form.start_time, form.end_time) < pricing.min_hours:
            errors.append(f"reservations must be at least {pricing.min_hours:g} hours long")

    if form.room.strip():
        try:
            Room.parse(form.room)
        except ValueError:
            errors.append("room must be one of A, B, A+B")

    try:
        headcount = parse_count(form.headcount)
    except ValueError:
        errors.append("headcount must be a number")
    else:
        if headcount is None:
            errors.append("headcount is required")
        elif headcount <= 0:
            errors.append("headcount must be a positive number")

    try:
        vehicle_count = parse_count(form.vehicle_count)
    except ValueError:
        errors.append("vehicle_count must be a number")
    else:
        if vehicle_count is not None and vehicle_count < 0:
            errors.append("vehicle_count must not be negative")

    if form.phone.strip() and re.fullmatch(rules.phone_regex, form.phone.strip()) is None:
        errors.append("phone must look like 010-1234-5678")

    if form.email.strip() and re.fullmatch(rules.email_regex, form.email.strip()) is None:
        errors.append("email address is malformed")

    if form.document is not None:
        if not form.document.content_base64.strip():
            errors.append("document content is required")
        if form.tax_invoice and not form.document.filename.strip():
            errors.append("document filename is required")

    return errors
