"""Domain models for space reservations and pricing."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Optional


class Room(str, Enum):
    """Bookable spaces. ``A+B`` occupies both physical rooms."""

    A = "A"
    B = "B"
    AB = "A+B"

    @property
    def physical_rooms(self) -> frozenset[str]:
        if self is Room.AB:
            return frozenset({"A", "B"})
        return frozenset({self.value})

    @property
    def is_combined(self) -> bool:
        return self is Room.AB

    @classmethod
    def parse(cls, value: str) -> "Room":
        normalized = value.strip().upper().replace(" ", "")
        for room in cls:
            if room.value == normalized:
                return room
        raise ValueError(f"unknown room: {value!r}")


class PaymentStatus(str, Enum):
    """Two-state confirmation lifecycle, persisted as the ``Y``/``N`` flag."""

    PENDING = "N"
    CONFIRMED = "Y"

    @classmethod
    def from_flag(cls, flag: str) -> "PaymentStatus":
        return cls.CONFIRMED if (flag or "").strip().upper() == "Y" else cls.PENDING


@dataclass(frozen=True)
class TimeSlot:
    """Half-open interval ``[start, end)`` in minutes on one date."""

    date: str
    start_minutes: int
    end_minutes: int

    def __post_init__(self) -> None:
        if self.end_minutes <= self.start_minutes:
            raise ValueError("end_time must be after start_time")

    @property
    def duration_hours(self) -> float:
        return (self.end_minutes - self.start_minutes) / 60


@dataclass(frozen=True)
class PricingSettings:
    base_occupancy: int = 3
    base_rate: int = 44000
    min_hours: float = 2
    extra_person_rate: int = 5000
    combined_room_threshold: int = 10
    vat_rate: float = 10

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class PriceBreakdown:
    base_price: int
    extra_person_fee: int
    subtotal: int
    vat: int
    total: int

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class DocumentUpload:
    """Tax-invoice supporting document as received from the form."""

    content_base64: str
    mime_type: str
    filename: str


@dataclass(frozen=True)
class ReservationForm:
    date: str
    start_time: str
    end_time: str
    room: str
    name: str
    phone: str
    email: str
    headcount: Optional[int | str]
    company: str = ""
    vehicle_count: Optional[int | str] = 0
    tax_invoice: bool = False
    referral_source: str = ""
    activity: str = ""
    notes: str = ""
    document: Optional[DocumentUpload] = None


@dataclass(frozen=True)
class Reservation:
    """Persisted reservation row. Column order follows the reservation table."""

    reservation_number: str
    created_at: str
    date: str
    start_time: str
    end_time: str
    duration_hours: float
    room: Room
    name: str
    company: str
    phone: str
    email: str
    headcount: int
    vehicle_count: int
    tax_invoice: bool
    referral_source: str
    activity: str
    base_price: int
    extra_person_fee: int
    subtotal: int
    vat: int
    total: int
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_confirmed_at: str = ""
    document_url: str = ""
    calendar_event_id: str = ""
    notification_status: str = ""
    notes: str = ""

    @property
    def is_confirmed(self) -> bool:
        return self.payment_status is PaymentStatus.CONFIRMED

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["room"] = self.room.value
        payload["payment_confirmed"] = self.payment_status.value
        payload.pop("payment_status")
        return payload


@dataclass(frozen=True)
class ConflictRef:
    reservation_number: str
    date: str
    start_time: str
    end_time: str
    room: str

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


@dataclass(frozen=True)
class AvailabilityResult:
    available: bool
    conflicts: list[ConflictRef] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "available": self.available,
            "conflicts": [conflict.to_dict() for conflict in self.conflicts],
        }
