"""HTTP controller layer for availability lookups and price quotes."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, field_validator

from space_rental.controllers.dependencies import (
    get_availability_service,
    get_price_calculator,
    get_settings_provider,
)
from space_rental.domain.models import Room
from space_rental.services.availability_service import (
    AvailabilityLookupError,
    AvailabilityService,
    AvailabilityValidationError,
)
from space_rental.services.pricing_service import PriceCalculator
from space_rental.services.settings_service import SettingsProvider
from space_rental.utils.config import get_settings
from space_rental.utils.logger import get_logger
from space_rental.utils.time_utils import duration_hours, parse_time


logger = get_logger(__name__)
settings = get_settings()

router = APIRouter(tags=["availability"])


class SlotRef(BaseModel):
    reservation_number: str
    date: date
    start_time: str
    end_time: str
    room: str


class CheckAvailabilityRequest(BaseModel):
    """Input DTO validated before entering service layer."""

    date: date
    start_time: str = Field(pattern=settings.time_regex)
    end_time: str = Field(pattern=settings.time_regex)
    room: str

    @field_validator("room")
    @classmethod
    def validate_room(cls, value: str) -> str:
        return Room.parse(value).value


class CheckAvailabilityResponse(BaseModel):
    success: bool = True
    available: bool
    conflicts: list[SlotRef]


class BookedSlotsResponse(BaseModel):
    date: date
    slots: list[SlotRef]


class PricingSettingsResponse(BaseModel):
    base_occupancy: int = Field(ge=0)
    base_rate: int = Field(ge=0)
    min_hours: float = Field(gt=0.0)
    extra_person_rate: int = Field(ge=0)
    combined_room_threshold: int = Field(gt=0)
    vat_rate: float = Field(ge=0.0, le=100.0)


class QuoteRequest(BaseModel):
    persons: int = Field(gt=0)
    start_time: str = Field(pattern=settings.time_regex)
    end_time: str = Field(pattern=settings.time_regex)
    room: str

    @field_validator("room")
    @classmethod
    def validate_room(cls, value: str) -> str:
        return Room.parse(value).value


class QuoteResponse(BaseModel):
    hours: float = Field(gt=0.0)
    base_price: int = Field(ge=0)
    extra_person_fee: int = Field(ge=0)
    subtotal: int = Field(ge=0)
    vat: int = Field(ge=0)
    total: int = Field(ge=0)
    below_minimum_hours: bool
    combined_room_suggested: bool


@router.post(
    "/check_availability",
    response_model=CheckAvailabilityResponse,
    status_code=status.HTTP_200_OK,
)
def check_availability(
    payload: CheckAvailabilityRequest,
    service: AvailabilityService = Depends(get_availability_service),
) -> CheckAvailabilityResponse:
    try:
        result = service.check_availability(
            date=payload.date.isoformat(),
            start_time=payload.start_time,
            end_time=payload.end_time,
            room=payload.room,
        )
    except AvailabilityValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except AvailabilityLookupError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Availability could not be checked. Please try again.",
        ) from exc
    return CheckAvailabilityResponse(**result.to_dict())


@router.get(
    "/booked_slots",
    response_model=BookedSlotsResponse,
    status_code=status.HTTP_200_OK,
)
def booked_slots(
    date: date,
    service: AvailabilityService = Depends(get_availability_service),
) -> BookedSlotsResponse:
    try:
        slots = service.list_booked_slots(date.isoformat())
    except AvailabilityLookupError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Booked slots could not be loaded. Please try again.",
        ) from exc
    return BookedSlotsResponse(date=date, slots=[slot.to_dict() for slot in slots])


@router.get(
    "/pricing_settings",
    response_model=PricingSettingsResponse,
    status_code=status.HTTP_200_OK,
)
def pricing_settings(
    provider: SettingsProvider = Depends(get_settings_provider),
) -> PricingSettingsResponse:
    return PricingSettingsResponse(**provider.get_pricing_settings().to_dict())


@router.post(
    "/quote",
    response_model=QuoteResponse,
    status_code=status.HTTP_200_OK,
)
def quote(
    payload: QuoteRequest,
    calculator: PriceCalculator = Depends(get_price_calculator),
    provider: SettingsProvider = Depends(get_settings_provider),
) -> QuoteResponse:
    if parse_time(payload.end_time) <= parse_time(payload.start_time):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="end_time must be after start_time",
        )
    snapshot = provider.get_pricing_settings()
    room = Room.parse(payload.room)
    hours = duration_hours(payload.start_time, payload.end_time)
    breakdown = calculator.calculate_price(payload.persons, hours, room, snapshot)
    return QuoteResponse(
        hours=hours,
        below_minimum_hours=hours < snapshot.min_hours,
        combined_room_suggested=calculator.suggests_combined_room(payload.persons, room, snapshot),
        **breakdown.to_dict(),
    )
