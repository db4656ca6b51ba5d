"""Shared FastAPI dependency providers for controller layer."""

from __future__ import annotations

from typing import Any

from fastapi import HTTPException, Request, status

from space_rental.services.availability_service import AvailabilityService
from space_rental.services.pricing_service import PriceCalculator
from space_rental.services.reservation_service import ReservationWorkflowService
from space_rental.services.settings_service import SettingsProvider


def _service_from_state(request: Request, attribute: str, label: str) -> Any:
    service = getattr(request.app.state, attribute, None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{label} is not initialized",
        )
    return service


def get_availability_service(request: Request) -> AvailabilityService:
    return _service_from_state(request, "availability_service", "Availability service")


def get_price_calculator(request: Request) -> PriceCalculator:
    return _service_from_state(request, "price_calculator", "Price calculator")


def get_settings_provider(request: Request) -> SettingsProvider:
    return _service_from_state(request, "settings_provider", "Settings provider")


def get_reservation_service(request: Request) -> ReservationWorkflowService:
    return _service_from_state(request, "reservation_service", "Reservation service")
