"""Rental price computation."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from space_rental.domain.models import PriceBreakdown, PricingSettings, Room
from space_rental.services.settings_service import SettingsProvider


def _whole(amount: Decimal) -> int:
    return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def calculate_price_breakdown(
    persons: int,
    hours: float,
    room: Room,
    pricing: PricingSettings,
) -> PriceBreakdown:
    """Pure price computation for one pricing snapshot.

    Amounts are carried as exact decimals; VAT is rounded half-up from the
    unrounded subtotal. Sub-unit base or extra amounts (odd-minute
    durations) are rounded half-up only when reported.
    """
    exact_hours = Decimal(str(hours))
    multiplier = 2 if room.is_combined else 1
    base_price = Decimal(str(pricing.base_rate)) * multiplier * exact_hours

    extra_persons = max(0, persons - int(pricing.base_occupancy))
    extra_person_fee = extra_persons * Decimal(str(pricing.extra_person_rate)) * exact_hours

    subtotal = base_price + extra_person_fee
    vat = _whole(subtotal * Decimal(str(pricing.vat_rate)) / 100)
    rounded_subtotal = _whole(subtotal)
    return PriceBreakdown(
        base_price=_whole(base_price),
        extra_person_fee=_whole(extra_person_fee),
        subtotal=rounded_subtotal,
        vat=vat,
        total=rounded_subtotal + vat,
    )


class PriceCalculator:
    """Prices a booking against the current settings snapshot."""

    def __init__(self, settings_provider: SettingsProvider) -> None:
        self._settings_provider = settings_provider

    def calculate_price(
        self,
        persons: int,
        hours: float,
        room: Room,
        pricing: Optional[PricingSettings] = None,
    ) -> PriceBreakdown:
        snapshot = pricing or self._settings_provider.get_pricing_settings()
        return calculate_price_breakdown(persons, hours, room, snapshot)

    def suggests_combined_room(
        self,
        persons: int,
        room: Room,
        pricing: Optional[PricingSettings] = None,
    ) -> bool:
        snapshot = pricing or self._settings_provider.get_pricing_settings()
        return not room.is_combined and persons >= snapshot.combined_room_threshold
