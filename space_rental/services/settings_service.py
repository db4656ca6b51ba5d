"""Read-only access to operator-maintained pricing parameters."""

from __future__ import annotations

import sqlite3
from dataclasses import fields
from typing import Optional

from space_rental.domain.constraints import validate_pricing_settings
from space_rental.domain.models import PricingSettings
from space_rental.repository.data_repository import DataRepository
from space_rental.utils.logger import get_logger


logger = get_logger(__name__)

DEFAULT_PRICING = PricingSettings()

# Operators edit the settings table by these labels.
SETTING_NAMES: dict[str, str] = {
    "base_occupancy": "기본인원",
    "base_rate": "기본요금",
    "min_hours": "최소이용시간",
    "extra_person_rate": "추가인원요금",
    "combined_room_threshold": "통합룸추천인원",
    "vat_rate": "부가세율",
}


def default_setting_rows() -> dict[str, str]:
    """Settings table rows that reproduce the built-in defaults."""
    return {
        label: f"{getattr(DEFAULT_PRICING, attribute):g}"
        for attribute, label in SETTING_NAMES.items()
    }


class SettingsProvider:
    """Resolves a pricing snapshot, falling back to defaults per key."""

    def __init__(self, repository: DataRepository) -> None:
        self._repository = repository

    def get_pricing_settings(self) -> PricingSettings:
        try:
            raw = self._repository.read_settings()
        except sqlite3.Error:
            logger.warning("Settings source unreachable; using default pricing", exc_info=True)
            return DEFAULT_PRICING

        values: dict[str, float | int] = {}
        for item in fields(PricingSettings):
            label = SETTING_NAMES[item.name]
            default = getattr(DEFAULT_PRICING, item.name)
            values[item.name] = _coerce(raw.get(label), default, label)

        snapshot = PricingSettings(**values)
        try:
            validate_pricing_settings(snapshot)
        except ValueError as exc:
            logger.warning("Invalid pricing settings (%s); using defaults", exc)
            return DEFAULT_PRICING
        return snapshot


def _coerce(raw: Optional[str], default: float | int, label: str) -> float | int:
    if raw is None or not raw.strip():
        return default
    cleaned = raw.strip().replace(",", "").rstrip("%")
    try:
        number = float(cleaned)
    except ValueError:
        logger.warning("Setting %s=%r is not numeric; using default %s", label, raw, default)
        return default
    if isinstance(default, int):
        if not number.is_integer():
            logger.warning(
                "Setting %s=%r must be a whole number; using default %s", label, raw, default
            )
            return default
        return int(number)
    return number
