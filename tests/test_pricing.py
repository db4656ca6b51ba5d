from __future__ import annotations

import sqlite3
from dataclasses import replace

from space_rental.domain.models import PricingSettings, Room
from space_rental.repository.data_repository import DataRepository
from space_rental.services.pricing_service import PriceCalculator, calculate_price_breakdown
from space_rental.services.settings_service import (
    SETTING_NAMES,
    SettingsProvider,
    default_setting_rows,
)
from space_rental.utils.config import get_settings


def _build_repository(tmp_path) -> DataRepository:
    get_settings.cache_clear()
    settings = replace(get_settings(), database_path=tmp_path / "pricing.db")
    repository = DataRepository(settings)
    repository.initialize_database()
    repository.seed_default_settings(default_setting_rows())
    return repository


def test_single_room_price_example():
    breakdown = calculate_price_breakdown(5, 3, Room.A, PricingSettings())
    assert breakdown.base_price == 132000
    assert breakdown.extra_person_fee == 30000
    assert breakdown.subtotal == 162000
    assert breakdown.vat == 16200
    assert breakdown.total == 178200


def test_combined_room_doubles_base_price_only():
    breakdown = calculate_price_breakdown(5, 3, Room.AB, PricingSettings())
    assert breakdown.base_price == 264000
    assert breakdown.extra_person_fee == 30000
    assert breakdown.subtotal == 294000
    assert breakdown.vat == 29400
    assert breakdown.total == 323400


def test_no_extra_fee_at_or_below_base_occupancy():
    breakdown = calculate_price_breakdown(3, 2, Room.B, PricingSettings())
    assert breakdown.extra_person_fee == 0
    assert breakdown.total == 96800


def test_fractional_hours_are_not_rounded_before_vat():
    breakdown = calculate_price_breakdown(4, 2.5, Room.A, PricingSettings())
    assert breakdown.base_price == 110000
    assert breakdown.extra_person_fee == 12500
    assert breakdown.subtotal == 122500
    assert breakdown.vat == 12250
    assert breakdown.total == 134750


def test_vat_rounds_half_up():
    pricing = PricingSettings(base_rate=5, base_occupancy=10, vat_rate=10)
    # subtotal 5 * 1h = 5, vat 0.5 -> 1
    breakdown = calculate_price_breakdown(1, 1, Room.A, pricing)
    assert breakdown.vat == 1
    assert breakdown.total == 6


def test_calculation_is_deterministic():
    first = calculate_price_breakdown(7, 2.75, Room.AB, PricingSettings())
    second = calculate_price_breakdown(7, 2.75, Room.AB, PricingSettings())
    assert first == second


def test_calculator_reads_operator_settings(tmp_path):
    repository = _build_repository(tmp_path)
    repository.upsert_setting(SETTING_NAMES["base_rate"], "50,000")
    repository.upsert_setting(SETTING_NAMES["vat_rate"], "0%")
    calculator = PriceCalculator(SettingsProvider(repository))

    breakdown = calculator.calculate_price(3, 2, Room.A)

    assert breakdown.base_price == 100000
    assert breakdown.vat == 0
    assert breakdown.total == 100000


def test_non_numeric_setting_falls_back_per_key(tmp_path):
    repository = _build_repository(tmp_path)
    repository.upsert_setting(SETTING_NAMES["extra_person_rate"], "free")
    pricing = SettingsProvider(repository).get_pricing_settings()
    assert pricing.extra_person_rate == 5000
    assert pricing.base_rate == 44000


def test_fractional_whole_number_setting_falls_back_per_key(tmp_path):
    repository = _build_repository(tmp_path)
    repository.upsert_setting(SETTING_NAMES["base_occupancy"], "3.5")
    repository.upsert_setting(SETTING_NAMES["min_hours"], "1.5")
    pricing = SettingsProvider(repository).get_pricing_settings()

    assert pricing.base_occupancy == 3
    assert isinstance(pricing.base_occupancy, int)
    assert pricing.min_hours == 1.5


def test_settings_read_failure_falls_back_to_defaults(tmp_path, monkeypatch):
    repository = _build_repository(tmp_path)
    repository.upsert_setting(SETTING_NAMES["base_rate"], "1")

    def broken_read():
        raise sqlite3.OperationalError("database is locked")

    monkeypatch.setattr(repository, "read_settings", broken_read)
    calculator = PriceCalculator(SettingsProvider(repository))

    assert calculator.calculate_price(5, 3, Room.A).total == 178200


def test_missing_settings_rows_use_defaults(tmp_path):
    get_settings.cache_clear()
    settings = replace(get_settings(), database_path=tmp_path / "empty_settings.db")
    repository = DataRepository(settings)
    repository.initialize_database()
    assert SettingsProvider(repository).get_pricing_settings() == PricingSettings()


def test_combined_room_suggestion_threshold(tmp_path):
    calculator = PriceCalculator(SettingsProvider(_build_repository(tmp_path)))
    assert calculator.suggests_combined_room(10, Room.A)
    assert not calculator.suggests_combined_room(9, Room.A)
    assert not calculator.suggests_combined_room(12, Room.AB)
