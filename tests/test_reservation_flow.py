from __future__ import annotations

import threading
from dataclasses import replace
from datetime import date, timedelta

from fastapi import FastAPI
from fastapi.testclient import TestClient

from space_rental.controllers.availability_controller import router as availability_router
from space_rental.controllers.reservation_controller import SUBMISSION_STATUS_CODES
from space_rental.controllers.reservation_controller import router as reservation_router
from space_rental.repository.data_repository import DataRepository
from space_rental.services.availability_service import AvailabilityService
from space_rental.services.pricing_service import PriceCalculator
from space_rental.services.reservation_service import ReservationWorkflowService
from space_rental.services.settings_service import SettingsProvider, default_setting_rows
from space_rental.utils.config import get_settings


TARGET_DATE = (date.today() + timedelta(days=30)).isoformat()


def _build_test_app(tmp_path) -> tuple[FastAPI, DataRepository]:
    get_settings.cache_clear()
    settings = replace(
        get_settings(),
        database_path=tmp_path / "reservation_flow.db",
        upload_dir=tmp_path / "uploads",
        submission_lock_timeout_seconds=5,
    )
    repository = DataRepository(settings)
    repository.initialize_database()
    repository.seed_default_settings(default_setting_rows())

    settings_provider = SettingsProvider(repository)
    availability_service = AvailabilityService(repository=repository, settings=settings)
    price_calculator = PriceCalculator(settings_provider)
    reservation_service = ReservationWorkflowService(
        repository=repository,
        settings=settings,
        availability_service=availability_service,
        price_calculator=price_calculator,
        settings_provider=settings_provider,
        lock=threading.Lock(),
    )

    app = FastAPI()
    app.include_router(availability_router)
    app.include_router(reservation_router)
    app.state.repository = repository
    app.state.settings_provider = settings_provider
    app.state.availability_service = availability_service
    app.state.price_calculator = price_calculator
    app.state.reservation_service = reservation_service
    return app, repository


def _payload(**overrides) -> dict:
    payload = {
        "date": TARGET_DATE,
        "start_time": "10:00",
        "end_time": "13:00",
        "room": "A",
        "name": "Choi Yuna",
        "company": "Yuna Lab",
        "phone": "010-5555-0101",
        "email": "yuna@example.com",
        "headcount": 5,
        "vehicle_count": 2,
        "referral_source": "search",
        "activity": "Workshop",
    }
    payload.update(overrides)
    return payload


def test_reservation_end_to_end_flow(tmp_path):
    app, repository = _build_test_app(tmp_path)
    client = TestClient(app)

    availability = client.post(
        "/check_availability",
        json={"date": TARGET_DATE, "start_time": "10:00", "end_time": "13:00", "room": "A"},
    )
    assert availability.status_code == 200
    assert availability.json() == {"success": True, "available": True, "conflicts": []}

    quote = client.post(
        "/quote",
        json={"persons": 5, "start_time": "10:00", "end_time": "13:00", "room": "A"},
    )
    assert quote.status_code == 200
    assert quote.json()["total"] == 178200
    assert quote.json()["combined_room_suggested"] is False

    submit = client.post("/reservations", json=_payload())
    assert submit.status_code == 201
    body = submit.json()
    assert body["success"] is True
    assert body["total_amount"] == 178200
    reservation_number = body["reservation_number"]
    assert reservation_number.startswith("RES")

    lookup = client.get(f"/reservations/{reservation_number}")
    assert lookup.status_code == 200
    assert lookup.json()["payment_confirmed"] == "N"

    confirm = client.post(f"/reservations/{reservation_number}/confirm_payment")
    assert confirm.status_code == 200
    assert confirm.json()["calendar_event_id"]

    again = client.post(f"/reservations/{reservation_number}/confirm_payment")
    assert again.status_code == 409

    booked = client.get("/booked_slots", params={"date": TARGET_DATE})
    assert booked.status_code == 200
    assert [slot["reservation_number"] for slot in booked.json()["slots"]] == [reservation_number]

    blocked = client.post(
        "/check_availability",
        json={"date": TARGET_DATE, "start_time": "12:00", "end_time": "14:00", "room": "A+B"},
    )
    assert blocked.json()["available"] is False

    conflict = client.post("/reservations", json=_payload(room="A+B"))
    assert conflict.status_code == 409
    assert conflict.json()["conflicts"][0]["reservation_number"] == reservation_number
    assert len(repository.list_reservations()) == 1


def test_submit_validation_errors_are_returned_together(tmp_path):
    app, repository = _build_test_app(tmp_path)
    client = TestClient(app)

    response = client.post(
        "/reservations",
        json=_payload(name="", phone="555", headcount=0),
    )

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert len(body["errors"]) == 3
    assert repository.list_reservations() == []


def test_unknown_reservation_confirmation_returns_404(tmp_path):
    app, _ = _build_test_app(tmp_path)
    client = TestClient(app)
    response = client.post("/reservations/RES20250101-001/confirm_payment")
    assert response.status_code == 404


def test_check_availability_rejects_unknown_room(tmp_path):
    app, _ = _build_test_app(tmp_path)
    client = TestClient(app)
    response = client.post(
        "/check_availability",
        json={"date": TARGET_DATE, "start_time": "10:00", "end_time": "12:00", "room": "C"},
    )
    assert response.status_code == 422


def test_quote_suggests_combined_room_for_large_groups(tmp_path):
    app, _ = _build_test_app(tmp_path)
    client = TestClient(app)
    response = client.post(
        "/quote",
        json={"persons": 12, "start_time": "10:00", "end_time": "11:00", "room": "B"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["combined_room_suggested"] is True
    assert body["below_minimum_hours"] is True


def test_pricing_settings_expose_defaults(tmp_path):
    app, _ = _build_test_app(tmp_path)
    client = TestClient(app)
    response = client.get("/pricing_settings")
    assert response.status_code == 200
    assert response.json()["base_rate"] == 44000
    assert response.json()["vat_rate"] == 10


def test_submit_with_non_numeric_headcount_returns_result_body(tmp_path):
    app, repository = _build_test_app(tmp_path)
    client = TestClient(app)

    response = client.post("/reservations", json=_payload(headcount="five", name=""))

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert "name is required" in body["errors"]
    assert "headcount must be a number" in body["errors"]
    assert repository.list_reservations() == []


def test_document_without_filename_is_a_validation_error(tmp_path):
    app, repository = _build_test_app(tmp_path)
    client = TestClient(app)

    response = client.post(
        "/reservations",
        json=_payload(
            tax_invoice=True,
            document={"content_base64": "aGVsbG8=", "mime_type": "text/plain", "filename": ""},
        ),
    )

    assert response.status_code == 400
    assert response.json()["errors"] == ["document filename is required"]
    assert repository.list_reservations() == []


def test_oversized_upload_maps_to_content_too_large():
    assert SUBMISSION_STATUS_CODES["upload_too_large"] == 413
