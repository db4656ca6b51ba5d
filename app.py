"""
app.py: FastAPI application factory and startup lifecycle.

This is the ASGI application object imported by uvicorn.
It wires all services, registers routers, and runs startup initialization.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from space_rental.controllers.availability_controller import router as availability_router
from space_rental.controllers.reservation_controller import router as reservation_router
from space_rental.repository.data_repository import DataRepository
from space_rental.services.activity_log_service import ActivityLogService
from space_rental.services.availability_service import AvailabilityService
from space_rental.services.calendar_service import CalendarService
from space_rental.services.document_service import LocalDocumentStore
from space_rental.services.numbering_service import ReservationNumberGenerator
from space_rental.services.pricing_service import PriceCalculator
from space_rental.services.reservation_service import ReservationWorkflowService
from space_rental.services.settings_service import SettingsProvider, default_setting_rows
from space_rental.utils.config import Settings, get_settings
from space_rental.utils.logger import get_logger


logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build and wire the FastAPI application.

    Instantiates all services with explicit dependency injection via app.state.
    The reservation service owns the process-wide submission lock, so exactly
    one instance is created here.
    """
    settings = settings or get_settings()

    # --- Repository (SQLite connection factory) ---
    repository = DataRepository(settings)

    # --- Services (business logic, no direct DB access) ---
    activity_log = ActivityLogService(repository)
    settings_provider = SettingsProvider(repository)
    availability_service = AvailabilityService(
        repository=repository,
        settings=settings,
        activity_log=activity_log,
    )
    price_calculator = PriceCalculator(settings_provider)
    reservation_service = ReservationWorkflowService(
        repository=repository,
        settings=settings,
        availability_service=availability_service,
        price_calculator=price_calculator,
        number_generator=ReservationNumberGenerator(repository=repository, settings=settings),
        document_store=LocalDocumentStore(settings),
        calendar_service=CalendarService(repository),
        settings_provider=settings_provider,
        activity_log=activity_log,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Run startup initialization before accepting requests."""
        _startup(app)
        yield

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )

    # --- Routers ---
    app.include_router(availability_router)
    app.include_router(reservation_router)

    @app.get("/health", tags=["health"])
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    # --- Inject services into app.state for dependency resolution ---
    app.state.repository = repository
    app.state.settings_provider = settings_provider
    app.state.availability_service = availability_service
    app.state.price_calculator = price_calculator
    app.state.reservation_service = reservation_service

    return app


def _startup(app: FastAPI) -> None:
    """
    Idempotent startup sequence. Safe to re-run on server restarts.

    Schema first, then default pricing rows (existing operator values win).
    """
    repository: DataRepository = app.state.repository

    logger.info("Startup: initializing database schema")
    repository.initialize_database()

    logger.info("Startup: ensuring default pricing settings")
    repository.seed_default_settings(default_setting_rows())

    logger.info("Startup complete, system ready")


# Module-level app object for uvicorn
app = create_app()
