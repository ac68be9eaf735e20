"""
app.py: FastAPI application factory and startup lifecycle.

Exposes `app` for uvicorn. Offices, users and bookings share one SQLite
repository; the booking API routers read their services from app.state.

Start it with `python main.py` or `uvicorn app:app --reload`.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from backend.controllers.auth_controller import router as auth_router
from backend.controllers.booking_controller import router as booking_router
from backend.controllers.office_controller import router as office_router
from backend.controllers.user_controller import router as user_router
from backend.repository.data_repository import DataRepository
from backend.services.auth_service import AuthService
from backend.services.booking_service import BookingService
from backend.services.office_service import OfficeService
from backend.services.user_service import UserService
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Create the booking API.

    Tests pass their own Settings; uvicorn uses the environment-driven defaults.
    """
    settings = settings or get_settings()

    # --- Storage ---
    repository = DataRepository(settings)

    # --- Offices, users, bookings, auth ---
    office_service = OfficeService(repository=repository, settings=settings)
    user_service = UserService(
        repository=repository,
        settings=settings,
        office_service=office_service,
    )
    booking_service = BookingService(
        repository=repository,
        settings=settings,
        office_service=office_service,
        user_service=user_service,
    )
    auth_service = AuthService(settings=settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Prepare storage before the first request."""
        startup(app)
        yield

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )

    # --- HTTP surface ---
    app.include_router(auth_router)
    app.include_router(user_router)
    app.include_router(office_router)
    app.include_router(booking_router)

    # --- Looked up by backend.controllers.dependencies ---
    app.state.settings = settings
    app.state.repository = repository
    app.state.office_service = office_service
    app.state.user_service = user_service
    app.state.booking_service = booking_service
    app.state.auth_service = auth_service

    return app


def startup(app: FastAPI) -> None:
    """
    Bring the database in line with configuration. Running it twice is harmless.

    Steps:
      1. Schema must exist before offices are synchronised.
      2. Offices must exist before bookings reference them.
      3. Retention purge runs last, against the final schema.
    """
    repository: DataRepository = app.state.repository
    office_service: OfficeService = app.state.office_service
    booking_service: BookingService = app.state.booking_service

    logger.info("Startup: initializing database schema")
    repository.initialize_database()

    logger.info("Startup: synchronising configured offices")
    office_service.sync_configured_offices()

    logger.info("Startup: purging bookings past the retention window")
    booking_service.purge_expired_bookings()

    logger.info("Startup complete, system ready")


# Imported by uvicorn as app:app
app = create_app()
