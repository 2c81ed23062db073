"""
FastAPI Application Entry Point.

This is the main application file for the Fleet Management Backend.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException
from fleet_backend.app.core.config import settings
from fleet_backend.app.api.v1.router import router as api_v1_router
from fleet_backend.app.db.session import engine, Base
from fleet_backend.app.core.observability import ObservabilityMiddleware, configure_logging
from fleet_backend.app.core.exceptions import (
    AppException,
    PERSISTENCE_ERRORS,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    persistence_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from fleet_backend.app.models.subsidiary import Subsidiary
from fleet_backend.app.models.user import User
from fleet_backend.app.models.department import Department
from fleet_backend.app.models.vehicle import Vehicle
from fleet_backend.app.models.shuttle import Shuttle
from fleet_backend.app.models.trip import Trip
from fleet_backend.app.models.maintenance import MaintenanceRecord
from fleet_backend.app.models.fuel_record import FuelRecord
from fleet_backend.app.models.accident import AccidentRecord
from fleet_backend.app.models.cost import CostRecord
from fleet_backend.app.models.parking import ParkingRecord
from fleet_backend.app.models.audit_log import AuditLog


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Applies the configured log level.
    2. Creates database tables on startup.
    """
    configure_logging()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()

# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Fleet management backend: vehicles, drivers, trips, maintenance and fuel",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
for error_class in PERSISTENCE_ERRORS:
    app.add_exception_handler(error_class, persistence_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Status and application information
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": "Welcome to Fleet Management Backend API",
        "docs": "/docs",
        "health": "/health",
    }
