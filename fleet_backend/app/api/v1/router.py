"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from fleet_backend.app.api.v1.endpoints import (
    auth, users, admin, departments, subsidiaries,
    vehicles, shuttles, trips, maintenance, fuel,
    accidents, costs, parking
)

router = APIRouter()

# Authentication and self-service profile
router.include_router(auth.router)

# Principals and administration
router.include_router(users.router)
router.include_router(admin.router)

# Organisation
router.include_router(subsidiaries.router)
router.include_router(departments.router)

# Fleet
router.include_router(vehicles.router)
router.include_router(shuttles.router)
router.include_router(trips.router)
router.include_router(maintenance.router)

# Ledgers
router.include_router(fuel.router)
router.include_router(accidents.router)
router.include_router(costs.router)
router.include_router(parking.router)
