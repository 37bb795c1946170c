"""
Main API router that includes all route modules.
"""
from fastapi import APIRouter
from haulbook.api.routes import (
    auth, users, drivers, vehicles, loading_points, center_fares,
    charters, fixed_contracts, settlements, regions, imports, audit_logs
)

api_router = APIRouter()

api_router.include_router(auth.router)
api_router.include_router(users.router)
api_router.include_router(drivers.router)
api_router.include_router(vehicles.router)
api_router.include_router(loading_points.router)
api_router.include_router(center_fares.router)
api_router.include_router(charters.router)
api_router.include_router(fixed_contracts.router)
api_router.include_router(settlements.router)
api_router.include_router(regions.router)
api_router.include_router(imports.router)
api_router.include_router(audit_logs.router)
