"""Main API router aggregator."""

from fastapi import APIRouter

from amiga_gdb_relay.api import (
    breakpoints,
    execution,
    inspection,
    server,
    session,
)

# Create main router with API version prefix
api_router = APIRouter(prefix="/api/v1")

# Include all sub-routers
api_router.include_router(server.router)
api_router.include_router(session.router)
api_router.include_router(breakpoints.router)
api_router.include_router(execution.router)
api_router.include_router(inspection.router)
