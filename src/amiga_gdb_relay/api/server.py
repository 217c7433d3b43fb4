"""Server endpoints - health and info."""

import sys

from fastapi import APIRouter

from amiga_gdb_relay import __version__
from amiga_gdb_relay.api.deps import SessionDep
from amiga_gdb_relay.config import settings
from amiga_gdb_relay.models.responses import HealthResponse, InfoResponse

router = APIRouter(tags=["Server"])


@router.get("/health", response_model=HealthResponse)
async def health_check(session: SessionDep) -> HealthResponse:
    """Check server health status."""
    return HealthResponse(
        status="healthy",
        version=__version__,
        state=session.state.value,
    )


@router.get("/info", response_model=InfoResponse)
async def server_info() -> InfoResponse:
    """Get server information."""
    return InfoResponse(
        name="Amiga GDB Relay",
        version=__version__,
        python_version=sys.version.split()[0],
        stub_host=settings.stub_host,
        stub_port=settings.stub_port,
        remote_program_prefix=settings.remote_program_prefix,
    )
