"""Main application entry point."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from amiga_gdb_relay import __version__
from amiga_gdb_relay.api.errors import register_error_handlers
from amiga_gdb_relay.api.router import api_router
from amiga_gdb_relay.config import settings
from amiga_gdb_relay.core.session import DebugSession
from amiga_gdb_relay.models.gdb import ProxyState

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    # Startup
    logger.info(f"Starting Amiga GDB Relay v{__version__}")
    logger.info(f"Debug stub: {settings.stub_host}:{settings.stub_port}")

    session = DebugSession()
    app.state.session = session

    yield

    # Shutdown
    logger.info("Shutting down...")
    if session.state != ProxyState.IDLE:
        await session.disconnect()
    logger.info("Shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Amiga GDB Relay",
        description="HTTP relay for debugging Amiga programs via the FS-UAE GDB stub",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # Register routers
    app.include_router(api_router)

    # Register error handlers
    register_error_handlers(app)

    return app


# Create app instance
app = create_app()


def main() -> None:
    """Run the server."""
    uvicorn.run(
        "amiga_gdb_relay.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
