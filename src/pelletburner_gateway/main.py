"""Main application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from pelletburner_gateway import __version__
from pelletburner_gateway.api.dependencies import app_state
from pelletburner_gateway.api.routes import router as api_router
from pelletburner_gateway.core.cache import SnapshotStore
from pelletburner_gateway.core.config import Settings, setup_logging
from pelletburner_gateway.core.models import HealthResponse
from pelletburner_gateway.protocol.handler import ProtocolHandler
from pelletburner_gateway.protocol.variants import get_protocol
from pelletburner_gateway.transport.connection import UDPSession

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    settings = app_state.settings or Settings()
    app_state.settings = settings

    setup_logging(settings.log_level)
    logger.info(f"Starting Pellet Burner Gateway v{__version__}")

    # Initialize components
    options = settings.to_options()
    protocol = get_protocol(options.protocol, options)

    app_state.store = SnapshotStore()
    app_state.session = UDPSession(options, port_ceiling=protocol.port_ceiling)
    app_state.handler = ProtocolHandler(
        session=app_state.session,
        store=app_state.store,
        protocol=protocol,
        poll_interval=settings.poll_interval_seconds,
        initial_delay=settings.initial_delay,
    )

    logger.info(f"Polling burner {options.serial} at {options.remote_address}:{options.remote_port}")
    await app_state.handler.start()

    yield

    # Shutdown
    logger.info("Shutting down...")
    if app_state.handler is not None:
        await app_state.handler.stop()


app = FastAPI(
    title="Pellet Burner Gateway",
    description="Local REST API gateway for NBE pellet burners",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(api_router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Pellet Burner Gateway",
        "version": __version__,
        "status": "running",
    }


@app.get("/health", response_model=HealthResponse)
async def health():
    """Health check endpoint."""
    handler = app_state.handler
    store = app_state.store

    if handler is None or store is None:
        return HealthResponse(
            status="unhealthy",
            burner_online=False,
            items_count=0,
            last_update=None,
        )

    online = handler.online
    has_data = store.count > 0
    status = "healthy" if online and has_data else ("degraded" if online or has_data else "unhealthy")
    last_error = str(store.last_error) if store.last_error is not None else None

    return HealthResponse(
        status=status,
        burner_online=online,
        items_count=store.count,
        last_update=store.last_update,
        last_error=last_error,
    )


def main():
    """Run the application (for CLI entry point)."""
    import uvicorn

    settings = Settings()
    setup_logging(settings.log_level)
    app_state.settings = settings

    uvicorn.run(app, host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    main()
