"""FastAPI application for the vaultmirror REST API."""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from vaultmirror.api.middleware import api_key_middleware
from vaultmirror.api.routes import health, vaults
from vaultmirror.core.bootstrap import bootstrap_vaults
from vaultmirror.core.config import (
    VAULTMIRROR_CORS_ORIGINS,
    VAULTMIRROR_HOST,
    VAULTMIRROR_PORT,
    validate_sync_environment,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("vaultmirror API starting up...")
    await asyncio.to_thread(bootstrap_vaults)

    is_valid, message = validate_sync_environment()
    if not is_valid:
        logger.warning(message)

    yield
    logger.info("vaultmirror API shutting down...")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="vaultmirror API",
        description="Synchronized, access-controlled notes mirrored from Google Drive",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=VAULTMIRROR_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.middleware("http")(api_key_middleware)

    app.include_router(health.router, prefix="/api/v1", tags=["Health"])
    app.include_router(vaults.router, prefix="/api/v1", tags=["Vaults"])

    return app


# Create the default app instance
app = create_app()


def run_server(host: str | None = None, port: int | None = None):
    """Run the API server."""
    import uvicorn

    uvicorn.run(
        "vaultmirror.api.app:app",
        host=host or VAULTMIRROR_HOST,
        port=port or VAULTMIRROR_PORT,
        reload=False,
    )


if __name__ == "__main__":
    run_server()
