"""
FastAPI application entry point with async lifespan.
"""
import uvicorn
from contextlib import asynccontextmanager
from fastapi import FastAPI

from co2ledger.core.config import get_settings
from co2ledger.core.database import init_db, close_db
from co2ledger.core.logging import setup_logging
from co2ledger.routes import health, emissions, proposals, contributors
from co2ledger.services.emission_service import EmissionCacheService
from co2ledger.services.review_workflow import ReviewWorkflow

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Async lifespan manager for startup and shutdown."""
    # Startup
    setup_logging(settings.log_level, settings.log_format)
    await init_db()
    app.state.emission_service = EmissionCacheService(settings)
    app.state.review_workflow = ReviewWorkflow(app.state.emission_service)
    yield
    # Shutdown
    await close_db()


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Shared CO2 emission records with peer-reviewed corrections",
    lifespan=lifespan
)

# Register routes
app.include_router(health.router)
app.include_router(emissions.router)
app.include_router(proposals.router)
app.include_router(contributors.router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
        "health": "/health"
    }


if __name__ == "__main__":
    uvicorn.run(
        app,
        host='0.0.0.0',
        port=settings.port,
    )
