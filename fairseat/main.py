"""FastAPI application entry point for the seating engine."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .config import settings
from .models import init_db
from .api.routes import seating

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan handler for startup/shutdown."""
    logger.info("Starting %s...", settings.app_name)

    await init_db()
    logger.info("Database initialized")

    yield

    logger.info("Shutting down...")


app = FastAPI(
    title=settings.app_name,
    description="Fair table and server assignment for restaurant floors",
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware for the host stand frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(seating.router, prefix=settings.api_prefix)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": settings.app_name,
        "version": __version__,
        "status": "running",
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "fairseat.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
