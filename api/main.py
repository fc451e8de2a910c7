"""
phim-backend trigger API - FastAPI application.

Provides endpoints for:
- Queueing or running discovery and detail crawls per source
- Syncing a single crawled source item into the catalog
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from api.deps import shutdown_pipeline
from api.routers import crawl, sync

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    logger.info("Starting up phim-backend trigger API...")
    yield
    logger.info("Shutting down phim-backend trigger API...")
    shutdown_pipeline()


app = FastAPI(
    title="phim-backend",
    description="Trigger surface for the movie crawl and sync pipeline",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(crawl.router, prefix="/api/v1")
app.include_router(sync.router, prefix="/api/v1")


@app.get("/")
def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "phim-backend"}
