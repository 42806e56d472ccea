"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from brandlens_api.config import settings
from brandlens_api.routes import archive, resolver, runs


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logging.basicConfig(level=logging.DEBUG if settings.debug else logging.INFO)
    yield


app = FastAPI(
    title="Brandlens Evidence API",
    description="Evidence link resolution: agency permalinks, outlet discovery and archival",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(resolver.router, prefix="/api", tags=["resolver"])
app.include_router(archive.router, prefix="/api", tags=["archive"])
app.include_router(runs.router, prefix="/api", tags=["runs"])


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
