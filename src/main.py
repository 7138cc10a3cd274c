"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api import analysis, auth, intake, websocket
from src.config import get_settings
from src.services.blob_store import TempBlobStore

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build shared clients on startup and release them on shutdown."""
    app.state.blob_store = None
    if settings.use_temp_blob_store:
        app.state.blob_store = TempBlobStore.from_url(
            settings.redis_url, ttl_seconds=settings.temp_blob_ttl_seconds
        )
        logger.info("Temp blob store enabled for analysis payloads")
    yield
    if app.state.blob_store is not None:
        app.state.blob_store.close()
        app.state.blob_store = None


app = FastAPI(
    title="Coffee Clock API",
    description="Caffeine and sugar intake tracker with photo-based drink recognition",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware for development
if settings.is_development:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:3000",
            "http://localhost:5173",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(auth.router)
app.include_router(intake.router)
app.include_router(analysis.router)
app.include_router(websocket.router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "environment": settings.environment}
