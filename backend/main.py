"""
StudySense - FastAPI Application Entry Point
Study-session engagement, health and analytics service
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.core.database import init_db
from app.services.session_registry import get_registry, tick_loop
from app.services.websocket_manager import ws_manager
from app.utils.logger import setup_logging

# Setup logging
setup_logging("DEBUG" if settings.DEBUG else "INFO")
logger = logging.getLogger("studysense.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle manager"""
    logger.info("=" * 60)
    logger.info("  StudySense Engagement Service - Starting")
    logger.info("=" * 60)

    init_db()
    logger.info("Database initialized")

    logger.info(f"Environment: {settings.STUDYSENSE_ENV}")
    logger.info(f"CORS Origins: {settings.cors_origins_list}")
    logger.info(f"Strict ingest: {settings.STRICT_INGEST}")

    # Background tick for live sessions (REST clients only poll)
    ticker = asyncio.create_task(tick_loop(settings.TICK_SECONDS))

    logger.info("StudySense is ready!")
    logger.info("=" * 60)

    yield

    ticker.cancel()
    try:
        await ticker
    except asyncio.CancelledError:
        pass

    # Tear down any live session timers still running
    get_registry().shutdown()
    logger.info("StudySense shutting down...")


# Create FastAPI app
app = FastAPI(
    title="StudySense - Study Session Analytics",
    description="Engagement scoring, health alerts and study analytics over live behavioral metrics",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
from app.routers import analytics, sessions

app.include_router(sessions.router)
app.include_router(analytics.router)


# Health check endpoint
@app.get("/health")
def health_check():
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": "1.0.0",
        "live_sessions": len(get_registry().active_ids),
        "ws_connections": ws_manager.total_connections,
    }


@app.get("/api/info")
def api_info():
    return {
        "name": "StudySense API",
        "version": "1.0.0",
        "description": "Study-session engagement and analytics",
        "endpoints": {
            "sessions": "/api/sessions",
            "analytics": "/api/analytics",
            "websocket_session": "/ws/sessions/{session_id}",
            "health": "/health",
        }
    }
