"""
Arrow Domain - FastAPI Application

Главная точка входа backend.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from .config import settings
from .api import game
from .middleware.security import limiter, add_security_headers
from .services.generator import DIFFICULTY_IDS
from .services.session_manager import get_session_manager


logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


# ============================================
# LIFESPAN
# ============================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle events."""
    # Startup
    logger.info(f"[App] Starting {settings.APP_NAME}...")
    logger.info(f"[App] Environment: {settings.ENVIRONMENT}")
    logger.info(f"[App] Debug mode: {settings.DEBUG}")
    logger.info(
        f"[App] Generator: retries={settings.GENERATE_RETRIES} max_winners={settings.TARGET_MAX_WINNERS} "
        f"playback={'on' if settings.PLAYBACK_ENABLED else 'off'}"
    )

    yield

    # Shutdown
    manager = get_session_manager()
    for session_id in manager.list_sessions():
        manager.end_session(session_id)
    logger.info("[App] Shutting down, sessions dropped")


# ============================================
# APP
# ============================================

app = FastAPI(
    title=settings.APP_NAME,
    description="Arrow Domain API - chain-reaction arrow puzzle",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
)

# Rate limiter state
app.state.limiter = limiter


# ============================================
# MIDDLEWARE
# ============================================

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Security headers
app.middleware("http")(add_security_headers)


# ============================================
# ERROR HANDLERS
# ============================================

@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    """Handler для rate limit ошибок."""
    return JSONResponse(
        status_code=429,
        content={"detail": "Too many requests. Please try again later."}
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Глобальный обработчик ошибок."""
    logger.exception(f"[Error] {request.method} {request.url.path}: {exc}")

    # В production не показываем детали ошибок
    detail = str(exc) if settings.DEBUG else "Internal server error"

    return JSONResponse(
        status_code=500,
        content={"detail": detail}
    )


# ============================================
# ROUTES
# ============================================

# API prefix
api_prefix = settings.API_PREFIX

app.include_router(game.router, prefix=api_prefix)


# ============================================
# HEALTH CHECK
# ============================================

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "ok",
        "app": settings.APP_NAME,
        "environment": settings.ENVIRONMENT,
        "version": "1.0.0"
    }


@app.get(f"{api_prefix}/health")
async def api_health_check():
    """API health check."""
    return {
        "status": "ok",
        "version": "1.0.0",
        "debug": settings.DEBUG,
        "playback": settings.PLAYBACK_ENABLED,
        "sessions": len(get_session_manager()),
        "difficulties": DIFFICULTY_IDS,
    }


# ============================================
# ROOT
# ============================================

@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": settings.APP_NAME,
        "version": "1.0.0",
        "docs": "/docs" if settings.DEBUG else None,
        "health": "/health",
    }


# ============================================
# RUN
# ============================================

if __name__ == "__main__":
    import uvicorn
    logger.info(f"[App] Starting {settings.APP_NAME} on http://localhost:8000")
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
