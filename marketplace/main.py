"""
Main FastAPI Application
Auction marketplace: listings, bids, buy now and relisting
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from marketplace.core.config import get_settings
from marketplace.core.logging_config import get_trace_id, setup_logging
from marketplace.infrastructure.database import init_db
from marketplace.middleware.tracing import TracingMiddleware
from marketplace.services.errors import MarketplaceError

# Import routers
from marketplace.api import listings, bids, admin

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan events for startup and shutdown"""
    setup_logging()
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    init_db()

    if settings.LISTING_LOCK_ENABLED:
        from marketplace.infrastructure.redis_client import check_redis_connection
        if check_redis_connection():
            logger.info("Redis connected, per-listing locks enabled")
        else:
            logger.warning("Redis not reachable, bids will fail with LISTING_BUSY")

    yield

    logger.info("Shutdown complete")


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan
)


@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(request: Request, exc: MarketplaceError):
    """Turn service errors into JSON responses"""
    logger.info(
        f"Rejected {request.method} {request.url.path}: {exc.error_code}",
        extra={'status_code': exc.status_code}
    )
    content = exc.to_dict()
    content["trace_id"] = get_trace_id()
    return JSONResponse(status_code=exc.status_code, content=content)


# Middleware
app.add_middleware(TracingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# INCLUDE ROUTERS
# ============================================================================
app.include_router(listings.router)
app.include_router(bids.router)
app.include_router(admin.router)


# ============================================================================
# ROOT ENDPOINT
# ============================================================================
@app.get("/", tags=["root"])
async def root():
    """Server status"""
    return {
        "message": f"{settings.APP_NAME} v{settings.APP_VERSION}",
        "status": "running",
        "docs": "/docs",
        "health": "/admin/health",
        "features": [
            "Auction rules engine",
            "Optimistic concurrency on every listing write",
            "Optional Redis per-listing locks",
            "Buy now, relist and close-out",
            "Structured JSON logging"
        ]
    }
