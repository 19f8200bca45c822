"""
Admin API Routes - Monitoring and Maintenance
"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from marketplace.core.config import get_settings
from marketplace.core.dependencies import get_db
from marketplace.infrastructure.redis_client import check_redis_connection
from marketplace.services import ListingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/health")
async def health_check(db: Session = Depends(get_db)):
    """System health check"""
    settings = get_settings()

    try:
        db.execute(text("SELECT 1"))
        db_status = "healthy"
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        db_status = f"unhealthy: {str(e)}"

    if settings.LISTING_LOCK_ENABLED:
        redis_status = "healthy" if check_redis_connection() else "unhealthy"
    else:
        redis_status = "disabled"

    overall = "healthy" if db_status == "healthy" and redis_status != "unhealthy" else "degraded"

    return {
        "status": overall,
        "database": db_status,
        "redis": redis_status,
        "version": settings.APP_VERSION
    }


@router.post("/expire-listings")
async def expire_listings(db: Session = Depends(get_db)):
    """Persist ENDED for listings whose end time has passed"""
    expired = ListingService.expire_listings(db)
    return {"expired": expired}
