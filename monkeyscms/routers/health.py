"""
Health check router.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import __version__
from ..cache import get_cache
from ..database import get_db
from ..logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/health", summary="Health check")
def health_check(db: Session = Depends(get_db)) -> dict:
    """
    Report service health.

    Returns ``degraded`` when the database does not answer.
    """
    db_healthy = False
    try:
        db_healthy = db.execute(text("SELECT 1")).scalar() == 1
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")

    return {
        "status": "healthy" if db_healthy else "degraded",
        "service": "monkeyscms",
        "version": __version__,
        "database": "connected" if db_healthy else "disconnected",
        "cache": get_cache().stats(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
