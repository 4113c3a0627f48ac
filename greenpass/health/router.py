"""Health domain router.

Health check endpoint for monitoring and load balancers.
"""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from greenpass.core.constants import Routes
from greenpass.core.deps import SessionDep, SettingsDep

logger = logging.getLogger(__name__)

router = APIRouter(prefix=Routes.HEALTH.prefix, tags=[Routes.HEALTH.tag])


@router.get("")
async def health(session: SessionDep, settings: SettingsDep):
    """Health check with database connectivity and payment configuration."""
    payments = "configured" if settings.payments_configured else "not_configured"
    try:
        session.exec(text("SELECT 1"))  # type: ignore[call-overload]
    except SQLAlchemyError as e:
        logger.error("Health check database query failed: %s", e)
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "database": "error", "payments": payments},
        )
    return {"status": "ok", "database": "ok", "payments": payments}
