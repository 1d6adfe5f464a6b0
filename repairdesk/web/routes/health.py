"""Health check API routes.

GET /health answers 200 when the schema is reachable (it counts tenants, so
a missing ``organizations`` table fails the check too) and 503 otherwise,
which lets load balancers take the instance out of rotation.
"""

import structlog
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from repairdesk import __version__
from repairdesk.config import get_config
from repairdesk.db.connection import get_db
from repairdesk.db.models import OrganizationModel

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("", status_code=status.HTTP_200_OK)
async def health_check(db: AsyncSession = Depends(get_db)):
    config = get_config()
    try:
        result = await db.execute(select(func.count()).select_from(OrganizationModel))
        organizations = result.scalar_one()
    except Exception as e:
        logger.warning("health_check_failed", error=str(e))
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "error",
                "database": "unavailable",
                "environment": config.environment,
                "detail": str(e),
            },
        )

    return {
        "status": "ok",
        "database": "connected",
        "organizations": organizations,
        "environment": config.environment,
        "version": __version__,
    }
