"""
Status and health check endpoints.

WHAT: Health monitoring for the data service and the local database
WHY: Quick diagnostics for the frontend and ops
HOW: FastAPI endpoints calling data_service.ping() and ping_database()
"""

from fastapi import APIRouter, Depends

from ....core.app_state import AppState, get_app_state
from ....core.config import settings
from ....core.database import ping_database
from ....utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get("/status")
async def service_status(state: AppState = Depends(get_app_state)):
    """
    Check backend and local store status.

    WHAT: Detailed component status
    WHY: Frontend can show an offline banner before the user acts
    HOW: Call data_service.ping() and ping_database()

    Returns:
        JSON with data service, database and session status
    """
    backend = await state.data_service.ping()
    db_status = ping_database()

    return {
        "data_service": {
            "available": backend.available,
            "base_url": backend.base_url,
            "error": backend.error
        },
        "database": db_status,
        "session": {
            "signed_in": state.data_service.user_id is not None,
            "user_id": state.data_service.user_id
        },
        "negotiations": {
            "open": len(state.sessions)
        }
    }


@router.get("/health")
async def health_check(state: AppState = Depends(get_app_state)):
    """
    Overall application health check.

    Returns:
        JSON with overall health status
    """
    backend = await state.data_service.ping()
    db_available = ping_database()["available"]

    healthy = backend.available and db_available
    if not healthy:
        logger.warning(f"Health degraded (data service: {backend.available}, database: {db_available})")

    return {
        "status": "healthy" if healthy else "degraded",
        "version": settings.APP_VERSION,
        "app_name": settings.APP_NAME,
        "components": {
            "data_service": {"available": backend.available},
            "database": {"available": db_available}
        }
    }
