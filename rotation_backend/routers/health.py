from fastapi import APIRouter, Depends
from fastapi.responses import ORJSONResponse

from ..api.dependencies import get_item_store
from ..core.config import get_settings
from ..core.logger import get_logger
from ..db.base import ItemStore
from ..models.schemas import HealthResponse

router = APIRouter(prefix="/health", tags=["Health"])

_logger = get_logger(__name__)


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=HealthResponse,
    summary="Service and database health",
    description="Pings the configured item store. Returns 503 when it cannot be reached.",
    responses={
        200: {"description": "Service and database are healthy"},
        503: {"description": "Database unavailable"},
    },
)
async def get_health(store: ItemStore = Depends(get_item_store)):
    """
    Health indicator that also verifies storage connectivity.
    """
    settings = get_settings()
    if await store.ping():
        return HealthResponse(status="ok", database="connected")

    _logger.error("Health check: database unreachable", extra={"backend": settings.DB_BACKEND})
    return ORJSONResponse(status_code=503, content={"status": "error", "database": "disconnected"})


# PUBLIC_INTERFACE
@router.get(
    "/healthz",
    response_model=HealthResponse,
    summary="Service liveness",
    description="Liveness endpoint commonly used by platforms. Strictly non-DB.",
    responses={200: {"description": "Service is alive"}},
)
def get_healthz() -> HealthResponse:
    """Always returns {'status': 'ok'} while the process is up."""
    return HealthResponse(status="ok")
