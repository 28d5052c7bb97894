import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from ..core.config import Settings, get_settings
from ..core.errors import UnknownCollection
from ..core.logger import get_logger
from ..db.base import ItemStore, SelectionPolicy
from ..db.factory import create_item_store
from ..models.collections import COLLECTIONS
from ..routers.health import router as health_router
from ..routers.items import router as items_router
from ..routers.stream import router as stream_router
from ..services.generation import EventGenerator
from ..services.lifecycle import initialize_collections

logger = get_logger(__name__)


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    msg = str(first.get("msg", "Invalid request"))
    if msg.startswith("Value error, "):
        return msg[len("Value error, "):]
    location = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    return f"Invalid {location} parameter: {msg}" if location else msg


# PUBLIC_INTERFACE
def create_app(
    settings: Optional[Settings] = None,
    store: Optional[ItemStore] = None,
    generator: Optional[EventGenerator] = None,
) -> FastAPI:
    """Build the FastAPI application.

    The store and generator are created from settings unless given. Startup
    connects the store and seeds empty collections; a ConfigurationError or a
    failed connection propagates and aborts startup.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        item_store = store if store is not None else create_item_store(settings, collections=COLLECTIONS.keys())
        event_generator = generator if generator is not None else EventGenerator.from_settings(settings)
        await item_store.connect()
        try:
            seeded = await initialize_collections(item_store, COLLECTIONS.values())
            app.state.store = item_store
            app.state.generator = event_generator
            app.state.selection_policy = SelectionPolicy(settings.ROTATION_SELECTION)
            logger.info(
                "Startup complete.",
                extra={
                    "backend": settings.DB_BACKEND,
                    "seeded": seeded,
                    "generation_enabled": event_generator.is_initialized(),
                },
            )
            yield
        finally:
            await event_generator.close()
            await item_store.disconnect()
            logger.info("Shutdown complete.")

    app = FastAPI(
        title=settings.APP_NAME,
        description="Hands out rotating event and question items per user, with AI-generated events.",
        version="1.0.0",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
        openapi_tags=[
            {"name": "Health", "description": "Service health and diagnostics"},
            {"name": "Items", "description": "Event and question rotation"},
            {"name": "Stream", "description": "Server-sent events"},
        ],
    )

    origins = settings.cors_origins_list()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "Request handled.",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round((time.perf_counter() - start) * 1000, 2),
            },
        )
        return response

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return ORJSONResponse(status_code=400, content={"success": False, "data": {"error": _validation_message(exc)}})

    @app.exception_handler(UnknownCollection)
    async def unknown_collection_handler(request: Request, exc: UnknownCollection):
        return ORJSONResponse(status_code=404, content={"success": False, "data": {"error": str(exc)}})

    @app.get("/", summary="Health Check (root)", tags=["Health"])
    def health_check_root():
        """Root-level liveness check."""
        return {"message": "Healthy"}

    app.include_router(health_router)
    app.include_router(items_router)
    app.include_router(stream_router)

    logger.info("FastAPI app initialized", extra={"app_name": settings.APP_NAME, "env": settings.APP_ENV})
    return app


app = create_app()


if __name__ == "__main__":
    # Allow running as: python -m rotation_backend.api.main
    import uvicorn  # type: ignore

    uvicorn.run("rotation_backend.api.main:app", host="0.0.0.0", port=get_settings().PORT, log_level="info")
