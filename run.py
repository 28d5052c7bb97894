"""
Uvicorn launcher for the FastAPI app.

Reads port from Settings (env/.env) and starts the server on 0.0.0.0.
"""

import os

import uvicorn  # type: ignore

from rotation_backend.core.config import get_settings
from rotation_backend.core.logger import get_logger

logger = get_logger(__name__)


# PUBLIC_INTERFACE
def main() -> None:
    """Start the FastAPI application with uvicorn."""
    port = get_settings().PORT
    logger.info("Starting uvicorn server", extra={"port": port})
    uvicorn.run(
        "rotation_backend.api.main:app",
        host="0.0.0.0",
        port=port,
        reload=bool(os.getenv("UVICORN_RELOAD", "").lower() in ("1", "true", "yes")),
        log_level="info",
    )


if __name__ == "__main__":
    main()
