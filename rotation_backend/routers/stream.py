"""
Server-sent events endpoint that keeps client connections open.

Clients receive one greeting frame and then a comment frame every
SSE_KEEPALIVE_SECONDS until they disconnect.
"""

import asyncio
from typing import AsyncIterator, Awaitable, Callable

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse

from ..core.config import get_settings
from ..core.logger import get_logger

logger = get_logger(__name__)
router = APIRouter(tags=["Stream"])

CONNECTED_FRAME = 'data: {"message": "Connected to SSE server"}\n\n'
KEEPALIVE_FRAME = ": keepalive\n\n"


async def keepalive_frames(
    is_disconnected: Callable[[], Awaitable[bool]],
    interval: float,
) -> AsyncIterator[str]:
    """Yield the greeting frame, then a keep-alive frame per interval until disconnect."""
    yield CONNECTED_FRAME
    while True:
        await asyncio.sleep(interval)
        if await is_disconnected():
            logger.debug("SSE client disconnected.")
            return
        yield KEEPALIVE_FRAME


# PUBLIC_INTERFACE
@router.get(
    "/stream",
    summary="Server-sent events keep-alive stream",
    response_class=StreamingResponse,
    responses={200: {"content": {"text/event-stream": {}}}},
)
async def stream(request: Request) -> StreamingResponse:
    interval = get_settings().SSE_KEEPALIVE_SECONDS
    return StreamingResponse(
        keepalive_frames(request.is_disconnected, interval),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )
