"""Server-Sent Events stream of committed blocks."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import TYPE_CHECKING

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse

from tracechain_gateway.services.live import QueueSink

if TYPE_CHECKING:
    from tracechain_gateway.containers import AppContainer

router = APIRouter(prefix="/live", tags=["live"])


@router.get("/blocks")
async def live_blocks(request: Request) -> StreamingResponse:
    """Stream one SSE message per block committed on the configured channel."""
    container: AppContainer = request.app.state.container
    settings = container.settings
    sink = QueueSink(
        max_size=settings.live_queue_size,
        retry_ms=int(settings.live_reconnect_seconds * 1000),
    )
    subscription = container.broadcaster.subscribe(
        settings.channel, settings.cc_name, sink
    )

    async def stream() -> AsyncIterator[str]:
        try:
            async for frame in sink.frames():
                yield frame
        finally:
            container.broadcaster.unsubscribe(subscription)

    return StreamingResponse(
        stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
