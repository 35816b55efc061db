"""Server-Sent Events endpoints for dashboard refresh."""

import asyncio
import json
from typing import AsyncGenerator

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import StreamingResponse

from ecertify.core.container import Services
from ecertify.web.deps import services
from ecertify.web.events import FeedListener, open_listener

router = APIRouter(prefix="/api/events", tags=["events"])

KEEPALIVE_SECONDS = 30.0

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}


async def event_generator(listener: FeedListener) -> AsyncGenerator[str, None]:
    """Generate SSE messages until the listener closes."""
    try:
        while True:
            try:
                event = await asyncio.wait_for(
                    listener.queue.get(), timeout=KEEPALIVE_SECONDS
                )
            except asyncio.TimeoutError:
                yield "event: keepalive\ndata: ping\n\n"
                continue

            if event is None:
                yield "event: close\ndata: Feed closed\n\n"
                return

            yield f"event: change\ndata: {json.dumps(listener.message_for(event))}\n\n"
    finally:
        if listener.subscriptions:
            listener.close()


@router.get("/institutes/{institute_id}")
async def stream_institute_events(
    institute_id: int, svc: Services = Depends(services)
) -> StreamingResponse:
    """Stream certificate and transfer changes relevant to an institute.

    Events:
    - change: a ChangeEvent plus the derived notice, as JSON
    - keepalive: sent every 30s to keep the connection alive
    """
    await run_in_threadpool(svc.directory.get_institute, institute_id)
    listener = open_listener(svc.feed, "institute", institute_id)
    return StreamingResponse(
        event_generator(listener), media_type="text/event-stream", headers=SSE_HEADERS
    )


@router.get("/students/{student_id}")
async def stream_student_events(
    student_id: int, svc: Services = Depends(services)
) -> StreamingResponse:
    """Stream certificate, transfer and grant changes relevant to a student."""
    await run_in_threadpool(svc.directory.get_student, student_id)
    listener = open_listener(svc.feed, "student", student_id)
    return StreamingResponse(
        event_generator(listener), media_type="text/event-stream", headers=SSE_HEADERS
    )
