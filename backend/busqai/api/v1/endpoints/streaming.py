"""
SSE streaming endpoint.

WHAT: Server-Sent Events stream of negotiation view snapshots
WHY: The frontend re-renders on every inbound message, typing change or phase change
HOW: EventSourceResponse over a queue fed by a controller listener, with periodic heartbeats
"""

import asyncio
import json
from datetime import datetime
from typing import AsyncIterator

from fastapi import APIRouter, Depends, Request
from sse_starlette.sse import EventSourceResponse

from ....core.app_state import AppState, get_app_state
from ....core.config import settings
from ....models.negotiation import NegotiationView
from ....negotiation.controller import NegotiationViewController
from ....utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


def _view_event(view: NegotiationView) -> dict:
    return {
        "event": "view",
        "id": str(view.version),
        "data": view.model_dump_json()
    }


async def view_event_generator(
    controller: NegotiationViewController,
    request: Request | None = None,
    heartbeat_interval: float | None = None
) -> AsyncIterator[dict]:
    """
    Generate SSE events for one negotiation screen.

    WHAT: Connected event, current snapshot, then one event per change
    WHY: Real-time updates to the frontend
    HOW: Listener pushes snapshots into a queue; a heartbeat is sent when idle

    Args:
        controller: Open screen session
        request: Incoming request, used to stop on client disconnect
        heartbeat_interval: Idle seconds between heartbeats

    Yields:
        SSE event dicts
    """
    chat_id = controller.chat_id
    interval = heartbeat_interval if heartbeat_interval is not None else settings.SSE_HEARTBEAT_INTERVAL
    queue: asyncio.Queue[NegotiationView] = asyncio.Queue()
    remove_listener = controller.add_listener(queue.put_nowait)
    logger.info(f"Starting SSE stream for chat {chat_id}")

    try:
        yield {
            "event": "connected",
            "retry": settings.SSE_RETRY_TIMEOUT * 1000,
            "data": json.dumps({
                "type": "connected",
                "chat_id": chat_id,
                "timestamp": datetime.now().isoformat()
            })
        }
        yield _view_event(controller.view())

        while not controller.closed:
            if request is not None and await request.is_disconnected():
                break
            try:
                view = await asyncio.wait_for(queue.get(), timeout=interval)
            except asyncio.TimeoutError:
                yield {
                    "event": "heartbeat",
                    "data": json.dumps({
                        "type": "heartbeat",
                        "timestamp": datetime.now().isoformat()
                    })
                }
                continue
            yield _view_event(view)

        yield {
            "event": "closed",
            "data": json.dumps({
                "type": "closed",
                "chat_id": chat_id,
                "timestamp": datetime.now().isoformat()
            })
        }
    finally:
        remove_listener()
        logger.info(f"SSE stream ended for chat {chat_id}")


@router.get("/negotiations/{chat_id}/stream")
async def stream_negotiation(
    chat_id: str,
    request: Request,
    state: AppState = Depends(get_app_state)
):
    """
    Stream view snapshots via SSE.

    Raises:
        NotFoundError: Screen not opened for this chat
    """
    controller = state.sessions.get(chat_id)
    logger.info(f"SSE stream requested for chat {chat_id}")

    return EventSourceResponse(
        view_event_generator(controller, request),
        media_type="text/event-stream"
    )
