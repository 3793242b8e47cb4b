"""
Negotiation endpoints.

WHAT: Open a negotiation screen, read its view, send offers/texts, accept, reject
WHY: The frontend drives one screen session per chat through these routes
HOW: FastAPI router resolving the NegotiationViewController from the session registry
"""

from fastapi import APIRouter, Depends, status

from ....core.app_state import AppState, get_app_state
from ....models.api_schemas import (
    OpenNegotiationRequest,
    OfferRequest,
    TextMessageRequest,
    AcceptRequest,
    ActionResponse,
)
from ....models.negotiation import NegotiationMessage, NegotiationView
from ....negotiation.controller import NegotiationViewController
from ....utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


def _controller(chat_id: str, state: AppState) -> NegotiationViewController:
    return state.sessions.get(chat_id)


def _action_response(controller: NegotiationViewController, message: NegotiationMessage | None) -> ActionResponse:
    return ActionResponse(
        message_id=message.id if message else None,
        view=controller.view()
    )


@router.post("/negotiations/{chat_id}/open", response_model=NegotiationView)
async def open_negotiation(
    chat_id: str,
    request: OpenNegotiationRequest,
    state: AppState = Depends(get_app_state)
):
    """
    Open the negotiation screen of a chat.

    WHAT: Load history, derive state, subscribe to live updates
    WHY: Entry point of the negotiation flow
    HOW: Reuse the open screen for this chat or create one

    Raises:
        LoadError: History unavailable (502) or chat not visible (404)
    """
    product = None
    if request.product_id:
        product = await state.catalog.get_product(request.product_id)

    controller = await state.sessions.open(chat_id, request.role, product)
    return controller.view()


@router.get("/negotiations/{chat_id}/state", response_model=NegotiationView)
async def get_negotiation_state(chat_id: str, state: AppState = Depends(get_app_state)):
    """Current view snapshot of an open screen."""
    return _controller(chat_id, state).view()


@router.post("/negotiations/{chat_id}/offer", response_model=ActionResponse)
async def send_offer(chat_id: str, request: OfferRequest, state: AppState = Depends(get_app_state)):
    """
    Send an offer or counter-offer.

    Raises:
        OfferNotAllowedError: Refused locally (409)
        SendError: Data service failure (502)
    """
    controller = _controller(chat_id, state)
    message = await controller.send_offer(request.amount)
    return _action_response(controller, message)


@router.post("/negotiations/{chat_id}/text", response_model=ActionResponse)
async def send_text(chat_id: str, request: TextMessageRequest, state: AppState = Depends(get_app_state)):
    """Send a plain chat message."""
    controller = _controller(chat_id, state)
    message = await controller.send_text(request.content)
    return _action_response(controller, message)


@router.post("/negotiations/{chat_id}/accept", response_model=ActionResponse)
async def accept_offer(chat_id: str, request: AcceptRequest, state: AppState = Depends(get_app_state)):
    """Accept the counterpart's offer; the backend transaction settles the deal."""
    controller = _controller(chat_id, state)
    message = await controller.accept_offer(request.amount, message_id=request.message_id)
    return _action_response(controller, message)


@router.post("/negotiations/{chat_id}/reject", response_model=ActionResponse)
async def reject_offer(chat_id: str, state: AppState = Depends(get_app_state)):
    """Reject the counterpart's latest offer."""
    controller = _controller(chat_id, state)
    message = await controller.reject_offer()
    return _action_response(controller, message)


@router.post("/negotiations/{chat_id}/typing", status_code=status.HTTP_202_ACCEPTED)
async def notify_typing(chat_id: str, state: AppState = Depends(get_app_state)):
    """Broadcast a typing signal (best effort)."""
    await _controller(chat_id, state).notify_typing()
    return {"sent": True}


@router.post("/negotiations/{chat_id}/retry", response_model=NegotiationView)
async def retry_negotiation(chat_id: str, state: AppState = Depends(get_app_state)):
    """Retry after a load, send or subscription failure."""
    return await _controller(chat_id, state).retry()


@router.delete("/negotiations/{chat_id}")
async def close_negotiation(chat_id: str, state: AppState = Depends(get_app_state)):
    """Leave the negotiation screen."""
    closed = await state.sessions.close(chat_id)
    return {"chat_id": chat_id, "closed": closed}
