"""
Chat endpoints.

WHAT: Start (or resume) a negotiation thread for a product
WHY: A negotiation screen is opened with the returned chat id
HOW: FastAPI router over ChatService
"""

from fastapi import APIRouter, Depends, status

from ....core.app_state import AppState, get_app_state
from ....models.api_schemas import OpenChatRequest
from ....models.marketplace import Chat

router = APIRouter()


@router.post("/chats", response_model=Chat, status_code=status.HTTP_200_OK)
async def open_chat(request: OpenChatRequest, state: AppState = Depends(get_app_state)):
    """Return the chat for (product, signed-in buyer, seller), creating it if needed."""
    return await state.chats.open_chat(request.product_id, request.seller_id)
