"""
API v1 router aggregation.

WHAT: Combine all v1 endpoint routers
WHY: Single place to register all API routes
HOW: Include routers from endpoints with prefixes
"""

from fastapi import APIRouter

from .endpoints import (
    status,
    auth,
    products,
    chats,
    negotiation,
    streaming,
    seller,
    wallet,
    shopping_list,
)

# Create main v1 router
api_router = APIRouter()

# Include endpoint routers
api_router.include_router(status.router, prefix="/api/v1", tags=["status"])
api_router.include_router(auth.router, prefix="/api/v1", tags=["auth"])
api_router.include_router(products.router, prefix="/api/v1", tags=["products"])
api_router.include_router(chats.router, prefix="/api/v1", tags=["chats"])
api_router.include_router(negotiation.router, prefix="/api/v1", tags=["negotiation"])
api_router.include_router(streaming.router, prefix="/api/v1", tags=["streaming"])
api_router.include_router(seller.router, prefix="/api/v1", tags=["seller"])
api_router.include_router(wallet.router, prefix="/api/v1", tags=["wallet"])
api_router.include_router(shopping_list.router, prefix="/api/v1", tags=["shopping-list"])
