"""
Catalog endpoints.

WHAT: Product search, popular products, filtered listing and view counting
WHY: Buyers pick a product before negotiating
HOW: FastAPI router over CatalogService
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from ....core.app_state import AppState, get_app_state
from ....core.config import settings
from ....models.api_schemas import ProductListResponse
from ....models.marketplace import ProductSearchResult
from ....utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get("/products/search", response_model=List[ProductSearchResult])
async def search_products(
    q: str = Query(default="", max_length=100),
    lat: Optional[float] = Query(default=None, ge=-90, le=90),
    lng: Optional[float] = Query(default=None, ge=-180, le=180),
    category: Optional[str] = None,
    max_price: Optional[float] = Query(default=None, gt=0),
    max_distance_km: Optional[float] = Query(default=None, gt=0),
    limit: int = Query(default=settings.SEARCH_DEFAULT_LIMIT, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    state: AppState = Depends(get_app_state)
):
    """Search products by text, category, price and distance."""
    return await state.catalog.search_products(
        q,
        user_lat=lat,
        user_lng=lng,
        category=category,
        max_price=max_price,
        max_distance_km=max_distance_km,
        limit=limit,
        offset=offset
    )


@router.get("/products/popular", response_model=List[ProductSearchResult])
async def popular_products(
    lat: Optional[float] = Query(default=None, ge=-90, le=90),
    lng: Optional[float] = Query(default=None, ge=-180, le=180),
    limit: int = Query(default=10, ge=1, le=50),
    state: AppState = Depends(get_app_state)
):
    """Most viewed products near the user."""
    return await state.catalog.popular_products(lat, lng, limit)


@router.get("/products", response_model=ProductListResponse)
async def list_products(
    q: Optional[str] = Query(default=None, max_length=100),
    category: Optional[str] = None,
    max_price: Optional[float] = Query(default=None, gt=0),
    limit: Optional[int] = Query(default=None, ge=1),
    offset: Optional[int] = Query(default=None, ge=0),
    state: AppState = Depends(get_app_state)
):
    """List visible products; the page size is capped server-side."""
    products = await state.catalog.list_products(q, category, max_price, limit, offset)
    return ProductListResponse(products=products, count=len(products))


@router.post("/products/{product_id}/view")
async def record_view(product_id: str, state: AppState = Depends(get_app_state)):
    """Count a product detail view."""
    await state.catalog.record_view(product_id)
    return {"product_id": product_id, "recorded": True}
