"""
Seller endpoints.

WHAT: Dashboard, inventory listing, product publishing and editing
WHY: Sellers manage what buyers can negotiate on
HOW: FastAPI router over SellerDashboardService, InventoryService and CatalogService
"""

from typing import List

from fastapi import APIRouter, Depends, status

from ....core.app_state import AppState, get_app_state
from ....models.api_schemas import CreateProductRequest, UpdateProductRequest
from ....models.marketplace import Product

router = APIRouter()


@router.get("/seller/dashboard")
async def seller_dashboard(state: AppState = Depends(get_app_state)):
    """Metrics, chats and sales of the signed-in seller."""
    return await state.dashboard.dashboard()


@router.get("/seller/products", response_model=List[Product])
async def seller_products(state: AppState = Depends(get_app_state)):
    """Own products, newest first."""
    return await state.inventory.seller_products()


@router.post("/seller/products", response_model=Product, status_code=status.HTTP_201_CREATED)
async def create_product(request: CreateProductRequest, state: AppState = Depends(get_app_state)):
    """Publish a new product."""
    return await state.catalog.create_product(**request.model_dump())


@router.patch("/seller/products/{product_id}", response_model=Product)
async def update_product(
    product_id: str,
    request: UpdateProductRequest,
    state: AppState = Depends(get_app_state)
):
    """Edit title, price, stock or availability of an own product."""
    return await state.inventory.update_product(product_id, request.model_dump(exclude_none=True))
