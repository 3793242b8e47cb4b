"""
Shopping list endpoints.

WHAT: CRUD on the buyer's local shopping list
WHY: Buyers track what they still need to find
HOW: FastAPI router over the SQLAlchemy-backed shopping_list service
"""

from typing import List

from fastapi import APIRouter, status

from ....models.api_schemas import ShoppingListItemCreate, ShoppingListItemUpdate
from ....models.marketplace import ShoppingListItem
from ....services import shopping_list

router = APIRouter()


@router.get("/shopping-list", response_model=List[ShoppingListItem])
async def list_items():
    return shopping_list.list_items()


@router.post("/shopping-list", response_model=ShoppingListItem, status_code=status.HTTP_201_CREATED)
async def add_item(request: ShoppingListItemCreate):
    return shopping_list.add_item(request.name, request.quantity)


@router.patch("/shopping-list/{item_id}", response_model=ShoppingListItem)
async def update_item(item_id: int, request: ShoppingListItemUpdate):
    return shopping_list.update_item(item_id, done=request.done, quantity=request.quantity)


@router.delete("/shopping-list/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_item(item_id: int):
    shopping_list.remove_item(item_id)
