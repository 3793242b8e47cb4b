"""
Local shopping list.

WHAT: Add, list, toggle and remove items the buyer plans to look for
WHY: The list is personal and works offline, so it never reaches the data service
HOW: SQLAlchemy CRUD on ShoppingListEntry inside get_db() transactions
"""

from typing import List

from ..core.database import get_db
from ..core.models import ShoppingListEntry
from ..models.marketplace import ShoppingListItem
from ..utils.exceptions import NotFoundError, ValidationException
from ..utils.logger import get_logger

logger = get_logger(__name__)


def _to_item(entry: ShoppingListEntry) -> ShoppingListItem:
    return ShoppingListItem(
        id=entry.id,
        name=entry.name,
        quantity=entry.quantity,
        done=entry.done,
        created_at=entry.created_at,
    )


def list_items() -> List[ShoppingListItem]:
    """Pending items first, then completed ones, oldest first within each group."""
    with get_db() as db:
        entries = (
            db.query(ShoppingListEntry)
            .order_by(ShoppingListEntry.done, ShoppingListEntry.created_at, ShoppingListEntry.id)
            .all()
        )
        return [_to_item(entry) for entry in entries]


def add_item(name: str, quantity: int = 1) -> ShoppingListItem:
    """
    Add an item.

    Raises:
        ValidationException: Empty name or quantity below 1
    """
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationException("Item name is required", [{"field": "name", "error": "empty"}])
    if quantity < 1:
        raise ValidationException("Quantity must be at least 1", [{"field": "quantity", "error": "too_small"}])

    with get_db() as db:
        entry = ShoppingListEntry(name=cleaned, quantity=quantity)
        db.add(entry)
        db.flush()
        item = _to_item(entry)
    logger.info(f"Shopping list item {item.id} added: {cleaned} x{quantity}")
    return item


def update_item(item_id: int, *, done: bool | None = None, quantity: int | None = None) -> ShoppingListItem:
    """
    Toggle an item or change its quantity.

    Raises:
        NotFoundError: No such item
    """
    if quantity is not None and quantity < 1:
        raise ValidationException("Quantity must be at least 1", [{"field": "quantity", "error": "too_small"}])

    with get_db() as db:
        entry = db.get(ShoppingListEntry, item_id)
        if entry is None:
            raise NotFoundError("item", str(item_id))
        if done is not None:
            entry.done = done
        if quantity is not None:
            entry.quantity = quantity
        db.flush()
        return _to_item(entry)


def remove_item(item_id: int) -> None:
    """
    Delete an item.

    Raises:
        NotFoundError: No such item
    """
    with get_db() as db:
        entry = db.get(ShoppingListEntry, item_id)
        if entry is None:
            raise NotFoundError("item", str(item_id))
        db.delete(entry)
    logger.info(f"Shopping list item {item_id} removed")
