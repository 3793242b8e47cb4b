"""
Seller inventory.

WHAT: List and edit the signed-in seller's products
WHY: Sellers adjust price, stock and availability between negotiations
HOW: Selects and updates filtered by seller_id, so a seller can only touch their own rows
"""

from datetime import datetime, timezone
from typing import Any, Dict, List

from ..dataservice.provider import DataService
from ..models.marketplace import Product
from ..utils.exceptions import AuthRequiredError, NotFoundError, ValidationException
from ..utils.logger import get_logger

logger = get_logger(__name__)

EDITABLE_FIELDS = ("title", "price", "stock", "is_available")


class InventoryService:
    """Products owned by the signed-in seller."""

    def __init__(self, data_service: DataService):
        self.data_service = data_service

    def _seller_id(self, action: str) -> str:
        seller_id = self.data_service.user_id
        if seller_id is None:
            raise AuthRequiredError(action)
        return seller_id

    async def seller_products(self) -> List[Product]:
        """Own products, newest first."""
        seller_id = self._seller_id("viewing your inventory")
        rows = await self.data_service.select(
            "products",
            filters={"seller_id": f"eq.{seller_id}"},
            order="created_at.desc"
        )
        return [Product.model_validate(row) for row in rows or []]

    async def update_product(self, product_id: str, changes: Dict[str, Any]) -> Product:
        """
        Edit one of the seller's products.

        Args:
            product_id: Product to edit
            changes: Subset of title, price, stock, is_available

        Raises:
            ValidationException: Unknown field or invalid value
            NotFoundError: Product missing or owned by another seller
        """
        seller_id = self._seller_id("editing a product")

        unknown = sorted(set(changes) - set(EDITABLE_FIELDS))
        if unknown:
            raise ValidationException(
                f"Fields cannot be edited: {', '.join(unknown)}",
                [{"field": name, "error": "not_editable"} for name in unknown]
            )
        values = {key: value for key, value in changes.items() if value is not None}
        if not values:
            raise ValidationException("Nothing to update")
        if "price" in values and values["price"] <= 0:
            raise ValidationException("Price must be greater than zero", [{"field": "price", "error": "not_positive"}])
        if "stock" in values and values["stock"] < 0:
            raise ValidationException("Stock cannot be negative", [{"field": "stock", "error": "negative"}])

        values["updated_at"] = datetime.now(timezone.utc).isoformat()
        rows = await self.data_service.update(
            "products",
            values,
            filters={"id": f"eq.{product_id}", "seller_id": f"eq.{seller_id}"}
        )
        if not rows:
            raise NotFoundError("product", product_id)

        logger.info(f"Product {product_id} updated by seller {seller_id}: {sorted(values)}")
        return Product.model_validate(rows[0])
