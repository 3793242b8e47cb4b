"""
Seller dashboard aggregation.

WHAT: Metrics, open chats and sales of the signed-in seller
WHY: One request renders the seller home screen
HOW: Metrics RPC plus two selects with embedded product/buyer names, run concurrently
"""

import asyncio
from typing import Any, Dict

from ..dataservice.provider import DataService
from ..utils.exceptions import AuthRequiredError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class SellerDashboardService:
    """Read-only seller overview."""

    def __init__(self, data_service: DataService):
        self.data_service = data_service

    async def metrics(self, seller_id: str) -> Dict[str, Any]:
        data = await self.data_service.rpc("get_seller_metrics", {"p_seller_id": seller_id}, retry=True)
        if isinstance(data, list):
            return data[0] if data else {}
        return data or {}

    async def chats(self, seller_id: str) -> list:
        return await self.data_service.select(
            "chats",
            filters={"seller_id": f"eq.{seller_id}"},
            columns="*,product:products(title,image_url),buyer:profiles(full_name)",
            order="updated_at.desc"
        )

    async def sales(self, seller_id: str) -> list:
        return await self.data_service.select(
            "sales",
            filters={"seller_id": f"eq.{seller_id}"},
            columns="*,product:products(title),buyer:profiles(full_name)",
            order="created_at.desc"
        )

    async def dashboard(self) -> Dict[str, Any]:
        """
        Build the dashboard payload.

        Raises:
            AuthRequiredError: No signed-in user
        """
        seller_id = self.data_service.user_id
        if seller_id is None:
            raise AuthRequiredError("opening the seller dashboard")

        metrics, chats, sales = await asyncio.gather(
            self.metrics(seller_id),
            self.chats(seller_id),
            self.sales(seller_id),
        )
        logger.info(f"Dashboard for seller {seller_id}: {len(chats)} chats, {len(sales)} sales")
        return {"metrics": metrics, "chats": chats, "sales": sales}
