"""
Chat creation.

WHAT: Open (or reuse) the negotiation thread between the buyer and a product's seller
WHY: A negotiation screen needs a chat id; one chat exists per (product, buyer, seller)
HOW: Validate product and seller rows, look up an existing chat, else insert one plus a greeting
"""

from ..dataservice.provider import DataService
from ..dataservice.types import DataServiceResponseError
from ..models.marketplace import Chat
from ..models.negotiation import MessageKind
from ..utils.exceptions import AuthRequiredError, NotFoundError, ValidationException
from ..utils.logger import get_logger

logger = get_logger(__name__)

GREETING = "Hi! I'm interested in this product."


class ChatService:
    """Create negotiation threads."""

    def __init__(self, data_service: DataService):
        self.data_service = data_service

    async def open_chat(self, product_id: str, seller_id: str) -> Chat:
        """
        Return the chat for this product and seller, creating it if needed.

        Args:
            product_id: Product being negotiated
            seller_id: Seller profile id

        Returns:
            Existing or new Chat

        Raises:
            AuthRequiredError: No signed-in user
            NotFoundError: Product does not exist
            ValidationException: Product unavailable, listed by another seller, or seller_id is not a seller
        """
        buyer_id = self.data_service.user_id
        if buyer_id is None:
            raise AuthRequiredError("starting a negotiation")

        try:
            product = await self.data_service.select(
                "products",
                filters={"id": f"eq.{product_id}"},
                columns="id,seller_id,is_available,is_visible",
                single=True
            )
        except DataServiceResponseError as e:
            if e.is_not_found:
                raise NotFoundError("product", product_id) from e
            raise

        if not product.get("is_available") or not product.get("is_visible"):
            raise ValidationException(
                "This product is no longer available for negotiation",
                [{"field": "product_id", "error": "unavailable"}]
            )
        if product.get("seller_id") != seller_id:
            raise ValidationException(
                "This seller does not list this product",
                [{"field": "seller_id", "error": "not_product_seller"}]
            )

        try:
            seller = await self.data_service.select(
                "profiles",
                filters={"id": f"eq.{seller_id}"},
                columns="id,user_type",
                single=True
            )
        except DataServiceResponseError as e:
            if not e.is_not_found:
                raise
            seller = None

        if not seller or seller.get("user_type") != "seller":
            raise ValidationException("Invalid seller", [{"field": "seller_id", "error": "not_a_seller"}])

        existing = await self.data_service.select(
            "chats",
            filters={
                "product_id": f"eq.{product_id}",
                "buyer_id": f"eq.{buyer_id}",
                "seller_id": f"eq.{seller_id}",
            },
            limit=1
        )
        if existing:
            logger.info(f"Reusing chat {existing[0].get('id')} for product {product_id}")
            return Chat.model_validate(existing[0])

        row = await self.data_service.insert("chats", {
            "product_id": product_id,
            "buyer_id": buyer_id,
            "seller_id": seller_id,
            "status": "active",
        })
        chat = Chat.model_validate(row)
        logger.info(f"Created chat {chat.id} for product {product_id} (buyer {buyer_id}, seller {seller_id})")

        await self.data_service.append_message(chat.id, GREETING, MessageKind.TEXT.value)
        return chat
