"""
Negotiation screen registry.

WHAT: Keep one live view controller per chat for the signed-in user
WHY: Every gateway request about a chat must reach the same screen session
HOW: Dict of controllers guarded by an asyncio lock, closed explicitly or on shutdown
"""

import asyncio
from typing import Dict, List

from .controller import NegotiationViewController
from .realtime import RealtimeSyncAdapter
from ..dataservice.provider import DataService
from ..models.marketplace import Product
from ..models.negotiation import Role
from ..utils.exceptions import NotFoundError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class NegotiationSessions:
    """Open negotiation screens, keyed by chat id."""

    def __init__(self, data_service: DataService, adapter: RealtimeSyncAdapter | None = None):
        self.data_service = data_service
        self.adapter = adapter or RealtimeSyncAdapter(data_service)
        self._controllers: Dict[str, NegotiationViewController] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._controllers)

    def chat_ids(self) -> List[str]:
        return list(self._controllers)

    async def open(
        self,
        chat_id: str,
        role: Role,
        product: Product | None = None
    ) -> NegotiationViewController:
        """
        Open (or reuse) the screen session of a chat.

        A screen already open under another role is replaced.

        Raises:
            LoadError: History could not be loaded; the controller stays
                registered in the error phase so retry() can be used
        """
        async with self._lock:
            controller = self._controllers.get(chat_id)
            if controller is not None and not controller.closed and controller.role == role:
                if product is not None and controller.product is None:
                    controller.product = product
                return controller

            if controller is not None:
                await controller.close()

            controller = NegotiationViewController(
                chat_id,
                role,
                self.data_service,
                product=product,
                adapter=self.adapter,
            )
            self._controllers[chat_id] = controller
            logger.info(f"Opening negotiation screen for chat {chat_id} as {role}")

        await controller.open()
        return controller

    def get(self, chat_id: str) -> NegotiationViewController:
        """
        Look up an open screen session.

        Raises:
            NotFoundError: Chat not opened in this gateway
        """
        controller = self._controllers.get(chat_id)
        if controller is None or controller.closed:
            raise NotFoundError("Negotiation", chat_id)
        return controller

    async def close(self, chat_id: str) -> bool:
        """Close one screen session; returns False when it was not open."""
        async with self._lock:
            controller = self._controllers.pop(chat_id, None)
        if controller is None:
            return False
        await controller.close()
        return True

    async def close_all(self) -> None:
        """Close every screen session (sign-out, shutdown)."""
        async with self._lock:
            controllers = list(self._controllers.values())
            self._controllers.clear()
        for controller in controllers:
            await controller.close()
        if controllers:
            logger.info(f"Closed {len(controllers)} negotiation screens")
