"""
Data service protocol definition.

WHAT: Abstract interface for the hosted backend
WHY: Decouple negotiation and screen logic from the concrete HTTP client
HOW: Use Protocol to define async CRUD, RPC, and realtime methods
"""

from typing import Any, AsyncIterator, Protocol

from .types import ChangeEvent, ServiceStatus


class DataService(Protocol):
    """Protocol defining the interface every data service client implements."""
    
    user_id: str | None
    
    async def ping(self) -> ServiceStatus:
        """Check backend reachability."""
        ...
    
    async def load_messages(self, chat_id: str) -> list[dict[str, Any]]:
        """Fetch message rows of a chat ascending by created_at."""
        ...
    
    async def append_message(
        self,
        chat_id: str,
        content: str,
        kind: str,
        offer_amount: float | None = None
    ) -> dict[str, Any]:
        """Insert a message row authored by the signed-in user."""
        ...
    
    async def accept_offer(self, chat_id: str, amount: float) -> dict[str, Any]:
        """Run the backend's all-or-nothing accept-offer transaction."""
        ...
    
    def stream_changes(self, chat_id: str) -> AsyncIterator[ChangeEvent]:
        """Stream realtime events of a chat."""
        ...
    
    async def broadcast_typing(self, chat_id: str, sender_id: str) -> None:
        """Broadcast an ephemeral typing signal."""
        ...
    
    async def select(
        self,
        table: str,
        *,
        filters: dict[str, str] | None = None,
        columns: str = "*",
        order: str | None = None,
        limit: int | None = None,
        offset: int | None = None,
        single: bool = False
    ) -> Any:
        """Read rows from a table."""
        ...
    
    async def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        """Insert one row and return it."""
        ...
    
    async def update(self, table: str, values: dict[str, Any], *, filters: dict[str, str]) -> list[dict[str, Any]]:
        """Update rows matching filters and return them."""
        ...
    
    async def rpc(self, function: str, params: dict[str, Any], *, retry: bool = False) -> Any:
        """Call a remote procedure."""
        ...
