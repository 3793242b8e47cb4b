"""
Message store for one negotiation.

WHAT: Ordered, deduplicated transcript of a single chat
WHY: History loads and realtime pushes race; both must land in one consistent log
HOW: Sorted list keyed by (created_at, id) plus an id set for idempotent appends
"""

import bisect

from pydantic import ValidationError

from ..dataservice.provider import DataService
from ..dataservice.types import DataServiceError, DataServiceResponseError
from ..models.negotiation import NegotiationMessage
from ..utils.exceptions import LoadError
from ..utils.logger import get_logger

logger = get_logger(__name__)


async def load_history(data_service: DataService, chat_id: str) -> list[NegotiationMessage]:
    """
    Fetch the full transcript of a chat.
    
    WHAT: All existing messages, oldest first
    WHY: Initial render and resynchronization after a realtime gap
    HOW: Data service read, rows normalized into NegotiationMessage, sorted
    
    Args:
        data_service: Backend client
        chat_id: Negotiation identifier
    
    Returns:
        Messages ordered by (created_at, id)
    
    Raises:
        LoadError: Fetch failed, negotiation missing, or access denied
    """
    try:
        rows = await data_service.load_messages(chat_id)
    except DataServiceResponseError as e:
        logger.error(f"History load refused for chat {chat_id}: {e}")
        if e.is_not_found:
            raise LoadError(chat_id, "negotiation not found", not_found=True) from e
        if e.is_permission_denied:
            raise LoadError(chat_id, "access denied", not_found=True) from e
        raise LoadError(chat_id, str(e)) from e
    except DataServiceError as e:
        logger.error(f"History load failed for chat {chat_id}: {e}")
        raise LoadError(chat_id, str(e)) from e
    
    messages = []
    for row in rows:
        try:
            messages.append(NegotiationMessage.from_record(row))
        except (ValidationError, KeyError) as e:
            logger.warning(f"Skipping malformed message row in chat {chat_id}: {e}")
    
    messages.sort(key=lambda m: m.sort_key)
    logger.info(f"Loaded {len(messages)} messages for chat {chat_id}")
    return messages


class MessageStore:
    """
    Append-only transcript of one chat.
    
    Appending an id that is already present is a no-op, so the same message
    may arrive through the RPC response, the realtime echo and a history
    reload without duplicating.
    """
    
    def __init__(self, chat_id: str):
        self.chat_id = chat_id
        self._messages: list[NegotiationMessage] = []
        self._keys: list[tuple] = []
        self._ids: set[str] = set()
    
    def __len__(self) -> int:
        return len(self._messages)
    
    def __contains__(self, message_id: str) -> bool:
        return message_id in self._ids
    
    @property
    def messages(self) -> list[NegotiationMessage]:
        """Snapshot of the ordered transcript."""
        return list(self._messages)
    
    @property
    def last(self) -> NegotiationMessage | None:
        return self._messages[-1] if self._messages else None
    
    def append(self, message: NegotiationMessage) -> bool:
        """
        Insert a message at its ordered position.
        
        Args:
            message: Message to insert
        
        Returns:
            True if inserted, False if duplicate or foreign to this chat
        """
        if message.chat_id != self.chat_id:
            logger.warning(f"Ignoring message {message.id} of chat {message.chat_id} in store for {self.chat_id}")
            return False
        
        if message.id in self._ids:
            logger.debug(f"Duplicate message {message.id} ignored")
            return False
        
        key = message.sort_key
        index = bisect.bisect_right(self._keys, key)
        self._keys.insert(index, key)
        self._messages.insert(index, message)
        self._ids.add(message.id)
        return True
    
    def merge(self, messages: list[NegotiationMessage]) -> int:
        """
        Append a batch (e.g. a reloaded history).
        
        Returns:
            Number of messages actually inserted
        """
        inserted = sum(1 for message in messages if self.append(message))
        if inserted:
            logger.debug(f"Merged {inserted} new messages into chat {self.chat_id}")
        return inserted
