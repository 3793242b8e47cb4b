"""
Realtime sync adapter.

WHAT: Bridge a chat's change feed into message callbacks and relay typing signals
WHY: Messages authored elsewhere (the counterpart, another device) must appear live
HOW: One asyncio task per subscription reading the data service stream, reconnecting with backoff
"""

import asyncio
from contextlib import asynccontextmanager, suppress
from dataclasses import dataclass, field
from typing import AsyncIterator, Callable

from pydantic import ValidationError

from ..core.config import settings
from ..dataservice.provider import DataService
from ..dataservice.types import ChangeEvent, DataServiceError
from ..models.negotiation import NegotiationMessage
from ..utils.exceptions import SubscriptionError
from ..utils.logger import get_logger

logger = get_logger(__name__)

OnMessage = Callable[[NegotiationMessage], None]
OnTyping = Callable[[str], None]
OnConnect = Callable[[], None]
OnReconnect = Callable[[], None]
OnError = Callable[[SubscriptionError], None]


@dataclass
class SubscriptionHandle:
    """Live subscription to one chat channel."""
    chat_id: str
    task: asyncio.Task | None = None
    connected: bool = False
    closed: bool = False
    reconnects: int = 0
    received: int = field(default=0)

    @property
    def active(self) -> bool:
        return not self.closed and self.task is not None and not self.task.done()


class RealtimeSyncAdapter:
    """
    Subscribe to chat change feeds.

    A reconnect does not replay missed messages: callers receive
    ``on_reconnect`` and are expected to reload history. The same holds for
    the gap between a caller's history load and the first connection, which
    ``on_connect`` signals.
    """

    def __init__(
        self,
        data_service: DataService,
        *,
        max_reconnect_attempts: int | None = None,
        reconnect_delay: float | None = None
    ):
        self.data_service = data_service
        self.max_reconnect_attempts = (
            max_reconnect_attempts
            if max_reconnect_attempts is not None
            else settings.REALTIME_MAX_RECONNECT_ATTEMPTS
        )
        self.reconnect_delay = reconnect_delay if reconnect_delay is not None else settings.REALTIME_RECONNECT_DELAY

    async def subscribe(
        self,
        chat_id: str,
        on_message: OnMessage,
        on_typing: OnTyping,
        *,
        self_id: str | None = None,
        on_connect: OnConnect | None = None,
        on_reconnect: OnReconnect | None = None,
        on_error: OnError | None = None
    ) -> SubscriptionHandle:
        """
        Open a persistent channel scoped to one chat.

        Args:
            chat_id: Negotiation identifier
            on_message: Called with each pushed message
            on_typing: Called with the sender id of typing events from other participants
            self_id: Own identity, whose typing echoes are dropped
            on_connect: Called once, when the channel first delivers an event
            on_reconnect: Called after the channel comes back following a drop
            on_error: Called once when reconnection attempts are exhausted or the
                feed fails unexpectedly

        Returns:
            Handle to pass to unsubscribe()
        """
        handle = SubscriptionHandle(chat_id=chat_id)
        handle.task = asyncio.create_task(
            self._run(handle, on_message, on_typing, self_id, on_connect, on_reconnect, on_error),
            name=f"realtime:{chat_id}"
        )
        handle.task.add_done_callback(self._log_task_failure)
        logger.info(f"Subscribed to chat {chat_id}")
        return handle

    async def unsubscribe(self, handle: SubscriptionHandle) -> None:
        """Release the channel; safe to call more than once."""
        if handle.closed:
            return
        handle.closed = True
        handle.connected = False

        if handle.task is not None and not handle.task.done():
            handle.task.cancel()
            with suppress(asyncio.CancelledError):
                await handle.task
        logger.info(f"Unsubscribed from chat {handle.chat_id}")

    @asynccontextmanager
    async def subscription(
        self,
        chat_id: str,
        on_message: OnMessage,
        on_typing: OnTyping,
        **kwargs
    ) -> AsyncIterator[SubscriptionHandle]:
        """
        Scoped subscription, released on every exit path.

        Usage:
            async with adapter.subscription(chat_id, on_message, on_typing) as handle:
                ...
        """
        handle = await self.subscribe(chat_id, on_message, on_typing, **kwargs)
        try:
            yield handle
        finally:
            await self.unsubscribe(handle)

    async def notify_typing(self, chat_id: str, self_id: str) -> None:
        """Best-effort typing broadcast: no retry, never raises."""
        try:
            await self.data_service.broadcast_typing(chat_id, self_id)
        except DataServiceError as e:
            logger.debug(f"Typing broadcast dropped for chat {chat_id}: {e}")

    async def _run(
        self,
        handle: SubscriptionHandle,
        on_message: OnMessage,
        on_typing: OnTyping,
        self_id: str | None,
        on_connect: OnConnect | None,
        on_reconnect: OnReconnect | None,
        on_error: OnError | None
    ) -> None:
        """
        Read the feed until unsubscribed.

        WHAT: Stream loop with reconnection
        WHY: Transient drops are normal on mobile networks
        HOW: Exponential backoff; attempts reset once a stream delivers its first event.
             An unexpected failure ends the subscription through on_error.
        """
        chat_id = handle.chat_id
        attempts = 0
        ever_connected = False

        while not handle.closed:
            stream_open = False
            try:
                async for event in self.data_service.stream_changes(chat_id):
                    if not stream_open:
                        stream_open = True
                        attempts = 0
                        handle.connected = True
                        if ever_connected:
                            handle.reconnects += 1
                            logger.info(f"Realtime channel for chat {chat_id} reconnected")
                            if on_reconnect:
                                on_reconnect()
                        elif on_connect:
                            on_connect()
                        ever_connected = True

                    self._dispatch(handle, event, on_message, on_typing, self_id)

                reason = "stream closed by server"
            except DataServiceError as e:
                reason = str(e) or e.__class__.__name__
            except Exception as e:
                handle.connected = False
                if handle.closed:
                    raise
                logger.error(f"Realtime feed for chat {chat_id} failed: {e!r}", exc_info=True)
                if on_error:
                    on_error(SubscriptionError(chat_id, f"unexpected feed failure: {e.__class__.__name__}"))
                return

            handle.connected = False
            if handle.closed:
                break

            attempts += 1
            if attempts > self.max_reconnect_attempts:
                error = SubscriptionError(chat_id, reason)
                logger.error(f"Giving up on realtime for chat {chat_id} after {attempts - 1} reconnect attempts: {reason}")
                if on_error:
                    on_error(error)
                return

            delay = self.reconnect_delay * (2 ** (attempts - 1))
            logger.warning(
                f"Realtime channel for chat {chat_id} lost ({reason}); "
                f"reconnecting in {delay:.1f}s (attempt {attempts}/{self.max_reconnect_attempts})"
            )
            await asyncio.sleep(delay)

    @staticmethod
    def _dispatch(
        handle: SubscriptionHandle,
        event: ChangeEvent,
        on_message: OnMessage,
        on_typing: OnTyping,
        self_id: str | None
    ) -> None:
        """Route one feed event to the matching callback."""
        if event.type == "insert":
            try:
                message = NegotiationMessage.from_record(event.record)
            except (ValidationError, KeyError) as e:
                logger.warning(f"Dropping malformed pushed record on chat {handle.chat_id}: {e}")
                return
            if message.chat_id != handle.chat_id:
                return
            handle.received += 1
            on_message(message)

        elif event.type == "typing":
            if event.sender_id and event.sender_id != self_id:
                on_typing(event.sender_id)

    @staticmethod
    def _log_task_failure(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Realtime task {task.get_name()} crashed: {exc!r}", exc_info=exc)
