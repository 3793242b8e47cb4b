"""
Negotiation view controller.

WHAT: One screen session for a (chat, role) pair
WHY: Orchestrate history load, live sync, derivation and user actions in one place
HOW: Phase machine (loading/ready/busy/error), generation counter against stale responses,
     listeners receive a NegotiationView snapshot after every change
"""

import asyncio
from contextlib import suppress
from typing import Any, Awaitable, Callable

from pydantic import ValidationError

from .message_store import MessageStore, load_history
from .realtime import RealtimeSyncAdapter, SubscriptionHandle
from .state_machine import can_accept, can_offer, can_reject, derive
from ..core.config import settings
from ..dataservice.provider import DataService
from ..dataservice.types import DataServiceError
from ..models.marketplace import Product
from ..models.negotiation import (
    MessageKind,
    NegotiationMessage,
    NegotiationStatus,
    NegotiationView,
    Role,
    UIPhase,
)
from ..utils.exceptions import (
    AuthRequiredError,
    LoadError,
    OfferNotAllowedError,
    SendError,
    SubscriptionError,
    ValidationException,
)
from ..utils.logger import get_logger
from ..utils.offers import (
    format_accept_content,
    format_offer_content,
    format_reject_content,
    quick_offers,
    validate_amount,
)

logger = get_logger(__name__)

ViewListener = Callable[[NegotiationView], None]

MAX_TEXT_LENGTH = 1000
ACCEPT_ACTION = "accept the offer"


class NegotiationViewController:
    """
    Screen session orchestrating store, state machine and realtime adapter.

    Sends are authoritative-only: nothing is appended until the data service
    returns the stored row or the realtime echo arrives. After a successful
    accept or reject the input is pinned locally until the derived status
    catches up.
    """

    def __init__(
        self,
        chat_id: str,
        role: Role,
        data_service: DataService,
        *,
        product: Product | None = None,
        adapter: RealtimeSyncAdapter | None = None,
        max_rounds: int | None = None,
        typing_quiet_seconds: float | None = None,
        poll_interval: float | None = None
    ):
        self.chat_id = chat_id
        self.role = role
        self.data_service = data_service
        self.product = product
        self.adapter = adapter or RealtimeSyncAdapter(data_service)
        self.max_rounds = max_rounds if max_rounds is not None else settings.MAX_NEGOTIATION_ROUNDS
        self.typing_quiet_seconds = (
            typing_quiet_seconds if typing_quiet_seconds is not None else settings.TYPING_QUIET_SECONDS
        )
        self.poll_interval = poll_interval if poll_interval is not None else settings.HISTORY_POLL_INTERVAL

        self.store = MessageStore(chat_id)
        self.negotiation = derive([], self.max_rounds, chat_id)
        self.phase = UIPhase.LOADING
        self.error: str | None = None
        self.notice: str | None = None
        self.loaded = False
        self.input_locked = False
        # Price committed by the accept transaction whose accept message is not stored yet
        self.pending_accept: float | None = None
        self.counterpart_typing = False
        self.scroll_to_message_id: str | None = None
        self.version = 0

        self._generation = 0
        self._closed = False
        self._handle: SubscriptionHandle | None = None
        self._typing_timer: asyncio.TimerHandle | None = None
        self._refresh_task: asyncio.Task | None = None
        self._poll_task: asyncio.Task | None = None
        self._listeners: list[ViewListener] = []

    # ---------- Rendering ----------

    @property
    def self_id(self) -> str | None:
        return self.data_service.user_id

    @property
    def closed(self) -> bool:
        return self._closed

    def add_listener(self, listener: ViewListener) -> Callable[[], None]:
        """
        Register a re-render callback.

        Returns:
            Function removing the listener
        """
        self._listeners.append(listener)

        def remove():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def view(self) -> NegotiationView:
        """Current snapshot, with affordances computed from the derived state."""
        state = self.negotiation
        self_id = self.self_id
        input_enabled = (
            self.loaded
            and not self._closed
            and not self.input_locked
            and self.pending_accept is None
            and self.phase in (UIPhase.READY, UIPhase.ERROR)
            and state.status == NegotiationStatus.ACTIVE
        )
        messages = self.store.messages

        return NegotiationView(
            chat_id=self.chat_id,
            role=self.role,
            self_id=self_id,
            phase=self.phase,
            version=self.version,
            messages=messages,
            negotiation=state,
            input_enabled=input_enabled,
            can_offer=input_enabled and can_offer(state),
            can_reject=input_enabled and can_reject(state, self_id),
            acceptable_message_ids=[
                m.id for m in messages
                if input_enabled and m.kind == MessageKind.OFFER and can_accept(state, m, self_id)
            ],
            quick_offers=quick_offers(self.product.price) if (self.product and self.role == "buyer") else [],
            counterpart_typing=self.counterpart_typing,
            live=bool(self._handle and self._handle.connected),
            error=self.error,
            notice=self.notice,
            scroll_to_message_id=self.scroll_to_message_id,
            product=self.product,
        )

    def _notify(self) -> None:
        self.version += 1
        snapshot = self.view()
        for listener in list(self._listeners):
            listener(snapshot)

    def _recompute(self) -> None:
        """Re-derive from the full transcript; release the local pin once redundant."""
        self.negotiation = derive(self.store.messages, self.max_rounds, self.chat_id)
        if self.negotiation.status != NegotiationStatus.ACTIVE:
            self.input_locked = False
            self.pending_accept = None

    # ---------- Lifecycle ----------

    async def open(self) -> NegotiationView:
        """
        Load history, derive, then subscribe.

        WHAT: Screen entry
        WHY: Render the existing transcript before live updates start
        HOW: Generation-guarded load; failure moves to the error phase. The first
             channel event triggers a reload that covers inserts made in between

        Raises:
            LoadError: History could not be loaded (retry with retry())
        """
        if self._closed:
            raise OfferNotAllowedError("open the negotiation", "screen session already closed")

        self._generation += 1
        generation = self._generation
        self.phase = UIPhase.LOADING
        self.error = None
        self._notify()

        try:
            messages = await load_history(self.data_service, self.chat_id)
        except LoadError as e:
            if self._is_stale(generation):
                logger.info(f"Discarding stale load failure for chat {self.chat_id}")
                return self.view()
            self.phase = UIPhase.ERROR
            self.error = e.message
            self._notify()
            raise

        if self._is_stale(generation):
            logger.info(f"Discarding stale history response for chat {self.chat_id}")
            return self.view()

        self.store.merge(messages)
        self.loaded = True
        self._recompute()
        self.scroll_to_message_id = self.store.last.id if self.store.last else None
        self.phase = UIPhase.READY
        await self._ensure_subscription()
        self._notify()
        logger.info(
            f"Negotiation {self.chat_id} opened as {self.role}: "
            f"{len(self.store)} messages, status={self.negotiation.status.value}, round={self.negotiation.round}"
        )
        return self.view()

    async def retry(self) -> NegotiationView:
        """
        Retry affordance of the error phase.

        Finishes a committed accept whose message could not be stored.

        Raises:
            SendError: The accept message still could not be stored
        """
        if not self.loaded:
            return await self.open()

        if self.phase == UIPhase.ERROR:
            self.phase = UIPhase.READY
            self.error = None
        if self.pending_accept is not None:
            await self.accept_offer(self.pending_accept)
            self.notice = None
        if self._handle is None or not self._handle.active:
            self.notice = None
            await self._ensure_subscription()
            await self.refresh()
        self._notify()
        return self.view()

    async def refresh(self) -> int:
        """
        Reload history and merge it (after a realtime gap).

        Returns:
            Number of messages that were missing
        """
        generation = self._generation
        try:
            messages = await load_history(self.data_service, self.chat_id)
        except LoadError as e:
            if not self._is_stale(generation):
                logger.warning(f"Resync of chat {self.chat_id} failed: {e.message}")
                self.notice = e.message
                self._notify()
            return 0

        if self._is_stale(generation):
            return 0

        inserted = self.store.merge(messages)
        if inserted:
            self._recompute()
            self.scroll_to_message_id = self.store.last.id if self.store.last else None
            logger.info(f"Resync recovered {inserted} messages in chat {self.chat_id}")
            self._notify()
        return inserted

    async def close(self) -> None:
        """Leave the screen: release the channel and invalidate in-flight work."""
        if self._closed:
            return
        self._closed = True
        self._generation += 1

        if self._typing_timer is not None:
            self._typing_timer.cancel()
            self._typing_timer = None

        current = asyncio.current_task()
        for task in (self._refresh_task, self._poll_task):
            if task is not None and task is not current and not task.done():
                task.cancel()
                with suppress(asyncio.CancelledError):
                    await task

        if self._handle is not None:
            await self.adapter.unsubscribe(self._handle)
            self._handle = None

        self._listeners.clear()
        logger.info(f"Negotiation screen for chat {self.chat_id} closed")

    def _is_stale(self, generation: int) -> bool:
        return self._closed or generation != self._generation

    # ---------- Realtime callbacks ----------

    async def _ensure_subscription(self) -> None:
        if self._handle is not None and self._handle.active:
            return
        self._handle = await self.adapter.subscribe(
            self.chat_id,
            self._on_message,
            self._on_typing,
            self_id=self.self_id,
            on_connect=self._on_channel_up,
            on_reconnect=self._on_channel_up,
            on_error=self._on_subscription_error,
        )

    def _on_message(self, message: NegotiationMessage) -> None:
        if self._closed:
            return
        if not self.store.append(message):
            return

        self._recompute()
        self.scroll_to_message_id = message.id
        if message.sender_id != self.self_id and self.counterpart_typing:
            self._clear_typing(notify=False)
        self._notify()

    def _on_typing(self, sender_id: str) -> None:
        if self._closed:
            return
        if self._typing_timer is not None:
            self._typing_timer.cancel()
        loop = asyncio.get_running_loop()
        self._typing_timer = loop.call_later(self.typing_quiet_seconds, self._clear_typing)
        if not self.counterpart_typing:
            self.counterpart_typing = True
            self._notify()

    def _clear_typing(self, notify: bool = True) -> None:
        if self._typing_timer is not None:
            self._typing_timer.cancel()
            self._typing_timer = None
        if self.counterpart_typing:
            self.counterpart_typing = False
            if notify and not self._closed:
                self._notify()

    def _on_channel_up(self) -> None:
        """Reload once the channel delivers: inserts made while it was not listening are not replayed."""
        if self._closed:
            return
        self.notice = None
        self._refresh_task = asyncio.create_task(self.refresh(), name=f"resync:{self.chat_id}")

    def _on_subscription_error(self, error: SubscriptionError) -> None:
        if self._closed:
            return
        self.notice = error.message
        self._notify()
        if self._poll_task is None or self._poll_task.done():
            self._poll_task = asyncio.create_task(self._poll_history(self._generation), name=f"poll:{self.chat_id}")

    async def _poll_history(self, generation: int) -> None:
        """Fallback while realtime is down: reload periodically."""
        logger.info(f"Polling history of chat {self.chat_id} every {self.poll_interval}s")
        while not self._is_stale(generation):
            await asyncio.sleep(self.poll_interval)
            if self._is_stale(generation) or (self._handle is not None and self._handle.active):
                break
            await self.refresh()

    # ---------- User actions ----------

    def _guard(self, action: str) -> None:
        """Local preconditions shared by every send; no network call happens when they fail."""
        status = self.negotiation.status.value
        if self._closed:
            raise OfferNotAllowedError(action, "the negotiation screen is closed", status)
        if not self.loaded:
            raise OfferNotAllowedError(action, "the history is still loading", status)
        if self.phase == UIPhase.BUSY:
            raise OfferNotAllowedError(action, "another action is in progress", status)
        if self.input_locked:
            raise OfferNotAllowedError(action, "the negotiation is already resolved", status)
        if self.pending_accept is not None and action != ACCEPT_ACTION:
            raise OfferNotAllowedError(action, "the offer was accepted; retry to record the acceptance", status)
        if self.self_id is None:
            raise AuthRequiredError(action)

    async def send_offer(self, amount: Any) -> NegotiationMessage | None:
        """
        Propose a price (offer or counter-offer).

        Raises:
            OfferNotAllowedError: Not allowed in the current state (no network call)
            ValidationException: Amount not finite or not positive
            SendError: Data service failure; nothing appended
        """
        action = "send an offer"
        self._guard(action)
        if not can_offer(self.negotiation):
            raise OfferNotAllowedError(action, self._status_reason(), self.negotiation.status.value)
        value = validate_amount(amount)

        return await self._send(
            action,
            lambda: self.data_service.append_message(
                self.chat_id, format_offer_content(value), MessageKind.OFFER.value, value
            )
        )

    async def send_text(self, content: str) -> NegotiationMessage | None:
        """Send a plain chat message."""
        action = "send a message"
        self._guard(action)
        if self.negotiation.status != NegotiationStatus.ACTIVE:
            raise OfferNotAllowedError(action, self._status_reason(), self.negotiation.status.value)

        text = (content or "").strip()
        if not text or len(text) > MAX_TEXT_LENGTH:
            raise ValidationException(
                f"Message must be between 1 and {MAX_TEXT_LENGTH} characters",
                [{"field": "content", "error": "length"}]
            )

        return await self._send(
            action,
            lambda: self.data_service.append_message(self.chat_id, text, MessageKind.TEXT.value)
        )

    async def accept_offer(
        self,
        amount: Any = None,
        *,
        message_id: str | None = None
    ) -> NegotiationMessage | None:
        """
        Accept a counterpart offer (the latest one unless message_id is given).

        The backend accept transaction decides who accepted first; the accept
        message is appended only after it succeeds. When the transaction commits
        but the message fails, ``pending_accept`` keeps the price and the next
        call (or retry()) stores the message without running the transaction again.

        Raises:
            OfferNotAllowedError: No acceptable offer (no network call)
            ValidationException: Amount differs from the accepted offer
            SendError: Data service failure
        """
        action = ACCEPT_ACTION
        self._guard(action)

        if self.pending_accept is not None:
            price = self.pending_accept
            if amount is not None and validate_amount(amount) != price:
                raise ValidationException(
                    f"Accepted amount {amount} does not match the accepted deal of {price}",
                    [{"field": "amount", "error": "mismatch"}]
                )
            logger.info(f"Recording the committed accept at {price} in chat {self.chat_id}")
            return await self._send(action, lambda: self._append_accept(price), lock_on_success=True)

        target_id = message_id or self.negotiation.last_offer_message_id
        target = self._find_message(target_id) if target_id else None
        if target is None:
            raise OfferNotAllowedError(action, "there is no offer to accept", self.negotiation.status.value)
        if not can_accept(self.negotiation, target, self.self_id):
            raise OfferNotAllowedError(
                action,
                "only an offer from the other party can be accepted while the negotiation is active",
                self.negotiation.status.value
            )

        price = target.offer_amount
        if amount is not None and validate_amount(amount) != price:
            raise ValidationException(
                f"Accepted amount {amount} does not match the offer of {price}",
                [{"field": "amount", "error": "mismatch"}]
            )

        async def run_accept() -> dict[str, Any]:
            await self.data_service.accept_offer(self.chat_id, price)
            # Deal is committed server-side from here on
            self.pending_accept = price
            return await self._append_accept(price)

        return await self._send(action, run_accept, lock_on_success=True)

    async def _append_accept(self, price: float) -> dict[str, Any]:
        return await self.data_service.append_message(
            self.chat_id, format_accept_content(price), MessageKind.ACCEPT.value, price
        )

    async def reject_offer(self) -> NegotiationMessage | None:
        """
        Reject the counterpart's latest offer.

        Raises:
            OfferNotAllowedError: Nothing to reject (no network call)
            SendError: Data service failure
        """
        action = "reject the offer"
        self._guard(action)
        if not can_reject(self.negotiation, self.self_id):
            raise OfferNotAllowedError(
                action,
                "only the other party's latest offer can be rejected while the negotiation is active",
                self.negotiation.status.value
            )

        content = format_reject_content(self.negotiation.last_offer)
        return await self._send(
            action,
            lambda: self.data_service.append_message(self.chat_id, content, MessageKind.REJECT.value),
            lock_on_success=True
        )

    async def notify_typing(self) -> None:
        """Tell the counterpart we are typing (best effort)."""
        if self._closed or self.self_id is None:
            return
        await self.adapter.notify_typing(self.chat_id, self.self_id)

    async def _send(
        self,
        action: str,
        call: Callable[[], Awaitable[dict[str, Any]]],
        *,
        lock_on_success: bool = False
    ) -> NegotiationMessage | None:
        """
        Run one send in the busy phase.

        Returns:
            Stored message, or None if the response was unusable or stale
            (the realtime echo then delivers it)
        """
        generation = self._generation
        self.phase = UIPhase.BUSY
        self.error = None
        self._notify()

        try:
            record = await call()
        except AuthRequiredError:
            if not self._is_stale(generation):
                self.phase = UIPhase.READY
                self._notify()
            raise
        except DataServiceError as e:
            logger.error(f"Failed to {action} in chat {self.chat_id}: {e}")
            error = SendError(action, str(e))
            if not self._is_stale(generation):
                self.phase = UIPhase.ERROR
                self.error = error.message
                if self.pending_accept is not None:
                    self.notice = "The offer was accepted; retry to let the other party know"
                self._notify()
            raise error from e

        if lock_on_success:
            self.input_locked = True
            self.pending_accept = None

        if self._is_stale(generation):
            return None

        message = None
        try:
            message = NegotiationMessage.from_record(record)
        except (ValidationError, KeyError) as e:
            logger.warning(f"Unusable response to {action} in chat {self.chat_id}, waiting for echo: {e}")

        self.phase = UIPhase.READY
        if message is not None and self.store.append(message):
            self._recompute()
            self.scroll_to_message_id = message.id
        else:
            self._recompute()
        self._notify()
        return message

    def _find_message(self, message_id: str) -> NegotiationMessage | None:
        for message in self.store.messages:
            if message.id == message_id:
                return message
        return None

    def _status_reason(self) -> str:
        status = self.negotiation.status
        if status == NegotiationStatus.ACCEPTED:
            return "the offer was already accepted"
        if status == NegotiationStatus.REJECTED:
            return "the offer was rejected"
        if status == NegotiationStatus.CLOSED:
            return f"the limit of {self.max_rounds} offers was reached"
        return "the negotiation is not active"
