"""
Negotiation state machine.

WHAT: Pure derivation of negotiation status from a transcript, plus action validation
WHY: History replay and live updates must agree on round, last offer and outcome
HOW: Single ordered scan; the first accept/reject freezes the outcome
"""

import math
from typing import Iterable

from ..core.config import settings
from ..models.negotiation import (
    MessageKind,
    Negotiation,
    NegotiationMessage,
    NegotiationStatus,
    TERMINAL_KINDS,
)
from ..utils.logger import get_logger

logger = get_logger(__name__)


def compute_round(offers_made: int) -> int:
    """Buyer and seller offers alternate, so two offers complete one round."""
    return math.ceil(offers_made / 2) + 1


def derive(
    messages: Iterable[NegotiationMessage],
    max_rounds: int | None = None,
    chat_id: str | None = None
) -> Negotiation:
    """
    Derive the negotiation state from its messages.

    WHAT: Round, last offer, final price and status
    WHY: The full ordered transcript is the single source of truth
    HOW: Sort by (created_at, id), count offers, stop at the first accept/reject

    The result depends only on message content and timestamps, never on the
    order in which messages reached the client. When both an accept and a
    reject exist, the earliest one wins.

    Args:
        messages: Transcript, in any order
        max_rounds: Offer ceiling (defaults to settings.MAX_NEGOTIATION_ROUNDS)
        chat_id: Optional id copied into the result

    Returns:
        Negotiation snapshot
    """
    ceiling = max_rounds if max_rounds is not None else settings.MAX_NEGOTIATION_ROUNDS
    ordered = sorted(messages, key=lambda m: m.sort_key)

    offers_made = 0
    last_offer: float | None = None
    last_offer_message_id: str | None = None
    last_offer_sender_id: str | None = None
    final_price: float | None = None
    status = NegotiationStatus.ACTIVE
    terminal_message_id: str | None = None
    resolved_by: str | None = None

    for message in ordered:
        if message.kind == MessageKind.OFFER:
            offers_made += 1
            last_offer = message.offer_amount
            last_offer_message_id = message.id
            last_offer_sender_id = message.sender_id

        elif message.kind in TERMINAL_KINDS:
            terminal_message_id = message.id
            resolved_by = message.sender_id
            if message.kind == MessageKind.ACCEPT:
                status = NegotiationStatus.ACCEPTED
                final_price = message.offer_amount if message.offer_amount is not None else last_offer
            else:
                status = NegotiationStatus.REJECTED
            # Anything after the first terminal message is ignored
            break

    round_number = compute_round(offers_made)

    if status == NegotiationStatus.ACTIVE and (offers_made >= ceiling or round_number > ceiling):
        status = NegotiationStatus.CLOSED

    return Negotiation(
        chat_id=chat_id,
        round=round_number,
        max_rounds=ceiling,
        offers_made=offers_made,
        last_offer=last_offer,
        last_offer_message_id=last_offer_message_id,
        last_offer_sender_id=last_offer_sender_id,
        final_price=final_price,
        status=status,
        terminal_message_id=terminal_message_id,
        resolved_by=resolved_by,
    )


def can_offer(state: Negotiation) -> bool:
    """A new offer or counter-offer is allowed only while active and under the ceiling."""
    return state.status == NegotiationStatus.ACTIVE and state.round <= state.max_rounds


def can_accept(state: Negotiation, message: NegotiationMessage, self_id: str | None) -> bool:
    """
    Check whether self_id may accept a given offer.

    Args:
        state: Current derived state
        message: Offer the user wants to accept
        self_id: Identity of the acting user

    Returns:
        True only for an active negotiation and a counterpart-authored offer
    """
    if state.status != NegotiationStatus.ACTIVE or state.terminal_message_id is not None:
        return False
    if message.kind != MessageKind.OFFER:
        return False
    return self_id is not None and message.sender_id != self_id


def can_reject(state: Negotiation, self_id: str | None) -> bool:
    """Rejection answers the latest offer, which must come from the counterpart."""
    if state.status != NegotiationStatus.ACTIVE or state.last_offer_message_id is None:
        return False
    return self_id is not None and state.last_offer_sender_id != self_id
