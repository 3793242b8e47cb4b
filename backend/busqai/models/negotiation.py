"""
Negotiation domain models.

WHAT: Message transcript entries and the derived negotiation state
WHY: One typed vocabulary shared by the store, state machine, adapter and controller
HOW: Pydantic v2 models; data service rows are normalized once in from_record()
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .marketplace import Product


Role = Literal["buyer", "seller"]


class MessageKind(str, Enum):
    """Kind of a transcript entry."""
    TEXT = "text"
    OFFER = "offer"
    ACCEPT = "accept"
    REJECT = "reject"
    SYSTEM = "system"


class NegotiationStatus(str, Enum):
    """Derived negotiation status."""
    ACTIVE = "active"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CLOSED = "closed"  # round ceiling reached, computed locally


TERMINAL_KINDS = (MessageKind.ACCEPT, MessageKind.REJECT)


class NegotiationMessage(BaseModel):
    """One immutable entry in a negotiation transcript."""
    
    model_config = ConfigDict(frozen=True)
    
    id: str
    chat_id: str
    sender_id: str
    kind: MessageKind
    content: str
    offer_amount: float | None = Field(default=None, gt=0.0)
    created_at: datetime
    metadata: dict[str, Any] = Field(default_factory=dict)
    
    @field_validator("created_at")
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        """Naive server timestamps are UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v
    
    @model_validator(mode="after")
    def offer_requires_amount(self):
        """Offers always carry an amount."""
        if self.kind == MessageKind.OFFER and self.offer_amount is None:
            raise ValueError("offer messages must carry offer_amount")
        return self
    
    @property
    def sort_key(self) -> tuple[datetime, str]:
        """Total order within one chat: server timestamp, ties broken by id."""
        return (self.created_at, self.id)
    
    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "NegotiationMessage":
        """
        Build a message from a data service row.
        
        Rows use ``message_type`` and ``offer_price``; already-normalized
        dicts (``kind``/``offer_amount``) are accepted too.
        
        Raises:
            pydantic.ValidationError: If the row is malformed
        """
        return cls.model_validate({
            "id": str(record["id"]) if record.get("id") is not None else None,
            "chat_id": str(record["chat_id"]) if record.get("chat_id") is not None else None,
            "sender_id": record.get("sender_id"),
            "kind": record.get("message_type", record.get("kind")),
            "content": record.get("content") or "",
            "offer_amount": record.get("offer_price", record.get("offer_amount")),
            "created_at": record.get("created_at"),
            "metadata": record.get("metadata") or {},
        })


class Negotiation(BaseModel):
    """State derived from the ordered transcript of one chat."""
    
    chat_id: str | None = None
    round: int = Field(default=1, ge=1)
    max_rounds: int = Field(default=5, ge=1)
    offers_made: int = Field(default=0, ge=0)
    last_offer: float | None = None
    last_offer_message_id: str | None = None
    last_offer_sender_id: str | None = None
    final_price: float | None = None
    status: NegotiationStatus = NegotiationStatus.ACTIVE
    terminal_message_id: str | None = None
    resolved_by: str | None = None
    
    @property
    def is_terminal(self) -> bool:
        """Accepted and rejected negotiations never reopen."""
        return self.status in (NegotiationStatus.ACCEPTED, NegotiationStatus.REJECTED)


class UIPhase(str, Enum):
    """Phase of a negotiation screen session."""
    LOADING = "loading"
    READY = "ready"
    BUSY = "busy"
    ERROR = "error"


class NegotiationView(BaseModel):
    """Everything a negotiation screen needs to render, as one snapshot."""
    
    chat_id: str
    role: Role
    self_id: str | None = None
    phase: UIPhase
    version: int = 0
    messages: list[NegotiationMessage] = Field(default_factory=list)
    negotiation: Negotiation
    input_enabled: bool = False
    can_offer: bool = False
    can_reject: bool = False
    acceptable_message_ids: list[str] = Field(default_factory=list)
    quick_offers: list[dict[str, Any]] = Field(default_factory=list)
    counterpart_typing: bool = False
    live: bool = False
    error: str | None = None
    notice: str | None = None
    scroll_to_message_id: str | None = None
    product: Product | None = None
