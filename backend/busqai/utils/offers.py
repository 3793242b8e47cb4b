"""
Offer amount validation and formatting.

WHAT: Validate user-entered amounts and render offer messages
WHY: Every offer message carries a readable restatement of its amount
HOW: Finite/positive checks, two-decimal rounding, currency-prefixed text
"""

import math
from typing import Any

from ..core.config import settings
from ..utils.exceptions import ValidationException


def validate_amount(amount: Any) -> float:
    """
    Validate a proposed price.
    
    Args:
        amount: Number or numeric string entered by the user
    
    Returns:
        Amount rounded to cents
    
    Raises:
        ValidationException: If not a finite number greater than zero
    """
    try:
        value = float(amount)
    except (TypeError, ValueError):
        raise ValidationException(
            f"Offer amount must be a number, got {amount!r}",
            [{"field": "amount", "error": "not_a_number"}]
        )
    
    if not math.isfinite(value) or value <= 0:
        raise ValidationException(
            f"Offer amount must be greater than zero, got {amount!r}",
            [{"field": "amount", "error": "not_positive"}]
        )
    
    rounded = round(value, 2)
    if rounded <= 0:
        raise ValidationException(
            f"Offer amount rounds to zero: {amount!r}",
            [{"field": "amount", "error": "not_positive"}]
        )
    return rounded


def format_price(amount: float) -> str:
    """Render an amount with the configured currency symbol."""
    return f"{settings.CURRENCY_SYMBOL}{amount:.2f}"


def format_offer_content(amount: float) -> str:
    """Text of an offer message."""
    return f"I offer {format_price(amount)}"


def format_accept_content(amount: float) -> str:
    """Text of an accept message."""
    return f"Deal! Accepted at {format_price(amount)}"


def format_reject_content(amount: float | None = None) -> str:
    """Text of a reject message."""
    if amount is None:
        return "Offer rejected"
    return f"Offer of {format_price(amount)} rejected"


def quick_offers(price: float) -> list[dict[str, Any]]:
    """
    One-tap discounted offers for a listed price.
    
    Args:
        price: Listed unit price
    
    Returns:
        List of {"label", "amount"} for each configured discount
    """
    if price <= 0:
        return []
    
    offers = []
    for discount in settings.get_quick_offer_discounts():
        amount = round(price * (1 - discount), 2)
        if amount > 0:
            offers.append({"label": f"-{round(discount * 100)}%", "amount": amount})
    return offers
