"""
Pydantic API schemas for the gateway endpoints.

WHAT: Request and response models for FastAPI
WHY: Type-safe validation and serialization for the mobile frontend
HOW: Pydantic v2 models with validators and constraints
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from .marketplace import Product
from .negotiation import NegotiationView


# ========== Auth ==========

class OTPRequest(BaseModel):
    """Phone number to send the SMS code to."""
    phone: str = Field(..., min_length=6, max_length=20, description="Local or E.164 phone number")


class OTPResponse(BaseModel):
    phone: str
    sent: bool = True


class VerifyOTPRequest(BaseModel):
    """SMS code confirmation."""
    phone: str = Field(..., min_length=6, max_length=20)
    code: str = Field(..., min_length=4, max_length=10, description="Code received by SMS")

    @field_validator("code")
    @classmethod
    def code_is_numeric(cls, v: str) -> str:
        if not v.strip().isdigit():
            raise ValueError("code must contain digits only")
        return v.strip()


class SessionResponse(BaseModel):
    user_id: str
    phone: Optional[str] = None


class CreateProfileRequest(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=100)
    user_type: Literal["buyer", "seller"]


class UpdateLocationRequest(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    address: Optional[str] = Field(default=None, max_length=300)


# ========== Catalog ==========

class CreateProductRequest(BaseModel):
    """New product published by the signed-in seller."""
    title: str = Field(..., min_length=1, max_length=150)
    description: str = Field(default="", max_length=2000)
    category: str = Field(default="general", min_length=1, max_length=50)
    price: float = Field(..., gt=0)
    stock: int = Field(default=1, ge=0)
    image_url: str = Field(..., min_length=1, description="URL returned by the media upload")
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    address: str = Field(default="", max_length=300)


class UpdateProductRequest(BaseModel):
    """Editable product fields; omitted fields are left unchanged."""
    title: Optional[str] = Field(default=None, min_length=1, max_length=150)
    price: Optional[float] = Field(default=None, gt=0)
    stock: Optional[int] = Field(default=None, ge=0)
    is_available: Optional[bool] = None


# ========== Chats & negotiation ==========

class OpenChatRequest(BaseModel):
    product_id: str = Field(..., min_length=1)
    seller_id: str = Field(..., min_length=1)


class OpenNegotiationRequest(BaseModel):
    """Open a negotiation screen."""
    role: Literal["buyer", "seller"]
    product_id: Optional[str] = Field(default=None, description="Product shown in the header and used for quick offers")


class OfferRequest(BaseModel):
    amount: float = Field(..., description="Proposed price")


class TextMessageRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=1000)


class AcceptRequest(BaseModel):
    """Accept the latest counterpart offer, or a specific one."""
    message_id: Optional[str] = None
    amount: Optional[float] = Field(default=None, description="Must equal the accepted offer when given")


class ActionResponse(BaseModel):
    """Result of a negotiation action."""
    message_id: Optional[str] = Field(default=None, description="Stored message, None until the echo arrives")
    view: NegotiationView


# ========== Wallet ==========

class RechargeRequest(BaseModel):
    amount: float = Field(..., gt=0)
    method: Literal["transfer", "qr"]


class BalanceResponse(BaseModel):
    balance: float
    currency: str


# ========== Shopping list ==========

class ShoppingListItemCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    quantity: int = Field(default=1, ge=1)


class ShoppingListItemUpdate(BaseModel):
    done: Optional[bool] = None
    quantity: Optional[int] = Field(default=None, ge=1)


# ========== Listings ==========

class ProductListResponse(BaseModel):
    products: List[Product]
    count: int
