"""
Marketplace records returned by the data service.

WHAT: Profiles, products, chats, wallets, sales and local shopping list items
WHY: Validate backend rows once, at the boundary, instead of in every screen
HOW: Pydantic v2 models; the seller of a product is a tagged union
"""

from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field


class NamedSeller(BaseModel):
    """Seller known only by a display name."""
    kind: Literal["named"] = "named"
    name: str
    
    @property
    def display_name(self) -> str:
        return self.name


class ProfileSeller(BaseModel):
    """Seller resolved to a profile row."""
    kind: Literal["profile"] = "profile"
    id: str
    full_name: str
    
    @property
    def display_name(self) -> str:
        return self.full_name


Seller = Annotated[Union[NamedSeller, ProfileSeller], Field(discriminator="kind")]


class Profile(BaseModel):
    """User profile."""
    id: str
    phone: str = ""
    full_name: str = ""
    user_type: Literal["buyer", "seller"] = "buyer"
    latitude: float | None = None
    longitude: float | None = None
    address: str | None = None
    avatar: str | None = None
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Product(BaseModel):
    """Product listed by a seller."""
    id: str
    seller_id: str = ""
    title: str = "Untitled product"
    description: str = ""
    category: str = "general"
    price: float = Field(default=0.0, ge=0.0)
    stock: int = Field(default=0, ge=0)
    image_url: str | None = None
    latitude: float = 0.0
    longitude: float = 0.0
    address: str = ""
    is_visible: bool = True
    is_available: bool = True
    view_count: int = 0
    chat_count: int = 0
    sale_count: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None
    seller: Seller | None = None
    
    @property
    def location(self) -> dict[str, float]:
        """Coordinates for the map widget."""
        return {"lat": self.latitude, "lng": self.longitude}


class ProductSearchResult(Product):
    """Product row returned by the search RPC."""
    seller_name: str = ""
    seller_phone: str = ""
    distance_km: float | None = None
    relevance_score: float = 0.0


class Chat(BaseModel):
    """Negotiation thread for one (product, buyer, seller) triple."""
    id: str
    product_id: str
    buyer_id: str
    seller_id: str
    status: Literal["active", "negotiating", "agreed", "completed", "cancelled"] = "active"
    final_price: float | None = None
    agreed_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Wallet(BaseModel):
    """Seller wallet."""
    id: str
    user_id: str
    balance: float = 0.0
    total_earned: float = 0.0
    total_spent: float = 0.0


class WalletMovement(BaseModel):
    """Wallet ledger entry."""
    id: str
    wallet_id: str | None = None
    user_id: str
    type: Literal["credit", "debit"]
    amount: float
    description: str = ""
    reference_id: str | None = None
    reference_type: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None


class Sale(BaseModel):
    """Completed sale recorded by the accept-offer transaction."""
    id: str
    chat_id: str
    product_id: str
    buyer_id: str
    seller_id: str
    final_price: float
    commission_rate: float = 0.0
    commission_amount: float = 0.0
    seller_earnings: float = 0.0
    status: Literal["pending", "completed", "cancelled"] = "pending"
    completed_at: datetime | None = None
    created_at: datetime | None = None


class ShoppingListItem(BaseModel):
    """Entry of the buyer's local shopping list."""
    id: int
    name: str
    quantity: int = 1
    done: bool = False
    created_at: datetime | None = None
