"""
ORM models for the local store.

WHAT: SQLAlchemy models for the persisted session and the shopping list
WHY: Keep the minimal client state outside process memory
HOW: Declarative models with constraints
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, CheckConstraint

from .database import Base


class StoredSession(Base):
    """
    Persisted authentication session.
    
    WHAT: Token of the signed-in user, at most one row
    WHY: Restore the session on restart without a new OTP
    HOW: Fixed primary key, overwritten on every sign-in
    """
    __tablename__ = "stored_sessions"
    
    id = Column(Integer, primary_key=True, default=1)
    user_id = Column(String(64), nullable=False)
    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text, nullable=True)
    phone = Column(String(32), nullable=True)
    saved_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    
    def __repr__(self):
        return f"<StoredSession(user_id={self.user_id})>"


class ShoppingListEntry(Base):
    """Item on the buyer's local shopping list."""
    __tablename__ = "shopping_list"
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    done = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="check_quantity_positive"),
    )
    
    def __repr__(self):
        return f"<ShoppingListEntry(id={self.id}, name={self.name}, done={self.done})>"
