"""
Wishlist and trade list join tables plus their API schemas.

Each row links a user to one card identifier. The ``card_identifier``
indexes double as the inverted index the match engine reads posting
lists from.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel

from .profile import ProfileRead, utc_now

# Hard cap on items per direction per list in one request
MAX_BATCH_ITEMS = 500


class ListKind(str, Enum):
    """Which of the two user lists an operation targets."""
    WISHLIST = "wishlist"
    TRADE_LIST = "tradelist"


class WishlistEntry(SQLModel, table=True):
    """A card the user wants to acquire."""

    __tablename__ = "user_wishlist"
    __table_args__ = (
        UniqueConstraint("user_id", "card_identifier", name="uq_wishlist_user_card"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(foreign_key="profiles.user_id", index=True)
    card_identifier: str = Field(index=True)
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))


class TradeListEntry(SQLModel, table=True):
    """A card the user is willing to give away."""

    __tablename__ = "user_trade_list"
    __table_args__ = (
        UniqueConstraint("user_id", "card_identifier", name="uq_trade_list_user_card"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(foreign_key="profiles.user_id", index=True)
    card_identifier: str = Field(index=True)
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))


# =============================================================================
# API SCHEMAS
# =============================================================================

class ListChangesIn(SQLModel):
    """Card ids per list for one direction (add or remove) of a batch."""
    wishlist: list[str] = Field(default_factory=list, max_length=MAX_BATCH_ITEMS)
    trade_list: list[str] = Field(default_factory=list, max_length=MAX_BATCH_ITEMS)


class BatchUpdate(SQLModel):
    """Schema for a combined add/remove batch across both lists."""
    add: ListChangesIn = Field(default_factory=ListChangesIn)
    remove: ListChangesIn = Field(default_factory=ListChangesIn)


class SingleListBatchUpdate(SQLModel):
    """Schema for a batch against one list."""
    to_add: list[str] = Field(default_factory=list, max_length=MAX_BATCH_ITEMS)
    to_remove: list[str] = Field(default_factory=list, max_length=MAX_BATCH_ITEMS)


class ListSelection(SQLModel):
    """Full desired contents of both lists; the server computes the diff."""
    wishlist: list[str] = Field(default_factory=list)
    trade_list: list[str] = Field(default_factory=list)


class UserListsRead(SQLModel):
    """Schema for reading a user's lists."""
    wishlist: list[str]
    trade_list: list[str]


class UserDataRead(UserListsRead):
    """Profile plus both lists, as returned by ``/profile/me``."""
    profile: ProfileRead


class SyncSummaryRead(SQLModel):
    """Outcome of a full-selection sync."""
    added: UserListsRead
    removed: UserListsRead
    batches: int
    message: str = "Lists updated successfully."
