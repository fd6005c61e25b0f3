"""
Database models using SQLModel.
"""

from .profile import Profile, ProfileUpsert, ProfileRead
from .card import Card, RawCard, RawSet, RarityRead
from .card_list import (
    ListKind,
    WishlistEntry,
    TradeListEntry,
    ListChangesIn,
    BatchUpdate,
    SingleListBatchUpdate,
    ListSelection,
    UserListsRead,
    UserDataRead,
    SyncSummaryRead,
    MAX_BATCH_ITEMS,
)
from .match import MatchRead, MatchPage

__all__ = [
    # Profile
    "Profile",
    "ProfileUpsert",
    "ProfileRead",
    # Catalog
    "Card",
    "RawCard",
    "RawSet",
    "RarityRead",
    # User lists
    "ListKind",
    "WishlistEntry",
    "TradeListEntry",
    "ListChangesIn",
    "BatchUpdate",
    "SingleListBatchUpdate",
    "ListSelection",
    "UserListsRead",
    "UserDataRead",
    "SyncSummaryRead",
    "MAX_BATCH_ITEMS",
    # Matches
    "MatchRead",
    "MatchPage",
]
