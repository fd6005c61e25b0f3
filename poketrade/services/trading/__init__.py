"""
Trading service - list storage, synchronization and trade matching.
"""

from .eligibility import TRADEABLE_RARITIES, is_tradeable, check_trade_list_additions
from .store import CardListChanges, SqlUserListStore, UserCardList
from .sync import ListDiff, SyncSummary, chunk_changes, diff_selection, sync_user_lists
from .matcher import (
    MatchCandidate,
    MatchEngine,
    MatchResult,
    MatchStrategy,
    build_candidate,
    default_rank_key,
    rank_candidates,
)

__all__ = [
    "TRADEABLE_RARITIES",
    "is_tradeable",
    "check_trade_list_additions",
    "CardListChanges",
    "SqlUserListStore",
    "UserCardList",
    "ListDiff",
    "SyncSummary",
    "chunk_changes",
    "diff_selection",
    "sync_user_lists",
    "MatchCandidate",
    "MatchEngine",
    "MatchResult",
    "MatchStrategy",
    "build_candidate",
    "default_rank_key",
    "rank_candidates",
]
