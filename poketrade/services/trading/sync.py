"""
List synchronization - diff a desired selection against the saved snapshot
and persist it in batches no larger than the store's cap.
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, AbstractSet, Iterable, Iterator, List, Tuple

from .store import CardListChanges, SqlUserListStore, UserCardList

if TYPE_CHECKING:
    from ..catalog import CatalogSnapshot

logger = logging.getLogger(__name__)


@dataclass
class ListDiff:
    """What changed in one list between the saved and desired selection."""
    to_add: List[str] = field(default_factory=list)
    to_remove: List[str] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.to_add or self.to_remove)


@dataclass
class SyncSummary:
    """Outcome of ``sync_user_lists``."""
    wishlist: ListDiff
    trade_list: ListDiff
    batches: int
    lists: UserCardList


def diff_selection(saved: AbstractSet[str], desired: Iterable[str]) -> ListDiff:
    """
    Compute the adds and removes that turn ``saved`` into ``desired``.

    Output lists are sorted so repeated diffs of the same data are identical.
    """
    desired_set = set(desired)
    return ListDiff(
        to_add=sorted(desired_set - saved),
        to_remove=sorted(set(saved) - desired_set),
    )


def _chunks(items: List[str], size: int) -> List[List[str]]:
    return [items[i:i + size] for i in range(0, len(items), size)]


def chunk_changes(
    wishlist: ListDiff,
    trade_list: ListDiff,
    cap: int,
) -> Iterator[Tuple[CardListChanges, CardListChanges]]:
    """
    Split two list diffs into (adds, removes) batches within ``cap``.

    Removals are scheduled before additions so a card moving between lists
    never sits on both at once between batches.
    """
    if cap < 1:
        raise ValueError("cap must be positive")

    wish_removes = _chunks(wishlist.to_remove, cap)
    trade_removes = _chunks(trade_list.to_remove, cap)
    for i in range(max(len(wish_removes), len(trade_removes))):
        yield CardListChanges(), CardListChanges.of(
            wishlist=wish_removes[i] if i < len(wish_removes) else (),
            trade_list=trade_removes[i] if i < len(trade_removes) else (),
        )

    wish_adds = _chunks(wishlist.to_add, cap)
    trade_adds = _chunks(trade_list.to_add, cap)
    for i in range(max(len(wish_adds), len(trade_adds))):
        yield CardListChanges.of(
            wishlist=wish_adds[i] if i < len(wish_adds) else (),
            trade_list=trade_adds[i] if i < len(trade_adds) else (),
        ), CardListChanges()


async def sync_user_lists(
    store: SqlUserListStore,
    user_id: str,
    desired_wishlist: Iterable[str],
    desired_trade_list: Iterable[str],
    catalog: "CatalogSnapshot",
) -> SyncSummary:
    """
    Make a user's saved lists equal to the desired selection.

    The whole target state is validated before the first batch is written,
    so a rejected card cannot leave a sync half applied.

    Raises:
        NotFoundError: If the user has no profile.
        ValidationError: If the desired selection breaks a list invariant.
    """
    current = await store.load_user_lists(user_id)
    wish_diff = diff_selection(current.wishlist, desired_wishlist)
    trade_diff = diff_selection(current.trade_list, desired_trade_list)

    # Validate the end state in one pass; the per-request cap applies to batches only
    store.validate_changes(
        current,
        CardListChanges.of(wish_diff.to_add, trade_diff.to_add),
        CardListChanges.of(wish_diff.to_remove, trade_diff.to_remove),
        catalog,
        enforce_cap=False,
    )

    batches = 0
    lists = current
    for adds, removes in chunk_changes(wish_diff, trade_diff, store.batch_cap):
        lists = await store.save_user_lists(user_id, adds, removes, catalog)
        batches += 1

    if batches:
        logger.info(f"Synced lists for {user_id} in {batches} batch(es)")

    return SyncSummary(wishlist=wish_diff, trade_list=trade_diff, batches=batches, lists=lists)
