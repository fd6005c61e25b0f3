"""
Wishlist and trade list endpoints.

Every write goes through the list store, which re-validates rarity and card
ids server-side before anything is persisted.
"""

from fastapi import APIRouter, HTTPException, status

from poketrade.api.deps import Catalog, CurrentSession, DbSession, Store
from poketrade.core.errors import NotFoundError, StoreUnavailable, ValidationError
from poketrade.models.card import card_sort_key
from poketrade.models.card_list import (
    BatchUpdate,
    ListKind,
    ListSelection,
    SingleListBatchUpdate,
    SyncSummaryRead,
    UserListsRead,
)
from poketrade.services.trading import CardListChanges, UserCardList, sync_user_lists

router = APIRouter()


def _to_lists_read(lists: UserCardList) -> UserListsRead:
    return UserListsRead(
        wishlist=sorted(lists.wishlist, key=card_sort_key),
        trade_list=sorted(lists.trade_list, key=card_sort_key),
    )


def _http_error(e: Exception) -> HTTPException:
    """Map a domain error onto an HTTP error response."""
    if isinstance(e, NotFoundError):
        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Create a profile before editing your lists.",
        )
    if isinstance(e, ValidationError):
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": e.message, "card_ids": e.card_ids},
        )
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))


@router.get("/me", response_model=UserListsRead)
async def get_my_lists(current: CurrentSession, store: Store):
    """Get the caller's wishlist and trade list."""
    try:
        lists = await store.load_user_lists(current.user_id)
    except (NotFoundError, StoreUnavailable) as e:
        raise _http_error(e)
    return _to_lists_read(lists)


@router.post("/me/batch-update", response_model=UserListsRead)
async def batch_update_lists(
    payload: BatchUpdate,
    current: CurrentSession,
    store: Store,
    catalog: Catalog,
    db: DbSession,
):
    """
    Add and remove cards on both lists in one batch.

    Each array is capped at 500 ids. The batch is rejected as a whole if any
    card is unknown, if a trade-list addition has a non-tradeable rarity, or
    if a card would end up on both lists.
    """
    adds = CardListChanges.of(payload.add.wishlist, payload.add.trade_list)
    removes = CardListChanges.of(payload.remove.wishlist, payload.remove.trade_list)
    try:
        lists = await store.save_user_lists(current.user_id, adds, removes, catalog)
    except (NotFoundError, ValidationError, StoreUnavailable) as e:
        raise _http_error(e)

    await db.commit()
    return _to_lists_read(lists)


@router.post("/me/{list_kind}/batch-update", response_model=UserListsRead)
async def batch_update_single_list(
    list_kind: ListKind,
    payload: SingleListBatchUpdate,
    current: CurrentSession,
    store: Store,
    catalog: Catalog,
    db: DbSession,
):
    """Add and remove cards on one list (``wishlist`` or ``tradelist``)."""
    if list_kind == ListKind.WISHLIST:
        adds = CardListChanges.of(wishlist=payload.to_add)
        removes = CardListChanges.of(wishlist=payload.to_remove)
    else:
        adds = CardListChanges.of(trade_list=payload.to_add)
        removes = CardListChanges.of(trade_list=payload.to_remove)

    try:
        lists = await store.save_user_lists(current.user_id, adds, removes, catalog)
    except (NotFoundError, ValidationError, StoreUnavailable) as e:
        raise _http_error(e)

    await db.commit()
    return _to_lists_read(lists)


@router.put("/me", response_model=SyncSummaryRead)
async def replace_lists(
    selection: ListSelection,
    current: CurrentSession,
    store: Store,
    catalog: Catalog,
    db: DbSession,
):
    """
    Replace both lists with the given selection.

    The server diffs against the saved lists and writes in capped batches.
    """
    try:
        summary = await sync_user_lists(
            store,
            current.user_id,
            selection.wishlist,
            selection.trade_list,
            catalog,
        )
    except (NotFoundError, ValidationError, StoreUnavailable) as e:
        raise _http_error(e)

    await db.commit()
    return SyncSummaryRead(
        added=UserListsRead(
            wishlist=summary.wishlist.to_add,
            trade_list=summary.trade_list.to_add,
        ),
        removed=UserListsRead(
            wishlist=summary.wishlist.to_remove,
            trade_list=summary.trade_list.to_remove,
        ),
        batches=summary.batches,
    )
