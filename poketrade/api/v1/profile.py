"""
Profile endpoints.

The profile holds the username and in-game friend id shown to trade
partners. Sign-up itself happens at the identity provider.
"""

from fastapi import APIRouter, HTTPException, status

from poketrade.api.deps import CurrentSession, DbSession, Store
from poketrade.core.errors import NotFoundError, StoreUnavailable, ValidationError
from poketrade.models.card import card_sort_key
from poketrade.models.card_list import UserDataRead
from poketrade.models.profile import ProfileRead, ProfileUpsert

router = APIRouter()


@router.get("/me", response_model=UserDataRead)
async def get_my_data(current: CurrentSession, store: Store):
    """
    Get the caller's profile together with both card lists.

    Returns:
        UserDataRead: Profile, wishlist and trade list.

    Raises:
        HTTPException: 404 if the caller has not created a profile yet.
    """
    try:
        profile = await store.get_profile(current.user_id)
        if profile is None:
            raise NotFoundError("Profile not found")
        lists = await store.load_user_lists(current.user_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except StoreUnavailable as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))

    return UserDataRead(
        profile=ProfileRead.model_validate(profile),
        wishlist=sorted(lists.wishlist, key=card_sort_key),
        trade_list=sorted(lists.trade_list, key=card_sort_key),
    )


@router.put("/me", response_model=ProfileRead)
async def upsert_my_profile(
    profile_in: ProfileUpsert,
    current: CurrentSession,
    store: Store,
    db: DbSession,
):
    """
    Create or update the caller's profile.

    Args:
        profile_in: Username and friend id.

    Returns:
        ProfileRead: The saved profile.

    Raises:
        HTTPException: 409 if the username belongs to someone else.
    """
    try:
        profile = await store.upsert_profile(
            current.user_id, profile_in.username, profile_in.friend_id
        )
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except StoreUnavailable as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))

    await db.commit()
    await db.refresh(profile)
    return profile
