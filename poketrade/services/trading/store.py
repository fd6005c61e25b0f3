"""
User List Store - SQL persistence for wishlists, trade lists and profiles.

All reads the match engine needs go through this class, and it is the only
place list rows are written. Every write is validated against the card
catalog before anything touches the database, so the trade-list rarity rule
cannot be bypassed by calling the API directly.
"""

import logging
from dataclasses import dataclass, field
from typing import (
    TYPE_CHECKING,
    AsyncIterator,
    Dict,
    FrozenSet,
    Iterable,
    List,
    Optional,
    Set,
)

from sqlalchemy import delete
from sqlalchemy.exc import (
    IntegrityError,
    InterfaceError,
    OperationalError,
    TimeoutError as PoolTimeoutError,
)
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from ...core.config import settings
from ...core.errors import NotFoundError, StoreUnavailable, ValidationError
from ...models.card import parse_card_id
from ...models.card_list import TradeListEntry, WishlistEntry
from ...models.profile import Profile, utc_now
from .eligibility import check_trade_list_additions

if TYPE_CHECKING:
    from ..catalog import CatalogSnapshot

logger = logging.getLogger(__name__)

# Errors that mean the store itself is unreachable, not that a query was wrong
UNAVAILABLE_ERRORS = (OperationalError, InterfaceError, PoolTimeoutError, ConnectionError)


@dataclass(frozen=True)
class UserCardList:
    """A user's two card sets as read from the store."""
    user_id: str
    wishlist: FrozenSet[str] = frozenset()
    trade_list: FrozenSet[str] = frozenset()

    @property
    def is_empty(self) -> bool:
        return not self.wishlist and not self.trade_list


@dataclass
class CardListChanges:
    """Card ids to add to (or remove from) each list."""
    wishlist: Set[str] = field(default_factory=set)
    trade_list: Set[str] = field(default_factory=set)

    @classmethod
    def of(cls, wishlist: Iterable[str] = (), trade_list: Iterable[str] = ()) -> "CardListChanges":
        return cls(wishlist=set(wishlist), trade_list=set(trade_list))

    @property
    def is_empty(self) -> bool:
        return not self.wishlist and not self.trade_list

    def __len__(self) -> int:
        return len(self.wishlist) + len(self.trade_list)


def validate_card_ids(card_ids: Iterable[str], catalog: "CatalogSnapshot") -> None:
    """
    Reject malformed ids and ids missing from the catalog.

    Raises:
        ValidationError: Listing the offending ids.
    """
    malformed = []
    for card_id in card_ids:
        try:
            parse_card_id(card_id)
        except ValueError:
            malformed.append(str(card_id))
    if malformed:
        raise ValidationError("Malformed card id", malformed)

    unknown = catalog.unknown_ids(card_ids)
    if unknown:
        raise ValidationError("Unknown card id", unknown)


class SqlUserListStore:
    """
    Relational implementation of the user list store.

    Bound to one session; the caller owns the transaction and commits.
    Concurrent edits of the same user are last-write-wins.
    """

    def __init__(self, session: AsyncSession, batch_cap: Optional[int] = None):
        self.db = session
        self.batch_cap = batch_cap or settings.list_batch_cap

    async def _execute(self, statement):
        try:
            return await self.db.execute(statement)
        except UNAVAILABLE_ERRORS as e:
            logger.error(f"User list store unavailable: {e}")
            raise StoreUnavailable("User list store is unavailable") from e

    async def _flush(self) -> None:
        try:
            await self.db.flush()
        except UNAVAILABLE_ERRORS as e:
            logger.error(f"User list store unavailable: {e}")
            raise StoreUnavailable("User list store is unavailable") from e

    # =========================================================================
    # PROFILES
    # =========================================================================

    async def get_profile(self, user_id: str) -> Optional[Profile]:
        result = await self._execute(select(Profile).where(Profile.user_id == user_id))
        return result.scalar_one_or_none()

    async def get_profiles(self, user_ids: Iterable[str]) -> Dict[str, Profile]:
        """Look up many profiles at once, keyed by user id."""
        ids = list(set(user_ids))
        if not ids:
            return {}
        result = await self._execute(select(Profile).where(Profile.user_id.in_(ids)))
        return {profile.user_id: profile for profile in result.scalars().all()}

    async def upsert_profile(self, user_id: str, username: str, friend_id: str) -> Profile:
        """
        Create or update a user's profile.

        Raises:
            ValidationError: If another user already has this username.
            StoreUnavailable: If the database cannot be reached.
        """
        result = await self._execute(
            select(Profile).where(Profile.username == username)
        )
        holder = result.scalar_one_or_none()
        if holder and holder.user_id != user_id:
            raise ValidationError("Username already taken")

        profile = await self.get_profile(user_id)
        if profile is None:
            profile = Profile(user_id=user_id, username=username, friend_id=friend_id)
        else:
            profile.username = username
            profile.friend_id = friend_id
            profile.updated_at = utc_now()

        self.db.add(profile)
        try:
            await self._flush()
        except IntegrityError as e:
            # Another session claimed the username between check and insert
            logger.info(f"Username conflict for {user_id}: {username}")
            raise ValidationError("Username already taken") from e
        return profile

    # =========================================================================
    # READS
    # =========================================================================

    async def load_user_lists(self, user_id: str) -> UserCardList:
        """
        Load both lists for one user.

        Raises:
            NotFoundError: If the user has no profile.
        """
        if await self.get_profile(user_id) is None:
            raise NotFoundError(f"User {user_id} not found")

        wishlist = await self._execute(
            select(WishlistEntry.card_identifier).where(WishlistEntry.user_id == user_id)
        )
        trade_list = await self._execute(
            select(TradeListEntry.card_identifier).where(TradeListEntry.user_id == user_id)
        )
        return UserCardList(
            user_id=user_id,
            wishlist=frozenset(wishlist.scalars().all()),
            trade_list=frozenset(trade_list.scalars().all()),
        )

    async def _posting_lists(
        self,
        table,
        card_ids: Iterable[str],
        exclude: Optional[str] = None,
    ) -> Dict[str, Set[str]]:
        ids = list(set(card_ids))
        if not ids:
            return {}
        query = select(table.user_id, table.card_identifier).where(
            table.card_identifier.in_(ids)
        )
        if exclude is not None:
            query = query.where(table.user_id != exclude)
        result = await self._execute(query)

        postings: Dict[str, Set[str]] = {}
        for user_id, card_id in result.all():
            postings.setdefault(user_id, set()).add(card_id)
        return postings

    async def traders_of(
        self, card_ids: Iterable[str], exclude: Optional[str] = None
    ) -> Dict[str, Set[str]]:
        """Users offering any of ``card_ids`` -> which of those cards they offer."""
        return await self._posting_lists(TradeListEntry, card_ids, exclude)

    async def wanters_of(
        self, card_ids: Iterable[str], exclude: Optional[str] = None
    ) -> Dict[str, Set[str]]:
        """Users wanting any of ``card_ids`` -> which of those cards they want."""
        return await self._posting_lists(WishlistEntry, card_ids, exclude)

    async def iter_user_lists(
        self,
        batch_size: int = 200,
        exclude: Optional[str] = None,
    ) -> AsyncIterator[List[UserCardList]]:
        """
        Walk every user with a profile in user-id order, one batch at a time.

        Uses keyset pagination so rows added mid-walk cannot shift pages.
        """
        last_id: Optional[str] = None
        while True:
            query = select(Profile.user_id).order_by(Profile.user_id).limit(batch_size)
            if last_id is not None:
                query = query.where(Profile.user_id > last_id)
            result = await self._execute(query)
            user_ids = list(result.scalars().all())
            if not user_ids:
                return
            last_id = user_ids[-1]

            if exclude is not None:
                user_ids = [uid for uid in user_ids if uid != exclude]
            if not user_ids:
                continue

            wishes = await self._rows_for(WishlistEntry, user_ids)
            trades = await self._rows_for(TradeListEntry, user_ids)
            yield [
                UserCardList(
                    user_id=uid,
                    wishlist=frozenset(wishes.get(uid, ())),
                    trade_list=frozenset(trades.get(uid, ())),
                )
                for uid in user_ids
            ]

    async def _rows_for(self, table, user_ids: List[str]) -> Dict[str, Set[str]]:
        result = await self._execute(
            select(table.user_id, table.card_identifier).where(table.user_id.in_(user_ids))
        )
        rows: Dict[str, Set[str]] = {}
        for user_id, card_id in result.all():
            rows.setdefault(user_id, set()).add(card_id)
        return rows

    # =========================================================================
    # WRITES
    # =========================================================================

    def _check_caps(self, adds: CardListChanges, removes: CardListChanges) -> None:
        for label, ids in (
            ("wishlist additions", adds.wishlist),
            ("wishlist removals", removes.wishlist),
            ("trade list additions", adds.trade_list),
            ("trade list removals", removes.trade_list),
        ):
            if len(ids) > self.batch_cap:
                raise ValidationError(
                    f"Too many {label} in one batch ({len(ids)} > {self.batch_cap})"
                )

    def validate_changes(
        self,
        current: UserCardList,
        adds: CardListChanges,
        removes: CardListChanges,
        catalog: "CatalogSnapshot",
        enforce_cap: bool = True,
    ) -> UserCardList:
        """
        Check a batch against every list invariant.

        Returns:
            UserCardList: The lists as they would be after the batch.

        Raises:
            ValidationError: On the first violated invariant.
        """
        if enforce_cap:
            self._check_caps(adds, removes)

        conflicting = (adds.wishlist & removes.wishlist) | (adds.trade_list & removes.trade_list)
        if conflicting:
            raise ValidationError("Card both added and removed in one batch", conflicting)

        validate_card_ids(adds.wishlist | adds.trade_list, catalog)
        check_trade_list_additions(adds.trade_list, catalog)

        wishlist = (current.wishlist - removes.wishlist) | adds.wishlist
        trade_list = (current.trade_list - removes.trade_list) | adds.trade_list
        overlap = wishlist & trade_list
        if overlap:
            raise ValidationError("Card cannot be on both the wishlist and the trade list", overlap)

        return UserCardList(
            user_id=current.user_id,
            wishlist=frozenset(wishlist),
            trade_list=frozenset(trade_list),
        )

    async def save_user_lists(
        self,
        user_id: str,
        adds: CardListChanges,
        removes: CardListChanges,
        catalog: "CatalogSnapshot",
    ) -> UserCardList:
        """
        Apply an add/remove batch to both lists.

        The whole batch is validated first; nothing is written if any part
        is rejected. Adding a card already present and removing a card not
        present are no-ops.

        Args:
            user_id: Owner of the lists.
            adds: Cards to add per list.
            removes: Cards to remove per list.
            catalog: Snapshot used to validate ids and rarities.

        Returns:
            UserCardList: The lists after the batch.

        Raises:
            NotFoundError: If the user has no profile.
            ValidationError: If the batch breaks a list invariant.
            StoreUnavailable: If the database cannot be reached.
        """
        current = await self.load_user_lists(user_id)
        updated = self.validate_changes(current, adds, removes, catalog)

        for table, to_remove in (
            (WishlistEntry, removes.wishlist & current.wishlist),
            (TradeListEntry, removes.trade_list & current.trade_list),
        ):
            if to_remove:
                await self._execute(
                    delete(table).where(
                        table.user_id == user_id,
                        table.card_identifier.in_(list(to_remove)),
                    )
                )

        new_rows = [
            WishlistEntry(user_id=user_id, card_identifier=card_id)
            for card_id in sorted(adds.wishlist - current.wishlist)
        ] + [
            TradeListEntry(user_id=user_id, card_identifier=card_id)
            for card_id in sorted(adds.trade_list - current.trade_list)
        ]
        if new_rows:
            self.db.add_all(new_rows)
        await self._flush()

        logger.info(
            f"Saved lists for {user_id}: +{len(adds)} / -{len(removes)} "
            f"(wishlist={len(updated.wishlist)}, trade_list={len(updated.trade_list)})"
        )
        return updated
