"""
Trade Matcher Service - finds users whose lists complement each other.

A partner B matches requester A when B offers something A wants AND B wants
something A offers. One-directional overlap is never a match.

Scoring system:
- score = |A.wishlist ∩ B.trade_list| + |A.trade_list ∩ B.wishlist|
  (the number of cards that would change hands)
- ties broken by partner user id so output is deterministic

Two strategies produce the same candidates:
- INDEX: posting lists per card (card -> users who trade / want it), so only
  users sharing at least one card with the requester are ever touched.
- SCAN: walks the whole user population in batches and intersects each list.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, AsyncIterator, Callable, List, Optional, Tuple

from ...models.card import card_sort_key, parse_card_id
from .eligibility import is_tradeable
from .store import SqlUserListStore, UserCardList

if TYPE_CHECKING:
    from ..catalog import CatalogSnapshot

logger = logging.getLogger(__name__)


class MatchStrategy(str, Enum):
    """How candidate partners are found."""
    INDEX = "index"
    SCAN = "scan"


@dataclass(frozen=True)
class MatchCandidate:
    """
    A mutually beneficial pairing between the requester and one partner.

    Attributes:
        user_id: The requester.
        partner_id: The other user.
        wants_from_partner: Requester's wishlist ∩ partner's trade list.
        wants_from_self: Requester's trade list ∩ partner's wishlist.
    """
    user_id: str
    partner_id: str
    wants_from_partner: Tuple[str, ...]
    wants_from_self: Tuple[str, ...]

    @property
    def score(self) -> int:
        return len(self.wants_from_partner) + len(self.wants_from_self)


RankKey = Callable[[MatchCandidate], Any]


def default_rank_key(candidate: MatchCandidate) -> Tuple[int, str]:
    """Highest score first, then partner id ascending."""
    return (-candidate.score, candidate.partner_id)


@dataclass
class MatchResult:
    """A ranked (and possibly paginated) set of candidates."""
    items: List[MatchCandidate]
    total: int
    offset: int = 0
    limit: Optional[int] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        """True when some list entries were dropped while computing."""
        return bool(self.warnings)

    @property
    def next_offset(self) -> Optional[int]:
        end = self.offset + len(self.items)
        return end if end < self.total else None


def build_candidate(
    requester: UserCardList,
    other: UserCardList,
) -> Optional[MatchCandidate]:
    """
    Intersect two users' lists.

    Returns:
        MatchCandidate if both directions overlap, otherwise None.
    """
    if other.user_id == requester.user_id:
        return None
    wants_from_partner = requester.wishlist & other.trade_list
    if not wants_from_partner:
        return None
    wants_from_self = requester.trade_list & other.wishlist
    if not wants_from_self:
        return None
    return MatchCandidate(
        user_id=requester.user_id,
        partner_id=other.user_id,
        wants_from_partner=tuple(sorted(wants_from_partner, key=card_sort_key)),
        wants_from_self=tuple(sorted(wants_from_self, key=card_sort_key)),
    )


def rank_candidates(
    candidates: List[MatchCandidate],
    rank_key: RankKey = default_rank_key,
) -> List[MatchCandidate]:
    """Sort candidates; the sort is the only ordering authority."""
    return sorted(candidates, key=rank_key)


def sanitize_lists(
    lists: UserCardList,
    catalog: Optional["CatalogSnapshot"] = None,
) -> Tuple[UserCardList, List[str]]:
    """
    Drop entries that cannot take part in a trade.

    Malformed ids are always dropped. With a catalog, unknown ids and
    non-tradeable cards on the trade list are dropped as well. Warnings
    name the dropped cards; the owner's id only goes to the log.

    Returns:
        Cleaned lists plus one warning per dropped group.
    """
    warnings: List[str] = []

    def _keep(card_id: str) -> bool:
        try:
            parse_card_id(card_id)
        except ValueError:
            return False
        return catalog is None or card_id in catalog

    wishlist = frozenset(cid for cid in lists.wishlist if _keep(cid))
    trade_list = frozenset(cid for cid in lists.trade_list if _keep(cid))

    dropped = sorted((lists.wishlist - wishlist) | (lists.trade_list - trade_list))
    if dropped:
        warnings.append(f"Ignored {len(dropped)} unknown card id(s): {', '.join(dropped)}")

    if catalog is not None:
        ineligible = sorted(
            cid for cid in trade_list if not is_tradeable(catalog.rarity_of(cid))
        )
        if ineligible:
            trade_list = trade_list - set(ineligible)
            warnings.append(
                f"Ignored {len(ineligible)} non-tradeable card(s) on the trade list: "
                f"{', '.join(ineligible)}"
            )

    for message in warnings:
        logger.warning(f"{message} (user {lists.user_id})")

    return UserCardList(lists.user_id, wishlist, trade_list), warnings


def relevant_part(requester: UserCardList, other: UserCardList) -> UserCardList:
    """The slice of ``other``'s lists that could change hands with ``requester``."""
    return UserCardList(
        user_id=other.user_id,
        wishlist=other.wishlist & requester.trade_list,
        trade_list=other.trade_list & requester.wishlist,
    )


class MatchEngine:
    """
    Computes ranked trade partners for one user.

    Stateless and read-only: every call reads current store state and
    nothing is cached between calls. Store failures propagate as
    ``StoreUnavailable``; the engine never retries.

    Both strategies look only at the part of each partner's lists that
    overlaps the requester's, so they return the same items and the same
    warnings.
    """

    def __init__(
        self,
        store: SqlUserListStore,
        catalog: Optional["CatalogSnapshot"] = None,
        strategy: MatchStrategy = MatchStrategy.INDEX,
        rank_key: RankKey = default_rank_key,
        scan_batch_size: int = 200,
    ):
        self.store = store
        self.catalog = catalog
        self.strategy = MatchStrategy(strategy)
        self.rank_key = rank_key
        self.scan_batch_size = scan_batch_size

    async def find_matches(
        self,
        user_id: str,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> MatchResult:
        """
        Find and rank trade partners for ``user_id``.

        Args:
            user_id: The requesting user.
            offset: Number of ranked candidates to skip.
            limit: Page size, or None for everything after ``offset``.

        Returns:
            MatchResult: The requested slice of the full ranking.

        Raises:
            NotFoundError: If the user does not exist.
            StoreUnavailable: If the store cannot be read.
        """
        if offset < 0:
            raise ValueError("offset must be >= 0")
        if limit is not None and limit < 1:
            raise ValueError("limit must be >= 1")

        ranked, warnings = await self.rank(user_id)
        end = None if limit is None else offset + limit
        return MatchResult(
            items=ranked[offset:end],
            total=len(ranked),
            offset=offset,
            limit=limit,
            warnings=warnings,
        )

    async def rank(self, user_id: str) -> Tuple[List[MatchCandidate], List[str]]:
        """Compute the full ranking (no pagination)."""
        requester, warnings = sanitize_lists(
            await self.store.load_user_lists(user_id), self.catalog
        )
        if not requester.wishlist or not requester.trade_list:
            return [], warnings

        if self.strategy == MatchStrategy.SCAN:
            partners = self._scan(requester)
        else:
            partners = self._from_index(requester)

        candidates = []
        partner_drops = 0
        async for partner in partners:
            cleaned, _ = sanitize_lists(partner, self.catalog)
            partner_drops += len(partner.wishlist - cleaned.wishlist)
            partner_drops += len(partner.trade_list - cleaned.trade_list)
            candidate = build_candidate(requester, cleaned)
            if candidate is not None:
                candidates.append(candidate)

        if partner_drops:
            warnings.append(f"Ignored {partner_drops} ineligible card(s) on other users' lists")

        logger.debug(f"Found {len(candidates)} trade matches for {user_id}")
        return rank_candidates(candidates, self.rank_key), warnings

    async def _from_index(self, requester: UserCardList) -> AsyncIterator[UserCardList]:
        traders = await self.store.traders_of(requester.wishlist, exclude=requester.user_id)
        if not traders:
            return
        wanters = await self.store.wanters_of(requester.trade_list, exclude=requester.user_id)

        for partner_id in sorted(traders.keys() & wanters.keys()):
            yield UserCardList(
                user_id=partner_id,
                wishlist=frozenset(wanters[partner_id]),
                trade_list=frozenset(traders[partner_id]),
            )

    async def _scan(self, requester: UserCardList) -> AsyncIterator[UserCardList]:
        async for batch in self.store.iter_user_lists(
            batch_size=self.scan_batch_size, exclude=requester.user_id
        ):
            for other in batch:
                partial = relevant_part(requester, other)
                if partial.wishlist and partial.trade_list:
                    yield partial
