"""
Pokémon TCG Pocket card catalog.

Fetches the public cards / sets / rarity JSON snapshot, enriches it into
``Card`` objects and keeps it in memory for ``catalog_cache_hours``.
The snapshot is trusted as-is; malformed records are skipped.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from ...core.config import Settings, settings as default_settings
from ...core.errors import CatalogUnavailable
from ...models.card import Card, RarityRead, RawCard, RawSet, card_sort_key, make_card_id
from ..trading.eligibility import is_tradeable

logger = logging.getLogger(__name__)


class CatalogSnapshot:
    """
    An immutable, enriched view of one catalog download.

    Attributes:
        cards: Card id -> Card.
        rarities: Rarity code -> label.
        loaded_at: When the snapshot was built.
    """

    def __init__(
        self,
        cards: Dict[str, Card],
        rarities: Dict[str, str],
        loaded_at: Optional[datetime] = None,
    ):
        self.cards = cards
        self.rarities = rarities
        self.loaded_at = loaded_at or datetime.now(timezone.utc)

    def __len__(self) -> int:
        return len(self.cards)

    def __contains__(self, card_id: str) -> bool:
        return card_id in self.cards

    def get(self, card_id: str) -> Optional[Card]:
        return self.cards.get(card_id)

    def rarity_of(self, card_id: str) -> Optional[str]:
        card = self.cards.get(card_id)
        return card.rarity_code if card else None

    def unknown_ids(self, card_ids: Iterable[str]) -> List[str]:
        """Return the ids that are not in this snapshot, sorted."""
        return sorted({cid for cid in card_ids if cid not in self.cards})

    def rarity_list(self) -> List[RarityRead]:
        """All rarity codes with labels, sorted by code."""
        return [
            RarityRead(code=code, label=label, tradeable=is_tradeable(code))
            for code, label in sorted(self.rarities.items())
        ]

    def search(
        self,
        query: Optional[str] = None,
        rarity_code: Optional[str] = None,
        tradeable_only: bool = False,
    ) -> List[Card]:
        """
        Filter cards by name substring and rarity.

        Results keep catalog order (set, then number).
        """
        needle = (query or "").strip().lower()
        results = []
        for card in self.cards.values():
            if needle and needle not in card.name.lower():
                continue
            if rarity_code and card.rarity_code != rarity_code:
                continue
            if tradeable_only and not card.tradeable:
                continue
            results.append(card)
        return results


def build_snapshot(
    raw_cards: List[Dict[str, Any]],
    rarities: Dict[str, str],
    raw_sets: Optional[List[Dict[str, Any]]] = None,
) -> CatalogSnapshot:
    """
    Enrich raw dataset records into a snapshot.

    Handles missing labels by falling back to the raw rarity text and the
    set code.
    """
    set_names: Dict[str, str] = {}
    for set_data in raw_sets or []:
        try:
            raw_set = RawSet.model_validate(set_data)
        except PydanticValidationError as e:
            logger.debug(f"Skipping malformed set record: {e}")
            continue
        set_names[raw_set.code] = raw_set.label.en or raw_set.code

    cards: Dict[str, Card] = {}
    skipped = 0
    for card_data in raw_cards:
        try:
            raw = RawCard.model_validate(card_data)
        except PydanticValidationError:
            skipped += 1
            continue

        card_id = make_card_id(raw.set, raw.number)
        cards[card_id] = Card(
            id=card_id,
            set=raw.set,
            number=raw.number,
            rarity_code=raw.rarity_code,
            image_name=raw.image_name,
            name=raw.label.eng,
            rarity_full_name=rarities.get(raw.rarity_code) or raw.rarity,
            set_name=set_names.get(raw.set, raw.set),
            packs=raw.packs,
            tradeable=is_tradeable(raw.rarity_code),
        )

    if skipped:
        logger.warning(f"Skipped {skipped} malformed card records")

    ordered = {cid: cards[cid] for cid in sorted(cards, key=card_sort_key)}
    return CatalogSnapshot(cards=ordered, rarities=dict(rarities))


class CardCatalog:
    """
    Cached access to the card catalog.

    One instance is shared per process. The snapshot is refreshed lazily
    once it is older than the configured cache window; if a refresh fails
    and an older snapshot exists, the older snapshot keeps being served.
    """

    def __init__(
        self,
        config: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config or default_settings
        self._client = client
        self._owns_client = client is None
        self._snapshot: Optional[CatalogSnapshot] = None
        self._pinned = False
        self._lock = asyncio.Lock()

    @classmethod
    def from_data(
        cls,
        raw_cards: List[Dict[str, Any]],
        rarities: Dict[str, str],
        raw_sets: Optional[List[Dict[str, Any]]] = None,
    ) -> "CardCatalog":
        """Build a catalog pinned to the given records; it never refetches."""
        catalog = cls()
        catalog._snapshot = build_snapshot(raw_cards, rarities, raw_sets)
        catalog._pinned = True
        return catalog

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.config.catalog_timeout_seconds,
                follow_redirects=True,
            )
        return self._client

    async def close(self):
        """Close HTTP client."""
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None

    @property
    def snapshot(self) -> Optional[CatalogSnapshot]:
        """The cached snapshot, or None before the first successful load."""
        return self._snapshot

    def _is_fresh(self) -> bool:
        if self._snapshot is None:
            return False
        if self._pinned:
            return True
        age = datetime.now(timezone.utc) - self._snapshot.loaded_at
        return age < timedelta(hours=self.config.catalog_cache_hours)

    async def load(self, force_refresh: bool = False) -> CatalogSnapshot:
        """
        Return the current snapshot, downloading it if stale or missing.

        Args:
            force_refresh: Refetch even if the cached snapshot is fresh.

        Returns:
            CatalogSnapshot: The enriched catalog.

        Raises:
            CatalogUnavailable: If nothing is cached and the download fails.
        """
        if not force_refresh and self._is_fresh():
            return self._snapshot

        async with self._lock:
            if not force_refresh and self._is_fresh():
                return self._snapshot
            if self._pinned:
                return self._snapshot

            try:
                snapshot = await self._fetch()
            except CatalogUnavailable:
                if self._snapshot is not None:
                    logger.warning("Catalog refresh failed, serving previous snapshot")
                    return self._snapshot
                raise

            self._snapshot = snapshot
            logger.info(f"Loaded card catalog ({len(snapshot)} cards)")
            return snapshot

    async def _fetch(self) -> CatalogSnapshot:
        """Download cards, sets and rarities concurrently."""
        client = await self._get_client()
        urls = (
            self.config.catalog_cards_url,
            self.config.catalog_sets_url,
            self.config.catalog_rarities_url,
        )
        try:
            responses = await asyncio.gather(*(client.get(url) for url in urls))
            for response in responses:
                response.raise_for_status()
            cards_data, sets_data, rarity_data = (r.json() for r in responses)
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Card catalog fetch failed: {e}")
            raise CatalogUnavailable("Failed to fetch Pokémon card data.") from e

        if not isinstance(cards_data, list) or not isinstance(rarity_data, dict):
            logger.error("Card catalog payload has an unexpected shape")
            raise CatalogUnavailable("Card catalog payload has an unexpected shape.")

        if not isinstance(sets_data, list):
            sets_data = []

        return build_snapshot(cards_data, rarity_data, sets_data)
