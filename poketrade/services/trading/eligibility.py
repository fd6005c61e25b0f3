"""
Trade eligibility by rarity.

Only Common, Uncommon, Rare, Double Rare and Art Rare cards can be traded.
Wishlists carry no rarity restriction.
"""

from typing import TYPE_CHECKING, Iterable, Optional

from ...core.errors import IneligibleCardError

if TYPE_CHECKING:
    from ..catalog import CatalogSnapshot

TRADEABLE_RARITIES = frozenset({"C", "U", "R", "RR", "AR"})


def is_tradeable(rarity_code: Optional[str]) -> bool:
    """Return True if cards of this rarity may appear on a trade list."""
    return rarity_code in TRADEABLE_RARITIES


def ineligible_cards(card_ids: Iterable[str], catalog: "CatalogSnapshot") -> list[str]:
    """Return the known cards whose rarity cannot be traded, sorted."""
    return sorted(
        card_id
        for card_id in set(card_ids)
        if card_id in catalog and not is_tradeable(catalog.rarity_of(card_id))
    )


def check_trade_list_additions(card_ids: Iterable[str], catalog: "CatalogSnapshot") -> None:
    """
    Reject trade-list additions with a non-tradeable rarity.

    Raises:
        IneligibleCardError: Listing every offending card id.
    """
    offending = ineligible_cards(card_ids, catalog)
    if offending:
        raise IneligibleCardError(
            "Only Common, Uncommon, Rare, Double Rare, and Art Rare cards "
            "can be added to the trade list",
            offending,
        )
