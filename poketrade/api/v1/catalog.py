"""
Card catalog endpoints (read-only).
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from poketrade.api.deps import Catalog
from poketrade.models.card import Card, RarityRead

router = APIRouter()


@router.get("/cards", response_model=list[Card])
async def list_cards(
    catalog: Catalog,
    search: Optional[str] = None,
    rarity: Optional[str] = None,
    tradeable_only: bool = False,
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
) -> list[Card]:
    """
    List catalog cards with optional name search and rarity filter.
    """
    cards = catalog.search(query=search, rarity_code=rarity, tradeable_only=tradeable_only)
    return cards[offset:offset + limit]


@router.get("/cards/{card_id}", response_model=Card)
async def get_card(card_id: str, catalog: Catalog) -> Card:
    """
    Get a single card by its composite id (e.g. "A1-5").
    """
    card = catalog.get(card_id)
    if not card:
        raise HTTPException(status_code=404, detail="Card not found.")
    return card


@router.get("/rarities", response_model=list[RarityRead])
async def list_rarities(catalog: Catalog) -> list[RarityRead]:
    """
    List rarity codes with labels and whether they can be traded.
    """
    return catalog.rarity_list()
