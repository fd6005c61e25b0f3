"""
Card Catalog Service - read-only access to the Pokémon TCG Pocket dataset.
"""

from .catalog_api import (
    CardCatalog,
    CatalogSnapshot,
    build_snapshot,
    make_card_id,
)

__all__ = [
    "CardCatalog",
    "CatalogSnapshot",
    "build_snapshot",
    "make_card_id",
]
