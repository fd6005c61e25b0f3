"""
Card catalog models.

Cards come from the public Pokémon TCG Pocket JSON dataset and are never
persisted or mutated here. Only card identifiers are stored in user lists.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from sqlmodel import SQLModel


class CardLabel(BaseModel):
    """Localized card name block from the raw dataset."""
    slug: str = ""
    eng: str = ""


class RawCard(BaseModel):
    """
    Card record exactly as published in ``cards.json``.

    Unknown keys are ignored so a newer snapshot does not break loading.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    set: str
    number: int
    rarity: str = ""
    rarity_code: str = Field(alias="rarityCode")
    image_name: str = Field(default="", alias="imageName")
    label: CardLabel = Field(default_factory=CardLabel)
    packs: list[str] = Field(default_factory=list)


class SetLabel(BaseModel):
    en: str = ""


class RawSet(BaseModel):
    """Set record from ``sets.json``."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    code: str
    release_date: Optional[str] = Field(default=None, alias="releaseDate")
    count: Optional[int] = None
    label: SetLabel = Field(default_factory=SetLabel)
    packs: list[str] = Field(default_factory=list)


class Card(SQLModel):
    """
    Enriched card used throughout the API.

    Attributes:
        id: Composite key, e.g. "A1-5".
        set: Set code (e.g. "A1").
        number: Card number within the set.
        rarity_code: Short rarity code (C, U, R, RR, AR, SR, ...).
        image_name: Image file name on the dataset CDN.
        name: English card name.
        rarity_full_name: Human-readable rarity label.
        set_name: Human-readable set name.
        packs: Booster packs the card can be pulled from.
        tradeable: Whether the card may appear on a trade list.
    """
    id: str
    set: str
    number: int
    rarity_code: str
    image_name: str = ""
    name: str = ""
    rarity_full_name: str = ""
    set_name: str = ""
    packs: list[str] = []
    tradeable: bool = False


class RarityRead(SQLModel):
    """Schema for a rarity code with its label."""
    code: str
    label: str
    tradeable: bool


def parse_card_id(card_id: str) -> tuple[str, int]:
    """
    Split a composite card id into (set, number).

    The number follows the final dash, so promo sets such as "P-A" parse
    correctly ("P-A-12" -> ("P-A", 12)).

    Raises:
        ValueError: If the id is malformed.
    """
    if not isinstance(card_id, str):
        raise ValueError(f"Malformed card id: {card_id!r}")
    set_code, sep, number = card_id.rpartition("-")
    if not sep or not set_code or set_code.endswith("-"):
        raise ValueError(f"Malformed card id: {card_id!r}")
    if not number.isdecimal() or int(number) < 1:
        raise ValueError(f"Malformed card id: {card_id!r}")
    return set_code, int(number)


def make_card_id(set_code: str, number: int) -> str:
    return f"{set_code}-{number}"


def card_sort_key(card_id: str) -> tuple[str, int, str]:
    """Order ids by set then number; malformed ids sort last."""
    try:
        set_code, number = parse_card_id(card_id)
    except ValueError:
        return ("\uffff", 0, str(card_id))
    return (set_code, number, "")
