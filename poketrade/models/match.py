"""
Trade match response schemas.

Matches are computed per request and never stored.
"""

from typing import Optional

from sqlmodel import SQLModel


class MatchRead(SQLModel):
    """
    One potential trade partner.

    Attributes:
        partner_id: The partner's user id.
        username: Partner's display name, when they have a profile.
        friend_id: Partner's in-game friend code.
        wants_from_partner: Cards on my wishlist the partner offers.
        wants_from_self: Cards on my trade list the partner wants.
        score: Total number of cards that would change hands.
    """
    partner_id: str
    username: Optional[str] = None
    friend_id: Optional[str] = None
    wants_from_partner: list[str]
    wants_from_self: list[str]
    score: int


class MatchPage(SQLModel):
    """A page of ranked matches."""
    items: list[MatchRead]
    total: int
    offset: int
    limit: Optional[int] = None
    next_offset: Optional[int] = None
    degraded: bool = False
    warnings: list[str] = []
