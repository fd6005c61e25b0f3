"""
Domain error taxonomy.

Services raise these; the API layer maps them onto HTTP status codes.
"""

from typing import Iterable, Optional


class PokeTradeError(Exception):
    """Base class for all domain errors."""


class NotFoundError(PokeTradeError):
    """The referenced user (or card) does not exist."""


class StoreUnavailable(PokeTradeError):
    """
    The user list store could not be reached.

    Transient; callers may retry with backoff. Nothing in the core retries.
    """


class CatalogUnavailable(StoreUnavailable):
    """The card catalog snapshot could not be fetched."""


class ValidationError(PokeTradeError):
    """
    List content that breaks an invariant.

    Attributes:
        card_ids: Offending card identifiers, when the error is about cards.
    """

    def __init__(self, message: str, card_ids: Optional[Iterable[str]] = None):
        super().__init__(message)
        self.message = message
        self.card_ids = sorted(set(card_ids or []))

    def __str__(self) -> str:
        if self.card_ids:
            return f"{self.message}: {', '.join(self.card_ids)}"
        return self.message


class IneligibleCardError(ValidationError):
    """A card with a non-tradeable rarity was offered on a trade list."""
