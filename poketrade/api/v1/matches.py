"""
Trade match endpoints.
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status

from poketrade.api.deps import CatalogService, CurrentSession, Store
from poketrade.core.config import settings
from poketrade.core.errors import CatalogUnavailable, NotFoundError, StoreUnavailable
from poketrade.models.match import MatchPage, MatchRead
from poketrade.services.trading import MatchEngine, MatchStrategy

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=MatchPage)
async def find_matches(
    current: CurrentSession,
    store: Store,
    catalog_service: CatalogService,
    offset: int = Query(default=0, ge=0),
    limit: Optional[int] = Query(default=None, ge=1),
) -> MatchPage:
    """
    Find users who offer something the caller wants and want something
    the caller offers, best matches first.

    Args:
        offset: Ranked position to start from.
        limit: Page size (defaults to the configured page size, capped at
            the configured maximum).

    Returns:
        MatchPage: One page of ranked matches. ``degraded`` is set when
        some list entries had to be ignored.

    Raises:
        HTTPException: 404 without a profile, 503 if the store or the card
            catalog is unavailable.
    """
    page_size = min(limit or settings.match_default_page_size, settings.match_max_page_size)

    try:
        engine = MatchEngine(
            store,
            catalog=await catalog_service.load(),
            strategy=MatchStrategy(settings.match_strategy),
            scan_batch_size=settings.match_scan_batch_size,
        )
        result = await engine.find_matches(current.user_id, offset=offset, limit=page_size)
        profiles = await store.get_profiles(c.partner_id for c in result.items)
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Create a profile before searching for matches.",
        )
    except (StoreUnavailable, CatalogUnavailable) as e:
        logger.error(f"Match query failed for {current.user_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="No matches could be computed right now",
        )

    items = []
    for candidate in result.items:
        profile = profiles.get(candidate.partner_id)
        items.append(MatchRead(
            partner_id=candidate.partner_id,
            username=profile.username if profile else None,
            friend_id=profile.friend_id if profile else None,
            wants_from_partner=list(candidate.wants_from_partner),
            wants_from_self=list(candidate.wants_from_self),
            score=candidate.score,
        ))

    return MatchPage(
        items=items,
        total=result.total,
        offset=result.offset,
        limit=result.limit,
        next_offset=result.next_offset,
        degraded=result.degraded,
        warnings=result.warnings,
    )
