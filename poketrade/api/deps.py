"""
API Dependencies.

Shared dependencies for authentication, database sessions, the card
catalog and the user list store.
"""

from typing import Annotated, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from poketrade.core.database import get_db
from poketrade.core.errors import CatalogUnavailable
from poketrade.core.security import SessionUser, decode_access_token
from poketrade.services.catalog import CardCatalog, CatalogSnapshot
from poketrade.services.trading import SqlUserListStore

# Bearer tokens are issued by the identity provider
bearer_scheme = HTTPBearer(auto_error=False)

# Process-wide catalog cache
card_catalog = CardCatalog()


async def get_current_session(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)],
) -> SessionUser:
    """
    Dependency to get the caller's verified session.

    Args:
        credentials: Bearer token from the Authorization header.

    Returns:
        SessionUser: The authenticated caller.

    Raises:
        HTTPException: If the token is missing or invalid.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if credentials is None or not credentials.credentials:
        raise credentials_exception

    session = decode_access_token(credentials.credentials)
    if session is None:
        raise credentials_exception

    return session


def get_catalog() -> CardCatalog:
    """Dependency returning the shared card catalog."""
    return card_catalog


async def get_catalog_snapshot(
    catalog: Annotated[CardCatalog, Depends(get_catalog)],
) -> CatalogSnapshot:
    """
    Dependency returning a loaded catalog snapshot.

    Raises:
        HTTPException: 503 if the catalog cannot be fetched.
    """
    try:
        return await catalog.load()
    except CatalogUnavailable as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
        )


def get_store(db: Annotated[AsyncSession, Depends(get_db)]) -> SqlUserListStore:
    """Dependency providing a list store bound to the request's session."""
    return SqlUserListStore(db)


# Type aliases for cleaner dependency injection
CurrentSession = Annotated[SessionUser, Depends(get_current_session)]
DbSession = Annotated[AsyncSession, Depends(get_db)]
Store = Annotated[SqlUserListStore, Depends(get_store)]
Catalog = Annotated[CatalogSnapshot, Depends(get_catalog_snapshot)]
CatalogService = Annotated[CardCatalog, Depends(get_catalog)]
