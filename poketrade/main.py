"""
PokeTrade - Main FastAPI Application.

Entry point for the backend API server.
"""

import logging
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from poketrade.api.deps import card_catalog, get_catalog
from poketrade.api.v1.router import api_router
from poketrade.core.config import settings
from poketrade.core.database import init_db
from poketrade.core.errors import CatalogUnavailable
from poketrade.services.catalog import CardCatalog

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    """Apply the configured log level to the root logger."""
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Creates tables, warms the card catalog, and closes its HTTP client on
    shutdown. A catalog that cannot be fetched at startup is retried on the
    first request that needs it.
    """
    configure_logging()
    logger.info(f"Starting {settings.app_name} ({settings.app_env})")
    await init_db()
    logger.info("Database initialized")

    try:
        await card_catalog.load()
    except CatalogUnavailable as e:
        logger.warning(f"Card catalog not loaded at startup: {e}")

    yield

    await card_catalog.close()
    logger.info(f"Shutting down {settings.app_name}")


app = FastAPI(
    title=settings.app_name,
    description="Wishlists, trade lists and trade partner matching for Pokémon TCG Pocket",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT"],
    allow_headers=["Authorization", "Content-Type"],
)

app.include_router(api_router, prefix="/api/v1")


@app.get("/")
async def root():
    return {"name": settings.app_name, "version": "0.1.0"}


@app.get("/health")
async def health_check(catalog: Annotated[CardCatalog, Depends(get_catalog)]):
    """Liveness plus whether the card catalog is in memory."""
    snapshot = catalog.snapshot
    return {
        "status": "healthy",
        "catalog_loaded": snapshot is not None,
        "catalog_cards": len(snapshot) if snapshot is not None else 0,
    }
