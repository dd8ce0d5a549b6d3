"""
Comproum Marketplace API Service

Buyers post intents, suppliers in the matching segments answer with offers,
and both sides negotiate until an offer is accepted.

Routers:
- comproum.service.users_api - registration, sessions, profile
- comproum.service.marketplace_api - intents, opportunities, offers
- comproum.service.dashboard_api - dashboards, address and price lookups

Run with:
    python -m comproum.service.api
"""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy import text

from comproum import __version__
from comproum.config import LOG_LEVEL, OPENAI_API_KEY, PORT, REFRESH_INTERVAL_SECONDS
from comproum.marketplace.errors import MarketplaceError
from comproum.service.dashboard_api import router as dashboard_router
from comproum.service.marketplace_api import router as marketplace_router
from comproum.service.users_api import router as users_router
from database.connection import SessionLocal

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Comproum Marketplace API",
    description="Reverse marketplace: intents, offers and negotiation",
    version=__version__
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Tighten in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(users_router)
app.include_router(marketplace_router)
app.include_router(dashboard_router)


@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(request: Request, exc: MarketplaceError):
    """Domain failures become their HTTP status with every message listed."""
    if exc.status_code >= 409:
        logger.info(f"{request.method} {request.url.path} refused: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "errors": exc.errors},
    )


class HealthResponse(BaseModel):
    """Health check response."""
    service: str
    status: str
    version: str
    database_available: bool
    price_advisor_configured: bool
    refresh_interval_seconds: float


def database_available() -> bool:
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.warning(f"Database health check failed: {e}")
        return False
    finally:
        db.close()


@app.get("/api/health", response_model=HealthResponse)
def health_check():
    """
    Health check endpoint.

    The service stays "operational" without the price advisor; only a
    missing database degrades it.
    """
    db_ok = database_available()
    return HealthResponse(
        service="Comproum Marketplace API",
        status="operational" if db_ok else "degraded",
        version=__version__,
        database_available=db_ok,
        price_advisor_configured=bool(OPENAI_API_KEY),
        refresh_interval_seconds=REFRESH_INTERVAL_SECONDS,
    )


if __name__ == "__main__":
    import uvicorn
    from database.models import init_database

    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    init_database()
    uvicorn.run(app, host="0.0.0.0", port=PORT)
