"""
Dashboards and lookups API

Endpoints:
- GET /api/dashboard/buyer - Intents with their offers (poll target)
- GET /api/dashboard/supplier - Opportunities, my offers and totals (poll target)
- GET /api/address/{postal_code} - Address for a CEP
- GET /api/price-insight?product= - Advisory market price range
"""

from dataclasses import asdict
from datetime import datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from comproum.config import REFRESH_INTERVAL_SECONDS
from comproum.integrations.address_lookup import lookup_address
from comproum.integrations.price_advisor import get_price_insight
from comproum.marketplace.domain import ALL, SortKey
from comproum.marketplace.refresh import buyer_dashboard, supplier_dashboard
from comproum.service.auth import current_buyer, current_supplier
from comproum.service.marketplace_api import IntentResponse, OfferResponse, offer_view
from database.connection import db_session
from database.models import UserAccount

router = APIRouter(prefix="/api", tags=["dashboards"])


class IntentWithOffersResponse(BaseModel):
    intent: IntentResponse
    offers: List[OfferResponse]


class BuyerDashboardResponse(BaseModel):
    intents: List[IntentWithOffersResponse]
    refreshed_at: datetime
    refresh_interval_seconds: float


class SupplierStatsResponse(BaseModel):
    offers_by_status: Dict[str, int]
    confirmed_sales: float
    opportunities: int


class SupplierDashboardResponse(BaseModel):
    opportunities: List[IntentResponse]
    offers: List[OfferResponse]
    stats: SupplierStatsResponse
    refreshed_at: datetime
    refresh_interval_seconds: float


class AddressResponse(BaseModel):
    postal_code: str
    street: str
    neighborhood: str
    city: str
    state: str


class PriceSourceResponse(BaseModel):
    title: str
    uri: str


class PriceInsightResponse(BaseModel):
    product: str
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    analysis: str = ""
    sources: List[PriceSourceResponse] = []


@router.get("/dashboard/buyer", response_model=BuyerDashboardResponse)
def get_buyer_dashboard(
    include_rejected: bool = Query(False),
    buyer: UserAccount = Depends(current_buyer),
    db: Session = Depends(db_session),
):
    dashboard = buyer_dashboard(db, buyer, include_rejected=include_rejected)
    return BuyerDashboardResponse(
        intents=[
            IntentWithOffersResponse(
                intent=IntentResponse.model_validate(row.intent),
                offers=[offer_view(offer, buyer) for offer in row.offers],
            )
            for row in dashboard.intents
        ],
        refreshed_at=dashboard.refreshed_at,
        refresh_interval_seconds=REFRESH_INTERVAL_SECONDS,
    )


@router.get("/dashboard/supplier", response_model=SupplierDashboardResponse)
def get_supplier_dashboard(
    q: Optional[str] = Query(None),
    type: str = Query(ALL),
    condition: str = Query(ALL),
    min_budget: Optional[str] = Query(None),
    max_budget: Optional[str] = Query(None),
    sort: SortKey = Query(SortKey.NEWEST),
    supplier: UserAccount = Depends(current_supplier),
    db: Session = Depends(db_session),
):
    dashboard = supplier_dashboard(
        db, supplier, query=q, type=type, condition=condition,
        min_budget=min_budget, max_budget=max_budget, sort_key=sort,
    )
    return SupplierDashboardResponse(
        opportunities=[IntentResponse.model_validate(intent) for intent in dashboard.opportunities],
        offers=[offer_view(offer, supplier) for offer in dashboard.offers],
        stats=SupplierStatsResponse(
            offers_by_status=dashboard.stats.offers_by_status,
            confirmed_sales=dashboard.stats.confirmed_sales,
            opportunities=dashboard.stats.opportunities,
        ),
        refreshed_at=dashboard.refreshed_at,
        refresh_interval_seconds=REFRESH_INTERVAL_SECONDS,
    )


@router.get("/address/{postal_code}", response_model=AddressResponse)
def get_address(postal_code: str):
    result = lookup_address(postal_code)
    if result is None:
        raise HTTPException(status_code=404, detail="Postal code not found")
    return AddressResponse(**result.to_dict())


@router.get("/price-insight", response_model=PriceInsightResponse)
def get_price(product: str = Query(..., min_length=1)):
    """Best-effort market price range; 404 when no insight could be produced."""
    insight = get_price_insight(product)
    if insight is None:
        raise HTTPException(status_code=404, detail="No price insight available")
    return PriceInsightResponse(**asdict(insight))
