"""
Reverse Marketplace API

Endpoints:
- POST /api/intents - Post an intent (buyers)
- GET /api/intents - List my intents (buyers)
- GET /api/intents/{intent_id} - Intent details
- GET /api/opportunities - Intents in my segments (suppliers)
- POST /api/intents/{intent_id}/offers - Submit offer (suppliers)
- GET /api/intents/{intent_id}/offers - View offers (buyer)
- GET /api/offers - List my offers (suppliers)
- POST /api/offers/{offer_id}/accept - Accept offer (buyer)
- POST /api/offers/{offer_id}/reject - Reject offer (buyer)
- POST /api/offers/{offer_id}/counter - Counter-propose a price (buyer)
- POST /api/offers/{offer_id}/repropose - Send new terms (supplier)
- POST /api/offers/{offer_id}/follow-up - Schedule a reminder (supplier)
- GET /api/offers/{offer_id}/history - Negotiation log (both parties)
"""

from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from comproum.marketplace import intents, negotiation
from comproum.marketplace.domain import (
    ALL, IntentStatus, IntentType, OfferStatus, ProductCondition, SortKey
)
from comproum.marketplace.matching import apply_filters, load_opportunities
from comproum.service.auth import current_buyer, current_supplier, current_user
from comproum.service.users_api import AddressIn, PaymentMethodIn
from database.connection import db_session
from database.models import Offer, UserAccount

router = APIRouter(prefix="/api", tags=["marketplace"])

# ============================================================================
# Pydantic Models (Request/Response Schemas)
# ============================================================================


class IntentCreate(BaseModel):
    """Request schema for posting an intent"""
    type: IntentType = IntentType.BUY
    category: str = Field(..., description="One of the business categories")
    product_name: str = Field(..., max_length=200)
    description: str = ""
    budget: float = Field(..., description="Maximum the buyer intends to pay")
    condition: ProductCondition = ProductCondition.BOTH


class IntentResponse(BaseModel):
    id: int
    user_id: int
    type: IntentType
    category: str
    product_name: str
    description: Optional[str] = ""
    budget: float
    condition: ProductCondition
    status: IntentStatus
    offers_count: int = 0
    created_at: datetime

    class Config:
        from_attributes = True


class OfferCreate(BaseModel):
    """Request schema for submitting an offer"""
    price: float
    valid_until: date
    description: str = ""
    images: List[str] = Field(default_factory=list, description="Image URLs")
    condition: Optional[ProductCondition] = Field(None, description="NEW or USED, for intents that accept both")
    payment_terms: Optional[str] = None


class Repropose(BaseModel):
    price: float
    valid_until: date
    description: Optional[str] = None
    images: Optional[List[str]] = None
    payment_terms: Optional[str] = None


class CounterRequest(BaseModel):
    counter_price: float
    feedback: Optional[str] = None


class RejectRequest(BaseModel):
    reason: Optional[str] = None


class AcceptRequest(BaseModel):
    """Optional overrides copied into the acceptance record"""
    delivery_address: Optional[AddressIn] = None
    payment_method: Optional[PaymentMethodIn] = None


class FollowUpRequest(BaseModel):
    hours: int = Field(..., gt=0, description="Remind me in this many hours")


class OfferResponse(BaseModel):
    id: int
    intent_id: int
    supplier_id: int
    supplier_name: str
    product_name: str
    price: float
    counter_price: Optional[float] = None
    condition: ProductCondition
    description: Optional[str] = ""
    images: List[str] = []
    payment_terms: Optional[str] = None
    status: OfferStatus
    valid_until: date
    follow_up_at: Optional[datetime] = None
    buyer_feedback: Optional[str] = None
    created_at: datetime
    actions: List[str] = []

    class Config:
        from_attributes = True


class AcceptanceResponse(BaseModel):
    id: int
    offer_id: int
    intent_id: int
    buyer_id: int
    accepted_price: float
    delivery_address: Optional[dict] = None
    payment_method: Optional[dict] = None
    quick_payment: bool = False
    accepted_at: datetime

    class Config:
        from_attributes = True


class OfferEventResponse(BaseModel):
    id: int
    actor_id: int
    action: str
    from_status: Optional[OfferStatus] = None
    to_status: OfferStatus
    price: Optional[float] = None
    counter_price: Optional[float] = None
    note: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


# ============================================================================
# Helper Functions
# ============================================================================

def offer_view(offer: Offer, viewer: UserAccount) -> OfferResponse:
    """Offer as seen by ``viewer``, with the actions open to them."""
    response = OfferResponse.model_validate(offer)
    response.actions = negotiation.available_actions(offer, viewer)
    return response


# ============================================================================
# Intents
# ============================================================================


@router.post("/intents", response_model=IntentResponse, status_code=201)
def create_intent(
    payload: IntentCreate,
    buyer: UserAccount = Depends(current_buyer),
    db: Session = Depends(db_session),
):
    return intents.create_intent(db, buyer, payload.model_dump())


@router.get("/intents", response_model=List[IntentResponse])
def list_my_intents(buyer: UserAccount = Depends(current_buyer), db: Session = Depends(db_session)):
    return intents.intents_for_buyer(db, buyer)


@router.get("/intents/{intent_id}", response_model=IntentResponse)
def get_intent(intent_id: int, user: UserAccount = Depends(current_user), db: Session = Depends(db_session)):
    return intents.get_intent_for(db, user, intent_id)


@router.get("/opportunities", response_model=List[IntentResponse])
def list_opportunities(
    q: Optional[str] = Query(None, description="Search product name and description"),
    type: str = Query(ALL, description="BUY, SELL, TRADE or ALL"),
    condition: str = Query(ALL, description="NEW, USED, BOTH or ALL"),
    min_budget: Optional[str] = Query(None),
    max_budget: Optional[str] = Query(None),
    sort: SortKey = Query(SortKey.NEWEST),
    supplier: UserAccount = Depends(current_supplier),
    db: Session = Depends(db_session),
):
    """
    Open intents in the supplier's segments, filtered and sorted.

    Unparsable budget bounds are ignored rather than rejected.
    """
    return apply_filters(
        load_opportunities(db, supplier),
        query=q, type=type, condition=condition,
        min_budget=min_budget, max_budget=max_budget, sort_key=sort,
    )


# ============================================================================
# Offers
# ============================================================================


@router.post("/intents/{intent_id}/offers", response_model=OfferResponse, status_code=201)
def submit_offer(
    intent_id: int,
    payload: OfferCreate,
    supplier: UserAccount = Depends(current_supplier),
    db: Session = Depends(db_session),
):
    offer = negotiation.propose_offer(
        db, supplier, intent_id,
        price=payload.price,
        valid_until=payload.valid_until,
        description=payload.description,
        images=payload.images,
        condition=payload.condition,
        payment_terms=payload.payment_terms,
    )
    return offer_view(offer, supplier)


@router.get("/intents/{intent_id}/offers", response_model=List[OfferResponse])
def list_intent_offers(
    intent_id: int,
    include_rejected: bool = Query(False, description="Also list rejected offers"),
    buyer: UserAccount = Depends(current_buyer),
    db: Session = Depends(db_session),
):
    offers = negotiation.offers_for_buyer(db, buyer, intent_id, include_rejected=include_rejected)
    return [offer_view(offer, buyer) for offer in offers]


@router.get("/offers", response_model=List[OfferResponse])
def list_my_offers(supplier: UserAccount = Depends(current_supplier), db: Session = Depends(db_session)):
    return [offer_view(offer, supplier) for offer in negotiation.offers_for_supplier(db, supplier)]


@router.post("/offers/{offer_id}/accept", response_model=AcceptanceResponse)
def accept_offer(
    offer_id: int,
    payload: Optional[AcceptRequest] = None,
    buyer: UserAccount = Depends(current_buyer),
    db: Session = Depends(db_session),
):
    payload = payload or AcceptRequest()
    return negotiation.accept_offer(
        db, buyer, offer_id,
        delivery_address=payload.delivery_address.model_dump(mode="json") if payload.delivery_address else None,
        payment_method=payload.payment_method.model_dump(mode="json") if payload.payment_method else None,
    )


@router.post("/offers/{offer_id}/reject", response_model=OfferResponse)
def reject_offer(
    offer_id: int,
    payload: Optional[RejectRequest] = None,
    buyer: UserAccount = Depends(current_buyer),
    db: Session = Depends(db_session),
):
    reason = payload.reason if payload else None
    return offer_view(negotiation.reject_offer(db, buyer, offer_id, reason), buyer)


@router.post("/offers/{offer_id}/counter", response_model=OfferResponse)
def counter_offer(
    offer_id: int,
    payload: CounterRequest,
    buyer: UserAccount = Depends(current_buyer),
    db: Session = Depends(db_session),
):
    offer = negotiation.counter_offer(db, buyer, offer_id, payload.counter_price, payload.feedback)
    return offer_view(offer, buyer)


@router.post("/offers/{offer_id}/repropose", response_model=OfferResponse)
def repropose_offer(
    offer_id: int,
    payload: Repropose,
    supplier: UserAccount = Depends(current_supplier),
    db: Session = Depends(db_session),
):
    offer = negotiation.repropose_offer(
        db, supplier, offer_id,
        price=payload.price,
        valid_until=payload.valid_until,
        description=payload.description,
        images=payload.images,
        payment_terms=payload.payment_terms,
    )
    return offer_view(offer, supplier)


@router.post("/offers/{offer_id}/follow-up", response_model=OfferResponse)
def follow_up(
    offer_id: int,
    payload: FollowUpRequest,
    supplier: UserAccount = Depends(current_supplier),
    db: Session = Depends(db_session),
):
    offer = negotiation.schedule_follow_up(db, supplier, offer_id, payload.hours)
    return offer_view(offer, supplier)


@router.get("/offers/{offer_id}/history", response_model=List[OfferEventResponse])
def offer_history(offer_id: int, user: UserAccount = Depends(current_user), db: Session = Depends(db_session)):
    return negotiation.offer_history(db, user, offer_id)
