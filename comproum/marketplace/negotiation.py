"""
Offer Negotiation State Machine

Offer statuses and the actions that move between them:

    PENDING ──accept──▶ ACCEPTED            (no exits)
    PENDING ──reject──▶ REJECTED ──repropose──▶ PENDING
    PENDING ──counter─▶ COUNTER_OFFERED ──accept/reject/repropose──▶ ...

Buyers accept, reject and counter offers on their own intents; suppliers
propose, re-propose and schedule follow-ups on their own offers. A
re-proposal updates the same offer record rather than creating a new one.

Every operation checks its preconditions before touching the store, commits
one unit of work (offer, intent, history event, acceptance snapshot), then
publishes a change notification.
"""

import logging
import math
from datetime import date, datetime, timedelta
from typing import Dict, FrozenSet, List, Optional

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from comproum.marketplace import accounts, events
from comproum.marketplace.domain import (
    DEFAULT_PAYMENT_TERMS, IntentStatus, OfferAction, OfferStatus, ProductCondition, UserRole
)
from comproum.marketplace.errors import (
    ConcurrencyConflict, IllegalTransition, NotFound, PermissionDenied, ValidationFailed
)
from comproum.marketplace.matching import is_visible_to
from database import crud
from database.models import Intent, Offer, OfferAcceptance, OfferEvent, UserAccount

logger = logging.getLogger(__name__)

PROPOSE = "PROPOSE"

# action -> {from status: to status}; pairs missing here are illegal
TRANSITIONS: Dict[OfferAction, Dict[OfferStatus, OfferStatus]] = {
    OfferAction.ACCEPT: {
        OfferStatus.PENDING: OfferStatus.ACCEPTED,
        OfferStatus.COUNTER_OFFERED: OfferStatus.ACCEPTED,
    },
    OfferAction.REJECT: {
        OfferStatus.PENDING: OfferStatus.REJECTED,
        OfferStatus.COUNTER_OFFERED: OfferStatus.REJECTED,
    },
    OfferAction.COUNTER: {
        OfferStatus.PENDING: OfferStatus.COUNTER_OFFERED,
    },
    OfferAction.REPROPOSE: {
        OfferStatus.REJECTED: OfferStatus.PENDING,
        OfferStatus.COUNTER_OFFERED: OfferStatus.PENDING,
    },
}

BUYER_ACTIONS = frozenset({OfferAction.ACCEPT, OfferAction.REJECT, OfferAction.COUNTER})
SUPPLIER_ACTIONS = frozenset({OfferAction.REPROPOSE})


def allowed_actions(status: OfferStatus) -> FrozenSet[OfferAction]:
    """Actions legal from ``status``."""
    return frozenset(action for action, edges in TRANSITIONS.items() if OfferStatus(status) in edges)


def next_status(status: OfferStatus, action: OfferAction) -> OfferStatus:
    """Target status of ``action`` from ``status``; raises IllegalTransition otherwise."""
    status, action = OfferStatus(status), OfferAction(action)
    try:
        return TRANSITIONS[action][status]
    except KeyError:
        raise IllegalTransition(
            f"Cannot {action.value.lower()} an offer that is {status.value}"
        )


def resolve_condition(intent_condition: ProductCondition,
                      requested: Optional[ProductCondition] = None) -> ProductCondition:
    """
    Condition a supplier commits to.

    BOTH intents let the supplier pick NEW or USED (NEW by default); other
    intents dictate the condition. An offer is never BOTH.
    """
    intent_condition = ProductCondition(intent_condition)
    requested = ProductCondition(requested) if requested else None

    if requested == ProductCondition.BOTH:
        raise ValidationFailed("An offer must commit to NEW or USED, not BOTH")
    if intent_condition == ProductCondition.BOTH:
        return requested or ProductCondition.NEW
    if requested and requested != intent_condition:
        raise ValidationFailed(
            f"This intent asks for {intent_condition.value} products, not {requested.value}"
        )
    return intent_condition


def _require_price(value, field_name: str = "price") -> float:
    try:
        price = float(value)
    except (TypeError, ValueError):
        raise ValidationFailed(f"{field_name} must be a number")
    if not math.isfinite(price) or price <= 0:
        raise ValidationFailed(f"{field_name} must be greater than zero")
    return price


def _require_valid_until(value) -> date:
    if value is None:
        raise ValidationFailed("valid_until is required")
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValidationFailed("valid_until must be an ISO date (YYYY-MM-DD)")


def _load_offer(db: Session, offer_id: int) -> Offer:
    offer = crud.get_offer(db, offer_id)
    if offer is None:
        raise NotFound("Offer not found")
    return offer


def _load_intent(db: Session, intent_id: int) -> Intent:
    intent = crud.get_intent(db, intent_id)
    if intent is None:
        raise NotFound("Intent not found")
    return intent


def _require_intent_owner(buyer: UserAccount, intent: Intent):
    if buyer.role != UserRole.BUYER or intent.user_id != buyer.id:
        raise PermissionDenied("Only the buyer who posted this intent can do that")


def _require_offer_owner(supplier: UserAccount, offer: Offer):
    if supplier.role != UserRole.SUPPLIER or offer.supplier_id != supplier.id:
        raise PermissionDenied("Only the supplier who made this offer can do that")


def _require_open(intent: Intent):
    if intent.status != IntentStatus.OPEN:
        raise IllegalTransition(f"Intent is {intent.status.value}, not open for negotiation")


def _event(actor: UserAccount, action: str, from_status, to_status, offer: Offer, note=None) -> dict:
    return {
        "actor_id": actor.id,
        "action": action,
        "from_status": from_status,
        "to_status": to_status,
        "price": offer.price,
        "counter_price": offer.counter_price,
        "note": note,
    }


def _commit(db: Session):
    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        raise ConcurrencyConflict("The record was changed by someone else; reload and try again")


# ============================================================================
# Supplier actions
# ============================================================================

def propose_offer(
    db: Session,
    supplier: UserAccount,
    intent_id: int,
    price,
    valid_until,
    description: str = "",
    images: Optional[List[str]] = None,
    condition: Optional[ProductCondition] = None,
    payment_terms: Optional[str] = None,
) -> Offer:
    """
    Submit a new offer against an open intent.

    Preconditions:
    - supplier has the SUPPLIER role and at least one business segment
    - intent exists, is OPEN, is not the supplier's own, and its category is
      one of the supplier's segments

    The new offer is PENDING and the intent's offers_count grows by one in the
    same commit.
    """
    if supplier.role != UserRole.SUPPLIER:
        raise PermissionDenied("Only suppliers can submit offers")
    if not supplier.business_segments:
        raise ValidationFailed("Select at least one business segment before submitting offers")

    intent = _load_intent(db, intent_id)
    if intent.user_id == supplier.id:
        raise PermissionDenied("You cannot make an offer on your own intent")
    _require_open(intent)
    if not is_visible_to(intent, supplier):
        raise PermissionDenied(f"Category '{intent.category}' is not one of your segments")

    offer_data = {
        "intent_id": intent.id,
        "supplier_id": supplier.id,
        "supplier_name": supplier.name,
        "product_name": intent.product_name,
        "price": _require_price(price),
        "condition": resolve_condition(intent.condition, condition),
        "description": description or "",
        "images": list(images or []),
        "payment_terms": payment_terms or DEFAULT_PAYMENT_TERMS,
        "status": OfferStatus.PENDING,
        "valid_until": _require_valid_until(valid_until),
    }
    event_data = {
        "actor_id": supplier.id,
        "action": PROPOSE,
        "from_status": None,
        "to_status": OfferStatus.PENDING,
        "price": offer_data["price"],
        "counter_price": None,
        "note": None,
    }

    try:
        offer = crud.append_offer(db, offer_data, event_data)
    except StaleDataError:
        db.rollback()
        raise ConcurrencyConflict("The intent was changed by someone else; reload and try again")

    logger.info(f"Offer {offer.id} proposed on intent {intent.id} by supplier {supplier.id} at {offer.price}")
    events.bus.publish(events.intent_topic(intent.id), "offer_proposed",
                       {"offer_id": offer.id, "intent_id": intent.id})
    return offer


def repropose_offer(
    db: Session,
    supplier: UserAccount,
    offer_id: int,
    price,
    valid_until,
    description: Optional[str] = None,
    images: Optional[List[str]] = None,
    payment_terms: Optional[str] = None,
) -> Offer:
    """
    Send updated terms on a REJECTED or COUNTER_OFFERED offer.

    The same offer record returns to PENDING with the new price, validity and
    (when given) description, images and payment terms. The finished round's
    counter price and feedback are cleared from the offer and survive in its
    history. The intent's offers_count does not change.
    """
    offer = _load_offer(db, offer_id)
    _require_offer_owner(supplier, offer)
    target = next_status(offer.status, OfferAction.REPROPOSE)
    _require_open(offer.intent)

    new_price = _require_price(price)
    new_valid_until = _require_valid_until(valid_until)

    previous = offer.status
    offer.price = new_price
    offer.valid_until = new_valid_until
    if description is not None:
        offer.description = description
    if images is not None:
        offer.images = list(images)
    if payment_terms is not None:
        offer.payment_terms = payment_terms
    offer.counter_price = None
    offer.buyer_feedback = None
    offer.status = target

    db.add(OfferEvent(offer_id=offer.id, **_event(supplier, OfferAction.REPROPOSE.value, previous, target, offer)))
    _commit(db)
    db.refresh(offer)

    logger.info(f"Offer {offer.id} re-proposed by supplier {supplier.id} at {offer.price} (was {previous.value})")
    events.bus.publish(events.intent_topic(offer.intent_id), "offer_reproposed",
                       {"offer_id": offer.id, "intent_id": offer.intent_id})
    return offer


def schedule_follow_up(db: Session, supplier: UserAccount, offer_id: int, hours: int) -> Offer:
    """Record a reminder time ``hours`` from now. Nothing fires on it."""
    offer = _load_offer(db, offer_id)
    _require_offer_owner(supplier, offer)
    if hours is None or int(hours) <= 0:
        raise ValidationFailed("hours must be a positive number")

    offer.follow_up_at = datetime.utcnow() + timedelta(hours=int(hours))
    _commit(db)
    db.refresh(offer)
    logger.info(f"Follow-up for offer {offer.id} scheduled at {offer.follow_up_at.isoformat()}")
    return offer


# ============================================================================
# Buyer actions
# ============================================================================

def _buyer_transition(db: Session, buyer: UserAccount, offer_id: int, action: OfferAction):
    offer = _load_offer(db, offer_id)
    intent = offer.intent
    _require_intent_owner(buyer, intent)
    target = next_status(offer.status, action)
    return offer, intent, target


def accept_offer(
    db: Session,
    buyer: UserAccount,
    offer_id: int,
    delivery_address: Optional[dict] = None,
    payment_method: Optional[dict] = None,
) -> OfferAcceptance:
    """
    Accept a PENDING or COUNTER_OFFERED offer.

    The offer becomes ACCEPTED and its intent CLOSED. The buyer's delivery
    address and payment method are copied into an acceptance record; a
    delivery address passed here also replaces the buyer's stored one.
    Accepting from COUNTER_OFFERED settles at the supplier's price.
    """
    offer, intent, target = _buyer_transition(db, buyer, offer_id, OfferAction.ACCEPT)
    _require_open(intent)

    problems = []
    if delivery_address is not None:
        problems.extend(accounts.address_problems(delivery_address, "delivery_address"))
    if payment_method is not None:
        if not payment_method.get("type"):
            problems.append("payment_method: type is required")
        else:
            problems.extend(accounts.payment_method_problems(payment_method))
    if problems:
        raise ValidationFailed("Acceptance rejected", problems)

    if delivery_address is not None:
        buyer.delivery_address = accounts.clean_address(delivery_address)
    if payment_method is not None:
        buyer.payment_method = dict(payment_method)

    previous = offer.status
    offer.status = target
    intent.status = IntentStatus.CLOSED

    acceptance = OfferAcceptance(
        offer_id=offer.id,
        intent_id=intent.id,
        buyer_id=buyer.id,
        accepted_price=offer.price,
        delivery_address=dict(buyer.delivery_address or buyer.registration_address or {}),
        payment_method=dict(buyer.payment_method) if buyer.payment_method else None,
        quick_payment=bool(buyer.quick_payment_enabled),
        accepted_at=datetime.utcnow(),
    )
    db.add(acceptance)
    db.add(OfferEvent(offer_id=offer.id, **_event(buyer, OfferAction.ACCEPT.value, previous, target, offer)))
    _commit(db)
    db.refresh(acceptance)

    logger.info(f"Offer {offer.id} accepted by buyer {buyer.id} at {offer.price}; intent {intent.id} closed")
    events.bus.publish(events.supplier_topic(offer.supplier_id), "offer_accepted",
                       {"offer_id": offer.id, "intent_id": intent.id})
    events.bus.publish(events.segment_topic(intent.category), "intent_closed", {"intent_id": intent.id})
    return acceptance


def reject_offer(db: Session, buyer: UserAccount, offer_id: int, reason: Optional[str] = None) -> Offer:
    """Reject a PENDING or COUNTER_OFFERED offer. The record stays; its supplier may re-propose."""
    offer, intent, target = _buyer_transition(db, buyer, offer_id, OfferAction.REJECT)

    previous = offer.status
    offer.status = target
    db.add(OfferEvent(offer_id=offer.id, **_event(buyer, OfferAction.REJECT.value, previous, target, offer, reason)))
    _commit(db)
    db.refresh(offer)

    logger.info(f"Offer {offer.id} rejected by buyer {buyer.id}")
    events.bus.publish(events.supplier_topic(offer.supplier_id), "offer_rejected",
                       {"offer_id": offer.id, "intent_id": intent.id})
    return offer


def counter_offer(
    db: Session,
    buyer: UserAccount,
    offer_id: int,
    counter_price,
    feedback: Optional[str] = None,
) -> Offer:
    """Propose a different price on a PENDING offer. The supplier's price is kept for comparison."""
    offer, intent, target = _buyer_transition(db, buyer, offer_id, OfferAction.COUNTER)
    _require_open(intent)
    new_counter = _require_price(counter_price, "counter_price")

    previous = offer.status
    offer.counter_price = new_counter
    offer.buyer_feedback = feedback or None
    offer.status = target
    db.add(OfferEvent(offer_id=offer.id, **_event(buyer, OfferAction.COUNTER.value, previous, target, offer, feedback)))
    _commit(db)
    db.refresh(offer)

    logger.info(f"Offer {offer.id} countered by buyer {buyer.id}: {offer.price} -> {offer.counter_price}")
    events.bus.publish(events.supplier_topic(offer.supplier_id), "offer_countered",
                       {"offer_id": offer.id, "intent_id": intent.id, "counter_price": new_counter})
    return offer


# ============================================================================
# Views
# ============================================================================

def offers_for_buyer(db: Session, buyer: UserAccount, intent_id: int, include_rejected: bool = False) -> List[Offer]:
    """Offers on the buyer's intent; REJECTED ones are hidden unless asked for."""
    intent = _load_intent(db, intent_id)
    _require_intent_owner(buyer, intent)
    offers = crud.list_offers_by_intent(db, intent.id)
    if include_rejected:
        return offers
    return [offer for offer in offers if offer.status != OfferStatus.REJECTED]


def offers_for_supplier(db: Session, supplier: UserAccount) -> List[Offer]:
    """Every offer the supplier made, newest first, rejected ones included."""
    if supplier.role != UserRole.SUPPLIER:
        raise PermissionDenied("Only suppliers have offers")
    return crud.list_offers_by_supplier(db, supplier.id)


def offer_history(db: Session, user: UserAccount, offer_id: int) -> List[OfferEvent]:
    """Negotiation log, visible to the offer's supplier and the intent's buyer."""
    offer = _load_offer(db, offer_id)
    if user.id not in (offer.supplier_id, offer.intent.user_id):
        raise PermissionDenied("Not a party to this negotiation")
    return crud.list_offer_events(db, offer.id)


def available_actions(offer: Offer, viewer: UserAccount) -> List[str]:
    """Actions ``viewer`` could take on ``offer`` right now (drives the action buttons)."""
    legal = allowed_actions(offer.status)
    if viewer.id == offer.supplier_id:
        legal &= SUPPLIER_ACTIONS
    elif viewer.id == offer.intent.user_id:
        legal &= BUYER_ACTIONS
    else:
        return []
    if offer.intent.status != IntentStatus.OPEN:
        legal -= {OfferAction.ACCEPT, OfferAction.COUNTER, OfferAction.REPROPOSE}
    return sorted(action.value for action in legal)
