"""
Posting and reading buyer intents.
"""

import logging
import math
from typing import List

from sqlalchemy.orm import Session

from comproum.marketplace import events
from comproum.marketplace.domain import (
    BUSINESS_CATEGORIES, IntentStatus, IntentType, ProductCondition, UserRole
)
from comproum.marketplace.errors import NotFound, PermissionDenied, ValidationFailed
from comproum.marketplace.matching import is_visible_to
from database import crud
from database.models import Intent, UserAccount

logger = logging.getLogger(__name__)


def create_intent(db: Session, buyer: UserAccount, data: dict) -> Intent:
    """
    Post a new OPEN intent for ``buyer``.

    Args:
        db: Database session
        buyer: Posting user (must be a BUYER)
        data: type, category, product_name, description, budget, condition

    Returns:
        Created Intent with offers_count 0
    """
    if buyer.role != UserRole.BUYER:
        raise PermissionDenied("Only buyers can post intents")

    errors = []
    if not (data.get("product_name") or "").strip():
        errors.append("product_name is required")
    if data.get("category") not in BUSINESS_CATEGORIES:
        errors.append("Select a category from the list")

    try:
        intent_type = IntentType(data.get("type") or IntentType.BUY)
    except ValueError:
        errors.append("type must be BUY, SELL or TRADE")
        intent_type = None
    try:
        condition = ProductCondition(data.get("condition") or ProductCondition.BOTH)
    except ValueError:
        errors.append("condition must be NEW, USED or BOTH")
        condition = None

    try:
        budget = float(data.get("budget"))
        if not math.isfinite(budget) or budget <= 0:
            errors.append("budget must be greater than zero")
    except (TypeError, ValueError):
        errors.append("budget must be a number")
        budget = None

    if errors:
        raise ValidationFailed("Intent rejected", errors)

    intent = crud.append_intent(db, {
        "user_id": buyer.id,
        "type": intent_type,
        "category": data["category"],
        "product_name": data["product_name"].strip(),
        "description": (data.get("description") or "").strip(),
        "budget": budget,
        "condition": condition,
        "status": IntentStatus.OPEN,
    })
    logger.info(f"Intent {intent.id} posted by buyer {buyer.id} in '{intent.category}' (budget {intent.budget})")
    events.bus.publish(events.segment_topic(intent.category), "intent_created", {"intent_id": intent.id})
    return intent


def intents_for_buyer(db: Session, buyer: UserAccount) -> List[Intent]:
    """The buyer's intents, newest first."""
    if buyer.role != UserRole.BUYER:
        raise PermissionDenied("Only buyers have intents")
    return sorted(crud.list_intents_by_user(db, buyer.id), key=lambda i: i.created_at, reverse=True)


def get_intent_for(db: Session, user: UserAccount, intent_id: int) -> Intent:
    """
    Intent detail. Owners always see their intent; suppliers while it is one
    of their opportunities or once they have an offer on it.
    """
    intent = crud.get_intent(db, intent_id)
    if intent is None:
        raise NotFound("Intent not found")
    if intent.user_id == user.id:
        return intent
    if user.role == UserRole.SUPPLIER:
        if is_visible_to(intent, user) or any(o.supplier_id == user.id for o in intent.offers):
            return intent
    raise NotFound("Intent not found")
