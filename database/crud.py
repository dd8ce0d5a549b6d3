"""
CRUD operations for the Comproum marketplace

Each function works on one record at a time inside the caller's session and
commits its own unit of work. Offer insertion and the owning intent's counter
update commit together.
"""

import logging
import re
import secrets
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, OperationalError, ProgrammingError
from sqlalchemy.orm import Session

from database.models import UserAccount, Intent, Offer, OfferEvent, OfferAcceptance, UserSession
from comproum.config import SESSION_TTL_HOURS
from comproum.marketplace.errors import ValidationFailed

logger = logging.getLogger(__name__)


def normalize_document(document: str) -> str:
    """Keep only the digits of a tax document ("123.456.789-00" -> "12345678900")."""
    return re.sub(r"\D", "", document or "")


def _all_or_empty(db: Session, query, collection: str) -> list:
    """Run a list query; an absent or unreadable store reads as empty."""
    try:
        return query.all()
    except (OperationalError, ProgrammingError) as e:
        db.rollback()
        logger.warning(f"Store unavailable while listing {collection}, returning empty: {e}")
        return []


# Users

def _commit_user(db: Session, user: UserAccount):
    """Commit a user write; a unique-key clash lost to a concurrent writer is a validation error."""
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"User write for {user.username!r} hit a unique constraint: {e.orig}")
        raise ValidationFailed("Username, e-mail or document is already registered")


def list_users(db: Session) -> List[UserAccount]:
    return _all_or_empty(db, db.query(UserAccount).order_by(UserAccount.id), "users")


def get_user(db: Session, user_id: int) -> Optional[UserAccount]:
    return db.query(UserAccount).filter(UserAccount.id == user_id).first()


def append_user(db: Session, user_data: dict) -> UserAccount:
    """Create new user. ``document_digits`` is derived here."""
    user = UserAccount(**user_data)
    user.document_digits = normalize_document(user.document)
    db.add(user)
    _commit_user(db, user)
    db.refresh(user)
    return user


def replace_user(db: Session, user: UserAccount) -> UserAccount:
    """Persist an edited user (matched by id)."""
    user.document_digits = normalize_document(user.document)
    user = db.merge(user)
    _commit_user(db, user)
    db.refresh(user)
    return user


def find_user_by_username(db: Session, username: str) -> Optional[UserAccount]:
    """Case-insensitive username lookup."""
    return db.query(UserAccount)\
        .filter(func.lower(UserAccount.username) == (username or "").strip().lower())\
        .first()


def find_user_by_email(db: Session, email: str) -> Optional[UserAccount]:
    """Case-insensitive e-mail lookup."""
    return db.query(UserAccount)\
        .filter(func.lower(UserAccount.email) == (email or "").strip().lower())\
        .first()


def find_user_by_document(db: Session, document: str) -> Optional[UserAccount]:
    """Lookup by document digits, ignoring dots, dashes and slashes."""
    digits = normalize_document(document)
    if not digits:
        return None
    return db.query(UserAccount).filter(UserAccount.document_digits == digits).first()


# Intents

def list_intents(db: Session) -> List[Intent]:
    return _all_or_empty(db, db.query(Intent).order_by(Intent.id), "intents")


def list_intents_by_user(db: Session, user_id: int) -> List[Intent]:
    query = db.query(Intent).filter(Intent.user_id == user_id).order_by(Intent.id)
    return _all_or_empty(db, query, "intents")


def get_intent(db: Session, intent_id: int) -> Optional[Intent]:
    return db.query(Intent).filter(Intent.id == intent_id).first()


def append_intent(db: Session, intent_data: dict) -> Intent:
    """Create new intent with a zero offer counter."""
    intent = Intent(**intent_data)
    intent.offers_count = 0
    db.add(intent)
    db.commit()
    db.refresh(intent)
    return intent


# Offers

def list_offers(db: Session) -> List[Offer]:
    return _all_or_empty(db, db.query(Offer).order_by(Offer.id), "offers")


def list_offers_by_intent(db: Session, intent_id: int) -> List[Offer]:
    query = db.query(Offer).filter(Offer.intent_id == intent_id).order_by(Offer.id)
    return _all_or_empty(db, query, "offers")


def list_offers_by_supplier(db: Session, supplier_id: int) -> List[Offer]:
    query = db.query(Offer).filter(Offer.supplier_id == supplier_id).order_by(Offer.id.desc())
    return _all_or_empty(db, query, "offers")


def get_offer(db: Session, offer_id: int) -> Optional[Offer]:
    return db.query(Offer).filter(Offer.id == offer_id).first()


def count_offers_for_intent(db: Session, intent_id: int) -> int:
    """Derived offer count, for checking the denormalized counter."""
    return db.query(func.count(Offer.id)).filter(Offer.intent_id == intent_id).scalar() or 0


def append_offer(db: Session, offer_data: dict, event_data: Optional[dict] = None) -> Offer:
    """
    Create new offer and bump the owning intent's offers_count.

    Both writes (and the optional history event) share one commit.

    Args:
        db: Database session
        offer_data: Offer columns
        event_data: Optional OfferEvent columns (offer_id is filled in)

    Returns:
        Created Offer
    """
    offer = Offer(**offer_data)
    db.add(offer)

    intent = db.query(Intent).filter(Intent.id == offer.intent_id).first()
    if intent is not None:
        intent.offers_count = (intent.offers_count or 0) + 1

    if event_data is not None:
        db.flush()
        db.add(OfferEvent(offer_id=offer.id, **event_data))

    db.commit()
    db.refresh(offer)
    return offer


def replace_offer(db: Session, offer: Offer, event_data: Optional[dict] = None) -> Offer:
    """Persist an edited offer (matched by id). Intent counters are untouched."""
    offer = db.merge(offer)
    if event_data is not None:
        db.add(OfferEvent(offer_id=offer.id, **event_data))
    db.commit()
    db.refresh(offer)
    return offer


def list_offer_events(db: Session, offer_id: int) -> List[OfferEvent]:
    return db.query(OfferEvent)\
        .filter(OfferEvent.offer_id == offer_id)\
        .order_by(OfferEvent.id)\
        .all()


def get_acceptance(db: Session, offer_id: int) -> Optional[OfferAcceptance]:
    return db.query(OfferAcceptance).filter(OfferAcceptance.offer_id == offer_id).first()


# Sessions

def set_session(db: Session, user: UserAccount, ttl_hours: int = SESSION_TTL_HOURS) -> str:
    """Open a session for ``user`` and return its token."""
    token = secrets.token_hex(32)
    db.add(UserSession(
        token=token,
        user_id=user.id,
        expires_at=datetime.utcnow() + timedelta(hours=ttl_hours)
    ))
    db.commit()
    return token


def get_session(db: Session, token: Optional[str]) -> Optional[UserAccount]:
    """Return the user behind a live token, or None."""
    if not token:
        return None
    session = db.query(UserSession).filter(UserSession.token == token).first()
    if session is None:
        return None
    if session.expires_at <= datetime.utcnow():
        db.delete(session)
        db.commit()
        return None
    return session.user


def clear_session(db: Session, token: Optional[str]) -> bool:
    """Close a session. Returns False when the token was unknown."""
    if not token:
        return False
    deleted = db.query(UserSession).filter(UserSession.token == token).delete()
    db.commit()
    return bool(deleted)
