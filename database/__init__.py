"""
Database package for the Comproum marketplace
"""

from .models import Base, UserAccount, Intent, Offer, OfferEvent, OfferAcceptance, UserSession, init_database
from .connection import db_session, engine, SessionLocal
from .crud import (
    normalize_document,
    list_users,
    get_user,
    append_user,
    replace_user,
    find_user_by_username,
    find_user_by_email,
    find_user_by_document,
    list_intents,
    list_intents_by_user,
    get_intent,
    append_intent,
    list_offers,
    list_offers_by_intent,
    list_offers_by_supplier,
    get_offer,
    count_offers_for_intent,
    append_offer,
    replace_offer,
    list_offer_events,
    get_acceptance,
    set_session,
    get_session,
    clear_session,
)

__all__ = [
    "Base",
    "UserAccount",
    "Intent",
    "Offer",
    "OfferEvent",
    "OfferAcceptance",
    "UserSession",
    "init_database",
    "db_session",
    "engine",
    "SessionLocal",
    "normalize_document",
    "list_users",
    "get_user",
    "append_user",
    "replace_user",
    "find_user_by_username",
    "find_user_by_email",
    "find_user_by_document",
    "list_intents",
    "list_intents_by_user",
    "get_intent",
    "append_intent",
    "list_offers",
    "list_offers_by_intent",
    "list_offers_by_supplier",
    "get_offer",
    "count_offers_for_intent",
    "append_offer",
    "replace_offer",
    "list_offer_events",
    "get_acceptance",
    "set_session",
    "get_session",
    "clear_session",
]
