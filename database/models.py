"""
SQLAlchemy models for the Comproum marketplace
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Float, Date, DateTime, ForeignKey, Text, JSON, Boolean, Enum
from sqlalchemy.orm import declarative_base, relationship

from comproum.marketplace.domain import (
    UserRole, IntentType, ProductCondition, IntentStatus, OfferStatus
)

Base = declarative_base()


def _enum_column(enum_cls, **kwargs):
    # Stored as VARCHAR so SQLite and Postgres behave the same
    return Column(Enum(enum_cls, native_enum=False, length=20, validate_strings=True), **kwargs)


class UserAccount(Base):
    """Buyers and suppliers registered on the marketplace"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)
    username = Column(String(100), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)  # bcrypt
    email = Column(String(200), nullable=False, index=True)
    phone = Column(String(30), nullable=False)

    # Document as typed by the user, plus its digits for duplicate detection
    document = Column(String(30), nullable=False)
    document_digits = Column(String(30), unique=True, nullable=False, index=True)

    role = _enum_column(UserRole, nullable=False, index=True)

    registration_address = Column(JSON, nullable=False)
    delivery_address = Column(JSON)    # Buyers only
    payment_method = Column(JSON)      # {"type": "PIX", "details": "..."}, buyers only
    quick_payment_enabled = Column(Boolean, default=False)
    business_segments = Column(JSON, default=list)  # Suppliers only

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    intents = relationship("Intent", back_populates="owner")
    offers = relationship("Offer", back_populates="supplier")
    sessions = relationship("UserSession", back_populates="user")


class Intent(Base):
    """Buyer requests to buy, sell or trade a product at a target budget"""
    __tablename__ = "intents"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    type = _enum_column(IntentType, nullable=False)
    category = Column(String(100), nullable=False, index=True)
    product_name = Column(String(200), nullable=False)
    description = Column(Text, default="")
    budget = Column(Float, nullable=False)
    condition = _enum_column(ProductCondition, nullable=False, default=ProductCondition.BOTH)

    status = _enum_column(IntentStatus, nullable=False, default=IntentStatus.OPEN, index=True)
    offers_count = Column(Integer, nullable=False, default=0)  # Kept in step with appended offers

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    # Relationships
    owner = relationship("UserAccount", back_populates="intents")
    offers = relationship("Offer", back_populates="intent", order_by="Offer.id")


class Offer(Base):
    """Supplier proposals against an intent"""
    __tablename__ = "offers"

    id = Column(Integer, primary_key=True)
    intent_id = Column(Integer, ForeignKey("intents.id"), nullable=False, index=True)
    supplier_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Snapshots taken at proposal time
    supplier_name = Column(String(200), nullable=False)
    product_name = Column(String(200), nullable=False)

    price = Column(Float, nullable=False)
    counter_price = Column(Float)      # Set by the buyer on a counter-proposal
    condition = _enum_column(ProductCondition, nullable=False)  # NEW or USED, never BOTH
    description = Column(Text, default="")
    images = Column(JSON, default=list)
    payment_terms = Column(Text)

    status = _enum_column(OfferStatus, nullable=False, default=OfferStatus.PENDING, index=True)
    valid_until = Column(Date, nullable=False)
    follow_up_at = Column(DateTime)
    buyer_feedback = Column(Text)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    # Relationships
    intent = relationship("Intent", back_populates="offers")
    supplier = relationship("UserAccount", back_populates="offers")
    events = relationship("OfferEvent", back_populates="offer", order_by="OfferEvent.id")
    acceptance = relationship("OfferAcceptance", back_populates="offer", uselist=False)


class OfferEvent(Base):
    """Negotiation history: one row per proposal or status transition"""
    __tablename__ = "offer_events"

    id = Column(Integer, primary_key=True)
    offer_id = Column(Integer, ForeignKey("offers.id"), nullable=False, index=True)
    actor_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    action = Column(String(20), nullable=False)  # PROPOSE or an OfferAction value
    from_status = _enum_column(OfferStatus)      # NULL for the initial proposal
    to_status = _enum_column(OfferStatus, nullable=False)

    # Terms at the time of the event
    price = Column(Float)
    counter_price = Column(Float)
    note = Column(Text)

    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    offer = relationship("Offer", back_populates="events")


class OfferAcceptance(Base):
    """Checkout snapshot captured when a buyer accepts an offer"""
    __tablename__ = "offer_acceptances"

    id = Column(Integer, primary_key=True)
    offer_id = Column(Integer, ForeignKey("offers.id"), unique=True, nullable=False, index=True)
    intent_id = Column(Integer, ForeignKey("intents.id"), nullable=False, index=True)
    buyer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    accepted_price = Column(Float, nullable=False)
    delivery_address = Column(JSON)   # Copied by value
    payment_method = Column(JSON)     # Copied by value
    quick_payment = Column(Boolean, default=False)

    accepted_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    offer = relationship("Offer", back_populates="acceptance")


class UserSession(Base):
    """Opaque session tokens handed to API clients at login"""
    __tablename__ = "user_sessions"

    token = Column(String(64), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    expires_at = Column(DateTime, nullable=False)

    # Relationships
    user = relationship("UserAccount", back_populates="sessions")


def init_database(bind=None):
    """Create all tables."""
    if bind is None:
        from database.connection import engine as bind
    Base.metadata.create_all(bind)
