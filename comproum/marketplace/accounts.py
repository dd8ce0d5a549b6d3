"""
Registration, login and profile editing.

Every check runs before anything is written; all problems found are reported
together so the form can show them at once.
"""

import logging
import re
from typing import List, Optional, Tuple

import bcrypt
from sqlalchemy.orm import Session

from comproum.config import BCRYPT_ROUNDS
from comproum.marketplace.domain import BUSINESS_CATEGORIES, PaymentMethodType, UserRole
from comproum.marketplace.errors import AuthenticationFailed, ValidationFailed
from database import crud
from database.models import UserAccount

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8
REQUIRED_ADDRESS_FIELDS = ("street", "number", "city", "state", "zip")
ADDRESS_FIELDS = ("street", "number", "complement", "neighborhood", "city", "state", "zip")


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


def password_problems(password: str) -> List[str]:
    """Reasons a credential is too weak (empty list when acceptable)."""
    problems = []
    if len(password or "") < MIN_PASSWORD_LENGTH:
        problems.append(f"Password must have at least {MIN_PASSWORD_LENGTH} characters")
    if not re.search(r"[A-Za-z]", password or ""):
        problems.append("Password must contain a letter")
    if not re.search(r"\d", password or ""):
        problems.append("Password must contain a digit")
    return problems


def clean_address(address: Optional[dict]) -> dict:
    address = address or {}
    cleaned = {name: (address.get(name) or "").strip() for name in ADDRESS_FIELDS}
    cleaned["zip"] = re.sub(r"\D", "", cleaned["zip"])
    return cleaned


def address_problems(address: Optional[dict], label: str) -> List[str]:
    if not address:
        return [f"{label} is required"]
    return [f"{label}: {name} is required" for name in REQUIRED_ADDRESS_FIELDS if not (address.get(name) or "").strip()]


def segment_problems(segments: Optional[List[str]]) -> List[str]:
    if not segments:
        return ["Select at least one business segment"]
    unknown = [s for s in segments if s not in BUSINESS_CATEGORIES]
    if unknown:
        return [f"Unknown business segment(s): {', '.join(unknown)}"]
    return []


def payment_method_problems(payment_method: Optional[dict]) -> List[str]:
    if not payment_method:
        return []
    try:
        PaymentMethodType(payment_method.get("type"))
    except ValueError:
        return [f"Unknown payment method type: {payment_method.get('type')}"]
    return []


def _dedupe(segments: List[str]) -> List[str]:
    seen = []
    for segment in segments:
        if segment not in seen:
            seen.append(segment)
    return seen


def register_user(db: Session, data: dict) -> UserAccount:
    """
    Create a buyer or supplier account.

    Args:
        db: Database session
        data: name, username, password, email, phone, document, role,
            registration_address, and optionally delivery_address,
            use_same_address, payment_method, quick_payment_enabled,
            business_segments

    Returns:
        Created UserAccount

    Raises:
        ValidationFailed: listing every problem found; nothing is stored
    """
    errors = []
    for field_name in ("name", "username", "email", "phone", "document"):
        if not (data.get(field_name) or "").strip():
            errors.append(f"{field_name} is required")

    try:
        role = UserRole(data.get("role"))
    except ValueError:
        role = None
        errors.append("role must be BUYER or SUPPLIER")

    errors.extend(password_problems(data.get("password") or ""))
    errors.extend(address_problems(data.get("registration_address"), "registration_address"))

    username = (data.get("username") or "").strip()
    if username and crud.find_user_by_username(db, username):
        errors.append("Username is already taken")
    if data.get("email") and crud.find_user_by_email(db, data["email"]):
        errors.append("E-mail is already registered")
    if data.get("document") and crud.find_user_by_document(db, data["document"]):
        errors.append("Document is already registered")
    elif data.get("document") and not crud.normalize_document(data["document"]):
        errors.append("Document must contain digits")

    registration_address = clean_address(data.get("registration_address"))
    delivery_address = None
    payment_method = None
    segments: List[str] = []

    if role == UserRole.SUPPLIER:
        segments = _dedupe(list(data.get("business_segments") or []))
        errors.extend(segment_problems(segments))
    elif role == UserRole.BUYER:
        if data.get("use_same_address", True) or not data.get("delivery_address"):
            delivery_address = dict(registration_address)
        else:
            errors.extend(address_problems(data.get("delivery_address"), "delivery_address"))
            delivery_address = clean_address(data.get("delivery_address"))
        payment_method = data.get("payment_method")
        errors.extend(payment_method_problems(payment_method))

    if errors:
        raise ValidationFailed("Registration rejected", errors)

    user = crud.append_user(db, {
        "name": data["name"].strip(),
        "username": username,
        "password_hash": hash_password(data["password"]),
        "email": data["email"].strip(),
        "phone": data["phone"].strip(),
        "document": data["document"].strip(),
        "role": role,
        "registration_address": registration_address,
        "delivery_address": delivery_address,
        "payment_method": dict(payment_method) if payment_method else None,
        "quick_payment_enabled": bool(data.get("quick_payment_enabled")) if role == UserRole.BUYER else False,
        "business_segments": segments,
    })
    logger.info(f"Registered {role.value.lower()} {user.username} (id={user.id})")
    return user


def authenticate(db: Session, username: str, password: str) -> Optional[UserAccount]:
    """User for these credentials, or None."""
    user = crud.find_user_by_username(db, username)
    if user is None or not verify_password(password or "", user.password_hash):
        logger.info(f"Failed login for {username!r}")
        return None
    return user


def login(db: Session, username: str, password: str) -> Tuple[UserAccount, str]:
    """Open a session; returns the user and the session token."""
    user = authenticate(db, username, password)
    if user is None:
        raise AuthenticationFailed("Invalid username or password")
    token = crud.set_session(db, user)
    logger.info(f"Session opened for {user.username} (id={user.id})")
    return user, token


def update_profile(db: Session, user: UserAccount, changes: dict) -> UserAccount:
    """
    Owner edits of a profile. Role and username are fixed.

    Suppliers must keep at least one segment; buyers may change delivery
    address, payment method and the quick payment flag.
    """
    errors = []
    for field_name in ("name", "email", "phone", "document"):
        if field_name in changes and not (changes.get(field_name) or "").strip():
            errors.append(f"{field_name} cannot be empty")

    if changes.get("email"):
        other = crud.find_user_by_email(db, changes["email"])
        if other is not None and other.id != user.id:
            errors.append("E-mail is already registered")
    if changes.get("document"):
        other = crud.find_user_by_document(db, changes["document"])
        if other is not None and other.id != user.id:
            errors.append("Document is already registered")
        elif not crud.normalize_document(changes["document"]):
            errors.append("Document must contain digits")
    if "registration_address" in changes:
        errors.extend(address_problems(changes["registration_address"], "registration_address"))

    if user.role == UserRole.SUPPLIER:
        if "business_segments" in changes:
            errors.extend(segment_problems(changes["business_segments"]))
        for buyer_only in ("delivery_address", "payment_method"):
            if changes.get(buyer_only):
                errors.append(f"{buyer_only} applies to buyers only")
    else:
        if changes.get("business_segments"):
            errors.append("business_segments applies to suppliers only")
        if changes.get("delivery_address") is not None:
            errors.extend(address_problems(changes["delivery_address"], "delivery_address"))
        errors.extend(payment_method_problems(changes.get("payment_method")))

    if "password" in changes:
        errors.extend(password_problems(changes["password"] or ""))

    if errors:
        raise ValidationFailed("Profile update rejected", errors)

    for field_name in ("name", "email", "phone", "document"):
        if field_name in changes:
            setattr(user, field_name, changes[field_name].strip())
    if "registration_address" in changes:
        user.registration_address = clean_address(changes["registration_address"])
    if "password" in changes:
        user.password_hash = hash_password(changes["password"])

    if user.role == UserRole.SUPPLIER:
        if "business_segments" in changes:
            user.business_segments = _dedupe(list(changes["business_segments"]))
    else:
        if changes.get("delivery_address") is not None:
            user.delivery_address = clean_address(changes["delivery_address"])
        if "payment_method" in changes:
            method = changes["payment_method"]
            user.payment_method = dict(method) if method else None
        if "quick_payment_enabled" in changes:
            user.quick_payment_enabled = bool(changes["quick_payment_enabled"])

    user = crud.replace_user(db, user)
    logger.info(f"Profile updated for {user.username} (id={user.id})")
    return user
