"""
Session Token Authentication

Protected endpoints expect the token returned by ``POST /api/sessions`` in
the X-Session-Token header. The token resolves to the acting user; every
ownership check downstream is made against that user.
"""

from typing import Optional

from fastapi import Depends, HTTPException, Security
from fastapi.security.api_key import APIKeyHeader
from sqlalchemy.orm import Session

from comproum.marketplace.domain import UserRole
from database.connection import db_session
from database.crud import get_session
from database.models import UserAccount

SESSION_HEADER_NAME = "X-Session-Token"
_session_header = APIKeyHeader(name=SESSION_HEADER_NAME, auto_error=False)


def session_token(token: Optional[str] = Security(_session_header)) -> str:
    if not token:
        raise HTTPException(status_code=401, detail="Missing session token")
    return token


def current_user(
    token: str = Depends(session_token),
    db: Session = Depends(db_session),
) -> UserAccount:
    """
    Resolve the session token to its user.

    Raises:
        HTTPException: 401 if the token is unknown or expired
    """
    user = get_session(db, token)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid or expired session")
    return user


def current_buyer(user: UserAccount = Depends(current_user)) -> UserAccount:
    if user.role != UserRole.BUYER:
        raise HTTPException(status_code=403, detail="Buyer account required")
    return user


def current_supplier(user: UserAccount = Depends(current_user)) -> UserAccount:
    if user.role != UserRole.SUPPLIER:
        raise HTTPException(status_code=403, detail="Supplier account required")
    return user
