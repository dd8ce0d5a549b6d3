"""
Accounts API

Endpoints:
- POST /api/users - Register a buyer or supplier
- POST /api/sessions - Log in (returns a session token)
- DELETE /api/sessions - Log out
- GET /api/users/me - Current profile
- PUT /api/users/me - Edit current profile
"""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from comproum.marketplace import accounts
from comproum.marketplace.domain import PaymentMethodType, UserRole
from comproum.service.auth import current_user, session_token
from database.connection import db_session
from database.crud import clear_session
from database.models import UserAccount

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["accounts"])

# ============================================================================
# Pydantic Models (Request/Response Schemas)
# ============================================================================


class AddressIn(BaseModel):
    street: str = ""
    number: str = ""
    complement: str = ""
    neighborhood: str = ""
    city: str = ""
    state: str = ""
    zip: str = Field("", description="Postal code (CEP); punctuation is stripped")


class PaymentMethodIn(BaseModel):
    type: PaymentMethodType
    details: Optional[str] = Field(None, max_length=200, description="Card mask, PIX key, etc.")


class UserCreate(BaseModel):
    """Request schema for registration"""
    name: str
    username: str
    password: str
    email: str
    phone: str
    document: str = Field(..., description="CPF or CNPJ, with or without punctuation")
    role: UserRole
    registration_address: AddressIn
    delivery_address: Optional[AddressIn] = None
    use_same_address: bool = True
    payment_method: Optional[PaymentMethodIn] = None
    quick_payment_enabled: bool = False
    business_segments: List[str] = Field(default_factory=list, description="Required for suppliers")


class ProfileUpdate(BaseModel):
    """Only the fields present in the request are changed"""
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    document: Optional[str] = None
    password: Optional[str] = None
    registration_address: Optional[AddressIn] = None
    delivery_address: Optional[AddressIn] = None
    payment_method: Optional[PaymentMethodIn] = None
    quick_payment_enabled: Optional[bool] = None
    business_segments: Optional[List[str]] = None


class UserResponse(BaseModel):
    id: int
    name: str
    username: str
    email: str
    phone: str
    document: str
    role: UserRole
    registration_address: dict
    delivery_address: Optional[dict] = None
    payment_method: Optional[dict] = None
    quick_payment_enabled: bool = False
    business_segments: List[str] = []
    created_at: datetime

    class Config:
        from_attributes = True


class LoginRequest(BaseModel):
    username: str
    password: str


class SessionResponse(BaseModel):
    token: str
    user: UserResponse


# ============================================================================
# Endpoints
# ============================================================================


@router.post("/users", response_model=UserResponse, status_code=201)
def register(payload: UserCreate, db: Session = Depends(db_session)):
    """
    Create an account.

    Every problem with the submission is reported at once in ``errors``.
    """
    user = accounts.register_user(db, payload.model_dump(mode="json"))
    return user


@router.post("/sessions", response_model=SessionResponse, status_code=201)
def login(payload: LoginRequest, db: Session = Depends(db_session)):
    user, token = accounts.login(db, payload.username, payload.password)
    return SessionResponse(token=token, user=UserResponse.model_validate(user))


@router.delete("/sessions", status_code=204)
def logout(token: str = Depends(session_token), db: Session = Depends(db_session)):
    if clear_session(db, token):
        logger.info("Session closed")


@router.get("/users/me", response_model=UserResponse)
def get_me(user: UserAccount = Depends(current_user)):
    return user


@router.put("/users/me", response_model=UserResponse)
def update_me(
    payload: ProfileUpdate,
    user: UserAccount = Depends(current_user),
    db: Session = Depends(db_session),
):
    changes = payload.model_dump(mode="json", exclude_unset=True)
    return accounts.update_profile(db, user, changes)
