"""
Shared fixtures: a throwaway in-memory database per test, registered users,
and an API client wired to that database.
"""

import os

# Before any comproum import: keep tests off the real database and make
# bcrypt cheap.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BCRYPT_ROUNDS"] = "4"

from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from comproum.marketplace import accounts, events, intents
from comproum.service.api import app
from database.connection import build_engine, db_session
from database.models import Base

ELECTRONICS = "Eletrônicos & TI"
AUTOMOTIVE = "Automotivo"
PASSWORD = "segredo123"


def address(**overrides):
    data = {
        "street": "Av. Paulista",
        "number": "1000",
        "complement": "",
        "neighborhood": "Bela Vista",
        "city": "São Paulo",
        "state": "SP",
        "zip": "01310-100",
    }
    data.update(overrides)
    return data


def buyer_data(**overrides):
    data = {
        "name": "Ana Compradora",
        "username": "ana",
        "password": PASSWORD,
        "email": "ana@example.com",
        "phone": "11999990000",
        "document": "123.456.789-00",
        "role": "BUYER",
        "registration_address": address(),
        "use_same_address": True,
        "payment_method": {"type": "PIX", "details": "ana@example.com"},
        "quick_payment_enabled": True,
    }
    data.update(overrides)
    return data


def supplier_data(**overrides):
    data = {
        "name": "Loja Tech",
        "username": "lojatech",
        "password": PASSWORD,
        "email": "vendas@lojatech.com",
        "phone": "1133330000",
        "document": "12.345.678/0001-90",
        "role": "SUPPLIER",
        "registration_address": address(street="Rua Augusta", number="500"),
        "business_segments": [ELECTRONICS],
    }
    data.update(overrides)
    return data


def intent_data(**overrides):
    data = {
        "type": "BUY",
        "category": ELECTRONICS,
        "product_name": "iPhone 15 Pro Max",
        "description": "256GB, preferably titanium blue",
        "budget": 6500,
        "condition": "BOTH",
    }
    data.update(overrides)
    return data


def next_week():
    return date.today() + timedelta(days=7)


@pytest.fixture
def engine():
    engine = build_engine("sqlite://", echo=False)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture(autouse=True)
def bus(monkeypatch):
    """A fresh event bus per test."""
    fresh = events.EventBus()
    monkeypatch.setattr(events, "bus", fresh)
    return fresh


@pytest.fixture
def buyer(db):
    return accounts.register_user(db, buyer_data())


@pytest.fixture
def supplier(db):
    return accounts.register_user(db, supplier_data())


@pytest.fixture
def other_supplier(db):
    return accounts.register_user(db, supplier_data(
        name="Auto Peças Silva",
        username="autosilva",
        email="contato@autosilva.com",
        document="98.765.432/0001-10",
        business_segments=[AUTOMOTIVE, ELECTRONICS],
    ))


@pytest.fixture
def intent(db, buyer):
    return intents.create_intent(db, buyer, intent_data())


@pytest.fixture
def client(session_factory):
    def override_db_session():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[db_session] = override_db_session
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
