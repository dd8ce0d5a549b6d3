"""
Tests for registration, login and profile editing
"""

import pytest

from comproum.marketplace import accounts
from comproum.marketplace.domain import UserRole
from comproum.marketplace.errors import AuthenticationFailed, ValidationFailed
from database import crud

from conftest import ELECTRONICS, PASSWORD, address, buyer_data, supplier_data


def test_register_buyer_copies_registration_address(db):
    buyer = accounts.register_user(db, buyer_data())

    assert buyer.role == UserRole.BUYER
    assert buyer.document_digits == "12345678900"
    assert buyer.registration_address["zip"] == "01310100"
    assert buyer.delivery_address == buyer.registration_address
    assert buyer.business_segments == []
    assert buyer.password_hash != PASSWORD
    assert accounts.verify_password(PASSWORD, buyer.password_hash)


def test_register_buyer_with_separate_delivery_address(db):
    delivery = address(street="Rua das Flores", number="12", city="Curitiba", state="PR", zip="80010-000")
    buyer = accounts.register_user(db, buyer_data(use_same_address=False, delivery_address=delivery))

    assert buyer.delivery_address["city"] == "Curitiba"
    assert buyer.registration_address["city"] == "São Paulo"


def test_register_supplier(db):
    supplier = accounts.register_user(db, supplier_data(business_segments=[ELECTRONICS, ELECTRONICS]))

    assert supplier.role == UserRole.SUPPLIER
    assert supplier.business_segments == [ELECTRONICS]
    assert supplier.delivery_address is None
    assert supplier.payment_method is None


def test_supplier_needs_a_segment(db):
    with pytest.raises(ValidationFailed) as exc:
        accounts.register_user(db, supplier_data(business_segments=[]))
    assert any("segment" in message for message in exc.value.errors)
    assert crud.list_users(db) == []


def test_unknown_segment_is_rejected(db):
    with pytest.raises(ValidationFailed):
        accounts.register_user(db, supplier_data(business_segments=["Brinquedos"]))


@pytest.mark.parametrize("password", ["curta1", "somenteletras", "12345678", ""])
def test_weak_password_is_rejected(db, password):
    with pytest.raises(ValidationFailed):
        accounts.register_user(db, buyer_data(password=password))


def test_document_duplicates_ignore_punctuation(db):
    accounts.register_user(db, buyer_data(document="123.456.789-00"))

    with pytest.raises(ValidationFailed) as exc:
        accounts.register_user(db, buyer_data(username="outro", email="outro@example.com", document="12345678900"))
    assert "Document is already registered" in exc.value.errors


def test_username_and_email_duplicates_ignore_case(db):
    accounts.register_user(db, buyer_data())

    with pytest.raises(ValidationFailed) as exc:
        accounts.register_user(db, buyer_data(username="ANA", email="ANA@example.com", document="111.222.333-44"))
    assert "Username is already taken" in exc.value.errors
    assert "E-mail is already registered" in exc.value.errors


def test_all_problems_reported_together(db):
    data = buyer_data(name="", password="x", registration_address={"street": "Rua A"})
    with pytest.raises(ValidationFailed) as exc:
        accounts.register_user(db, data)

    errors = exc.value.errors
    assert "name is required" in errors
    assert any("Password" in message for message in errors)
    assert "registration_address: city is required" in errors


def test_unknown_payment_method(db):
    with pytest.raises(ValidationFailed):
        accounts.register_user(db, buyer_data(payment_method={"type": "BITCOIN"}))


def test_login_opens_a_session(db):
    registered = accounts.register_user(db, buyer_data())

    user, token = accounts.login(db, "ana", PASSWORD)

    assert user.id == registered.id
    assert crud.get_session(db, token).id == registered.id


def test_login_with_wrong_password(db):
    accounts.register_user(db, buyer_data())
    with pytest.raises(AuthenticationFailed):
        accounts.login(db, "ana", "errada123")
    with pytest.raises(AuthenticationFailed):
        accounts.login(db, "ninguem", PASSWORD)


def test_update_profile(db, supplier):
    updated = accounts.update_profile(db, supplier, {
        "name": "Loja Tech Ltda",
        "business_segments": [ELECTRONICS, "Eletrodomésticos"],
    })

    assert updated.name == "Loja Tech Ltda"
    assert updated.business_segments == [ELECTRONICS, "Eletrodomésticos"]
    assert updated.username == "lojatech"


def test_supplier_cannot_drop_every_segment(db, supplier):
    with pytest.raises(ValidationFailed):
        accounts.update_profile(db, supplier, {"business_segments": []})
    assert crud.get_user(db, supplier.id).business_segments == [ELECTRONICS]


def test_buyer_profile_changes(db, buyer):
    updated = accounts.update_profile(db, buyer, {
        "delivery_address": address(street="Rua Nova", zip="04538-132"),
        "payment_method": {"type": "CREDIT_CARD", "details": "**** 4242"},
        "quick_payment_enabled": False,
        "password": "novasenha9",
    })

    assert updated.delivery_address["zip"] == "04538132"
    assert updated.payment_method["type"] == "CREDIT_CARD"
    assert updated.quick_payment_enabled is False
    assert accounts.authenticate(db, "ana", "novasenha9") is not None


def test_profile_document_needs_digits(db, buyer, supplier):
    with pytest.raises(ValidationFailed) as exc:
        accounts.update_profile(db, buyer, {"document": "abc"})
    assert "Document must contain digits" in exc.value.errors
    assert crud.get_user(db, buyer.id).document_digits == "12345678900"

    with pytest.raises(ValidationFailed):
        accounts.update_profile(db, supplier, {"document": "xyz"})
    assert crud.get_user(db, supplier.id).document_digits == "12345678000190"


def test_profile_email_must_stay_unique(db, buyer, supplier):
    with pytest.raises(ValidationFailed):
        accounts.update_profile(db, buyer, {"email": supplier.email})
