#!/usr/bin/env python3
"""
Seed Demo Data

Creates a buyer, two suppliers, two intents and two offers so the dashboards
have something to show. Safe to run twice: existing demo users are reused.

Usage:
    python scripts/seed_demo_data.py [--password SENHA]
"""

import argparse
import logging
from datetime import date, timedelta

from comproum.marketplace import accounts, intents, negotiation
from comproum.marketplace.domain import ProductCondition
from database import crud
from database.connection import SessionLocal
from database.models import init_database

DEMO_PASSWORD = "demo12345"

DEMO_ADDRESS = {
    "street": "Avenida Paulista",
    "number": "1578",
    "complement": "",
    "neighborhood": "Bela Vista",
    "city": "São Paulo",
    "state": "SP",
    "zip": "01310-200",
}

DEMO_USERS = [
    {
        "name": "Marina Souza",
        "username": "marina",
        "email": "marina@example.com",
        "phone": "11987654321",
        "document": "529.982.247-25",
        "role": "BUYER",
        "registration_address": DEMO_ADDRESS,
        "use_same_address": True,
        "payment_method": {"type": "PIX", "details": "marina@example.com"},
        "quick_payment_enabled": True,
    },
    {
        "name": "Mega Tech Store",
        "username": "megatech",
        "email": "vendas@megatech.example.com",
        "phone": "1140028922",
        "document": "11.444.777/0001-61",
        "role": "SUPPLIER",
        "registration_address": dict(DEMO_ADDRESS, street="Rua Santa Ifigênia", number="300", zip="01207-000"),
        "business_segments": ["Eletrônicos & TI", "Eletrodomésticos"],
    },
    {
        "name": "Recondicionados VIP",
        "username": "recondvip",
        "email": "contato@recondvip.example.com",
        "phone": "2130304040",
        "document": "45.723.174/0001-10",
        "role": "SUPPLIER",
        "registration_address": dict(DEMO_ADDRESS, street="Rua da Assembleia", number="10",
                                     neighborhood="Centro", city="Rio de Janeiro", state="RJ", zip="20011-000"),
        "business_segments": ["Eletrônicos & TI"],
    },
]


def get_or_register(db, data: dict, password: str):
    existing = crud.find_user_by_username(db, data["username"])
    if existing:
        print(f"ℹ️  User {data['username']} already exists (ID: {existing.id})")
        return existing
    user = accounts.register_user(db, dict(data, password=password))
    print(f"✅ Registered {user.role.value.lower()} {user.username} (ID: {user.id})")
    return user


def seed(password: str = DEMO_PASSWORD):
    """Create the demo accounts, intents and offers."""
    init_database()
    db = SessionLocal()
    try:
        buyer, megatech, recond = [get_or_register(db, data, password) for data in DEMO_USERS]

        if crud.list_intents_by_user(db, buyer.id):
            print("ℹ️  Demo intents already present, skipping")
            return

        iphone = intents.create_intent(db, buyer, {
            "type": "BUY",
            "category": "Eletrônicos & TI",
            "product_name": "iPhone 15 Pro Max 256GB",
            "description": "Procuro iPhone 15 Pro Max, de preferência na cor Titânio Natural. "
                           "Pode ser novo ou usado em excelente estado.",
            "budget": 6500,
            "condition": "BOTH",
        })
        intents.create_intent(db, buyer, {
            "type": "TRADE",
            "category": "Eletrônicos & TI",
            "product_name": "PlayStation 5",
            "description": "Troco meu Xbox Series X com 2 controles por PS5 Slim.",
            "budget": 500,
            "condition": "USED",
        })
        print(f"✅ Posted demo intents for {buyer.username}")

        valid_until = date.today() + timedelta(days=5)
        negotiation.propose_offer(
            db, megatech, iphone.id, price=6400, valid_until=valid_until,
            condition=ProductCondition.NEW,
            description="Produto novo, lacrado, com nota fiscal e garantia de 1 ano Apple.",
            payment_terms="À vista no PIX ou 12x no cartão com acréscimo.",
        )
        negotiation.propose_offer(
            db, recond, iphone.id, price=5800, valid_until=valid_until,
            condition=ProductCondition.USED,
            description="Produto semi-novo, 98% bateria, sem riscos na tela. Acompanha carregador original.",
            payment_terms="Parcelamento em até 10x sem juros.",
        )
        print(f"✅ Submitted 2 offers on intent {iphone.id}")
    finally:
        db.close()


def main():
    parser = argparse.ArgumentParser(description='Seed Comproum demo data')
    parser.add_argument('--password', default=DEMO_PASSWORD, help='Password for every demo account')
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    print("=" * 70)
    print("Comproum - Seed Demo Data")
    print("=" * 70)
    seed(args.password)
    print("\nLog in as marina / megatech / recondvip")
    print("=" * 70)


if __name__ == '__main__':
    main()
