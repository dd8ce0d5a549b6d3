"""
Marketplace vocabulary: roles, intent types, product conditions and statuses.

Every enum subclasses ``str`` so members compare and serialize as their
stored values ("OPEN", "PENDING", ...).
"""

import enum


class UserRole(str, enum.Enum):
    BUYER = "BUYER"
    SUPPLIER = "SUPPLIER"


class IntentType(str, enum.Enum):
    BUY = "BUY"
    SELL = "SELL"
    TRADE = "TRADE"


class ProductCondition(str, enum.Enum):
    NEW = "NEW"
    USED = "USED"
    BOTH = "BOTH"


class IntentStatus(str, enum.Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"
    EXPIRED = "EXPIRED"


class OfferStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    COUNTER_OFFERED = "COUNTER_OFFERED"


class OfferAction(str, enum.Enum):
    """Actions that move an offer between statuses"""
    ACCEPT = "ACCEPT"
    REJECT = "REJECT"
    COUNTER = "COUNTER"
    REPROPOSE = "REPROPOSE"


class PaymentMethodType(str, enum.Enum):
    CREDIT_CARD = "CREDIT_CARD"
    PIX = "PIX"
    BOLETO = "BOLETO"


class SortKey(str, enum.Enum):
    NEWEST = "NEWEST"
    BUDGET_DESC = "BUDGET_DESC"
    BUDGET_ASC = "BUDGET_ASC"


# Wildcard accepted by the type and condition filters
ALL = "ALL"

# Fixed business segments; intents are routed to suppliers by these
BUSINESS_CATEGORIES = [
    "Eletrônicos & TI",
    "Eletrodomésticos",
    "Moda & Acessórios",
    "Automotivo",
    "Móveis & Decoração",
    "Ferramentas & Construção",
    "Saúde & Beleza",
    "Esportes & Lazer",
    "Serviços Profissionais",
    "Outros",
]

DEFAULT_PAYMENT_TERMS = "Terms as stated in the offer description."
