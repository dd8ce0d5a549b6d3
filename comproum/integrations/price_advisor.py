"""
Market price advisory.

Asks an OpenAI chat model for the current price range of a product and parses
its loosely structured reply. Output is advisory only; intents are never
validated against it.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional

from openai import OpenAI

from comproum.config import OPENAI_API_KEY, OPENAI_MODEL, PRICE_ADVISOR_TIMEOUT

logger = logging.getLogger(__name__)

MAX_SOURCES = 3

SYSTEM_PROMPT = """You are a market research assistant for the Brazilian retail market.
Given a product name, estimate its current price range in Brazilian reais (R$).

Answer using exactly these lines:
MIN: <lowest typical price>
MAX: <highest typical price>
ANALYSIS: <one or two sentences about the price range>
SOURCE: <title> | <url>

Repeat SOURCE for up to three references. Do not add any other text."""

_client: Optional[OpenAI] = None


@dataclass
class PriceSource:
    title: str
    uri: str


@dataclass
class PriceInsight:
    """Advisory price range for a product"""
    product: str
    min_price: Optional[float]
    max_price: Optional[float]
    analysis: str
    sources: List[PriceSource] = field(default_factory=list)


def get_client() -> Optional[OpenAI]:
    """OpenAI client, created on first use; None when no API key is configured."""
    global _client
    if _client is None:
        if not OPENAI_API_KEY:
            return None
        _client = OpenAI(api_key=OPENAI_API_KEY, timeout=PRICE_ADVISOR_TIMEOUT)
    return _client


def parse_price(text: str) -> Optional[float]:
    """
    Parse a price written as "R$ 1.234,56", "1234.56", "6,500" and so on.
    """
    match = re.search(r"\d[\d.,]*", text or "")
    if not match:
        return None
    number = match.group(0).rstrip(".,")

    if "," in number and "." in number:
        # Brazilian style: dot thousands, comma decimals
        if number.rfind(",") > number.rfind("."):
            number = number.replace(".", "").replace(",", ".")
        else:
            number = number.replace(",", "")
    elif "," in number:
        if re.fullmatch(r"\d{1,3}(,\d{3})+", number):
            number = number.replace(",", "")
        else:
            number = number.replace(",", ".")
    elif re.fullmatch(r"\d{1,3}(\.\d{3})+", number):
        number = number.replace(".", "")

    try:
        return float(number)
    except ValueError:
        return None


def parse_insight(product: str, reply: str) -> PriceInsight:
    """Build a PriceInsight from the model's reply; missing parts stay empty."""
    min_price = None
    max_price = None
    analysis_lines = []
    sources: List[PriceSource] = []

    for raw_line in (reply or "").splitlines():
        line = raw_line.strip().lstrip("-*").strip()
        if not line:
            continue
        key, sep, value = line.partition(":")
        if not sep:
            continue
        key = key.strip().upper()
        value = value.strip()

        if key == "MIN":
            min_price = parse_price(value)
        elif key == "MAX":
            max_price = parse_price(value)
        elif key == "ANALYSIS":
            analysis_lines.append(value)
        elif key == "SOURCE" and len(sources) < MAX_SOURCES:
            title, _, uri = value.partition("|")
            uri = uri.strip()
            if uri:
                sources.append(PriceSource(title=title.strip() or uri, uri=uri))

    if min_price is not None and max_price is not None and min_price > max_price:
        min_price, max_price = max_price, min_price

    return PriceInsight(
        product=product,
        min_price=min_price,
        max_price=max_price,
        analysis=" ".join(analysis_lines),
        sources=sources,
    )


def get_price_insight(product: str) -> Optional[PriceInsight]:
    """
    Advisory price range for ``product``.

    Returns:
        PriceInsight, or None when the product name is blank, no API key is
        configured, the call fails, or the reply carries no price at all
    """
    product = (product or "").strip()
    if not product:
        return None

    client = get_client()
    if client is None:
        logger.warning("OPENAI_API_KEY not set, price insight unavailable")
        return None

    try:
        response = client.chat.completions.create(
            model=OPENAI_MODEL,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": f"Product: {product}"},
            ],
            temperature=0.2,
        )
        reply = response.choices[0].message.content
    except Exception as e:
        logger.error(f"Price insight for '{product}' failed: {str(e)}")
        return None

    insight = parse_insight(product, reply)
    if insight.min_price is None and insight.max_price is None:
        logger.warning(f"Price insight reply for '{product}' had no prices")
        return None
    logger.info(f"Price insight for '{product}': {insight.min_price} - {insight.max_price}")
    return insight
