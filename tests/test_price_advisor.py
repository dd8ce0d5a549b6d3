"""
Tests for the market price advisory

The OpenAI client is mocked; no API key or network access is needed.
"""

from unittest.mock import MagicMock, patch

import pytest

from comproum.integrations import price_advisor
from comproum.integrations.price_advisor import get_price_insight, parse_insight, parse_price

REPLY = """MIN: R$ 5.899,00
MAX: R$ 7.299,90
ANALYSIS: Prices vary with storage size.
SOURCE: Zoom | https://www.zoom.com.br/celular/iphone-15-pro-max
SOURCE: Buscapé | https://www.buscape.com.br/iphone-15-pro-max
SOURCE: Mercado Livre | https://lista.mercadolivre.com.br/iphone-15-pro-max
SOURCE: Extra | https://www.extra.com.br/iphone
"""


def fake_client(reply):
    client = MagicMock()
    client.chat.completions.create.return_value.choices = [MagicMock(message=MagicMock(content=reply))]
    return client


@pytest.mark.parametrize("text,expected", [
    ("R$ 1.234,56", 1234.56),
    ("R$ 6.500", 6500.0),
    ("6500", 6500.0),
    ("1234.56", 1234.56),
    ("6,500", 6500.0),
    ("99,90", 99.9),
    ("1,234.56", 1234.56),
    ("about 300 reais", 300.0),
    ("unknown", None),
    ("", None),
])
def test_parse_price(text, expected):
    assert parse_price(text) == expected


def test_parse_insight_keeps_three_sources():
    insight = parse_insight("iPhone 15 Pro Max", REPLY)

    assert insight.min_price == 5899.0
    assert insight.max_price == 7299.9
    assert insight.analysis == "Prices vary with storage size."
    assert [s.title for s in insight.sources] == ["Zoom", "Buscapé", "Mercado Livre"]
    assert insight.sources[0].uri.startswith("https://www.zoom.com.br")


def test_parse_insight_tolerates_loose_replies():
    insight = parse_insight("PS5", "Here you go:\n- max: 4.200\n* min: 3.500\nSOURCE: no url here")

    assert insight.min_price == 3500.0
    assert insight.max_price == 4200.0
    assert insight.sources == []
    assert insight.analysis == ""


def test_parse_insight_orders_swapped_range():
    insight = parse_insight("x", "MIN: 200\nMAX: 100")
    assert (insight.min_price, insight.max_price) == (100.0, 200.0)


def test_get_price_insight_uses_client():
    client = fake_client(REPLY)
    with patch.object(price_advisor, "get_client", return_value=client):
        insight = get_price_insight("  iPhone 15 Pro Max ")

    assert insight.product == "iPhone 15 Pro Max"
    assert insight.max_price == 7299.9
    kwargs = client.chat.completions.create.call_args.kwargs
    assert "iPhone 15 Pro Max" in kwargs["messages"][-1]["content"]


def test_no_api_key_means_no_insight():
    with patch.object(price_advisor, "OPENAI_API_KEY", None), patch.object(price_advisor, "_client", None):
        assert get_price_insight("PS5") is None


def test_api_failure_means_no_insight():
    client = MagicMock()
    client.chat.completions.create.side_effect = RuntimeError("rate limited")
    with patch.object(price_advisor, "get_client", return_value=client):
        assert get_price_insight("PS5") is None


def test_reply_without_prices_means_no_insight():
    with patch.object(price_advisor, "get_client", return_value=fake_client("I cannot help with that.")):
        assert get_price_insight("PS5") is None


def test_blank_product_is_not_sent():
    with patch.object(price_advisor, "get_client") as get_client:
        assert get_price_insight("   ") is None
    get_client.assert_not_called()
