"""
Tests for opportunity visibility and the supplier-side filters
"""

from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from comproum.marketplace.domain import IntentStatus, ProductCondition, SortKey
from comproum.marketplace.matching import (
    apply_filters, is_visible_to, load_opportunities, opportunities_for, parse_bound, sort_intents
)

ELECTRONICS = "Eletrônicos & TI"
FASHION = "Moda & Acessórios"

BASE_TIME = datetime(2025, 3, 1, 12, 0, 0)


def make_intent(id, budget=100.0, category=ELECTRONICS, status=IntentStatus.OPEN, user_id=1,
                type="BUY", condition=ProductCondition.BOTH, product_name="Item", description="",
                minutes=0):
    return SimpleNamespace(
        id=id, user_id=user_id, budget=budget, category=category, status=status, type=type,
        condition=condition, product_name=product_name, description=description,
        created_at=BASE_TIME + timedelta(minutes=minutes),
    )


def make_supplier(id=2, segments=(ELECTRONICS,)):
    return SimpleNamespace(id=id, business_segments=list(segments))


def test_supplier_sees_intent_in_own_segment_only():
    intent = make_intent(1, budget=6500)
    electronics = make_supplier(2, [ELECTRONICS])
    fashion = make_supplier(3, [FASHION])

    assert opportunities_for(electronics, [intent]) == [intent]
    assert opportunities_for(fashion, [intent]) == []


@pytest.mark.parametrize("status,user_id,category,visible", [
    (IntentStatus.OPEN, 1, ELECTRONICS, True),
    (IntentStatus.CLOSED, 1, ELECTRONICS, False),
    (IntentStatus.EXPIRED, 1, ELECTRONICS, False),
    (IntentStatus.OPEN, 2, ELECTRONICS, False),   # own intent
    (IntentStatus.OPEN, 1, FASHION, False),
])
def test_visibility_rule(status, user_id, category, visible):
    intent = make_intent(1, status=status, user_id=user_id, category=category)
    supplier = make_supplier(2, [ELECTRONICS])
    assert is_visible_to(intent, supplier) is visible
    assert (intent in opportunities_for(supplier, [intent])) is visible


def test_supplier_without_segments_sees_nothing():
    intents = [make_intent(i) for i in range(3)]
    assert opportunities_for(make_supplier(segments=[]), intents) == []
    assert opportunities_for(SimpleNamespace(id=2, business_segments=None), intents) == []


def test_opportunities_keep_input_order():
    intents = [make_intent(3), make_intent(1, category=FASHION), make_intent(2)]
    result = opportunities_for(make_supplier(), intents)
    assert [i.id for i in result] == [3, 2]


def test_load_opportunities_reads_store(db, intent, supplier, other_supplier):
    assert [i.id for i in load_opportunities(db, supplier)] == [intent.id]


def test_text_query_matches_name_or_description_case_insensitive():
    intents = [
        make_intent(1, product_name="PlayStation 5"),
        make_intent(2, product_name="Notebook", description="Para jogar PLAYSTATION"),
        make_intent(3, product_name="Geladeira"),
    ]
    result = apply_filters(intents, query="  playstation ")
    assert sorted(i.id for i in result) == [1, 2]


def test_type_filter_and_all_wildcard():
    intents = [make_intent(1, type="BUY"), make_intent(2, type="TRADE")]
    assert [i.id for i in apply_filters(intents, type="TRADE")] == [2]
    assert len(apply_filters(intents, type="ALL")) == 2


def test_condition_filter_lets_both_through():
    intents = [
        make_intent(1, condition=ProductCondition.NEW),
        make_intent(2, condition=ProductCondition.USED),
        make_intent(3, condition=ProductCondition.BOTH),
    ]
    assert sorted(i.id for i in apply_filters(intents, condition="NEW")) == [1, 3]
    assert sorted(i.id for i in apply_filters(intents, condition="USED")) == [2, 3]


def test_budget_bounds_are_inclusive():
    intents = [make_intent(1, budget=100), make_intent(2, budget=150), make_intent(3, budget=200)]
    result = apply_filters(intents, min_budget=100, max_budget=200)
    assert sorted(i.id for i in result) == [1, 2, 3]
    result = apply_filters(intents, min_budget="150", max_budget="150")
    assert [i.id for i in result] == [2]


@pytest.mark.parametrize("raw", [None, "", "   ", "abc", "nan", True])
def test_unparsable_bounds_are_ignored(raw):
    intents = [make_intent(1, budget=10), make_intent(2, budget=10000)]
    assert parse_bound(raw) is None
    assert len(apply_filters(intents, min_budget=raw, max_budget=raw)) == 2


def test_parse_bound_accepts_decimal_comma():
    assert parse_bound("99,5") == 99.5
    assert parse_bound(" 42 ") == 42.0


def test_sort_newest_first_by_default():
    intents = [make_intent(1, minutes=0), make_intent(2, minutes=10), make_intent(3, minutes=5)]
    assert [i.id for i in apply_filters(intents)] == [2, 3, 1]


def test_sort_by_budget():
    intents = [make_intent(1, budget=300), make_intent(2, budget=100), make_intent(3, budget=200)]
    assert [i.id for i in sort_intents(intents, SortKey.BUDGET_DESC)] == [1, 3, 2]
    assert [i.id for i in sort_intents(intents, SortKey.BUDGET_ASC)] == [2, 3, 1]


def test_equal_budgets_keep_relative_order():
    intents = [make_intent(7, budget=100), make_intent(3, budget=100), make_intent(5, budget=50)]
    assert [i.id for i in sort_intents(intents, SortKey.BUDGET_DESC)] == [7, 3, 5]
    assert [i.id for i in sort_intents(intents, SortKey.BUDGET_ASC)] == [5, 7, 3]


def test_filtering_and_sorting_commute():
    intents = [
        make_intent(i, budget=b, condition=c, minutes=m)
        for i, (b, c, m) in enumerate([
            (100, ProductCondition.NEW, 3), (100, ProductCondition.USED, 1),
            (250, ProductCondition.BOTH, 2), (50, ProductCondition.NEW, 0),
            (250, ProductCondition.NEW, 4),
        ])
    ]
    for key in SortKey:
        filter_then_sort = apply_filters(intents, condition="NEW", min_budget=60, sort_key=key)
        sort_then_filter = apply_filters(sort_intents(intents, key), condition="NEW", min_budget=60, sort_key=key)
        assert [i.id for i in filter_then_sort] == [i.id for i in sort_then_filter]


def test_apply_filters_does_not_modify_input():
    intents = [make_intent(1, budget=10), make_intent(2, budget=20)]
    apply_filters(intents, min_budget=15, sort_key=SortKey.BUDGET_DESC)
    assert [i.id for i in intents] == [1, 2]
