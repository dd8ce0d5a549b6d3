"""
Matching & visibility rules.

``opportunities_for`` decides which intents a supplier may see;
``apply_filters`` narrows and orders an opportunity list the way the supplier
asked. Both are pure functions over already-loaded records.
"""

from typing import Iterable, List, Optional, Union

from sqlalchemy.orm import Session

from comproum.marketplace.domain import ALL, IntentStatus, ProductCondition, SortKey
from database.crud import list_intents


def is_visible_to(intent, supplier) -> bool:
    """An intent is an opportunity when open, not the supplier's own, and in one of its segments."""
    return (
        intent.status == IntentStatus.OPEN
        and intent.user_id != supplier.id
        and intent.category in (supplier.business_segments or [])
    )


def opportunities_for(supplier, intents: Iterable) -> list:
    """Intents visible to ``supplier``, in input order. No segments, no opportunities."""
    if not supplier.business_segments:
        return []
    return [intent for intent in intents if is_visible_to(intent, supplier)]


def load_opportunities(db: Session, supplier) -> list:
    """Store-backed ``opportunities_for``."""
    return opportunities_for(supplier, list_intents(db))


def parse_bound(value: Union[str, float, int, None]) -> Optional[float]:
    """Budget bound as float; blank or unparsable input means "no bound"."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip().replace(",", ".")
    if not text:
        return None
    try:
        bound = float(text)
    except ValueError:
        return None
    # NaN compares false with everything; treat as absent
    return None if bound != bound else bound


def _matches_query(intent, query: str) -> bool:
    return query in (intent.product_name or "").lower() or query in (intent.description or "").lower()


def _matches_condition(intent, condition: str) -> bool:
    return intent.condition == condition or intent.condition == ProductCondition.BOTH


def apply_filters(
    intents: Iterable,
    query: Optional[str] = None,
    type: str = ALL,
    condition: str = ALL,
    min_budget=None,
    max_budget=None,
    sort_key: str = SortKey.NEWEST,
) -> List:
    """
    Filter and order opportunities.

    Args:
        intents: Intents to narrow (not modified)
        query: Case-insensitive substring of product name or description
        type: IntentType value, or "ALL"
        condition: ProductCondition value, or "ALL"; BOTH intents match any condition
        min_budget: Inclusive lower bound; blank or unparsable is ignored
        max_budget: Inclusive upper bound; blank or unparsable is ignored
        sort_key: NEWEST (default), BUDGET_DESC or BUDGET_ASC

    Returns:
        New list. The sort is stable, so equal keys keep their input order and
        filtering before or after sorting yields the same result.
    """
    result = list(intents)

    text = (query or "").strip().lower()
    if text:
        result = [i for i in result if _matches_query(i, text)]

    if type and type != ALL:
        result = [i for i in result if i.type == type]

    if condition and condition != ALL:
        result = [i for i in result if _matches_condition(i, condition)]

    low = parse_bound(min_budget)
    if low is not None:
        result = [i for i in result if i.budget >= low]
    high = parse_bound(max_budget)
    if high is not None:
        result = [i for i in result if i.budget <= high]

    return sort_intents(result, sort_key)


def sort_intents(intents: Iterable, sort_key: str = SortKey.NEWEST) -> List:
    # sorted() is stable, including with reverse=True
    sort_key = SortKey(sort_key or SortKey.NEWEST)
    if sort_key == SortKey.BUDGET_DESC:
        return sorted(intents, key=lambda i: i.budget, reverse=True)
    if sort_key == SortKey.BUDGET_ASC:
        return sorted(intents, key=lambda i: i.budget)
    return sorted(intents, key=lambda i: i.created_at, reverse=True)
