"""
Dashboard snapshots and the loop that keeps them fresh.

Each dashboard re-queries the store on a fixed period and swaps its whole
view state for the new result. Loops can also follow event-bus topics so a
published change triggers an immediate refresh instead of waiting for the
next tick.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from comproum.config import REFRESH_INTERVAL_SECONDS
from comproum.marketplace import events
from comproum.marketplace.domain import ALL, OfferStatus, SortKey, UserRole
from comproum.marketplace.errors import PermissionDenied
from comproum.marketplace.matching import apply_filters, load_opportunities
from database import crud
from database.models import Intent, Offer, UserAccount

logger = logging.getLogger(__name__)


@dataclass
class IntentWithOffers:
    intent: Intent
    offers: List[Offer]


@dataclass
class BuyerDashboard:
    intents: List[IntentWithOffers]
    refreshed_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class SupplierStats:
    offers_by_status: Dict[str, int]
    confirmed_sales: float  # Sum of ACCEPTED offer prices
    opportunities: int


@dataclass
class SupplierDashboard:
    opportunities: List[Intent]
    offers: List[Offer]
    stats: SupplierStats
    refreshed_at: datetime = field(default_factory=datetime.utcnow)


def buyer_dashboard(db: Session, buyer: UserAccount, include_rejected: bool = False) -> BuyerDashboard:
    """The buyer's intents (newest first) with their offers; rejected offers hidden by default."""
    if buyer.role != UserRole.BUYER:
        raise PermissionDenied("Buyer dashboard is for buyers")

    intents = sorted(crud.list_intents_by_user(db, buyer.id), key=lambda i: i.created_at, reverse=True)
    rows = []
    for intent in intents:
        offers = crud.list_offers_by_intent(db, intent.id)
        if not include_rejected:
            offers = [o for o in offers if o.status != OfferStatus.REJECTED]
        rows.append(IntentWithOffers(intent=intent, offers=offers))
    return BuyerDashboard(intents=rows)


def supplier_stats(offers: List[Offer], opportunity_count: int) -> SupplierStats:
    by_status = {status.value: 0 for status in OfferStatus}
    confirmed = 0.0
    for offer in offers:
        by_status[OfferStatus(offer.status).value] += 1
        if offer.status == OfferStatus.ACCEPTED:
            confirmed += offer.price
    return SupplierStats(offers_by_status=by_status, confirmed_sales=confirmed, opportunities=opportunity_count)


def supplier_dashboard(
    db: Session,
    supplier: UserAccount,
    query: Optional[str] = None,
    type: str = ALL,
    condition: str = ALL,
    min_budget=None,
    max_budget=None,
    sort_key: str = SortKey.NEWEST,
) -> SupplierDashboard:
    """Filtered opportunities plus every offer the supplier made."""
    if supplier.role != UserRole.SUPPLIER:
        raise PermissionDenied("Supplier dashboard is for suppliers")

    opportunities = apply_filters(
        load_opportunities(db, supplier),
        query=query, type=type, condition=condition,
        min_budget=min_budget, max_budget=max_budget, sort_key=sort_key,
    )
    offers = crud.list_offers_by_supplier(db, supplier.id)
    return SupplierDashboard(
        opportunities=opportunities,
        offers=offers,
        stats=supplier_stats(offers, len(opportunities)),
    )


class RefreshLoop:
    """
    Poll ``fetch`` every ``interval`` seconds on a daemon thread and keep the
    latest result in ``state``.

    A failed fetch keeps the previous state and is retried on the next tick.
    """

    def __init__(
        self,
        fetch: Callable[[], Any],
        interval: float = REFRESH_INTERVAL_SECONDS,
        on_refresh: Optional[Callable[[Any], None]] = None,
        name: str = "dashboard",
    ):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.fetch = fetch
        self.interval = interval
        self.on_refresh = on_refresh
        self.name = name

        self.state: Any = None
        self.last_refreshed_at: Optional[datetime] = None
        self.refresh_count = 0
        self.failure_count = 0

        self._stop = threading.Event()
        self._wake = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._subscriptions: List[events.Subscription] = []

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def tick(self) -> bool:
        """Refresh once. Returns False when the fetch failed."""
        try:
            state = self.fetch()
        except Exception as e:
            self.failure_count += 1
            logger.error(f"Refresh of {self.name} failed, keeping previous state: {e}")
            return False

        self.state = state
        self.last_refreshed_at = datetime.utcnow()
        self.refresh_count += 1
        if self.on_refresh is not None:
            try:
                self.on_refresh(state)
            except Exception as e:
                logger.error(f"on_refresh callback of {self.name} failed: {e}")
        return True

    def refresh_now(self, event: Optional[events.MarketplaceEvent] = None):
        """Wake the loop for an immediate refresh (usable as an event handler)."""
        if event is not None:
            logger.debug(f"{self.name} woken by {event.kind} on {event.topic}")
        self._wake.set()

    def follow(self, topic: str, bus: Optional[events.EventBus] = None) -> events.Subscription:
        """Refresh as soon as something is published on ``topic``."""
        subscription = (bus or events.bus).subscribe(topic, self.refresh_now)
        self._subscriptions.append(subscription)
        return subscription

    def _run(self):
        self.tick()
        while not self._stop.is_set():
            self._wake.wait(self.interval)
            self._wake.clear()
            if self._stop.is_set():
                break
            self.tick()

    def start(self):
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name=f"refresh-{self.name}", daemon=True)
        self._thread.start()
        logger.info(f"Refresh loop {self.name} started (every {self.interval}s)")

    def stop(self, timeout: Optional[float] = None):
        """Stop polling and drop event subscriptions."""
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions = []

        self._stop.set()
        self._wake.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info(f"Refresh loop {self.name} stopped after {self.refresh_count} refreshes")


def _session_fetch(session_factory, user_id: int, builder: Callable, **kwargs) -> Callable[[], Any]:
    def fetch():
        db = session_factory()
        try:
            user = crud.get_user(db, user_id)
            if user is None:
                raise PermissionDenied(f"User {user_id} no longer exists")
            return builder(db, user, **kwargs)
        finally:
            db.close()
    return fetch


def watch_buyer_dashboard(session_factory, buyer: UserAccount, interval: float = REFRESH_INTERVAL_SECONDS,
                          on_refresh=None) -> RefreshLoop:
    """Loop for a buyer: polls and also follows each of the buyer's intents."""
    loop = RefreshLoop(_session_fetch(session_factory, buyer.id, buyer_dashboard),
                       interval=interval, on_refresh=on_refresh, name=f"buyer-{buyer.id}")
    db = session_factory()
    try:
        for intent in crud.list_intents_by_user(db, buyer.id):
            loop.follow(events.intent_topic(intent.id))
    finally:
        db.close()
    return loop


def watch_supplier_dashboard(session_factory, supplier: UserAccount, interval: float = REFRESH_INTERVAL_SECONDS,
                             on_refresh=None, **filters) -> RefreshLoop:
    """Loop for a supplier: polls and follows its segments and its own offers."""
    loop = RefreshLoop(_session_fetch(session_factory, supplier.id, supplier_dashboard, **filters),
                       interval=interval, on_refresh=on_refresh, name=f"supplier-{supplier.id}")
    for segment in supplier.business_segments or []:
        loop.follow(events.segment_topic(segment))
    loop.follow(events.supplier_topic(supplier.id))
    return loop
