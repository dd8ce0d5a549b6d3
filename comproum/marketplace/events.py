"""
In-process change notifications for intents and offers.

Topics:
- ``intent:<id>``       offers proposed/updated on an intent (buyer views)
- ``segment:<category>`` new intents in a business segment (supplier views)
- ``supplier:<id>``     status changes on a supplier's offers

Publishers call ``publish`` after their unit of work commits. Views
subscribe on setup and call ``unsubscribe`` (or ``Subscription.cancel``) on
teardown.
"""

import logging
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


def intent_topic(intent_id: int) -> str:
    return f"intent:{intent_id}"


def segment_topic(category: str) -> str:
    return f"segment:{category}"


def supplier_topic(supplier_id: int) -> str:
    return f"supplier:{supplier_id}"


@dataclass
class MarketplaceEvent:
    """A change notification"""
    topic: str
    kind: str  # intent_created, offer_proposed, offer_accepted, ...
    payload: Dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=datetime.utcnow)


Handler = Callable[[MarketplaceEvent], None]


class Subscription:
    def __init__(self, bus: "EventBus", topic: str, handler: Handler):
        self.bus = bus
        self.topic = topic
        self.handler = handler
        self.active = True

    def cancel(self):
        self.bus.unsubscribe(self)


class EventBus:
    """Thread-safe topic registry; handlers run synchronously in the publisher's thread."""

    def __init__(self):
        self._lock = threading.Lock()
        self._subscriptions: Dict[str, List[Subscription]] = defaultdict(list)

    def subscribe(self, topic: str, handler: Handler) -> Subscription:
        subscription = Subscription(self, topic, handler)
        with self._lock:
            self._subscriptions[topic].append(subscription)
        logger.debug(f"Subscribed to {topic}")
        return subscription

    def unsubscribe(self, subscription: Subscription):
        with self._lock:
            subscribers = self._subscriptions.get(subscription.topic, [])
            if subscription in subscribers:
                subscribers.remove(subscription)
            if not subscribers:
                self._subscriptions.pop(subscription.topic, None)
        subscription.active = False

    def subscriber_count(self, topic: str) -> int:
        with self._lock:
            return len(self._subscriptions.get(topic, []))

    def publish(self, topic: str, kind: str, payload: Optional[Dict[str, Any]] = None) -> int:
        """
        Deliver an event to every current subscriber of ``topic``.

        A failing handler is logged and skipped; it never aborts the
        publisher, whose change is already committed.

        Returns:
            Number of handlers that ran successfully
        """
        event = MarketplaceEvent(topic=topic, kind=kind, payload=payload or {})
        with self._lock:
            subscribers = list(self._subscriptions.get(topic, []))

        delivered = 0
        for subscription in subscribers:
            try:
                subscription.handler(event)
                delivered += 1
            except Exception as e:
                logger.error(f"Handler for {topic} failed on {kind}: {e}")
        return delivered


# Process-wide bus used by the marketplace services
bus = EventBus()
