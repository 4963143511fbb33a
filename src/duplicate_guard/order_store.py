"""
Order store interfaces and the in-memory implementation.

The engine talks to the order platform through two capabilities:
an OrderDirectory for reads and an OrderMutator for writes. The live
implementation is ShopifyConnector; InMemoryOrderStore backs tests, dry
runs and the sample data mode.
"""

from __future__ import annotations

import copy
import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Protocol

from .exceptions import OrderApiError
from .models import Order, append_note_text, parse_tags

logger = logging.getLogger(__name__)


class OrderDirectory(Protocol):
    def fetch_orders_created_since(self, since: datetime) -> List[Order]: ...
    def fetch_canceled_orders(self) -> List[Order]: ...


class OrderMutator(Protocol):
    def fetch_order(self, order_id: str) -> Order: ...
    def set_tags(self, order_id: str, tags: List[str]) -> None: ...
    def append_note(self, order_id: str, text: str) -> None: ...
    def cancel(
        self,
        order_id: str,
        reason: str,
        notify_customer: bool,
        refund: bool,
        note: str,
    ) -> None: ...
    def reopen(self, order_id: str) -> None: ...


class InMemoryOrderStore:
    """Dict-backed order store implementing both OrderDirectory and OrderMutator.

    Orders are returned in insertion order, as copies, so callers only ever
    see snapshots.
    """

    def __init__(self, orders: Optional[Iterable[Order]] = None) -> None:
        self._orders: Dict[str, Order] = {}
        self.cancellations: List[Dict[str, object]] = []
        for order in orders or []:
            self.add(order)

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def add(self, order: Order) -> None:
        self._orders[str(order.id)] = copy.deepcopy(order)

    def get(self, order_id: str) -> Optional[Order]:
        order = self._orders.get(str(order_id))
        return copy.deepcopy(order) if order else None

    @classmethod
    def with_sample_orders(cls, now: Optional[datetime] = None) -> "InMemoryOrderStore":
        """Store preloaded with a small demo data set.

        #1001/#1002 and #1004/#1005 share phones, #1003 is unique.
        """
        now = now or datetime.now(timezone.utc)

        def sample(order_id, name, phone, status, days_ago):
            return Order(
                id=order_id,
                name=name,
                phone=phone,
                customer_phone=phone,
                fulfillment_status=status,
                created_at=now - timedelta(days=days_ago),
            )

        return cls([
            sample("12345", "#1001", "+40123456789", None, 0),
            sample("12346", "#1002", "+40123456789", "fulfilled", 1),
            sample("12347", "#1003", "+40987654321", None, 0),
            sample("12348", "#1004", "+40555999888", None, 0),
            sample("12349", "#1005", "+40555999888", "fulfilled", 3),
        ])

    # ------------------------------------------------------------------
    # OrderDirectory
    # ------------------------------------------------------------------

    def fetch_orders_created_since(self, since: datetime) -> List[Order]:
        return [
            copy.deepcopy(o)
            for o in self._orders.values()
            if o.created_at is not None and o.created_at >= since
        ]

    def fetch_canceled_orders(self) -> List[Order]:
        return [copy.deepcopy(o) for o in self._orders.values() if o.is_cancelled]

    # ------------------------------------------------------------------
    # OrderMutator
    # ------------------------------------------------------------------

    def _require(self, order_id: str) -> Order:
        order = self._orders.get(str(order_id))
        if order is None:
            raise OrderApiError(f"Order {order_id} not found", status_code=404)
        return order

    def fetch_order(self, order_id: str) -> Order:
        return copy.deepcopy(self._require(order_id))

    def set_tags(self, order_id: str, tags: List[str]) -> None:
        self._require(order_id).tags = parse_tags(tags)

    def append_note(self, order_id: str, text: str) -> None:
        order = self._require(order_id)
        order.note = append_note_text(order.note, text)

    def cancel(
        self,
        order_id: str,
        reason: str,
        notify_customer: bool,
        refund: bool,
        note: str,
    ) -> None:
        order = self._require(order_id)
        if order.cancelled_at is None:
            order.cancelled_at = datetime.now(timezone.utc)
        order.cancel_reason = reason
        self.cancellations.append({
            "order_id": order.id,
            "reason": reason,
            "notify_customer": notify_customer,
            "refund": refund,
            "note": note,
        })
        logger.debug("Order %s canceled in memory (%s)", order.name, note)

    def reopen(self, order_id: str) -> None:
        order = self._require(order_id)
        order.cancelled_at = None
        order.cancel_reason = ""
