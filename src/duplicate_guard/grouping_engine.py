"""
Grouping Engine
Restricts orders to the lookback window and partitions them by phone key.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional

from .models import DuplicateGroup, Order
from .phone_normalizer import NO_PHONE, resolve_phone_key

logger = logging.getLogger(__name__)


def window_start(search_days: int, now: Optional[datetime] = None) -> datetime:
    """First instant of the lookback window ``[now - search_days, now]``."""
    now = now or datetime.now(timezone.utc)
    return now - timedelta(days=search_days)


def filter_to_window(
    orders: Iterable[Order],
    search_days: int,
    now: Optional[datetime] = None,
) -> List[Order]:
    """Keep orders created inside the lookback window, both bounds inclusive.

    Orders without a usable creation timestamp are dropped.
    """
    now = now or datetime.now(timezone.utc)
    start = window_start(search_days, now)
    kept: List[Order] = []
    for order in orders:
        created = order.created_at
        in_range = created is not None and start <= created <= now
        logger.debug(
            "Order %s created %s - %s",
            order.name,
            created.isoformat() if created else "unknown",
            "INCLUDED" if in_range else "EXCLUDED",
        )
        if in_range:
            kept.append(order)
    return kept


def group_by_phone(orders: Iterable[Order]) -> Dict[str, List[Order]]:
    """Partition orders by phone key.

    Keys and members keep input order. Orders without a phone are left out
    and only keys with at least two orders are returned.
    """
    buckets: Dict[str, List[Order]] = {}
    for order in orders:
        phone = resolve_phone_key(order)
        if phone == NO_PHONE:
            logger.debug("Order %s has no phone number, not grouped", order.name)
            continue
        buckets.setdefault(phone, []).append(order)
    return {phone: members for phone, members in buckets.items() if len(members) >= 2}


def find_duplicate_groups(orders: Iterable[Order]) -> List[DuplicateGroup]:
    groups = [
        DuplicateGroup(phone=phone, orders=members)
        for phone, members in group_by_phone(orders).items()
    ]
    for group in groups:
        logger.info("Phone %s: %d orders", group.phone, len(group))
    return groups
