"""
Phone key selection for duplicate matching.

The key is the first non-empty phone among customer, order, billing address
and shipping address. It is compared by exact string equality; no country
code or formatting normalisation is applied.
"""

from __future__ import annotations

from typing import Any, Dict, Union

from . import guard_config as cfg
from .models import Order

NO_PHONE = cfg.NO_PHONE


def _from_payload(data: Dict[str, Any]) -> list:
    customer = data.get("customer") or {}
    billing = data.get("billing_address") or {}
    shipping = data.get("shipping_address") or {}
    return [
        customer.get("phone"),
        data.get("phone"),
        billing.get("phone"),
        shipping.get("phone"),
    ]


def resolve_phone_key(order: Union[Order, Dict[str, Any], None]) -> str:
    """Return the phone key for an order snapshot or raw payload.

    Returns NO_PHONE when every candidate is missing or blank.
    """
    if order is None:
        return NO_PHONE
    if isinstance(order, Order):
        candidates = [
            order.customer_phone,
            order.phone,
            order.billing_phone,
            order.shipping_phone,
        ]
    elif isinstance(order, dict):
        candidates = _from_payload(order)
    else:
        return NO_PHONE

    for candidate in candidates:
        if candidate is None:
            continue
        value = str(candidate).strip()
        if value:
            return value
    return NO_PHONE
