"""
Shopify Connector Service
Live OrderDirectory / OrderMutator backed by the Shopify Admin REST API.

Shopify only supports whole-field replacement for tags and notes, so the
read-merge-write for notes happens here and tag merging is done by the
callers on top of fetch_order().
"""

from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

import requests

from . import guard_config as cfg
from .exceptions import OrderApiError
from .models import Order, ShopifyConnectionResult, append_note_text, join_tags

logger = logging.getLogger(__name__)


class ShopifyConnector:
    """HTTP connector for the Shopify Admin REST API."""

    def __init__(
        self,
        shop: Optional[str] = None,
        access_token: Optional[str] = None,
        api_version: Optional[str] = None,
        timeout_connect: Optional[int] = None,
        timeout_read: Optional[int] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.shop = shop or cfg.SHOPIFY_SHOP
        self.access_token = access_token or cfg.SHOPIFY_ACCESS_TOKEN
        self.api_version = api_version or cfg.SHOPIFY_API_VERSION
        self.timeout = (
            timeout_connect or cfg.SHOPIFY_TIMEOUT_CONNECT,
            timeout_read or cfg.SHOPIFY_TIMEOUT_READ,
        )
        if not self.shop or not self.access_token:
            raise ValueError("Shopify shop and access token are required")
        self.session = session or requests.Session()
        self.session.headers.update({
            "X-Shopify-Access-Token": self.access_token,
            "Content-Type": "application/json",
        })

    @property
    def base_url(self) -> str:
        shop = self.shop
        if not shop.endswith(".myshopify.com"):
            shop = f"{shop}.myshopify.com"
        return f"https://{shop}/admin/api/{self.api_version}"

    # ------------------------------------------------------------------
    # OrderDirectory
    # ------------------------------------------------------------------

    def fetch_orders_created_since(self, since: datetime) -> List[Order]:
        """All orders (any status) created at or after ``since``.

        Follows Shopify's cursor pagination through the Link header.
        """
        logger.info("Fetching orders since: %s", since.isoformat())
        params = {
            "limit": cfg.SHOPIFY_PAGE_LIMIT,
            "status": "any",
            "fields": cfg.SHOPIFY_ORDER_FIELDS,
            "created_at_min": since.isoformat(),
        }
        orders: List[Order] = []
        url: Optional[str] = f"{self.base_url}/orders.json"
        while url:
            response = self._send("GET", url, params=params)
            payload = self._json(response)
            orders.extend(Order.from_dict(o) for o in payload.get("orders") or [])
            url = response.links.get("next", {}).get("url")
            # the next-page URL already carries the cursor and the page size
            params = None
        return orders

    def fetch_canceled_orders(self) -> List[Order]:
        logger.info("Fetching canceled orders")
        payload = self._request("GET", "/orders.json", params={
            "status": "cancelled",
            "limit": cfg.SHOPIFY_CANCELED_LIMIT,
        })
        return [Order.from_dict(o) for o in payload.get("orders") or []]

    # ------------------------------------------------------------------
    # OrderMutator
    # ------------------------------------------------------------------

    def fetch_order(self, order_id: str) -> Order:
        payload = self._request("GET", f"/orders/{order_id}.json")
        return Order.from_dict(payload.get("order") or {})

    def set_tags(self, order_id: str, tags: List[str]) -> None:
        logger.info("Updating tags on order %s: %s", order_id, join_tags(tags))
        self._update_order(order_id, {"tags": join_tags(tags)})

    def append_note(self, order_id: str, text: str) -> None:
        current = self.fetch_order(order_id).note
        logger.info("Adding note to order %s", order_id)
        self._update_order(order_id, {"note": append_note_text(current, text)})

    def cancel(
        self,
        order_id: str,
        reason: str,
        notify_customer: bool,
        refund: bool,
        note: str,
    ) -> None:
        logger.info("Canceling order %s: %s", order_id, note)
        body: Dict[str, Any] = {"reason": reason, "email": notify_customer}
        if refund:
            body["refund"] = {"notify": notify_customer}
        self._request("POST", f"/orders/{order_id}/cancel.json", json=body)

    def reopen(self, order_id: str) -> None:
        logger.info("Reopening canceled order %s", order_id)
        self._request("POST", f"/orders/{order_id}/open.json")

    # ------------------------------------------------------------------
    # Connection test
    # ------------------------------------------------------------------

    def test_connection(self) -> ShopifyConnectionResult:
        result = ShopifyConnectionResult(shop=self.shop)
        start = time.time()
        try:
            payload = self._request("GET", "/shop.json")
        except OrderApiError as exc:
            result.error = str(exc)
            result.error_code = (
                "UNAUTHORIZED" if exc.status_code in (401, 403) else "CONNECTION_FAILED"
            )
            return result
        result.response_time_ms = (time.time() - start) * 1000
        result.connected = True
        result.shop_name = (payload.get("shop") or {}).get("name", "")
        logger.info("Connected to shop: %s", result.shop_name)
        return result

    # ------------------------------------------------------------------
    # Internal HTTP
    # ------------------------------------------------------------------

    def _update_order(self, order_id: str, fields: Dict[str, Any]) -> None:
        body = {"order": dict(fields, id=order_id)}
        self._request("PUT", f"/orders/{order_id}.json", json=body)

    def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        response = self._send(method, f"{self.base_url}{endpoint}", params=params, json=json)
        return self._json(response)

    def _send(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> requests.Response:
        """Low-level request. Raises OrderApiError on network or HTTP errors."""
        try:
            response = self.session.request(
                method, url, params=params, json=json, timeout=self.timeout
            )
        except requests.Timeout as exc:
            raise OrderApiError(f"Shopify request timed out: {method} {url}") from exc
        except requests.RequestException as exc:
            raise OrderApiError(f"Shopify request failed: {method} {url}: {exc}") from exc

        if response.status_code >= 400:
            logger.error(
                "Shopify API Error: %s - %s", response.status_code, response.text[:500]
            )
            raise OrderApiError(
                f"Shopify API error {response.status_code} for {method} {url}",
                status_code=response.status_code,
            )
        return response

    @staticmethod
    def _json(response: requests.Response) -> Dict[str, Any]:
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise OrderApiError(
                "Shopify returned a non-JSON response", status_code=response.status_code
            ) from exc
