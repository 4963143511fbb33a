"""
Duplicate Guard Data Models
Dataclasses for order snapshots, settings and scan results passed between
the engine components.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from . import guard_config as cfg


# ---------------------------------------------------------------------------
# Wire format helpers
# ---------------------------------------------------------------------------

def parse_tags(raw: Union[str, Iterable[str], None]) -> List[str]:
    """Split a comma-delimited tag string into a de-duplicated list.

    Order of first appearance is kept so that rewriting the tags does not
    shuffle what the merchant sees.
    """
    if not raw:
        return []
    parts = raw.split(",") if isinstance(raw, str) else list(raw)
    tags: List[str] = []
    for part in parts:
        tag = str(part).strip()
        if tag and tag not in tags:
            tags.append(tag)
    return tags


def join_tags(tags: Iterable[str]) -> str:
    return cfg.TAG_SEPARATOR.join(parse_tags(list(tags)))


def append_note_text(existing: Optional[str], entry: str) -> str:
    """Concatenate a note entry onto an existing note, never overwriting."""
    if not existing:
        return entry
    return f"{existing}{cfg.NOTE_SEPARATOR}{entry}"


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp into an aware datetime (UTC if naive)."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).strftime(cfg.TIMESTAMP_FORMAT)


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


# ---------------------------------------------------------------------------
# Order snapshot
# ---------------------------------------------------------------------------

class FulfillmentStatus(Enum):
    """Fulfillment state of an order as far as duplicate handling cares."""
    UNFULFILLED = "unfulfilled"
    FULFILLED = "fulfilled"
    PARTIAL = "partial"
    OTHER = "other"

    @classmethod
    def from_raw(cls, raw: Optional[str]) -> "FulfillmentStatus":
        value = (raw or "").strip().lower()
        if value in cfg.UNFULFILLED_STATUSES:
            return cls.UNFULFILLED
        if value == "fulfilled":
            return cls.FULFILLED
        if value == "partial":
            return cls.PARTIAL
        return cls.OTHER


@dataclass
class Order:
    """Read-only snapshot of an order held by the remote platform."""
    id: str = ""
    name: str = ""
    created_at: Optional[datetime] = None
    fulfillment_status: Optional[str] = None
    customer_phone: str = ""
    phone: str = ""
    billing_phone: str = ""
    shipping_phone: str = ""
    tags: List[str] = field(default_factory=list)
    note: str = ""
    cancelled_at: Optional[datetime] = None
    cancel_reason: str = ""
    customer_name: str = ""
    total_price: str = ""

    @property
    def fulfillment(self) -> FulfillmentStatus:
        return FulfillmentStatus.from_raw(self.fulfillment_status)

    @property
    def is_unfulfilled(self) -> bool:
        return self.fulfillment is FulfillmentStatus.UNFULFILLED

    @property
    def is_cancelled(self) -> bool:
        return self.cancelled_at is not None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Order":
        """Build a snapshot from an order payload (REST response or webhook)."""
        customer = data.get("customer") or {}
        billing = data.get("billing_address") or {}
        shipping = data.get("shipping_address") or {}
        first = _text(customer.get("first_name"))
        last = _text(customer.get("last_name"))
        return cls(
            id=_text(data.get("id")),
            name=_text(data.get("name")),
            created_at=parse_timestamp(data.get("created_at")),
            fulfillment_status=data.get("fulfillment_status"),
            customer_phone=_text(customer.get("phone")),
            phone=_text(data.get("phone")),
            billing_phone=_text(billing.get("phone")),
            shipping_phone=_text(shipping.get("phone")),
            tags=parse_tags(data.get("tags")),
            note=data.get("note") or "",
            cancelled_at=parse_timestamp(data.get("cancelled_at")),
            cancel_reason=_text(data.get("cancel_reason")),
            customer_name=f"{first} {last}".strip(),
            total_price=_text(data.get("total_price")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "fulfillment_status": self.fulfillment_status,
            "tags": join_tags(self.tags),
            "note": self.note,
            "cancelled_at": self.cancelled_at.isoformat() if self.cancelled_at else None,
            "cancel_reason": self.cancel_reason,
            "customer_name": self.customer_name,
            "total_price": self.total_price,
        }


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

def _coerce_search_days(value: Any) -> int:
    try:
        days = int(value)
    except (TypeError, ValueError):
        return cfg.DEFAULT_SEARCH_DAYS
    if days < 1:
        return cfg.DEFAULT_SEARCH_DAYS
    return min(days, cfg.MAX_SEARCH_DAYS)


def _coerce_tag_name(value: Any) -> str:
    tag = _text(value).replace(",", " ").strip()
    return tag or cfg.DEFAULT_TAG_NAME


def _coerce_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


@dataclass(frozen=True)
class Settings:
    """Duplicate detection settings, passed explicitly into every scan.

    Out-of-range values are normalised on construction instead of raising.
    """
    search_days: int = cfg.DEFAULT_SEARCH_DAYS
    tag_name: str = cfg.DEFAULT_TAG_NAME
    tag_color: str = cfg.DEFAULT_TAG_COLOR
    auto_cancel: bool = cfg.DEFAULT_AUTO_CANCEL
    webhook_enabled: bool = cfg.DEFAULT_WEBHOOK_ENABLED

    def __post_init__(self) -> None:
        object.__setattr__(self, "search_days", _coerce_search_days(self.search_days))
        object.__setattr__(self, "tag_name", _coerce_tag_name(self.tag_name))
        object.__setattr__(self, "tag_color", _text(self.tag_color) or cfg.DEFAULT_TAG_COLOR)
        object.__setattr__(self, "auto_cancel", _coerce_bool(self.auto_cancel, cfg.DEFAULT_AUTO_CANCEL))
        object.__setattr__(
            self, "webhook_enabled", _coerce_bool(self.webhook_enabled, cfg.DEFAULT_WEBHOOK_ENABLED)
        )

    _ALIASES = {
        "searchDays": "search_days",
        "tagName": "tag_name",
        "tagColor": "tag_color",
        "autoCancel": "auto_cancel",
        "webhookEnabled": "webhook_enabled",
    }

    @classmethod
    def _field_changes(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        known = {"search_days", "tag_name", "tag_color", "auto_cancel", "webhook_enabled"}
        changes: Dict[str, Any] = {}
        for key, value in data.items():
            name = cls._ALIASES.get(key, key)
            if name in known and value is not None:
                changes[name] = value
        return changes

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Settings":
        """Accepts snake_case and the dashboard's camelCase keys."""
        return cls(**cls._field_changes(data or {}))

    def updated(self, **changes: Any) -> "Settings":
        return replace(self, **self._field_changes(changes))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "search_days": self.search_days,
            "tag_name": self.tag_name,
            "tag_color": self.tag_color,
            "auto_cancel": self.auto_cancel,
            "webhook_enabled": self.webhook_enabled,
        }


# ---------------------------------------------------------------------------
# Grouping and resolution
# ---------------------------------------------------------------------------

@dataclass
class DuplicateGroup:
    """Orders in the lookback window sharing one phone key (size >= 2)."""
    phone: str
    orders: List[Order] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.orders)


@dataclass(frozen=True)
class DuplicateDecision:
    """Outcome of resolving one group.

    ``canonical_order`` is the first unfulfilled member and is the order that
    gets tagged, noted and canceled. ``redundant_orders`` are only referenced
    in the note.
    """
    phone: str
    canonical_order: Order
    redundant_orders: Tuple[Order, ...]

    @property
    def sibling_names(self) -> List[str]:
        return [o.name for o in self.redundant_orders]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phone": self.phone,
            "unfulfilled_order": self.canonical_order.name,
            "duplicates": self.sibling_names,
        }


# ---------------------------------------------------------------------------
# Processing result models
# ---------------------------------------------------------------------------

class ScanState(Enum):
    """Lifecycle states for one scan pass."""
    IDLE = "IDLE"
    FETCHING = "FETCHING"
    GROUPING = "GROUPING"
    RESOLVING = "RESOLVING"
    REMEDIATING = "REMEDIATING"
    DONE = "DONE"
    FAILED = "FAILED"


@dataclass
class RemediationResult:
    """Result of remediating the canonical order of one decision."""
    order_id: str = ""
    order_name: str = ""
    phone: str = ""
    sibling_names: List[str] = field(default_factory=list)
    tagged: bool = False
    noted: bool = False
    canceled: bool = False
    dry_run: bool = False
    errors: List[str] = field(default_factory=list)

    @property
    def status(self) -> str:
        if self.dry_run:
            return "DRY_RUN"
        if not self.errors:
            return "REMEDIATED"
        if self.tagged or self.noted or self.canceled:
            return "PARTIAL"
        return "FAILED"

    @property
    def success(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "order_id": self.order_id,
            "order_name": self.order_name,
            "phone": self.phone,
            "duplicates": self.sibling_names,
            "status": self.status,
            "tagged": self.tagged,
            "noted": self.noted,
            "canceled": self.canceled,
        }
        if self.errors:
            d["errors"] = self.errors
        return d


@dataclass
class ReversalResult:
    """Result of manually reopening a canceled duplicate."""
    order_id: str = ""
    reopened: bool = False
    tag_removed: bool = False
    noted: bool = False
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "success": self.success,
            "order_id": self.order_id,
            "reopened": self.reopened,
            "tag_removed": self.tag_removed,
            "noted": self.noted,
        }
        if self.errors:
            d["errors"] = self.errors
        return d


@dataclass
class ScanResult:
    """Result of one batch or incremental scan."""
    trigger: str = cfg.TRIGGER_BATCH
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    state: ScanState = ScanState.IDLE
    states: List[str] = field(default_factory=lambda: [ScanState.IDLE.value])
    search_days: int = cfg.DEFAULT_SEARCH_DAYS
    dry_run: bool = False
    orders_fetched: int = 0
    orders_in_window: int = 0
    groups_found: int = 0
    decisions: List[DuplicateDecision] = field(default_factory=list)
    remediations: List[RemediationResult] = field(default_factory=list)
    skipped_reason: str = ""
    processing_time_seconds: float = 0.0

    def advance(self, state: ScanState) -> None:
        self.state = state
        self.states.append(state.value)

    @property
    def duplicates_found(self) -> int:
        return len(self.decisions)

    @property
    def failed_orders(self) -> List[str]:
        return [r.order_name for r in self.remediations if r.errors]

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "trigger": self.trigger,
            "timestamp": self.timestamp,
            "state": self.state.value,
            "dry_run": self.dry_run,
            "summary": {
                "search_days": self.search_days,
                "orders_fetched": self.orders_fetched,
                "orders_in_window": self.orders_in_window,
                "groups_found": self.groups_found,
                "duplicates_found": self.duplicates_found,
                "failed_orders": self.failed_orders,
                "processing_time_seconds": round(self.processing_time_seconds, 2),
            },
            "details": [d.to_dict() for d in self.decisions],
            "results": [r.to_dict() for r in self.remediations],
        }
        if self.skipped_reason:
            d["skipped_reason"] = self.skipped_reason
        return d


@dataclass
class ShopifyConnectionResult:
    """Result of a Shopify connection test."""
    connected: bool = False
    shop: str = ""
    shop_name: str = ""
    response_time_ms: float = 0.0
    error: str = ""
    error_code: str = ""

    @property
    def success(self) -> bool:
        return self.connected and not self.error_code

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "success": self.success,
            "connected": self.connected,
            "shop": self.shop,
        }
        if self.connected:
            d["shop_name"] = self.shop_name
            d["response_time_ms"] = round(self.response_time_ms, 1)
        if self.error:
            d["error"] = self.error
            d["error_code"] = self.error_code
        return d
