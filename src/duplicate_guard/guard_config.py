"""
Duplicate Guard Configuration
Isolated constants and defaults for the duplicate detection engine.
Loads optional environment overrides for the default settings.

This module does NOT import from the main src/config.py to maintain isolation.
"""

import os

# ---------------------------------------------------------------------------
# Default settings (used when no explicit value is supplied)
# ---------------------------------------------------------------------------
FALLBACK_SEARCH_DAYS = 14


def positive_int_env(name: str, fallback: int) -> int:
    """Integer from the environment; fallback when unset, unparseable or < 1."""
    try:
        value = int(os.getenv(name, str(fallback)))
    except ValueError:
        return fallback
    return value if value >= 1 else fallback


DEFAULT_SEARCH_DAYS: int = positive_int_env("DUPLICATE_GUARD_SEARCH_DAYS", FALLBACK_SEARCH_DAYS)
MAX_SEARCH_DAYS: int = positive_int_env("DUPLICATE_GUARD_MAX_SEARCH_DAYS", 365)
DEFAULT_TAG_NAME: str = os.getenv("DUPLICATE_GUARD_TAG_NAME", "DUPLICATE-CANCELED")
DEFAULT_TAG_COLOR: str = os.getenv("DUPLICATE_GUARD_TAG_COLOR", "red")
DEFAULT_AUTO_CANCEL: bool = os.getenv("DUPLICATE_GUARD_AUTO_CANCEL", "true").lower() == "true"
DEFAULT_WEBHOOK_ENABLED: bool = os.getenv("DUPLICATE_GUARD_WEBHOOK_ENABLED", "true").lower() == "true"

# ---------------------------------------------------------------------------
# Phone matching
# ---------------------------------------------------------------------------
NO_PHONE = "N/A"

# ---------------------------------------------------------------------------
# Order wire format
# ---------------------------------------------------------------------------
TAG_SEPARATOR = ", "
NOTE_SEPARATOR = "\n\n"
UNFULFILLED_STATUSES = {None, "", "unfulfilled"}

# ---------------------------------------------------------------------------
# Scan triggers
# ---------------------------------------------------------------------------
TRIGGER_BATCH = "manual scan"
TRIGGER_WEBHOOK = "order webhook"

# ---------------------------------------------------------------------------
# Note and cancellation text
# ---------------------------------------------------------------------------
DETECTION_NOTE_MARKER = "DUPLICATE ORDER DETECTION"
STATUS_CANCELED = "Status: CANCELED - Needs manual review"
STATUS_FLAGGED = "Status: FLAGGED - Needs manual review"
REOPEN_NOTE_MARKER = "MANUALLY REOPENED"
REOPEN_NOTE_REASON = "Considered legitimate order, not a duplicate."
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S UTC"

CANCEL_REASON = "other"
CANCEL_NOTIFY_CUSTOMER = False
CANCEL_REFUND = False

# ---------------------------------------------------------------------------
# Shopify connection
# ---------------------------------------------------------------------------
SHOPIFY_SHOP: str = os.getenv("SHOPIFY_SHOP", "")
SHOPIFY_ACCESS_TOKEN: str = os.getenv("SHOPIFY_ACCESS_TOKEN", "")
SHOPIFY_API_VERSION: str = os.getenv("SHOPIFY_API_VERSION", "2023-10")
SHOPIFY_TIMEOUT_CONNECT: int = int(os.getenv("SHOPIFY_TIMEOUT_CONNECT", "10"))
SHOPIFY_TIMEOUT_READ: int = int(os.getenv("SHOPIFY_TIMEOUT_READ", "30"))
SHOPIFY_PAGE_LIMIT: int = int(os.getenv("SHOPIFY_PAGE_LIMIT", "250"))
SHOPIFY_CANCELED_LIMIT: int = int(os.getenv("SHOPIFY_CANCELED_LIMIT", "50"))
SHOPIFY_ORDER_FIELDS = (
    "id,name,phone,customer,billing_address,shipping_address,created_at,"
    "fulfillment_status,tags,note,cancelled_at,cancel_reason,total_price"
)
