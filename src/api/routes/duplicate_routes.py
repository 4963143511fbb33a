"""
Duplicate detection routes - settings, manual scan, order webhook,
manual reopen and the canceled-duplicates listing for the dashboard.
"""
import json
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, ConfigDict, Field

from api.dependencies import (
    get_order_store,
    get_orchestrator,
    get_settings_store,
    get_webhook_secret,
)
from api.settings_store import SettingsStore
from api.webhook_security import validate_shopify_hmac
from duplicate_guard.exceptions import ReversalFailed, SourceUnavailable
from duplicate_guard.models import Order
from duplicate_guard.order_store import InMemoryOrderStore
from duplicate_guard.phone_normalizer import resolve_phone_key
from duplicate_guard.scan_orchestrator import ScanOrchestrator

logger = logging.getLogger("duplicate_guard.api")

router = APIRouter()

# ── Pydantic models ──────────────────────────────────────────────

class SettingsUpdateRequest(BaseModel):
    """Partial settings update; omitted fields keep their current value.

    Accepts snake_case or the dashboard's camelCase keys.
    """
    model_config = ConfigDict(populate_by_name=True)

    search_days: Optional[int] = Field(None, alias="searchDays")
    tag_name: Optional[str] = Field(None, alias="tagName")
    tag_color: Optional[str] = Field(None, alias="tagColor")
    auto_cancel: Optional[bool] = Field(None, alias="autoCancel")
    webhook_enabled: Optional[bool] = Field(None, alias="webhookEnabled")


class SettingsResponse(BaseModel):
    success: bool = True
    settings: Dict[str, Any]


class FindDuplicatesRequest(BaseModel):
    """Manual scan options."""
    model_config = ConfigDict(populate_by_name=True)

    search_days: Optional[int] = Field(None, alias="searchDays")
    dry_run: bool = Field(False, alias="dryRun")
    use_mock_data: bool = Field(False, alias="useMockData")


class ReopenRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    remove_tag: bool = Field(True, alias="removeTag")


class CanceledOrder(BaseModel):
    id: str
    name: str
    customer: str
    phone: str
    total_price: str
    created_at: Optional[str] = None
    canceled_at: Optional[str] = None
    cancel_reason: str = ""
    tags: str = ""


class CanceledDuplicatesResponse(BaseModel):
    success: bool = True
    canceled_orders: List[CanceledOrder]
    count: int


# ── Settings ─────────────────────────────────────────────────────

@router.get("/settings", response_model=SettingsResponse, summary="Get duplicate detection settings")
def get_settings(store: SettingsStore = Depends(get_settings_store)):
    return SettingsResponse(settings=store.get().to_dict())


@router.post("/settings", response_model=SettingsResponse, summary="Update duplicate detection settings")
def update_settings(
    body: SettingsUpdateRequest,
    store: SettingsStore = Depends(get_settings_store),
):
    settings = store.update(**body.model_dump(exclude_none=True))
    logger.info(f"[Settings] Updated: {settings.to_dict()}")
    return SettingsResponse(settings=settings.to_dict())


# ── Scans ────────────────────────────────────────────────────────

@router.post("/find-duplicates", summary="Scan recent orders for duplicate phone numbers")
def find_duplicates(
    body: FindDuplicatesRequest,
    orchestrator: ScanOrchestrator = Depends(get_orchestrator),
    store: SettingsStore = Depends(get_settings_store),
):
    """
    Run a batch scan over the lookback window.

    ``search_days`` overrides the stored setting for this scan only.
    ``use_mock_data`` scans the built-in sample orders and never mutates anything.
    """
    settings = store.get()
    if body.search_days is not None:
        settings = settings.updated(search_days=body.search_days)

    dry_run = body.dry_run
    if body.use_mock_data:
        sample = InMemoryOrderStore.with_sample_orders()
        orchestrator = ScanOrchestrator(sample, sample)
        dry_run = True

    try:
        result = orchestrator.run_batch_scan(settings, dry_run=dry_run)
    except SourceUnavailable as e:
        logger.error(f"[Scan] {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))

    payload = result.to_dict()
    payload.update({
        "success": True,
        "message": (
            f"Scan completed! Found {result.duplicates_found} orders "
            f"with duplicate phone numbers."
        ),
        "duplicates_found": result.duplicates_found,
    })
    return payload


@router.post("/webhooks/orders/create", summary="Shopify orders/create webhook")
async def order_created_webhook(
    request: Request,
    x_shopify_hmac_sha256: Optional[str] = Header(None, alias="X-Shopify-Hmac-Sha256"),
    orchestrator: ScanOrchestrator = Depends(get_orchestrator),
    store: SettingsStore = Depends(get_settings_store),
    secret: str = Depends(get_webhook_secret),
):
    """
    Check a newly created order against recent orders.

    Returns 200 OK when the order was processed or skipped, and 500 when the
    recent orders could not be fetched so that Shopify retries delivery.
    """
    raw_body = await request.body()
    if not validate_shopify_hmac(raw_body, x_shopify_hmac_sha256 or "", secret):
        logger.warning("[Webhook] Invalid Shopify signature")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature")

    try:
        payload = json.loads(raw_body or b"{}")
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON body")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Order payload must be an object")

    order = Order.from_dict(payload)
    logger.info(f"[Webhook] Received order creation webhook: {order.name} ({order.id})")

    try:
        await run_in_threadpool(orchestrator.run_incremental, order, store.get())
    except SourceUnavailable as e:
        logger.error(f"[Webhook] Processing error: {e}")
        return PlainTextResponse("Error processing webhook", status_code=500)

    return PlainTextResponse("OK")


# ── Manual management ────────────────────────────────────────────

@router.post("/orders/{order_id}/reopen", summary="Reopen a canceled duplicate")
def reopen_order(
    order_id: str,
    body: Optional[ReopenRequest] = None,
    orchestrator: ScanOrchestrator = Depends(get_orchestrator),
    store: SettingsStore = Depends(get_settings_store),
):
    remove_tag = body.remove_tag if body is not None else True
    try:
        result = orchestrator.reopen_order(order_id, store.get(), remove_tag=remove_tag)
    except ReversalFailed as e:
        return JSONResponse(status_code=500, content={**e.result.to_dict(), "error": str(e)})

    return {**result.to_dict(), "message": f"Order {order_id} reopened successfully"}


@router.get(
    "/orders/canceled-duplicates",
    response_model=CanceledDuplicatesResponse,
    summary="List canceled orders carrying the duplicate tag",
)
def canceled_duplicates(
    orchestrator: ScanOrchestrator = Depends(get_orchestrator),
    store: SettingsStore = Depends(get_settings_store),
):
    try:
        orders = orchestrator.list_canceled_duplicates(store.get())
    except SourceUnavailable as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))

    formatted = []
    for order in orders:
        d = order.to_dict()
        formatted.append(CanceledOrder(
            id=order.id,
            name=order.name,
            customer=order.customer_name,
            phone=resolve_phone_key(order),
            total_price=order.total_price,
            created_at=d["created_at"],
            canceled_at=d["cancelled_at"],
            cancel_reason=order.cancel_reason,
            tags=d["tags"],
        ))
    return CanceledDuplicatesResponse(canceled_orders=formatted, count=len(formatted))


@router.get("/test-shopify", summary="Test the Shopify API connection")
def test_shopify(order_store=Depends(get_order_store)):
    if not hasattr(order_store, "test_connection"):
        return {
            "success": False,
            "message": "Shopify credentials not configured",
            "configured": False,
        }

    result = order_store.test_connection()
    return {
        **result.to_dict(),
        "message": f"Connected to {result.shop_name}" if result.success else result.error,
        "configured": True,
    }
