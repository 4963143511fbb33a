"""
Scan Orchestrator
Drives a full batch scan or a single-order incremental check through
fetch, grouping, resolution and remediation.

State machine:
    IDLE -> FETCHING -> GROUPING -> RESOLVING -> REMEDIATING -> DONE
    FETCHING -> FAILED   (fetch errors abort the scan)
Per-order remediation failures are recorded and never move a scan to FAILED.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import List, Optional

from . import guard_config as cfg
from .duplicate_resolver import resolve_groups
from .exceptions import SourceUnavailable
from .grouping_engine import filter_to_window, find_duplicate_groups, window_start
from .models import DuplicateGroup, Order, ScanResult, ScanState, Settings
from .order_store import OrderDirectory, OrderMutator
from .phone_normalizer import NO_PHONE, resolve_phone_key
from .remediation_driver import RemediationDriver
from .reversal_handler import ReversalHandler

logger = logging.getLogger(__name__)


class ScanOrchestrator:
    """Shared pipeline for batch scans, order webhooks and manual reopen."""

    def __init__(
        self,
        directory: OrderDirectory,
        mutator: OrderMutator,
        driver: Optional[RemediationDriver] = None,
        reversal: Optional[ReversalHandler] = None,
    ) -> None:
        self.directory = directory
        self.mutator = mutator
        self.driver = driver or RemediationDriver(mutator)
        self.reversal = reversal or ReversalHandler(mutator)

    # ------------------------------------------------------------------
    # Batch trigger
    # ------------------------------------------------------------------

    def run_batch_scan(
        self,
        settings: Settings,
        now: Optional[datetime] = None,
        dry_run: bool = False,
    ) -> ScanResult:
        """Scan every order in the lookback window.

        Raises:
            SourceUnavailable: if the order directory could not be read.
        """
        now = now or datetime.now(timezone.utc)
        result = ScanResult(
            trigger=cfg.TRIGGER_BATCH,
            search_days=settings.search_days,
            dry_run=dry_run,
        )
        start = time.time()
        logger.info("Starting duplicate detection for last %d days", settings.search_days)

        orders = self._fetch_window(result, settings, now)

        result.advance(ScanState.GROUPING)
        in_window = filter_to_window(orders, settings.search_days, now)
        result.orders_in_window = len(in_window)
        groups = find_duplicate_groups(in_window)
        result.groups_found = len(groups)

        self._resolve_and_remediate(result, groups, settings, now, dry_run)

        result.processing_time_seconds = time.time() - start
        logger.info(
            "Scan completed: %d groups, %d duplicates, %d not fully remediated",
            result.groups_found, result.duplicates_found, len(result.failed_orders),
        )
        return result

    # ------------------------------------------------------------------
    # Incremental trigger
    # ------------------------------------------------------------------

    def run_incremental(
        self,
        order: Order,
        settings: Settings,
        now: Optional[datetime] = None,
        dry_run: bool = False,
    ) -> ScanResult:
        """Check one newly created order against the lookback window.

        Raises:
            SourceUnavailable: if the order directory could not be read.
        """
        now = now or datetime.now(timezone.utc)
        result = ScanResult(
            trigger=cfg.TRIGGER_WEBHOOK,
            search_days=settings.search_days,
            dry_run=dry_run,
        )
        start = time.time()
        logger.info("New order: %s (%s)", order.name, order.id)

        phone = resolve_phone_key(order)
        if not settings.webhook_enabled:
            return self._skip(result, "webhooks disabled")
        if not order.is_unfulfilled:
            return self._skip(result, f"order {order.name} is {order.fulfillment_status}")
        if phone == NO_PHONE:
            return self._skip(result, f"no phone number on order {order.name}")

        orders = self._fetch_window(result, settings, now)

        result.advance(ScanState.GROUPING)
        in_window = filter_to_window(orders, settings.search_days, now)
        result.orders_in_window = len(in_window)
        matches = [
            o for o in in_window
            if o.id != order.id and resolve_phone_key(o) == phone
        ]
        groups: List[DuplicateGroup] = []
        if matches:
            logger.warning(
                "DUPLICATE DETECTED! Order %s matches %d existing orders",
                order.name, len(matches),
            )
            groups.append(DuplicateGroup(phone=phone, orders=[order] + matches))
        else:
            logger.info("Order %s is clean - no duplicates found", order.name)
        result.groups_found = len(groups)

        self._resolve_and_remediate(result, groups, settings, now, dry_run)
        result.processing_time_seconds = time.time() - start
        return result

    # ------------------------------------------------------------------
    # Manual management
    # ------------------------------------------------------------------

    def reopen_order(self, order_id: str, settings: Settings, remove_tag: bool = True):
        return self.reversal.reverse(order_id, settings, remove_tag=remove_tag)

    def list_canceled_duplicates(self, settings: Settings) -> List[Order]:
        """Canceled orders carrying the duplicate tag.

        Raises:
            SourceUnavailable: if the order directory could not be read.
        """
        try:
            canceled = self.directory.fetch_canceled_orders()
        except Exception as exc:
            raise SourceUnavailable(f"Could not fetch canceled orders: {exc}") from exc
        return [o for o in canceled if settings.tag_name in o.tags]

    # ------------------------------------------------------------------
    # Pipeline stages
    # ------------------------------------------------------------------

    def _fetch_window(
        self,
        result: ScanResult,
        settings: Settings,
        now: datetime,
    ) -> List[Order]:
        result.advance(ScanState.FETCHING)
        since = window_start(settings.search_days, now)
        try:
            orders = list(self.directory.fetch_orders_created_since(since))
        except Exception as exc:
            result.advance(ScanState.FAILED)
            logger.error("Fetching orders since %s failed: %s", since.isoformat(), exc)
            raise SourceUnavailable(f"Could not fetch orders: {exc}") from exc
        result.orders_fetched = len(orders)
        logger.info("Fetched %d orders since %s", len(orders), since.isoformat())
        return orders

    def _resolve_and_remediate(
        self,
        result: ScanResult,
        groups: List[DuplicateGroup],
        settings: Settings,
        now: datetime,
        dry_run: bool,
    ) -> None:
        result.advance(ScanState.RESOLVING)
        result.decisions = resolve_groups(groups)

        result.advance(ScanState.REMEDIATING)
        result.remediations = self.driver.remediate_all(
            result.decisions,
            settings,
            trigger=result.trigger,
            now=now,
            dry_run=dry_run,
        )
        result.advance(ScanState.DONE)

    def _skip(self, result: ScanResult, reason: str) -> ScanResult:
        logger.info("Skipping duplicate check: %s", reason)
        result.skipped_reason = reason
        result.advance(ScanState.DONE)
        return result
