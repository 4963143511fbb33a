"""
Remediation Driver
Applies tag, note and optional cancel to the order picked by the resolver,
with per-order error isolation.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional

from . import guard_config as cfg
from .exceptions import RemediationFailed
from .models import (
    DuplicateDecision,
    RemediationResult,
    Settings,
    format_timestamp,
)
from .order_store import OrderMutator

logger = logging.getLogger(__name__)


def build_detection_note(
    sibling_names: List[str],
    trigger: str,
    auto_cancel: bool,
    now: datetime,
) -> str:
    status = cfg.STATUS_CANCELED if auto_cancel else cfg.STATUS_FLAGGED
    return "\n".join([
        f"{cfg.DETECTION_NOTE_MARKER} ({trigger})",
        f"Duplicates found: {', '.join(sibling_names)}",
        f"Detection time: {format_timestamp(now)}",
        status,
    ])


def build_cancel_note(sibling_names: List[str], trigger: str) -> str:
    return f"Duplicate detection ({trigger}) - matches orders: {', '.join(sibling_names)}"


class RemediationDriver:
    """Remediates DuplicateDecisions against an OrderMutator."""

    def __init__(self, mutator: OrderMutator) -> None:
        self.mutator = mutator

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def remediate(
        self,
        decision: DuplicateDecision,
        settings: Settings,
        trigger: str = cfg.TRIGGER_BATCH,
        now: Optional[datetime] = None,
        dry_run: bool = False,
    ) -> RemediationResult:
        """Tag, note and (if enabled) cancel the decision's canonical order.

        Tag and note are attempted independently of each other. Cancel is
        stricter: it only runs when both succeeded, and otherwise a
        "cancel skipped" error is recorded. The order then stays open with
        whatever tag or note did land, and a later scan retries it. A
        canceled order therefore always carries its duplicate tag and
        detection note, which are its only audit record.
        Failures are recorded on the result, never raised.
        """
        now = now or datetime.now(timezone.utc)
        target = decision.canonical_order
        siblings = decision.sibling_names
        result = RemediationResult(
            order_id=target.id,
            order_name=target.name,
            phone=decision.phone,
            sibling_names=siblings,
            dry_run=dry_run,
        )

        logger.info(
            "Phone %s: reviewing %s, duplicates %s",
            decision.phone, target.name, ", ".join(siblings),
        )

        if dry_run:
            logger.info("  - Would add tag: %r", settings.tag_name)
            logger.info("  - Would add note referencing: %s", ", ".join(siblings))
            if settings.auto_cancel:
                logger.info("  - Would cancel %s", target.name)
            return result

        result.tagged = self._run_step(
            result, "tag", lambda: self._add_tag(target.id, settings.tag_name)
        )

        note = build_detection_note(siblings, trigger, settings.auto_cancel, now)
        result.noted = self._run_step(
            result, "note", lambda: self.mutator.append_note(target.id, note)
        )

        if settings.auto_cancel:
            if result.tagged and result.noted:
                result.canceled = self._run_step(
                    result,
                    "cancel",
                    lambda: self.mutator.cancel(
                        target.id,
                        reason=cfg.CANCEL_REASON,
                        notify_customer=cfg.CANCEL_NOTIFY_CUSTOMER,
                        refund=cfg.CANCEL_REFUND,
                        note=build_cancel_note(siblings, trigger),
                    ),
                )
            else:
                result.errors.append(
                    f"cancel skipped for order {target.name}: tag or note step failed"
                )

        if result.errors:
            logger.warning("Order %s not fully remediated: %s", target.name, "; ".join(result.errors))
        else:
            logger.info("Order %s remediated as duplicate", target.name)
        return result

    def remediate_all(
        self,
        decisions: Iterable[DuplicateDecision],
        settings: Settings,
        trigger: str = cfg.TRIGGER_BATCH,
        now: Optional[datetime] = None,
        dry_run: bool = False,
    ) -> List[RemediationResult]:
        return [
            self.remediate(d, settings, trigger=trigger, now=now, dry_run=dry_run)
            for d in decisions
        ]

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _add_tag(self, order_id: str, tag_name: str) -> None:
        current = self.mutator.fetch_order(order_id).tags
        if tag_name in current:
            logger.debug("Order %s already tagged %r", order_id, tag_name)
            return
        self.mutator.set_tags(order_id, current + [tag_name])

    def _run_step(
        self,
        result: RemediationResult,
        step: str,
        action: Callable[[], None],
    ) -> bool:
        try:
            action()
            return True
        except Exception as exc:
            failure = RemediationFailed(result.order_name, step, str(exc))
            logger.error(str(failure))
            result.errors.append(str(failure))
            return False
