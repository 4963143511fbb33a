"""
Reversal Handler
Manually reopens a canceled duplicate, drops the duplicate tag and records
the decision in the order note.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from . import guard_config as cfg
from .exceptions import ReversalFailed
from .models import ReversalResult, Settings, format_timestamp
from .order_store import OrderMutator

logger = logging.getLogger(__name__)


def build_reopen_note(now: datetime) -> str:
    return "\n".join([
        cfg.REOPEN_NOTE_MARKER,
        f"Order reopened at: {format_timestamp(now)}",
        cfg.REOPEN_NOTE_REASON,
    ])


class ReversalHandler:
    """Undo remediation for one order on explicit request."""

    def __init__(self, mutator: OrderMutator) -> None:
        self.mutator = mutator

    def reverse(
        self,
        order_id: str,
        settings: Settings,
        remove_tag: bool = True,
        now: Optional[datetime] = None,
    ) -> ReversalResult:
        """Reopen, untag and annotate the order.

        Every step is attempted even if an earlier one failed, and nothing is
        rolled back.

        Raises:
            ReversalFailed: if any step failed; carries the partial result.
        """
        now = now or datetime.now(timezone.utc)
        order_id = str(order_id)
        result = ReversalResult(order_id=order_id)
        logger.info("Manually reopening canceled order %s", order_id)

        try:
            self.mutator.reopen(order_id)
            result.reopened = True
        except Exception as exc:
            result.errors.append(f"reopen failed: {exc}")

        if remove_tag:
            try:
                current = self.mutator.fetch_order(order_id).tags
                if settings.tag_name in current:
                    self.mutator.set_tags(
                        order_id, [t for t in current if t != settings.tag_name]
                    )
                result.tag_removed = True
            except Exception as exc:
                result.errors.append(f"tag removal failed: {exc}")

        try:
            self.mutator.append_note(order_id, build_reopen_note(now))
            result.noted = True
        except Exception as exc:
            result.errors.append(f"note failed: {exc}")

        if result.errors:
            logger.error("Reopening order %s incomplete: %s", order_id, "; ".join(result.errors))
            raise ReversalFailed(result)

        logger.info("Order %s reopened successfully", order_id)
        return result
