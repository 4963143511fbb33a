"""
Duplicate Guard error taxonomy.

SourceUnavailable aborts a whole scan. RemediationFailed is recorded per
order and never escapes a scan. ReversalFailed is surfaced to the caller
together with whatever the reversal managed to do.
"""

from __future__ import annotations

from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .models import ReversalResult


class DuplicateGuardError(Exception):
    """Base class for all duplicate guard errors."""


class OrderApiError(DuplicateGuardError):
    """The remote order platform rejected a request or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SourceUnavailable(DuplicateGuardError):
    """Fetching orders from the order directory failed."""


class RemediationFailed(DuplicateGuardError):
    """A single remediation step (tag, note or cancel) failed for one order."""

    def __init__(self, order_name: str, step: str, reason: str) -> None:
        super().__init__(f"{step} failed for order {order_name}: {reason}")
        self.order_name = order_name
        self.step = step
        self.reason = reason


class ReversalFailed(DuplicateGuardError):
    """One or more reversal steps failed. Earlier steps are not rolled back."""

    def __init__(self, result: "ReversalResult") -> None:
        super().__init__(
            f"Reopening order {result.order_id} failed: {'; '.join(result.errors)}"
        )
        self.result = result
