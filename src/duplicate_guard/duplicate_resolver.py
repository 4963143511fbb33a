"""
Duplicate Resolver
Decides which order of a duplicate group is kept for review.

The first unfulfilled member (in group order) becomes the canonical order and
is the one remediated; every other member is recorded as a sibling reference.
When several members are unfulfilled only the first is picked, the later ones
are listed as siblings and never remediated in the same pass. Groups without
any unfulfilled member are already settled and produce no decision.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from .models import DuplicateDecision, DuplicateGroup

logger = logging.getLogger(__name__)


def resolve_group(group: DuplicateGroup) -> Optional[DuplicateDecision]:
    canonical = next((o for o in group.orders if o.is_unfulfilled), None)
    if canonical is None:
        logger.info("Phone %s: all %d orders fulfilled, nothing to review", group.phone, len(group))
        return None

    redundant = tuple(o for o in group.orders if o is not canonical)
    if not redundant:
        return None

    return DuplicateDecision(
        phone=group.phone,
        canonical_order=canonical,
        redundant_orders=redundant,
    )


def resolve_groups(groups: Iterable[DuplicateGroup]) -> List[DuplicateDecision]:
    decisions: List[DuplicateDecision] = []
    for group in groups:
        decision = resolve_group(group)
        if decision is not None:
            decisions.append(decision)
    return decisions
