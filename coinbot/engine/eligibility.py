"""
coinbot.engine.eligibility — Claim Cap Rules
=============================================

Pure functions (no I/O) answering "how many more times may this member
claim each capped action?" from a mapping of approved-claim counts.
"""

from __future__ import annotations

from collections.abc import Mapping

from coinbot.engine.catalog import Catalog
from coinbot.engine.errors import UnknownAction

__all__ = ["full_caps", "remaining_from_counts", "can_claim_from_remaining"]


def full_caps(catalog: Catalog) -> dict[str, int]:
    """Every capped action at its full allowance (nothing used yet)."""
    return {a.id: a.max_claims for a in catalog.capped_actions}  # type: ignore[misc]


def remaining_from_counts(
    catalog: Catalog, approved_counts: Mapping[str, int]
) -> dict[str, int]:
    """``max(0, cap - approved)`` for each capped action.

    Uncapped actions are left out; counts for actions no longer in the
    catalog are ignored.
    """
    return {
        a.id: max(0, a.max_claims - approved_counts.get(a.id, 0))  # type: ignore[operator]
        for a in catalog.capped_actions
    }


def can_claim_from_remaining(
    catalog: Catalog, remaining: Mapping[str, int], action_id: str
) -> bool:
    """True when *action_id* is uncapped or still has claims left."""
    action = catalog.get_action(action_id)
    if action is None:
        raise UnknownAction(action_id)
    if not action.is_capped:
        return True
    return remaining.get(action_id, action.max_claims) > 0  # type: ignore[operator]
