"""
coinbot.services.eligibility_service — Remaining Claims per Action
===================================================================

Read-only.  Counts a member's APPROVED requests per capped action and
reports how many claims are left.

This is the one read path that **fails open**: if the store errors or
doesn't answer within the configured timeout, every capped action is
reported at its full allowance; a reviewer still sees every claim.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from coinbot.database.engine import get_session, run_db
from coinbot.database.models import CoinRequest, RequestStatus
from coinbot.engine.eligibility import (
    can_claim_from_remaining,
    full_caps,
    remaining_from_counts,
)
from coinbot.engine.errors import UnknownAction

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from coinbot.engine.catalog import Catalog

logger = logging.getLogger(__name__)


def approved_counts(engine: Engine, user_id: int) -> dict[str, int]:
    """``action → number of APPROVED requests`` for *user_id*."""
    with get_session(engine) as session:
        rows = session.execute(
            select(CoinRequest.action, func.count().label("cnt"))
            .where(
                CoinRequest.user_id == user_id,
                CoinRequest.status == RequestStatus.APPROVED,
            )
            .group_by(CoinRequest.action)
        ).all()
        return {row.action: row.cnt for row in rows}


def remaining_claims(engine: Engine, catalog: Catalog, user_id: int) -> dict[str, int]:
    """Claims left for each capped action.  Uncapped actions are omitted.

    Never raises on a store failure; see the module docstring.
    """
    try:
        counts = approved_counts(engine, user_id)
    except SQLAlchemyError:
        logger.warning(
            "Eligibility lookup failed for user %d; assuming full caps",
            user_id,
            exc_info=True,
        )
        return full_caps(catalog)
    return remaining_from_counts(catalog, counts)


def can_claim(engine: Engine, catalog: Catalog, user_id: int, action_id: str) -> bool:
    """True if *action_id* is uncapped or has claims left for *user_id*.

    Raises :class:`~coinbot.engine.errors.UnknownAction` for an id that
    isn't in the catalog.
    """
    if catalog.get_action(action_id) is None:
        raise UnknownAction(action_id)
    return can_claim_from_remaining(
        catalog, remaining_claims(engine, catalog, user_id), action_id
    )


async def check_remaining_claims(
    engine: Engine,
    catalog: Catalog,
    user_id: int,
    *,
    timeout: float,
) -> dict[str, int]:
    """Async :func:`remaining_claims` with a bounded wait.

    Used by the claim picker, which has to answer Discord within a few
    seconds.  A slow store is treated like a failed one.
    """
    try:
        return await asyncio.wait_for(
            run_db(remaining_claims, engine, catalog, user_id), timeout=timeout
        )
    except TimeoutError:
        logger.warning(
            "Eligibility lookup for user %d timed out after %.1fs; assuming full caps",
            user_id,
            timeout,
        )
        return full_caps(catalog)
