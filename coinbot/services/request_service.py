"""
coinbot.services.request_service — Coin Request Lifecycle
==========================================================

A request moves through::

    PENDING ──review──▶ APPROVED ──process_approved──▶ processed (coins granted)
            └─review──▶ DECLINED ──process_declined──▶ processed (no effect)

``processed`` starts False for every request.  It flips exactly once, in
the same transaction that applies the request's effect, which is what
makes both processors safe to re-run: their queries skip processed rows.

Each request in a batch is handled in its own session, so one bad row
is logged, counted as ``failed`` and left for the next run while the
rest of the batch still goes through.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import func, select, update

from coinbot.constants import STRAY_ACTION_ID
from coinbot.database.engine import get_session, store_errors
from coinbot.database.models import CoinRequest, RequestStatus
from coinbot.engine.errors import (
    ActionCapReached,
    StrayAlreadyClaimed,
    UnknownAction,
)
from coinbot.services.balance_service import get_or_create_user, increment_coins
from coinbot.services.eligibility_service import can_claim

if TYPE_CHECKING:
    from sqlalchemy import Engine
    from sqlalchemy.orm import Session

    from coinbot.engine.catalog import Catalog

logger = logging.getLogger(__name__)


@dataclass
class ProcessReport:
    """What a processing run did, for the admin reply and the logs."""

    processed: int = 0
    coins_granted: int = 0
    skipped: int = 0
    failed: int = 0
    user_ids: set[int] = field(default_factory=set)

    def as_dict(self) -> dict:
        return {
            "processed": self.processed,
            "coins_granted": self.coins_granted,
            "skipped": self.skipped,
            "failed": self.failed,
            "users": len(self.user_ids),
        }


@dataclass(frozen=True, slots=True)
class SubmitResult:
    request_id: int
    action_id: str
    coins_given: int | None
    user_recorded: bool


@dataclass(frozen=True, slots=True)
class RequestView:
    """Detached snapshot of a request row."""

    id: int
    user_id: int
    display_name: str
    action: str
    status: RequestStatus
    coins_given: int | None
    processed: bool
    submitted_at: date
    proof_link: str | None
    note: str | None

    @classmethod
    def from_row(cls, row: CoinRequest) -> RequestView:
        return cls(
            id=row.id,
            user_id=row.user_id,
            display_name=row.display_name,
            action=row.action,
            status=row.status,
            coins_given=row.coins_given,
            processed=row.processed,
            submitted_at=row.submitted_at,
            proof_link=row.proof_link,
            note=row.note,
        )


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------
def submit_request(
    engine: Engine,
    catalog: Catalog,
    *,
    user_id: int,
    display_name: str,
    action_id: str,
    proof_link: str | None = None,
    note: str | None = None,
    seed: int = 0,
) -> SubmitResult:
    """Store a new PENDING request for *action_id*.

    Raises :class:`UnknownAction` or :class:`ActionCapReached` (nothing
    stored), or :class:`StoreUnavailable` if the request row can't be
    written.  Creating the user row is a separate, best-effort write.
    """
    action = catalog.get_action(action_id)
    if action is None:
        raise UnknownAction(action_id)
    if not can_claim(engine, catalog, user_id, action_id):
        raise ActionCapReached(action.id, action.label, action.max_claims or 0)

    with store_errors("submit_request"), get_session(engine) as session:
        request = CoinRequest(
            user_id=user_id,
            display_name=display_name,
            action=action.id,
            status=RequestStatus.PENDING,
            coins_given=action.coins,
            processed=False,
            submitted_at=datetime.now(UTC).date(),
            proof_link=proof_link or None,
            note=note or None,
        )
        session.add(request)
        session.flush()
        request_id = request.id

    logger.info(
        "Request %d stored: user=%d action=%s coins=%s",
        request_id, user_id, action.id, action.coins,
    )

    user_recorded = True
    try:
        with get_session(engine) as session:
            get_or_create_user(session, user_id, display_name, seed=seed)
    except Exception:
        user_recorded = False
        logger.exception(
            "Could not upsert user %d after storing request %d", user_id, request_id
        )

    return SubmitResult(
        request_id=request_id,
        action_id=action.id,
        coins_given=action.coins,
        user_recorded=user_recorded,
    )


# ---------------------------------------------------------------------------
# Review (admin)
# ---------------------------------------------------------------------------
def review_request(
    engine: Engine,
    catalog: Catalog,
    request_id: int,
    *,
    approve: bool,
    reviewer_id: int,
    coins: int | None = None,
) -> RequestView:
    """Approve or decline a request, optionally setting ``coins_given``.

    Returns the updated request.  Raises ``LookupError`` for an unknown id,
    ``ValueError`` for a request that was already processed, and
    :class:`ActionCapReached` if approving would push the member past the
    action's cap.
    """
    if coins is not None and coins < 0:
        raise ValueError("coins must be >= 0")

    with store_errors("review_request"), get_session(engine) as session:
        request = session.get(CoinRequest, request_id)
        if request is None:
            raise LookupError(f"Request {request_id} not found")
        if request.processed:
            raise ValueError(f"Request {request_id} was already processed")

        if approve and request.status != RequestStatus.APPROVED:
            action = catalog.get_action(request.action)
            if action is not None and action.is_capped:
                already = session.scalar(
                    select(func.count()).select_from(CoinRequest).where(
                        CoinRequest.user_id == request.user_id,
                        CoinRequest.action == request.action,
                        CoinRequest.status == RequestStatus.APPROVED,
                    )
                ) or 0
                if already >= action.max_claims:
                    raise ActionCapReached(action.id, action.label, action.max_claims)

        request.status = RequestStatus.APPROVED if approve else RequestStatus.DECLINED
        request.reviewed_by = reviewer_id
        if coins is not None:
            request.coins_given = coins
        session.flush()
        view = RequestView.from_row(request)

    logger.info(
        "Request %d %s by %d (coins=%s)",
        request_id, view.status.value.lower(), reviewer_id, view.coins_given,
    )
    return view


def list_requests(
    engine: Engine,
    *,
    status: RequestStatus | None = None,
    user_id: int | None = None,
    include_processed: bool = True,
    limit: int = 25,
) -> list[RequestView]:
    """Most recent requests first, optionally filtered."""
    with get_session(engine) as session:
        query = select(CoinRequest)
        if status is not None:
            query = query.where(CoinRequest.status == status)
        if user_id is not None:
            query = query.where(CoinRequest.user_id == user_id)
        if not include_processed:
            query = query.where(CoinRequest.processed.is_(False))
        rows = session.scalars(
            query.order_by(CoinRequest.id.desc()).limit(limit)
        ).all()
        return [RequestView.from_row(r) for r in rows]


# ---------------------------------------------------------------------------
# Processing
# ---------------------------------------------------------------------------
def _unprocessed_ids(engine: Engine, status: RequestStatus, batch_size: int) -> list[int]:
    with get_session(engine) as session:
        return list(
            session.scalars(
                select(CoinRequest.id)
                .where(
                    CoinRequest.status == status,
                    CoinRequest.processed.is_(False),
                )
                .order_by(CoinRequest.id)
                .limit(batch_size)
            ).all()
        )


def _claim(session: Session, request_id: int, status: RequestStatus, *columns):
    """Flip ``processed`` on one unprocessed *status* request in SQL.

    Returns the requested columns of the claimed row, or None when another
    run or a recompute already processed it.
    """
    guards = [
        CoinRequest.id == request_id,
        CoinRequest.status == status,
        CoinRequest.processed.is_(False),
    ]
    if status == RequestStatus.APPROVED:
        guards.append(CoinRequest.coins_given.is_not(None))
    return session.execute(
        update(CoinRequest)
        .where(*guards)
        .values(processed=True, processed_at=datetime.now(UTC))
        .returning(*columns)
        .execution_options(synchronize_session=False)
    ).first()


def _grant_one(engine: Engine, request_id: int, *, seed: int) -> tuple[int, int] | None:
    """Apply one approved request.  Returns ``(user_id, coins)`` or None if skipped.

    The claim and the credit share one transaction, and the claim comes
    first: of two overlapping runs only one gets the row back.
    """
    with get_session(engine) as session:
        claimed = _claim(
            session,
            request_id,
            RequestStatus.APPROVED,
            CoinRequest.user_id,
            CoinRequest.display_name,
            CoinRequest.coins_given,
        )
        if claimed is None:
            action = session.scalar(
                select(CoinRequest.action).where(
                    CoinRequest.id == request_id,
                    CoinRequest.status == RequestStatus.APPROVED,
                    CoinRequest.processed.is_(False),
                    CoinRequest.coins_given.is_(None),
                )
            )
            if action is not None:
                logger.info(
                    "Request %d (%s) has no coin value yet; waiting for a reviewer",
                    request_id, action,
                )
            return None

        user_id, display_name, coins = claimed
        get_or_create_user(session, user_id, display_name, seed=seed)
        increment_coins(session, user_id, coins)
        return user_id, coins


def process_approved(
    engine: Engine, *, batch_size: int = 100, seed: int = 0
) -> ProcessReport:
    """Grant coins for APPROVED, unprocessed requests (at most *batch_size*).

    Requests without a numeric ``coins_given`` are skipped and stay
    unprocessed until a reviewer supplies the value.
    """
    report = ProcessReport()
    for request_id in _unprocessed_ids(engine, RequestStatus.APPROVED, batch_size):
        try:
            granted = _grant_one(engine, request_id, seed=seed)
        except Exception:
            report.failed += 1
            logger.exception("Failed to process approved request %d", request_id)
            continue
        if granted is None:
            report.skipped += 1
            continue
        user_id, coins = granted
        report.processed += 1
        report.coins_granted += coins
        report.user_ids.add(user_id)

    logger.info(
        "Approved processing: %d processed, %d coins, %d skipped, %d failed",
        report.processed, report.coins_granted, report.skipped, report.failed,
    )
    return report


def _close_one(engine: Engine, request_id: int) -> int | None:
    with get_session(engine) as session:
        claimed = _claim(session, request_id, RequestStatus.DECLINED, CoinRequest.user_id)
        return claimed[0] if claimed is not None else None


def process_declined(engine: Engine, *, batch_size: int = 100) -> ProcessReport:
    """Mark DECLINED, unprocessed requests as processed.  No balance effect."""
    report = ProcessReport()
    for request_id in _unprocessed_ids(engine, RequestStatus.DECLINED, batch_size):
        try:
            user_id = _close_one(engine, request_id)
        except Exception:
            report.failed += 1
            logger.exception("Failed to process declined request %d", request_id)
            continue
        if user_id is None:
            report.skipped += 1
            continue
        report.processed += 1
        report.user_ids.add(user_id)

    logger.info(
        "Declined processing: %d processed, %d failed", report.processed, report.failed
    )
    return report


def process_all(engine: Engine, *, batch_size: int = 100, seed: int = 0) -> dict:
    """Run both processors; the shape returned to admin command and API."""
    approved = process_approved(engine, batch_size=batch_size, seed=seed)
    declined = process_declined(engine, batch_size=batch_size)
    return {"approved": approved.as_dict(), "declined": declined.as_dict()}


# ---------------------------------------------------------------------------
# Stray reward
# ---------------------------------------------------------------------------
def claim_stray_reward(
    engine: Engine,
    *,
    user_id: int,
    display_name: str,
    amount: int,
    window_hours: int,
    seed: int = 0,
) -> int:
    """One-click grant of *amount* coins.  Returns the new balance.

    The grant is logged as an APPROVED, already-processed ``stray`` request
    so a full recompute still accounts for it.  A member can claim once
    per *window_hours*; a second click raises :class:`StrayAlreadyClaimed`.
    """
    since = datetime.now(UTC) - timedelta(hours=window_hours)
    with store_errors("claim_stray_reward"), get_session(engine) as session:
        recent = session.scalar(
            select(func.count()).select_from(CoinRequest).where(
                CoinRequest.user_id == user_id,
                CoinRequest.action == STRAY_ACTION_ID,
                CoinRequest.created_at >= since,
            )
        ) or 0
        if recent:
            raise StrayAlreadyClaimed(window_hours)

        get_or_create_user(session, user_id, display_name, seed=seed)
        session.add(CoinRequest(
            user_id=user_id,
            display_name=display_name,
            action=STRAY_ACTION_ID,
            status=RequestStatus.APPROVED,
            coins_given=amount,
            processed=True,
            submitted_at=datetime.now(UTC).date(),
            processed_at=datetime.now(UTC),
            created_at=datetime.now(UTC),
        ))
        balance = increment_coins(session, user_id, amount)

    logger.info("User %d claimed a stray reward (+%d → %d)", user_id, amount, balance)
    return balance

