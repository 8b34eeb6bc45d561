"""
coinbot.services.balance_service — Coin Balances
=================================================

Shared service module callable by both bot and API.  Owns every mutation
of ``users.coins``:

- :func:`credit` / :func:`debit` — incremental changes, done in SQL
  (``coins = coins + :n`` and ``coins = coins - :n WHERE coins >= :n``)
  so two overlapping writes can't clobber each other.
- :func:`reconcile_balance` — full recompute from the request log::

      coins = seed + Σ coins_given(APPROVED) − Σ user_rewards.cost

  Approved requests folded in by a recompute are flagged ``processed`` so
  :func:`coinbot.services.request_service.process_approved` can't grant
  them again afterwards.
- :func:`get_leaderboard` / :func:`get_rank` — read-only ranking.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from coinbot.database.engine import get_session, store_errors
from coinbot.database.models import CoinRequest, RequestStatus, User, UserReward
from coinbot.engine.errors import InsufficientFunds

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ReconcileResult:
    user_id: int
    before: int
    after: int

    @property
    def corrected(self) -> bool:
        return self.before != self.after


@dataclass(frozen=True, slots=True)
class Wallet:
    user_id: int
    display_name: str
    coins: int
    owned: tuple[str, ...]


# ---------------------------------------------------------------------------
# Session-level helpers
# ---------------------------------------------------------------------------
def get_or_create_user(
    session: Session,
    user_id: int,
    display_name: str | None = None,
    *,
    seed: int = 0,
) -> User:
    """Fetch or insert a User row, refreshing the display name when given."""
    user = session.get(User, user_id)
    if user is None:
        user = User(id=user_id, display_name=display_name or str(user_id), coins=seed)
        session.add(user)
        session.flush()
        logger.info("Created user %d (%s) with %d seed coins", user_id, user.display_name, seed)
    elif display_name and user.display_name != display_name:
        user.display_name = display_name
    return user


def increment_coins(session: Session, user_id: int, amount: int) -> int:
    """``coins = coins + amount`` in SQL; returns the new balance."""
    return session.execute(
        update(User)
        .where(User.id == user_id)
        .values(coins=User.coins + amount)
        .returning(User.coins)
        .execution_options(synchronize_session=False)
    ).scalar_one()


def derive_balance(session: Session, user_id: int, *, seed: int = 0) -> int:
    """What the balance should be according to the request log and purchases."""
    earned: int = session.scalar(
        select(func.coalesce(func.sum(CoinRequest.coins_given), 0)).where(
            CoinRequest.user_id == user_id,
            CoinRequest.status == RequestStatus.APPROVED,
            CoinRequest.coins_given.is_not(None),
        )
    ) or 0
    spent: int = session.scalar(
        select(func.coalesce(func.sum(UserReward.cost), 0)).where(
            UserReward.user_id == user_id
        )
    ) or 0
    return max(0, seed + earned - spent)


# ---------------------------------------------------------------------------
# Public API (sync — call via run_db from async code)
# ---------------------------------------------------------------------------
def get_balance(
    engine: Engine, user_id: int, display_name: str | None = None, *, seed: int = 0
) -> int:
    """Current cached balance, creating the user on first contact."""
    with store_errors("get_balance"), get_session(engine) as session:
        return get_or_create_user(session, user_id, display_name, seed=seed).coins


def get_wallet(
    engine: Engine, user_id: int, display_name: str | None = None, *, seed: int = 0
) -> Wallet:
    """Balance plus owned rewards in purchase order."""
    with store_errors("get_wallet"), get_session(engine) as session:
        user = get_or_create_user(session, user_id, display_name, seed=seed)
        return Wallet(
            user_id=user.id,
            display_name=user.display_name,
            coins=user.coins,
            owned=tuple(user.owned_reward_ids),
        )


def credit(
    engine: Engine,
    user_id: int,
    amount: int,
    display_name: str | None = None,
    *,
    seed: int = 0,
) -> int:
    """Add *amount* coins, creating the user at *seed* first.  Returns new balance."""
    if amount < 0:
        raise ValueError("credit amount must be >= 0")
    with store_errors("credit"), get_session(engine) as session:
        get_or_create_user(session, user_id, display_name, seed=seed)
        balance = increment_coins(session, user_id, amount)
    logger.info("Credited %d coins to user %d → %d", amount, user_id, balance)
    return balance


def debit_in_session(session: Session, user_id: int, amount: int) -> int:
    """Guarded decrement inside an existing session.

    Raises :class:`InsufficientFunds` (balance untouched) when the user
    has fewer than *amount* coins or doesn't exist.
    """
    row = session.execute(
        update(User)
        .where(User.id == user_id, User.coins >= amount)
        .values(coins=User.coins - amount)
        .returning(User.coins)
        .execution_options(synchronize_session=False)
    ).first()
    if row is not None:
        return row[0]
    balance = session.scalar(select(User.coins).where(User.id == user_id)) or 0
    raise InsufficientFunds(amount, balance)


def debit(engine: Engine, user_id: int, amount: int) -> int:
    """Remove *amount* coins.  Returns the new balance.

    Never drives the balance below zero: a debit larger than the balance
    raises :class:`InsufficientFunds` and changes nothing.
    """
    if amount < 0:
        raise ValueError("debit amount must be >= 0")
    with store_errors("debit"), get_session(engine) as session:
        balance = debit_in_session(session, user_id, amount)
    logger.info("Debited %d coins from user %d → %d", amount, user_id, balance)
    return balance


def reconcile_balance(
    engine: Engine,
    user_id: int,
    display_name: str | None = None,
    *,
    seed: int = 0,
) -> ReconcileResult:
    """Recompute one member's balance from scratch and write it back.

    Safe to call at any time and any number of times: it never increments,
    so running it twice in a row gives the same answer.
    """
    with store_errors("reconcile_balance"), get_session(engine) as session:
        user = get_or_create_user(session, user_id, display_name, seed=seed)
        before = user.coins
        after = derive_balance(session, user_id, seed=seed)
        user.coins = after

        session.execute(
            update(CoinRequest)
            .where(
                CoinRequest.user_id == user_id,
                CoinRequest.status == RequestStatus.APPROVED,
                CoinRequest.coins_given.is_not(None),
                CoinRequest.processed.is_(False),
            )
            .values(processed=True, processed_at=datetime.now(UTC))
            .execution_options(synchronize_session=False)
        )

    if before != after:
        logger.warning(
            "Balance drift for user %d corrected: %d → %d", user_id, before, after
        )
    return ReconcileResult(user_id=user_id, before=before, after=after)


def reconcile_all(engine: Engine, *, seed: int = 0) -> dict:
    """Recompute every known member's balance.

    Members with approved requests but no user row yet are created.
    Returns ``{"checked": N, "corrected": M, "corrections": [...]}``.
    """
    with store_errors("reconcile_all"), get_session(engine) as session:
        user_ids = set(session.scalars(select(User.id)).all())
        user_ids.update(
            session.scalars(
                select(CoinRequest.user_id)
                .where(CoinRequest.status == RequestStatus.APPROVED)
                .distinct()
            ).all()
        )

    corrections: list[dict] = []
    for user_id in sorted(user_ids):
        result = reconcile_balance(engine, user_id, seed=seed)
        if result.corrected:
            corrections.append({
                "user_id": result.user_id,
                "before": result.before,
                "after": result.after,
                "diff": result.after - result.before,
            })

    logger.info(
        "Balance reconciliation: corrected %d/%d users", len(corrections), len(user_ids)
    )
    return {
        "checked": len(user_ids),
        "corrected": len(corrections),
        "corrections": corrections,
        "timestamp": datetime.now(UTC).isoformat(),
    }


def get_leaderboard(engine: Engine, limit: int) -> list[dict]:
    """Top *limit* members by coins, highest first."""
    with store_errors("get_leaderboard"), get_session(engine) as session:
        rows = session.execute(
            select(User.id, User.display_name, User.coins)
            .order_by(User.coins.desc(), User.id)
            .limit(limit)
        ).all()
        return [
            {"user_id": r.id, "name": r.display_name, "coins": r.coins}
            for r in rows
        ]


def get_rank(engine: Engine, user_id: int) -> tuple[int, int] | None:
    """``(rank, total)`` for *user_id*, or None if they have no row."""
    with store_errors("get_rank"), get_session(engine) as session:
        coins = session.scalar(select(User.coins).where(User.id == user_id))
        if coins is None:
            return None
        total: int = session.scalar(select(func.count(User.id))) or 0
        above: int = session.scalar(
            select(func.count(User.id)).where(User.coins > coins)
        ) or 0
        return above + 1, total
