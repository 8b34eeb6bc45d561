"""
coinbot.services.shop_service — Reward Purchases
=================================================

Validates a purchase with :func:`coinbot.engine.purchase.authorize_purchase`
against the member's current balance and owned rewards, then applies it
as two writes:

1. Debit the cost (guarded ``UPDATE … WHERE coins >= cost``).
2. Record the reward in ``user_rewards``.

The writes are independent.  If the second one fails, the debit is
refunded and the member sees a generic apology; the unique constraint
on ``user_rewards`` stops the same reward being recorded twice.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy.exc import IntegrityError

from coinbot.database.engine import get_session, store_errors
from coinbot.database.models import UserReward
from coinbot.engine.errors import AlreadyOwned, StoreUnavailable
from coinbot.engine.purchase import ShopItem, annotate_rewards, authorize_purchase
from coinbot.services.balance_service import (
    debit_in_session,
    get_or_create_user,
    increment_coins,
)

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from coinbot.engine.catalog import Catalog, RewardEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PurchaseResult:
    reward: RewardEntry
    balance: int
    owned_count: int


@dataclass(frozen=True, slots=True)
class ShopView:
    coins: int
    items: list[ShopItem]


def shop_listing(
    engine: Engine,
    catalog: Catalog,
    user_id: int,
    display_name: str | None = None,
    *,
    seed: int = 0,
) -> ShopView:
    """The shop as *user_id* sees it: every reward flagged owned/locked/affordable."""
    with store_errors("shop_listing"), get_session(engine) as session:
        user = get_or_create_user(session, user_id, display_name, seed=seed)
        coins = user.coins
        owned = user.owned_reward_ids
    return ShopView(coins=coins, items=annotate_rewards(catalog, owned, coins))


def purchase(
    engine: Engine,
    catalog: Catalog,
    user_id: int,
    reward_id: str,
    display_name: str | None = None,
    *,
    seed: int = 0,
) -> PurchaseResult:
    """Buy *reward_id* for *user_id*.

    Raises, in check order: :class:`UnknownReward`,
    :class:`PrerequisiteMissing`, :class:`AlreadyOwned`,
    :class:`InsufficientFunds`.  Store failures raise
    :class:`StoreUnavailable` with nothing left charged.
    """
    # 1. Read state and authorize
    with store_errors("purchase.read"), get_session(engine) as session:
        user = get_or_create_user(session, user_id, display_name, seed=seed)
        owned = user.owned_reward_ids
        balance = user.coins

    reward = authorize_purchase(catalog, reward_id, owned, balance)

    # 2. Debit; the guarded UPDATE re-checks the balance in SQL
    with store_errors("purchase.debit"), get_session(engine) as session:
        new_balance = debit_in_session(session, user_id, reward.cost)

    # 3. Record ownership; refund on failure
    try:
        with get_session(engine) as session:
            session.add(UserReward(user_id=user_id, reward_id=reward.id, cost=reward.cost))
    except IntegrityError as exc:
        _refund(engine, user_id, reward.cost)
        # Another purchase of the same reward won the race
        raise AlreadyOwned(reward.name) from exc
    except Exception as exc:
        logger.exception(
            "Recording reward %s for user %d failed after debit", reward.id, user_id
        )
        _refund(engine, user_id, reward.cost)
        raise StoreUnavailable("purchase.grant") from exc

    logger.info(
        "User %d bought %s for %d coins → %d left",
        user_id, reward.id, reward.cost, new_balance,
    )
    return PurchaseResult(
        reward=reward,
        balance=new_balance,
        owned_count=len(owned) + 1,
    )


def _refund(engine: Engine, user_id: int, amount: int) -> None:
    try:
        with get_session(engine) as session:
            increment_coins(session, user_id, amount)
        logger.warning("Refunded %d coins to user %d after a failed grant", amount, user_id)
    except Exception:
        # Next reconcile_balance will restore it from the request log
        logger.exception("Refund of %d coins to user %d failed", amount, user_id)
