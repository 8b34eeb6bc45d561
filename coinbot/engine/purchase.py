"""
coinbot.engine.purchase — Shop Authorization Rules
===================================================

Pure checks (no I/O) deciding whether a member may buy a reward.  The
order matters; the first failing check is the one reported:

    1. The reward exists                → UnknownReward
    2. Its prerequisite is owned        → PrerequisiteMissing
    3. It isn't owned already           → AlreadyOwned
    4. The balance covers the cost      → InsufficientFunds
"""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass

from coinbot.engine.catalog import Catalog, RewardEntry
from coinbot.engine.errors import (
    AlreadyOwned,
    InsufficientFunds,
    PrerequisiteMissing,
    UnknownReward,
)

__all__ = ["authorize_purchase", "ShopItem", "annotate_rewards"]


def authorize_purchase(
    catalog: Catalog,
    reward_id: str,
    owned: Collection[str],
    balance: int,
) -> RewardEntry:
    """Return the reward if the purchase is allowed, else raise the first failure."""
    reward = catalog.get_reward(reward_id)
    if reward is None:
        raise UnknownReward(reward_id)

    if reward.prerequisite and reward.prerequisite not in owned:
        required = catalog.get_reward(reward.prerequisite)
        raise PrerequisiteMissing(
            reward.name,
            reward.prerequisite,
            required.name if required else reward.prerequisite,
        )

    if reward.id in owned:
        raise AlreadyOwned(reward.name)

    if balance < reward.cost:
        raise InsufficientFunds(reward.cost, balance)

    return reward


@dataclass(frozen=True, slots=True)
class ShopItem:
    """A reward as one member sees it in the shop."""

    reward: RewardEntry
    owned: bool
    locked: bool
    affordable: bool

    @property
    def buyable(self) -> bool:
        return not self.owned and not self.locked and self.affordable


def annotate_rewards(
    catalog: Catalog, owned: Collection[str], balance: int
) -> list[ShopItem]:
    """Every reward in catalog order, flagged owned / locked / affordable."""
    return [
        ShopItem(
            reward=r,
            owned=r.id in owned,
            locked=bool(r.prerequisite) and r.prerequisite not in owned,
            affordable=balance >= r.cost,
        )
        for r in catalog.rewards
    ]
