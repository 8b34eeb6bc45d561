"""
coinbot.engine.catalog — Action & Reward Catalogs
==================================================

Static configuration describing what members can claim coins for and
what they can spend coins on.  Both catalogs are immutable and built
once at process start, then handed explicitly to the services that need
them (eligibility checks, the shop) so tests can swap in their own.

Catalog file format (``catalog.yaml``)::

    actions:
      - id: post_idea
        label: Post your game idea
        coins: 3          # omit / null → variable, a reviewer decides
        max_claims: 1     # omit → unlimited
    rewards:
      - id: planet
        name: Planet
        cost: 10
      - id: galaxy
        name: Galaxy
        cost: 20
        prerequisite: planet
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType

import yaml

from coinbot.constants import STRAY_ACTION_ID

__all__ = [
    "ActionEntry",
    "RewardEntry",
    "Catalog",
    "CatalogError",
    "DEFAULT_ACTIONS",
    "DEFAULT_REWARDS",
    "default_catalog",
    "load_catalog",
]


class CatalogError(ValueError):
    """Raised when a catalog definition is inconsistent."""


# ---------------------------------------------------------------------------
# Entries
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ActionEntry:
    """Something a member can claim coins for.

    ``coins=None`` marks a variable-value action: the reviewer fills in
    ``coins_given`` before the request can be processed.
    """

    id: str
    label: str
    coins: int | None = None
    max_claims: int | None = None

    @property
    def is_variable(self) -> bool:
        return self.coins is None

    @property
    def is_capped(self) -> bool:
        return self.max_claims is not None

    def option_label(self) -> str:
        """Label shown in the claim picker, e.g. ``Attend an event (3 coins)``."""
        if self.coins is None:
            return f"{self.label} (varies)"
        return f"{self.label} ({self.coins} coin{'s' if self.coins != 1 else ''})"


@dataclass(frozen=True, slots=True)
class RewardEntry:
    """A purchasable reward, optionally gated behind another reward."""

    id: str
    name: str
    cost: int
    prerequisite: str | None = None
    description: str = ""
    emoji: str = ""

    @property
    def display(self) -> str:
        return f"{self.emoji} {self.name}".strip()


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class Catalog:
    """Both catalogs, validated and indexed by id.

    Order is preserved: actions appear in the picker as declared, and
    rewards are listed tier by tier.
    """

    actions: tuple[ActionEntry, ...]
    rewards: tuple[RewardEntry, ...]
    _actions_by_id: Mapping[str, ActionEntry] = field(init=False, repr=False, compare=False)
    _rewards_by_id: Mapping[str, RewardEntry] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        actions_by_id: dict[str, ActionEntry] = {}
        for action in self.actions:
            if action.id in actions_by_id:
                raise CatalogError(f"Duplicate action id: {action.id!r}")
            if action.id == STRAY_ACTION_ID:
                raise CatalogError(f"Action id {STRAY_ACTION_ID!r} is reserved")
            if action.coins is not None and action.coins < 0:
                raise CatalogError(f"Action {action.id!r} has negative coins")
            if action.max_claims is not None and action.max_claims <= 0:
                raise CatalogError(f"Action {action.id!r} max_claims must be positive")
            actions_by_id[action.id] = action

        rewards_by_id: dict[str, RewardEntry] = {}
        for reward in self.rewards:
            if reward.id in rewards_by_id:
                raise CatalogError(f"Duplicate reward id: {reward.id!r}")
            if reward.cost <= 0:
                raise CatalogError(f"Reward {reward.id!r} cost must be positive")
            rewards_by_id[reward.id] = reward

        for reward in self.rewards:
            if reward.prerequisite is None:
                continue
            if reward.prerequisite not in rewards_by_id:
                raise CatalogError(
                    f"Reward {reward.id!r} requires unknown reward {reward.prerequisite!r}"
                )
            # Walk the chain; a cycle would make every member of it unbuyable
            seen = {reward.id}
            current = rewards_by_id[reward.prerequisite]
            while current is not None:
                if current.id in seen:
                    raise CatalogError(f"Prerequisite cycle through {reward.id!r}")
                seen.add(current.id)
                current = rewards_by_id.get(current.prerequisite) if current.prerequisite else None

        object.__setattr__(self, "_actions_by_id", MappingProxyType(actions_by_id))
        object.__setattr__(self, "_rewards_by_id", MappingProxyType(rewards_by_id))

    def get_action(self, action_id: str) -> ActionEntry | None:
        return self._actions_by_id.get(action_id)

    def get_reward(self, reward_id: str) -> RewardEntry | None:
        return self._rewards_by_id.get(reward_id)

    @property
    def capped_actions(self) -> tuple[ActionEntry, ...]:
        return tuple(a for a in self.actions if a.is_capped)


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------
DEFAULT_ACTIONS: tuple[ActionEntry, ...] = (
    ActionEntry("comment", "Comment on another game", 1),
    ActionEntry("help", "Help someone fix a problem", None),
    ActionEntry("post_idea", "Post your game idea", 3, max_claims=1),
    ActionEntry("event", "Attend an event", 3),
    ActionEntry("update", "Post a progress update", 3),
    ActionEntry("suggest", "Suggest a new coin idea", 4, max_claims=3),
    ActionEntry("share", "Tell a friend & post it", 5, max_claims=3),
    ActionEntry("host", "Host a workshop", 7),
    ActionEntry("sticker", "Draw a sticker & get it in prizes", 7, max_claims=2),
    ActionEntry("poster", "Post Jumpstart poster pic", 10, max_claims=1),
    ActionEntry("record", "Record game explanation (face+voice)", 10, max_claims=1),
    ActionEntry("assets", "Draw/make all assets", 20, max_claims=1),
    ActionEntry("pr", "Open PR & do a task", None),
    ActionEntry("meetup", "Meetup w/ Jumpstarter IRL", 30, max_claims=1),
)

DEFAULT_REWARDS: tuple[RewardEntry, ...] = (
    RewardEntry("moon", "Moon", 5, emoji="\U0001f319",
                description="A small moon orbiting your name."),
    RewardEntry("planet", "Planet", 10, emoji="\U0001fa90",
                description="Your very own planet."),
    RewardEntry("galaxy", "Galaxy", 20, prerequisite="planet", emoji="\U0001f30c",
                description="A galaxy full of planets. Requires a Planet."),
    RewardEntry("universe", "Universe", 40, prerequisite="galaxy", emoji="\u2728",
                description="Everything. Requires a Galaxy."),
)


def default_catalog() -> Catalog:
    """The built-in catalog used when no ``catalog_path`` is configured."""
    return Catalog(actions=DEFAULT_ACTIONS, rewards=DEFAULT_REWARDS)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------
def _opt_int(raw: dict, key: str) -> int | None:
    value = raw.get(key)
    return int(value) if value is not None else None


def load_catalog(path: str | Path | None = None) -> Catalog:
    """Build a :class:`Catalog` from *path*, or the defaults when *path* is None.

    A file may define only one of the two sections; the other falls back
    to the built-in default.

    Raises
    ------
    FileNotFoundError
        If *path* is given but doesn't exist.
    CatalogError
        If the definitions are inconsistent.
    """
    if path is None:
        return default_catalog()

    catalog_path = Path(path)
    if not catalog_path.exists():
        raise FileNotFoundError(f"Catalog file not found: {catalog_path.resolve()}")

    with open(catalog_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    try:
        actions = tuple(
            ActionEntry(
                id=str(a["id"]),
                label=str(a.get("label", a["id"])),
                coins=_opt_int(a, "coins"),
                max_claims=_opt_int(a, "max_claims"),
            )
            for a in raw["actions"]
        ) if "actions" in raw else DEFAULT_ACTIONS

        rewards = tuple(
            RewardEntry(
                id=str(r["id"]),
                name=str(r.get("name", r["id"])),
                cost=int(r["cost"]),
                prerequisite=r.get("prerequisite") or None,
                description=str(r.get("description", "")),
                emoji=str(r.get("emoji", "")),
            )
            for r in raw["rewards"]
        ) if "rewards" in raw else DEFAULT_REWARDS
    except (KeyError, TypeError, ValueError) as exc:
        raise CatalogError(f"Malformed catalog file {catalog_path}: {exc}") from exc

    return Catalog(actions=actions, rewards=rewards)
