"""
coinbot.engine.errors — Typed Failures
=======================================

Every rejection a member can run into is its own exception class with a
stable ``reason`` code and a ready-to-send ``message``.  Services raise
them; cogs and API routes translate them into embeds or HTTP errors.
"""

from __future__ import annotations


class CoinbotError(Exception):
    """Base class for all user-facing Coinbot failures."""

    reason: str = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


# ---------------------------------------------------------------------------
# Claims
# ---------------------------------------------------------------------------
class UnknownAction(CoinbotError):
    reason = "unknown_action"

    def __init__(self, action_id: str) -> None:
        super().__init__(f"`{action_id}` isn't something you can collect coins for.")
        self.action_id = action_id


class ActionCapReached(CoinbotError):
    reason = "action_cap_reached"

    def __init__(self, action_id: str, label: str, max_claims: int) -> None:
        super().__init__(
            f"You've already been approved for **{label}** "
            f"{max_claims} time{'s' if max_claims != 1 else ''}, which is the limit. "
            "Pick another action to keep collecting."
        )
        self.action_id = action_id
        self.max_claims = max_claims


class StrayAlreadyClaimed(CoinbotError):
    reason = "stray_already_claimed"

    def __init__(self, window_hours: int) -> None:
        super().__init__(
            f"You already grabbed a stray coin in the last {window_hours} hours. "
            "Catch the next one!"
        )
        self.window_hours = window_hours


# ---------------------------------------------------------------------------
# Shop
# ---------------------------------------------------------------------------
class UnknownReward(CoinbotError):
    reason = "unknown_reward"

    def __init__(self, reward_id: str) -> None:
        super().__init__(f"`{reward_id}` isn't in the shop. Use `/shop` to see what's for sale.")
        self.reward_id = reward_id


class PrerequisiteMissing(CoinbotError):
    reason = "prerequisite_missing"

    def __init__(self, reward_name: str, required_id: str, required_name: str) -> None:
        super().__init__(
            f"**{reward_name}** is locked. Buy **{required_name}** first to unlock it."
        )
        self.required_id = required_id


class AlreadyOwned(CoinbotError):
    reason = "already_owned"

    def __init__(self, reward_name: str) -> None:
        super().__init__(f"You already own **{reward_name}**.")


class InsufficientFunds(CoinbotError):
    reason = "insufficient_funds"

    def __init__(self, needed: int, balance: int) -> None:
        short = needed - balance
        super().__init__(
            f"You need {needed} coins but only have {balance}. "
            f"Collect {short} more with `/collect`."
        )
        self.needed = needed
        self.balance = balance


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------
class StoreUnavailable(CoinbotError):
    """The record store failed.  Details go to the log."""

    reason = "store_unavailable"

    def __init__(self, operation: str) -> None:
        super().__init__(
            "Sorry, something went wrong on our side and nothing was changed. "
            "Please try again in a minute."
        )
        self.operation = operation
