"""
coinbot.services.announcement_service — Outbound Notifications
===============================================================

Two sinks, both fire-and-forget: a failed delivery is logged and never
undoes the operation that triggered it.

- Direct messages to the member who acted (submission receipts).
- Broadcasts to the shared announce channel (leaderboard posts, stray
  coin drops), rate limited by :class:`BroadcastThrottle`.

Embed construction lives in :mod:`coinbot.services.embeds`.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import discord
from discord.abc import Messageable

from coinbot.database.engine import run_db
from coinbot.services.balance_service import get_leaderboard
from coinbot.services.embeds import build_leaderboard_embed
from coinbot.services.throttle import BroadcastThrottle

if TYPE_CHECKING:
    from coinbot.bot.core import CoinBot

logger = logging.getLogger(__name__)

# Module-level throttle instance
_throttle = BroadcastThrottle()


def start_queue(loop: asyncio.AbstractEventLoop) -> None:
    """Start the broadcast drain task. Call from on_ready."""
    _throttle.start(loop)


def stop_queue() -> None:
    """Stop the drain task. Call from bot close."""
    _throttle.stop()


# ---------------------------------------------------------------------------
# Direct messages
# ---------------------------------------------------------------------------
async def notify_user(
    user: discord.abc.User, *, embed: discord.Embed | None = None, content: str | None = None
) -> bool:
    """DM *user*.  Returns False (and logs) when the DM can't be delivered."""
    try:
        await user.send(content=content, embed=embed)
    except discord.Forbidden:
        logger.info("User %d has DMs closed; skipping notification", user.id)
        return False
    except Exception:
        logger.exception("Failed to DM user %d", user.id)
        return False
    return True


# ---------------------------------------------------------------------------
# Channel resolution
# ---------------------------------------------------------------------------
def resolve_announce_channel(
    bot: CoinBot, fallback_channel: Messageable | None = None
) -> Messageable | None:
    """Configured announce channel, else *fallback_channel*, else None."""
    if bot.cfg.announce_channel_id:
        ch = bot.get_channel(bot.cfg.announce_channel_id)
        if ch and isinstance(ch, Messageable):
            return ch
    if isinstance(fallback_channel, Messageable):
        return fallback_channel
    return None


async def broadcast(
    bot: CoinBot,
    embed: discord.Embed,
    *,
    key: str | None = None,
    fallback_channel: Messageable | None = None,
) -> bool:
    """Post *embed* to the announce channel through the throttle."""
    channel = resolve_announce_channel(bot, fallback_channel)
    if channel is None:
        logger.debug("No announce channel configured; broadcast dropped")
        return False
    return await _throttle.send(channel, embed, key=key)


async def broadcast_leaderboard(bot: CoinBot) -> bool:
    """Post the current top N to the announce channel."""
    rows = await run_db(get_leaderboard, bot.engine, bot.cfg.leaderboard_size)
    if not rows:
        return False
    embed = build_leaderboard_embed(rows, community_name=bot.cfg.community_name)
    return await broadcast(bot, embed, key="leaderboard")
