"""
coinbot.bot.cogs.tasks — Periodic Background Tasks
===================================================

Scheduled jobs on ``discord.ext.tasks`` loops:

- **Request processing** — every ``process_interval_minutes``, grants
  coins for approved requests and closes declined ones.  This loop is
  the retry mechanism: anything skipped or failed is picked up next run.
- **Leaderboard broadcast** — every ``leaderboard_broadcast_hours``,
  posts the top members to the announce channel.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from discord.ext import commands, tasks

from coinbot.bot.cogs.admin import run_processing
from coinbot.services.announcement_service import broadcast_leaderboard

if TYPE_CHECKING:
    from coinbot.bot.core import CoinBot

logger = logging.getLogger(__name__)


class PeriodicTasks(commands.Cog):
    """Cog for scheduled background jobs."""

    def __init__(self, bot: CoinBot) -> None:
        self.bot = bot

    async def cog_load(self) -> None:
        """Apply configured intervals and start the loops."""
        self.processing_loop.change_interval(minutes=self.bot.cfg.process_interval_minutes)
        self.processing_loop.start()
        if self.bot.cfg.leaderboard_broadcast_hours > 0 and self.bot.cfg.announce_channel_id:
            self.leaderboard_loop.change_interval(hours=self.bot.cfg.leaderboard_broadcast_hours)
            self.leaderboard_loop.start()

    async def cog_unload(self) -> None:
        self.processing_loop.cancel()
        self.leaderboard_loop.cancel()

    # -------------------------------------------------------------------
    # Request processing
    # -------------------------------------------------------------------
    @tasks.loop(minutes=10)
    async def processing_loop(self):
        """Process approved and declined requests."""
        try:
            result = await run_processing(self.bot)
            logger.info(
                "Processing task complete: approved=%s declined=%s",
                result["approved"], result["declined"],
            )
        except Exception:
            logger.exception("Processing task failed", extra={"task": "processing"})

    @processing_loop.before_loop
    async def _wait_processing(self):
        await self.bot.wait_until_ready()

    # -------------------------------------------------------------------
    # Leaderboard broadcast
    # -------------------------------------------------------------------
    @tasks.loop(hours=24)
    async def leaderboard_loop(self):
        """Post the leaderboard to the announce channel."""
        try:
            await broadcast_leaderboard(self.bot)
        except Exception:
            logger.exception("Leaderboard broadcast failed", extra={"task": "leaderboard"})

    @leaderboard_loop.before_loop
    async def _wait_leaderboard(self):
        await self.bot.wait_until_ready()


async def setup(bot: CoinBot) -> None:
    await bot.add_cog(PeriodicTasks(bot))
