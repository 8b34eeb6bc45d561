"""
coinbot.bot.cogs.collect — Claim Submission
============================================

``/collect`` opens the action picker.  Each action shows its coin value
and, for capped actions, how many claims are left.  Picking one opens a
modal for the proof link; submitting it stores a PENDING request.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from coinbot.bot.views import CollectView
from coinbot.services.eligibility_service import check_remaining_claims

if TYPE_CHECKING:
    from coinbot.bot.core import CoinBot


class Collect(commands.Cog, name="Collect"):
    """Claim coins for community actions."""

    def __init__(self, bot: CoinBot) -> None:
        self.bot = bot

    @app_commands.command(name="collect", description="Claim coins for something you did.")
    async def collect(self, interaction: discord.Interaction) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        remaining = await check_remaining_claims(
            self.bot.engine,
            self.bot.catalog,
            interaction.user.id,
            timeout=self.bot.cfg.eligibility_timeout_seconds,
        )
        await interaction.followup.send(
            "Pick what you did, then paste a link to show it:",
            view=CollectView(self.bot, remaining),
            ephemeral=True,
        )


async def setup(bot: CoinBot) -> None:
    await bot.add_cog(Collect(bot))
