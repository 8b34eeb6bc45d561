"""
coinbot.bot.cogs.shop — Reward Shop
====================================

``/shop`` lists every reward flagged owned / locked / affordable and
offers a picker for the ones not yet owned.  ``/buy`` purchases by id
for members who already know what they want.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from coinbot.bot.views import ShopView, send_error
from coinbot.database.engine import run_db
from coinbot.engine.errors import CoinbotError
from coinbot.services.embeds import build_purchase_embed, build_shop_embed
from coinbot.services.shop_service import purchase, shop_listing

if TYPE_CHECKING:
    from coinbot.bot.core import CoinBot


class Shop(commands.Cog, name="Shop"):
    """Spend coins on cosmetic rewards."""

    def __init__(self, bot: CoinBot) -> None:
        self.bot = bot

    @app_commands.command(name="shop", description="Browse rewards and spend your coins.")
    async def shop(self, interaction: discord.Interaction) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        try:
            view = await run_db(
                shop_listing,
                self.bot.engine,
                self.bot.catalog,
                interaction.user.id,
                interaction.user.display_name,
                seed=self.bot.cfg.seed_coins,
            )
        except CoinbotError as exc:
            await send_error(interaction, exc)
            return

        await interaction.followup.send(
            embed=build_shop_embed(view.items, view.coins, self.bot.catalog),
            view=ShopView(self.bot, view.items),
            ephemeral=True,
        )

    @app_commands.command(name="buy", description="Buy a reward by name.")
    @app_commands.describe(reward="The reward to buy")
    async def buy(self, interaction: discord.Interaction, reward: str) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        user = interaction.user
        async with self.bot.user_locks.hold(user.id):
            try:
                result = await run_db(
                    purchase,
                    self.bot.engine,
                    self.bot.catalog,
                    user.id,
                    reward,
                    user.display_name,
                    seed=self.bot.cfg.seed_coins,
                )
            except CoinbotError as exc:
                await send_error(interaction, exc)
                return
        await interaction.followup.send(embed=build_purchase_embed(result), ephemeral=True)

    @buy.autocomplete("reward")
    async def _reward_autocomplete(
        self, interaction: discord.Interaction, current: str,
    ) -> list[app_commands.Choice[str]]:
        choices = [
            app_commands.Choice(name=f"{r.name} ({r.cost} coins)", value=r.id)
            for r in self.bot.catalog.rewards
            if current.lower() in r.name.lower()
        ]
        return choices[:25]  # Discord caps at 25


async def setup(bot: CoinBot) -> None:
    await bot.add_cog(Shop(bot))
