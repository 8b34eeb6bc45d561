"""
coinbot.bot.cogs.meta — Balance, Leaderboard & Help
====================================================

Hybrid commands for member self-service:
- /coins — balance, owned rewards, claims left
- /leaderboard — re-derives the caller's balance, then shows top N and rank
- /what — how it all works
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from coinbot.database.engine import run_db
from coinbot.engine.errors import CoinbotError
from coinbot.services.balance_service import (
    get_leaderboard,
    get_rank,
    get_wallet,
    reconcile_balance,
)
from coinbot.services.eligibility_service import check_remaining_claims
from coinbot.services.embeds import (
    build_error_embed,
    build_help_embed,
    build_leaderboard_embed,
    build_wallet_embed,
)

if TYPE_CHECKING:
    from coinbot.bot.core import CoinBot

logger = logging.getLogger(__name__)


class Meta(commands.Cog, name="Meta"):
    """Balances, rankings, and help."""

    def __init__(self, bot: CoinBot) -> None:
        self.bot = bot

    # -------------------------------------------------------------------
    # /coins
    # -------------------------------------------------------------------
    @commands.hybrid_command(  # type: ignore[arg-type]
        name="coins",
        description="See your (or another member's) coins and rewards.",
    )
    @app_commands.describe(member="The member to look up (defaults to you)")
    async def coins(self, ctx: commands.Context, member: discord.Member | None = None) -> None:
        await ctx.defer(ephemeral=True)
        target = member or ctx.author
        try:
            wallet = await run_db(
                get_wallet,
                self.bot.engine,
                target.id,
                target.display_name,
                seed=self.bot.cfg.seed_coins,
            )
        except CoinbotError as exc:
            await ctx.send(embed=build_error_embed(exc), ephemeral=True)
            return

        remaining = await check_remaining_claims(
            self.bot.engine,
            self.bot.catalog,
            target.id,
            timeout=self.bot.cfg.eligibility_timeout_seconds,
        )
        embed = build_wallet_embed(
            wallet, self.bot.catalog, remaining, avatar_url=target.display_avatar.url
        )
        await ctx.send(embed=embed, ephemeral=True)

    # -------------------------------------------------------------------
    # /leaderboard
    # -------------------------------------------------------------------
    @commands.hybrid_command(  # type: ignore[arg-type]
        name="leaderboard",
        description="View the members with the most coins.",
    )
    async def leaderboard(self, ctx: commands.Context) -> None:
        await ctx.defer()
        author = ctx.author
        caller_coins: int | None = None
        async with self.bot.user_locks.hold(author.id):
            try:
                result = await run_db(
                    reconcile_balance,
                    self.bot.engine,
                    author.id,
                    author.display_name,
                    seed=self.bot.cfg.seed_coins,
                )
                caller_coins = result.after
            except CoinbotError:
                # Ranking still works off the cached balance
                logger.warning("Leaderboard reconcile failed for user %d", author.id)

        try:
            rows = await run_db(get_leaderboard, self.bot.engine, self.bot.cfg.leaderboard_size)
            rank = await run_db(get_rank, self.bot.engine, author.id)
        except CoinbotError as exc:
            await ctx.send(embed=build_error_embed(exc), ephemeral=True)
            return

        embed = build_leaderboard_embed(
            rows,
            community_name=self.bot.cfg.community_name,
            caller_rank=rank,
            caller_coins=caller_coins,
        )
        await ctx.send(embed=embed)

    # -------------------------------------------------------------------
    # /what
    # -------------------------------------------------------------------
    @commands.hybrid_command(  # type: ignore[arg-type]
        name="what",
        description="How coins work: ways to earn and what you can buy.",
    )
    async def what(self, ctx: commands.Context) -> None:
        await ctx.send(
            embed=build_help_embed(self.bot.catalog, self.bot.cfg.community_name),
            ephemeral=True,
        )


async def setup(bot: CoinBot) -> None:
    await bot.add_cog(Meta(bot))
