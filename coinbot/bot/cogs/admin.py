"""
coinbot.bot.cogs.admin — Admin Slash Commands
==============================================

Slash commands for the single configured admin account:
- /update-coins — process approved and declined requests now
- /reconcile — re-derive one member's balance (or everyone's)
- /requests — list requests waiting for review
- /review — approve or decline a request, optionally setting its coins
- /speak — post a message as the bot
- /drop-stray — post a stray coin button to the announce channel
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.abc import Messageable
from discord.ext import commands

from coinbot.bot.views import StrayRewardView, send_error
from coinbot.database.engine import run_db
from coinbot.database.models import RequestStatus
from coinbot.engine.errors import CoinbotError
from coinbot.services.announcement_service import resolve_announce_channel
from coinbot.services.balance_service import reconcile_all, reconcile_balance
from coinbot.services.embeds import build_process_report_embed, build_stray_drop_embed
from coinbot.services.request_service import list_requests, process_all, review_request

if TYPE_CHECKING:
    from coinbot.bot.core import CoinBot

logger = logging.getLogger(__name__)


def is_admin():
    """Check that the invoking user is the configured admin account."""
    async def predicate(interaction: discord.Interaction) -> bool:
        bot: CoinBot = interaction.client  # type: ignore[assignment]
        return interaction.user is not None and bot.is_admin(interaction.user.id)
    return app_commands.check(predicate)


async def run_processing(bot: CoinBot) -> dict:
    """Both processors under the bot-wide processing lock."""
    async with bot.processing_lock:
        return await run_db(
            process_all,
            bot.engine,
            batch_size=bot.cfg.process_batch_size,
            seed=bot.cfg.seed_coins,
        )


class Admin(commands.Cog, name="Admin"):
    """Request review and balance maintenance."""

    def __init__(self, bot: CoinBot) -> None:
        self.bot = bot

    async def cog_app_command_error(
        self, interaction: discord.Interaction, error: app_commands.AppCommandError
    ) -> None:
        if isinstance(error, app_commands.CheckFailure):
            message = "❌ Only the coin admin can use this command."
        else:
            logger.error("Admin command failed", exc_info=error)
            message = "❌ That didn't work — check the logs."
        if interaction.response.is_done():
            await interaction.followup.send(message, ephemeral=True)
        else:
            await interaction.response.send_message(message, ephemeral=True)

    # -------------------------------------------------------------------
    # /update-coins
    # -------------------------------------------------------------------
    @app_commands.command(
        name="update-coins",
        description="Grant coins for approved requests and close declined ones.",
    )
    @is_admin()
    async def update_coins(self, interaction: discord.Interaction) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        result = await run_processing(self.bot)
        await interaction.followup.send(embed=build_process_report_embed(result), ephemeral=True)

    # -------------------------------------------------------------------
    # /reconcile
    # -------------------------------------------------------------------
    @app_commands.command(
        name="reconcile",
        description="Recompute a member's balance from their approved requests.",
    )
    @app_commands.describe(member="Member to fix (leave empty for everyone)")
    @is_admin()
    async def reconcile(
        self, interaction: discord.Interaction, member: discord.Member | None = None
    ) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        seed = self.bot.cfg.seed_coins
        try:
            if member is None:
                summary = await run_db(reconcile_all, self.bot.engine, seed=seed)
                text = f"✅ Checked {summary['checked']} members, corrected {summary['corrected']}."
            else:
                async with self.bot.user_locks.hold(member.id):
                    result = await run_db(
                        reconcile_balance, self.bot.engine, member.id, member.display_name, seed=seed
                    )
                text = (
                    f"✅ **{member.display_name}**: {result.before} → {result.after} coins"
                    if result.corrected
                    else f"✅ **{member.display_name}** already has the right balance ({result.after})."
                )
        except CoinbotError as exc:
            await send_error(interaction, exc)
            return
        await interaction.followup.send(text, ephemeral=True)

    # -------------------------------------------------------------------
    # /requests
    # -------------------------------------------------------------------
    @app_commands.command(name="requests", description="List requests waiting for review.")
    @app_commands.describe(member="Only show this member's requests")
    @is_admin()
    async def requests(
        self, interaction: discord.Interaction, member: discord.Member | None = None
    ) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        rows = await run_db(
            list_requests,
            self.bot.engine,
            status=RequestStatus.PENDING,
            user_id=member.id if member else None,
            limit=20,
        )
        if not rows:
            await interaction.followup.send("Nothing waiting for review. \U0001f389", ephemeral=True)
            return

        lines = []
        for r in rows:
            action = self.bot.catalog.get_action(r.action)
            label = action.label if action else r.action
            coins = r.coins_given if r.coins_given is not None else "?"
            link = f" · [proof]({r.proof_link})" if r.proof_link else ""
            lines.append(f"`#{r.id}` **{r.display_name}** — {label} ({coins}){link}")
        embed = discord.Embed(
            title=f"\U0001f4cb Pending requests ({len(rows)})",
            description="\n".join(lines)[:4000],
            color=discord.Color.blurple(),
        )
        await interaction.followup.send(embed=embed, ephemeral=True)

    # -------------------------------------------------------------------
    # /review
    # -------------------------------------------------------------------
    @app_commands.command(name="review", description="Approve or decline a coin request.")
    @app_commands.describe(
        request_id="Request number (see /requests)",
        approve="True to approve, False to decline",
        coins="Coins to give (required for variable actions)",
    )
    @is_admin()
    async def review(
        self,
        interaction: discord.Interaction,
        request_id: int,
        approve: bool,
        coins: app_commands.Range[int, 0] | None = None,
    ) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        try:
            view = await run_db(
                review_request,
                self.bot.engine,
                self.bot.catalog,
                request_id,
                approve=approve,
                reviewer_id=interaction.user.id,
                coins=coins,
            )
        except CoinbotError as exc:
            await send_error(interaction, exc)
            return
        except (LookupError, ValueError) as exc:
            await interaction.followup.send(f"❌ {exc}", ephemeral=True)
            return

        verdict = "approved" if approve else "declined"
        hint = ""
        if approve and view.coins_given is None:
            hint = "\n⚠️ No coin value yet; it'll be skipped until you set one."
        await interaction.followup.send(
            f"✅ Request #{view.id} {verdict} ({view.coins_given if view.coins_given is not None else '?'} coins). "
            f"Coins land on the next `/update-coins` or scheduled run.{hint}",
            ephemeral=True,
        )

    # -------------------------------------------------------------------
    # /speak
    # -------------------------------------------------------------------
    @app_commands.command(name="speak", description="Post a message as the bot.")
    @app_commands.describe(message="What to say", channel="Where to say it (defaults to here)")
    @is_admin()
    async def speak(
        self,
        interaction: discord.Interaction,
        message: str,
        channel: discord.TextChannel | None = None,
    ) -> None:
        target = channel or interaction.channel
        if not isinstance(target, Messageable):
            await interaction.response.send_message("❌ Can't post there.", ephemeral=True)
            return
        await target.send(message)
        await interaction.response.send_message("✅ Sent.", ephemeral=True)

    # -------------------------------------------------------------------
    # /drop-stray
    # -------------------------------------------------------------------
    @app_commands.command(name="drop-stray", description="Drop a stray coin for members to grab.")
    @is_admin()
    async def drop_stray(self, interaction: discord.Interaction) -> None:
        channel = resolve_announce_channel(self.bot, interaction.channel)  # type: ignore[arg-type]
        if channel is None:
            await interaction.response.send_message("❌ No channel to drop into.", ephemeral=True)
            return
        await channel.send(
            embed=build_stray_drop_embed(self.bot.cfg.stray_reward_coins),
            view=StrayRewardView(self.bot),
        )
        await interaction.response.send_message("✅ Stray coin dropped.", ephemeral=True)


async def setup(bot: CoinBot) -> None:
    await bot.add_cog(Admin(bot))
