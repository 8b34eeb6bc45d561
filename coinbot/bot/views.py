"""
coinbot.bot.views — Discord UI Components
==========================================

Selects, modals and buttons behind ``/collect``, ``/shop`` and stray coin
drops.  Components stay thin: they gather input, run the service call on
a worker thread under the member's lock, and turn typed failures into
error embeds.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

import discord

from coinbot.constants import COIN_EMOJI, MAX_SELECT_OPTIONS
from coinbot.database.engine import run_db
from coinbot.engine.errors import CoinbotError
from coinbot.services.announcement_service import notify_user
from coinbot.services.embeds import (
    build_error_embed,
    build_purchase_embed,
    build_submission_embed,
)
from coinbot.services.request_service import claim_stray_reward, submit_request
from coinbot.services.shop_service import purchase

if TYPE_CHECKING:
    from coinbot.bot.core import CoinBot
    from coinbot.engine.catalog import ActionEntry, Catalog
    from coinbot.engine.purchase import ShopItem

logger = logging.getLogger(__name__)

_URL_RE = re.compile(r"^https?://\S+$")

STRAY_BUTTON_ID = "coinbot:stray-claim"


# ---------------------------------------------------------------------------
# Option builders (pure)
# ---------------------------------------------------------------------------
def action_options(catalog: Catalog, remaining: dict[str, int]) -> list[discord.SelectOption]:
    """Claim picker options, each annotated with value and claims left."""
    options = []
    for action in catalog.actions[:MAX_SELECT_OPTIONS]:
        if action.is_capped:
            left = remaining.get(action.id, action.max_claims)
            description = "Limit reached" if left <= 0 else f"{left} of {action.max_claims} claims left"
        else:
            description = "No limit"
        options.append(discord.SelectOption(
            label=action.option_label()[:100],
            value=action.id,
            description=description,
        ))
    return options


def reward_options(items: list[ShopItem], catalog: Catalog) -> list[discord.SelectOption]:
    """Shop picker options for rewards not yet owned."""
    options = []
    for item in items:
        if item.owned:
            continue
        reward = item.reward
        if item.locked:
            required = catalog.get_reward(reward.prerequisite or "")
            description = f"Locked — buy {required.name if required else reward.prerequisite} first"
        elif item.affordable:
            description = "You can afford this"
        else:
            description = "Not enough coins yet"
        options.append(discord.SelectOption(
            label=f"{reward.name} — {reward.cost} coins"[:100],
            value=reward.id,
            description=description[:100],
            emoji=reward.emoji or None,
        ))
    return options[:MAX_SELECT_OPTIONS]


async def send_error(interaction: discord.Interaction, error: CoinbotError) -> None:
    """Reply with an error embed whether or not the interaction was deferred."""
    embed = build_error_embed(error)
    if interaction.response.is_done():
        await interaction.followup.send(embed=embed, ephemeral=True)
    else:
        await interaction.response.send_message(embed=embed, ephemeral=True)


# ---------------------------------------------------------------------------
# /collect
# ---------------------------------------------------------------------------
class ClaimModal(discord.ui.Modal):
    """Proof link + optional note for one action claim."""

    proof = discord.ui.TextInput(
        label="Link to proof",
        placeholder="https://discord.com/channels/… or any public link",
        max_length=500,
    )
    note = discord.ui.TextInput(
        label="Anything the reviewer should know?",
        style=discord.TextStyle.paragraph,
        required=False,
        max_length=1000,
    )

    def __init__(self, bot: CoinBot, action: ActionEntry) -> None:
        super().__init__(title="Collect Coins")
        self.bot = bot
        self.action = action

    async def on_submit(self, interaction: discord.Interaction) -> None:
        proof_link = self.proof.value.strip()
        if not _URL_RE.match(proof_link):
            await interaction.response.send_message(
                "❌ The proof needs to be a link starting with `http://` or `https://`.",
                ephemeral=True,
            )
            return

        await interaction.response.defer(ephemeral=True, thinking=True)
        user = interaction.user
        async with self.bot.user_locks.hold(user.id):
            try:
                result = await run_db(
                    submit_request,
                    self.bot.engine,
                    self.bot.catalog,
                    user_id=user.id,
                    display_name=user.display_name,
                    action_id=self.action.id,
                    proof_link=proof_link,
                    note=self.note.value.strip() or None,
                    seed=self.bot.cfg.seed_coins,
                )
            except CoinbotError as exc:
                await send_error(interaction, exc)
                return

        embed = build_submission_embed(self.action, result.request_id)
        await interaction.followup.send(embed=embed, ephemeral=True)
        await notify_user(user, embed=embed)


class ActionSelect(discord.ui.Select):
    def __init__(self, bot: CoinBot, remaining: dict[str, int]) -> None:
        super().__init__(
            placeholder="What did you do?",
            options=action_options(bot.catalog, remaining),
        )
        self.bot = bot

    async def callback(self, interaction: discord.Interaction) -> None:
        action = self.bot.catalog.get_action(self.values[0])
        if action is None:
            await interaction.response.send_message("❌ Unknown action.", ephemeral=True)
            return
        await interaction.response.send_modal(ClaimModal(self.bot, action))


class CollectView(discord.ui.View):
    def __init__(self, bot: CoinBot, remaining: dict[str, int]) -> None:
        super().__init__(timeout=300)
        self.add_item(ActionSelect(bot, remaining))


# ---------------------------------------------------------------------------
# /shop
# ---------------------------------------------------------------------------
class RewardSelect(discord.ui.Select):
    def __init__(self, bot: CoinBot, items: list[ShopItem]) -> None:
        options = reward_options(items, bot.catalog)
        super().__init__(
            placeholder="Pick a reward to buy",
            options=options or [discord.SelectOption(label="You own everything!", value="-")],
            disabled=not options,
        )
        self.bot = bot

    async def callback(self, interaction: discord.Interaction) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        user = interaction.user
        async with self.bot.user_locks.hold(user.id):
            try:
                result = await run_db(
                    purchase,
                    self.bot.engine,
                    self.bot.catalog,
                    user.id,
                    self.values[0],
                    user.display_name,
                    seed=self.bot.cfg.seed_coins,
                )
            except CoinbotError as exc:
                await send_error(interaction, exc)
                return
        await interaction.followup.send(embed=build_purchase_embed(result), ephemeral=True)


class ShopView(discord.ui.View):
    def __init__(self, bot: CoinBot, items: list[ShopItem]) -> None:
        super().__init__(timeout=300)
        self.add_item(RewardSelect(bot, items))


# ---------------------------------------------------------------------------
# Stray coin button (persistent)
# ---------------------------------------------------------------------------
class StrayRewardView(discord.ui.View):
    """Button under a stray coin drop.  Registered at startup so it
    survives restarts; every member may claim once per window."""

    def __init__(self, bot: CoinBot) -> None:
        super().__init__(timeout=None)
        self.bot = bot

    @discord.ui.button(
        label="Grab it!",
        emoji=COIN_EMOJI,
        style=discord.ButtonStyle.success,
        custom_id=STRAY_BUTTON_ID,
    )
    async def grab(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        user = interaction.user
        amount = self.bot.cfg.stray_reward_coins
        async with self.bot.user_locks.hold(user.id):
            try:
                balance = await run_db(
                    claim_stray_reward,
                    self.bot.engine,
                    user_id=user.id,
                    display_name=user.display_name,
                    amount=amount,
                    window_hours=self.bot.cfg.stray_claim_window_hours,
                    seed=self.bot.cfg.seed_coins,
                )
            except CoinbotError as exc:
                await send_error(interaction, exc)
                return
        await interaction.followup.send(
            f"{COIN_EMOJI} +{amount}! You now have **{balance}** coins.",
            ephemeral=True,
        )
