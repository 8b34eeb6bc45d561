"""
coinbot.services.embeds — Discord embed builders
=================================================

All embed construction lives here so cogs and the announcement service
only need to supply data.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import discord

from coinbot.constants import (
    AFFORDABLE_MARK,
    COIN_EMOJI,
    LOCKED_MARK,
    OWNED_MARK,
    SHORT_MARK,
    rank_label,
)

if TYPE_CHECKING:
    from coinbot.engine.catalog import ActionEntry, Catalog
    from coinbot.engine.errors import CoinbotError
    from coinbot.engine.purchase import ShopItem
    from coinbot.services.balance_service import Wallet
    from coinbot.services.shop_service import PurchaseResult


def build_error_embed(error: CoinbotError) -> discord.Embed:
    """Any typed failure, with its remediation text."""
    return discord.Embed(
        title="❌ Not this time",
        description=error.message,
        color=discord.Color.red(),
    )


def build_submission_embed(action: ActionEntry, request_id: int) -> discord.Embed:
    """DM sent after a claim is stored."""
    value = (
        f"{action.coins} {COIN_EMOJI}" if action.coins is not None
        else "a reviewer will set the amount"
    )
    embed = discord.Embed(
        title="✅ Got it!",
        description=(
            f"Your **{action.label}** coin request is submitted and awaiting review."
        ),
        color=discord.Color.green(),
    )
    embed.add_field(name="Worth", value=value, inline=True)
    embed.set_footer(text=f"Request #{request_id}")
    return embed


def build_purchase_embed(result: PurchaseResult) -> discord.Embed:
    reward = result.reward
    embed = discord.Embed(
        title=f"\U0001f6cd\ufe0f {reward.display} is yours!",
        description=reward.description or None,
        color=discord.Color.gold(),
    )
    embed.add_field(name="Paid", value=f"{reward.cost} {COIN_EMOJI}", inline=True)
    embed.add_field(name="Balance", value=f"{result.balance} {COIN_EMOJI}", inline=True)
    embed.add_field(name="Rewards owned", value=str(result.owned_count), inline=True)
    return embed


def shop_line(item: ShopItem, catalog: Catalog) -> str:
    reward = item.reward
    if item.owned:
        mark, note = OWNED_MARK, "owned"
    elif item.locked:
        required = catalog.get_reward(reward.prerequisite or "")
        mark = LOCKED_MARK
        note = f"needs {required.name if required else reward.prerequisite}"
    elif item.affordable:
        mark, note = AFFORDABLE_MARK, "available"
    else:
        mark, note = SHORT_MARK, "not enough coins"
    return f"{mark} **{reward.display}** — {reward.cost} {COIN_EMOJI} *({note})*"


def build_shop_embed(items: list[ShopItem], coins: int, catalog: Catalog) -> discord.Embed:
    embed = discord.Embed(
        title="\U0001f6d2 Coin Shop",
        description="\n".join(shop_line(i, catalog) for i in items) or "The shop is empty.",
        color=discord.Color.blurple(),
    )
    embed.set_footer(text=f"You have {coins} coins")
    return embed


def build_wallet_embed(
    wallet: Wallet,
    catalog: Catalog,
    remaining: dict[str, int],
    avatar_url: str | None = None,
) -> discord.Embed:
    embed = discord.Embed(
        title=f"{COIN_EMOJI} {wallet.display_name}'s Coins",
        color=discord.Color.gold(),
    )
    if avatar_url:
        embed.set_thumbnail(url=avatar_url)
    embed.add_field(name="Balance", value=f"{wallet.coins} {COIN_EMOJI}", inline=True)

    owned_names = []
    for reward_id in wallet.owned:
        reward = catalog.get_reward(reward_id)
        owned_names.append(reward.display if reward else reward_id)
    embed.add_field(
        name=f"Rewards ({len(owned_names)})",
        value=", ".join(owned_names) or "None yet — try `/shop`",
        inline=False,
    )

    capped = [
        f"{a.label}: {remaining.get(a.id, a.max_claims)}/{a.max_claims}"
        for a in catalog.capped_actions
    ]
    if capped:
        embed.add_field(name="Claims left", value="\n".join(capped), inline=False)
    return embed


def build_leaderboard_embed(
    rows: list[dict],
    *,
    community_name: str,
    caller_rank: tuple[int, int] | None = None,
    caller_coins: int | None = None,
) -> discord.Embed:
    lines = [
        f"{rank_label(i)} **{r['name']}** — {r['coins']:,} {COIN_EMOJI}"
        for i, r in enumerate(rows, 1)
    ]
    embed = discord.Embed(
        title=f"\U0001f3c6 Leaderboard — Top {len(rows)}",
        description="\n".join(lines) or "No coins collected yet!",
        color=discord.Color.gold(),
    )
    if caller_rank is not None:
        rank, total = caller_rank
        coins = f" with {caller_coins:,} {COIN_EMOJI}" if caller_coins is not None else ""
        embed.add_field(name="You", value=f"#{rank} of {total}{coins}", inline=False)
    embed.set_footer(text=community_name)
    return embed


def build_help_embed(catalog: Catalog, community_name: str) -> discord.Embed:
    embed = discord.Embed(
        title=f"❓ What is {community_name} Coins?",
        description=(
            "Do things for the community, claim them with `/collect`, and once "
            "a reviewer approves your claim the coins land in your balance. "
            "Spend them in `/shop`. Check your balance with `/coins` and see "
            "who's ahead with `/leaderboard`."
        ),
        color=discord.Color.blurple(),
    )
    actions = []
    for a in catalog.actions:
        cap = f" · max {a.max_claims}" if a.max_claims else ""
        actions.append(f"• {a.option_label()}{cap}")
    embed.add_field(name="Ways to earn", value="\n".join(actions)[:1024], inline=False)

    rewards = []
    for r in catalog.rewards:
        gate = ""
        if r.prerequisite:
            required = catalog.get_reward(r.prerequisite)
            gate = f" · needs {required.name if required else r.prerequisite}"
        rewards.append(f"• {r.display} — {r.cost} {COIN_EMOJI}{gate}")
    embed.add_field(name="Shop", value="\n".join(rewards)[:1024] or "—", inline=False)
    return embed


def build_process_report_embed(result: dict) -> discord.Embed:
    """Admin summary of a ``process_all`` run."""
    approved = result["approved"]
    declined = result["declined"]
    failed = approved["failed"] + declined["failed"]
    embed = discord.Embed(
        title="\U0001f504 Coins updated",
        color=discord.Color.orange() if failed else discord.Color.green(),
    )
    embed.add_field(
        name="Approved",
        value=(
            f"{approved['processed']} processed · {approved['coins_granted']} {COIN_EMOJI} "
            f"to {approved['users']} member(s)\n"
            f"{approved['skipped']} waiting for a coin value"
        ),
        inline=False,
    )
    embed.add_field(name="Declined", value=f"{declined['processed']} closed", inline=False)
    if failed:
        embed.add_field(name="Failed", value=f"{failed} — see logs; retried next run", inline=False)
    return embed


def build_stray_drop_embed(amount: int) -> discord.Embed:
    return discord.Embed(
        title=f"{COIN_EMOJI} A stray coin appeared!",
        description=f"Click below to grab **{amount}** coin(s).",
        color=discord.Color.gold(),
    )
