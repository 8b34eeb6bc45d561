"""
tests/test_cogs.py — Member Commands
=====================================

``/collect``, ``/coins`` and ``/leaderboard`` driven through their
callbacks with mock interactions and contexts.
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import discord

from conftest import run_async
from coinbot.bot.cogs.collect import Collect
from coinbot.bot.cogs.meta import Meta
from coinbot.engine.errors import StoreUnavailable
from coinbot.engine.locks import UserLocks


def _make_bot(engine, catalog) -> SimpleNamespace:
    return SimpleNamespace(
        engine=engine,
        catalog=catalog,
        cfg=SimpleNamespace(
            seed_coins=0,
            eligibility_timeout_seconds=2.0,
            leaderboard_size=10,
            community_name="Jumpstart",
        ),
        user_locks=UserLocks(),
    )


def _make_ctx(user_id: int = 1) -> MagicMock:
    ctx = MagicMock()
    ctx.author.id = user_id
    ctx.author.display_name = "ada"
    ctx.author.display_avatar.url = "https://cdn.example.com/ada.png"
    ctx.defer = AsyncMock()
    ctx.send = AsyncMock()
    return ctx


class TestCollect:
    def test_defers_before_eligibility_lookup(self, db_engine, tier_catalog):
        cog = Collect(_make_bot(db_engine, tier_catalog))
        interaction = MagicMock()
        interaction.user.id = 1
        interaction.response.defer = AsyncMock()
        interaction.response.send_message = AsyncMock()
        interaction.followup.send = AsyncMock()

        def _lookup(*args, **kwargs):
            interaction.response.defer.assert_awaited_once()
            return {"post": 1}

        with patch(
            "coinbot.bot.cogs.collect.check_remaining_claims",
            new=AsyncMock(side_effect=_lookup),
        ), patch("coinbot.bot.cogs.collect.CollectView") as view_cls:
            run_async(Collect.collect.callback(cog, interaction))

        view_cls.assert_called_once_with(cog.bot, {"post": 1})
        interaction.followup.send.assert_awaited_once()
        assert interaction.followup.send.await_args.kwargs["ephemeral"] is True
        interaction.response.send_message.assert_not_awaited()


class TestCoins:
    def test_defers_before_eligibility_lookup(self, db_engine, tier_catalog):
        cog = Meta(_make_bot(db_engine, tier_catalog))
        ctx = _make_ctx()

        def _lookup(*args, **kwargs):
            ctx.defer.assert_awaited_once_with(ephemeral=True)
            return {}

        with patch(
            "coinbot.bot.cogs.meta.check_remaining_claims",
            new=AsyncMock(side_effect=_lookup),
        ):
            run_async(Meta.coins.callback(cog, ctx, None))

        ctx.send.assert_awaited_once()
        assert isinstance(ctx.send.await_args.kwargs["embed"], discord.Embed)
        assert ctx.send.await_args.kwargs["ephemeral"] is True


class TestLeaderboard:
    def test_store_failure_still_answers(self, db_engine, tier_catalog):
        cog = Meta(_make_bot(db_engine, tier_catalog))
        ctx = _make_ctx()

        with patch(
            "coinbot.bot.cogs.meta.get_leaderboard",
            side_effect=StoreUnavailable("get_leaderboard"),
        ):
            run_async(Meta.leaderboard.callback(cog, ctx))

        ctx.defer.assert_awaited_once()
        ctx.send.assert_awaited_once()
        embed = ctx.send.await_args.kwargs["embed"]
        assert embed.description == StoreUnavailable("get_leaderboard").message
