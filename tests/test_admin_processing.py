"""
tests/test_admin_processing.py — Admin Processing Entry Points
===============================================================

The helper shared by ``/update-coins`` and the scheduled loop, the admin
identity check and the startup command sync.
"""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

from conftest import add_request, run_async
from coinbot.bot.cogs.admin import run_processing
from coinbot.bot.core import CoinBot
from coinbot.database.models import RequestStatus


def _make_bot(engine) -> SimpleNamespace:
    return SimpleNamespace(
        engine=engine,
        cfg=SimpleNamespace(process_batch_size=100, seed_coins=0, admin_user_id=42),
        processing_lock=None,
    )


class TestRunProcessing:
    def test_runs_both_processors(self, db_engine):
        add_request(db_engine, 1, "comment", status=RequestStatus.APPROVED, coins=2)
        add_request(db_engine, 1, "comment", status=RequestStatus.DECLINED, coins=2)
        bot = _make_bot(db_engine)

        async def main():
            bot.processing_lock = asyncio.Lock()
            return await run_processing(bot)

        result = run_async(main())
        assert result["approved"]["coins_granted"] == 2
        assert result["declined"]["processed"] == 1

    def test_overlapping_runs_grant_once(self, db_engine):
        add_request(db_engine, 1, "comment", status=RequestStatus.APPROVED, coins=2)
        bot = _make_bot(db_engine)

        async def main():
            bot.processing_lock = asyncio.Lock()
            return await asyncio.gather(run_processing(bot), run_processing(bot))

        first, second = run_async(main())
        assert first["approved"]["processed"] + second["approved"]["processed"] == 1


class TestIsAdmin:
    def test_only_configured_account(self):
        bot = SimpleNamespace(cfg=SimpleNamespace(admin_user_id=42))
        assert CoinBot.is_admin(bot, 42)  # type: ignore[arg-type]
        assert not CoinBot.is_admin(bot, 7)  # type: ignore[arg-type]


class TestCommandSync:
    def _bot(self) -> SimpleNamespace:
        tree = MagicMock()
        tree.sync = AsyncMock(return_value=[])
        return SimpleNamespace(
            user=SimpleNamespace(name="coinbot", id=1),
            cfg=SimpleNamespace(guild_id=555),
            tree=tree,
        )

    def _synced_guild_id(self, bot) -> int:
        with patch("coinbot.bot.core.start_queue") as start_queue:
            run_async(CoinBot.on_ready(bot))  # type: ignore[arg-type]
        start_queue.assert_called_once()
        return bot.tree.sync.await_args.kwargs["guild"].id

    def test_syncs_to_configured_guild(self, monkeypatch):
        monkeypatch.delenv("DEV_GUILD_ID", raising=False)
        assert self._synced_guild_id(self._bot()) == 555

    def test_dev_guild_overrides(self, monkeypatch):
        monkeypatch.setenv("DEV_GUILD_ID", "777")
        assert self._synced_guild_id(self._bot()) == 777
