"""
coinbot.bot.core — Bot Instance & Cog Loader
=============================================

Defines :class:`CoinBot`, a ``commands.Bot`` subclass that:

1. Carries the shared config (``bot.cfg``), DB engine (``bot.engine``)
   and catalog (``bot.catalog``) so every Cog can reach them.
2. Owns the per-user locks that serialize a member's mutating
   interactions, and the lock that keeps request processing from
   running twice at once.
3. Loads every Cog in ``coinbot/bot/cogs/`` and re-registers the
   persistent stray-coin button so old drops keep working after a
   restart.
4. Syncs the slash-command tree to the community guild on startup
   (``guild_id`` from config; the ``DEV_GUILD_ID`` env var points it at a
   test server instead).
"""

from __future__ import annotations

import asyncio
import logging
import os

import discord
from discord.ext import commands
from sqlalchemy import Engine

from coinbot.config import CoinbotConfig
from coinbot.engine.catalog import Catalog
from coinbot.engine.locks import UserLocks
from coinbot.services.announcement_service import start_queue, stop_queue

logger = logging.getLogger(__name__)

# Cog modules to load on startup.
EXTENSIONS: list[str] = [
    "coinbot.bot.cogs.collect",
    "coinbot.bot.cogs.shop",
    "coinbot.bot.cogs.meta",
    "coinbot.bot.cogs.admin",
    "coinbot.bot.cogs.tasks",
]


class CoinBot(commands.Bot):
    """Custom Bot subclass that carries project-wide state.

    Parameters
    ----------
    cfg:
        The parsed :class:`CoinbotConfig` from ``config.yaml``.
    engine:
        A SQLAlchemy :class:`Engine` for the record store.
    catalog:
        The action + reward :class:`Catalog`, loaded once at startup.
    """

    def __init__(self, cfg: CoinbotConfig, engine: Engine, catalog: Catalog) -> None:
        # Slash commands and DMs only; no message content or presences needed
        intents = discord.Intents.default()
        intents.presences = False

        super().__init__(
            command_prefix=cfg.bot_prefix,
            intents=intents,
            description=f"{cfg.community_name} — {cfg.community_motto}",
        )

        self.cfg = cfg
        self.engine = engine
        self.catalog = catalog

        self.user_locks = UserLocks()
        # Admin command, periodic loop: never two processing runs at once
        self.processing_lock = asyncio.Lock()

    # -----------------------------------------------------------------------
    # Lifecycle hooks
    # -----------------------------------------------------------------------
    async def setup_hook(self) -> None:
        """Load Cog extensions and persistent views before connecting.

        One broken Cog is logged and skipped rather than taking the bot down.
        """
        for ext in EXTENSIONS:
            try:
                await self.load_extension(ext)
                logger.info("Loaded extension: %s", ext)
            except Exception as exc:
                logger.error("Failed to load extension %s: %s", ext, exc)

        from coinbot.bot.views import StrayRewardView

        self.add_view(StrayRewardView(self))

    async def on_ready(self) -> None:
        """Fired when the bot has connected and the cache is populated."""
        assert self.user is not None  # guaranteed after on_ready
        logger.info("Logged in as %s (ID: %s)", self.user.name, self.user.id)

        guild_id = int(os.getenv("DEV_GUILD_ID") or self.cfg.guild_id)
        guild = discord.Object(id=guild_id)
        self.tree.copy_global_to(guild=guild)
        synced = await self.tree.sync(guild=guild)
        logger.info("Synced %d commands to guild %s", len(synced), guild_id)

        start_queue(asyncio.get_running_loop())
        logger.info("Broadcast throttle drain task started.")

    async def close(self) -> None:
        """Graceful shutdown — stop background tasks."""
        logger.info("Bot shutting down…")
        stop_queue()
        await super().close()

    def is_admin(self, user_id: int) -> bool:
        return user_id == self.cfg.admin_user_id
