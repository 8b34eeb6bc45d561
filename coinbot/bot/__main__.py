"""
coinbot.bot.__main__ — Entry point for ``python -m coinbot.bot``
=================================================================

Wiring:
1. Load .env (secrets).
2. Load config.yaml and the catalog (once, immutable from here on).
3. Create the SQLAlchemy engine and ensure tables exist.
4. Create the CoinBot and hand it config + engine + catalog.
5. Start the bot (blocking — runs the asyncio event loop).

Run with::

    uv run python -m coinbot.bot
"""

from __future__ import annotations

import logging
import os
import sys

from dotenv import load_dotenv

from coinbot.bot.core import CoinBot
from coinbot.config import load_config
from coinbot.database.engine import create_db_engine, init_db
from coinbot.engine.catalog import load_catalog

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("coinbot")


def main() -> None:
    """Bootstrap and run the Coinbot bot."""

    # 1. Environment variables (secrets).
    load_dotenv()

    token = os.getenv("DISCORD_TOKEN")
    if not token or token == "your-discord-bot-token-here":
        logger.critical(
            "DISCORD_TOKEN is not set.  "
            "Copy .env.example → .env and paste your bot token."
        )
        sys.exit(1)

    # 2. Configuration + catalog.
    cfg = load_config(os.getenv("COINBOT_CONFIG", "config.yaml"))
    catalog = load_catalog(cfg.catalog_path)
    logger.info(
        "Config loaded — %s: %d actions, %d rewards, seed=%d",
        cfg.community_name, len(catalog.actions), len(catalog.rewards), cfg.seed_coins,
    )

    # 3. Database.
    engine = create_db_engine()
    init_db(engine)

    # 4. Bot.
    bot = CoinBot(cfg=cfg, engine=engine, catalog=catalog)

    # 5. Run (blocks until Ctrl+C or SIGTERM).
    logger.info("Starting Coinbot…")
    try:
        bot.run(token, log_handler=None)
    except KeyboardInterrupt:
        logger.info("Shutting down gracefully…")


if __name__ == "__main__":
    main()
