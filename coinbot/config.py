"""
coinbot.config — YAML Configuration Loader
===========================================

Reads ``config.yaml`` for infrastructure and economy settings (Discord
identity, the privileged admin account, seed balance, batch sizes and
task intervals).  The action and reward catalogs live in their own file
and are loaded by :mod:`coinbot.engine.catalog`.

Usage::

    from coinbot.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    print(cfg.community_name)    # "Jumpstart"
    print(cfg.seed_coins)        # 0
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml

# Discord drops an interaction that gets no first reply within 3 s; the
# eligibility lookup runs after the defer but must still leave headroom.
MAX_ELIGIBILITY_TIMEOUT = 2.5


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class CoinbotConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    community_name: str
    community_motto: str

    # Discord
    bot_prefix: str
    guild_id: int  # Primary guild snowflake; slash commands sync here

    # Admin — the single account allowed to run admin commands
    admin_user_id: int

    # Optional
    announce_channel_id: int | None = None  # Leaderboard broadcasts + stray drops

    # Economy
    seed_coins: int = 0  # Starting balance for a user created on first contact
    stray_reward_coins: int = 1
    stray_claim_window_hours: int = 24

    # Processing
    leaderboard_size: int = 10
    process_batch_size: int = 100
    process_interval_minutes: int = 10
    leaderboard_broadcast_hours: int = 24
    eligibility_timeout_seconds: float = 2.0  # Must stay under the 3 s interaction deadline

    # Catalog file (None → built-in defaults)
    catalog_path: str | None = None


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def _opt_int(value) -> int | None:
    return int(value) if value else None


def load_config(path: str | Path = "config.yaml") -> CoinbotConfig:
    """Read *path* and return a :class:`CoinbotConfig` instance.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.
        Defaults to ``config.yaml`` in the current working directory.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    ValueError
        If a numeric setting is out of range.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    cfg = CoinbotConfig(
        community_name=raw["community_name"],
        community_motto=raw.get("community_motto", ""),
        bot_prefix=raw.get("bot_prefix", "!"),
        guild_id=int(raw["guild_id"]),
        admin_user_id=int(raw["admin_user_id"]),
        announce_channel_id=_opt_int(raw.get("announce_channel_id")),
        seed_coins=int(raw.get("seed_coins", 0)),
        stray_reward_coins=int(raw.get("stray_reward_coins", 1)),
        stray_claim_window_hours=int(raw.get("stray_claim_window_hours", 24)),
        leaderboard_size=int(raw.get("leaderboard_size", 10)),
        process_batch_size=int(raw.get("process_batch_size", 100)),
        process_interval_minutes=int(raw.get("process_interval_minutes", 10)),
        leaderboard_broadcast_hours=int(raw.get("leaderboard_broadcast_hours", 24)),
        eligibility_timeout_seconds=float(raw.get("eligibility_timeout_seconds", 2.0)),
        catalog_path=raw.get("catalog_path") or None,
    )

    if cfg.seed_coins < 0:
        raise ValueError("seed_coins must be >= 0")
    if cfg.process_batch_size <= 0:
        raise ValueError("process_batch_size must be > 0")
    if not 0 < cfg.eligibility_timeout_seconds < MAX_ELIGIBILITY_TIMEOUT:
        raise ValueError(
            f"eligibility_timeout_seconds must be between 0 and {MAX_ELIGIBILITY_TIMEOUT}"
        )
    return cfg
