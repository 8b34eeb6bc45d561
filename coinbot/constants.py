"""
coinbot.constants — Shared Presentation Constants
==================================================

Single source of truth for emoji and badge strings.  Import from here
instead of duplicating in cogs and embed builders.
"""

from __future__ import annotations

COIN_EMOJI = "\U0001fa99"  # 🪙

RANK_BADGES: list[str] = ["\U0001f947", "\U0001f948", "\U0001f949"]  # 🥇🥈🥉

# Shop state markers
OWNED_MARK = "\u2705"          # ✅
LOCKED_MARK = "\U0001f512"      # 🔒
AFFORDABLE_MARK = "\U0001f6d2"  # 🛒
SHORT_MARK = "\u274c"          # ❌

# Discord select menus cap out at 25 options
MAX_SELECT_OPTIONS = 25

# Action id reserved for the one-click stray reward grant
STRAY_ACTION_ID = "stray"


def rank_label(position: int) -> str:
    """Medal for the podium, ``**N.**`` for everyone else."""
    if 0 < position <= len(RANK_BADGES):
        return RANK_BADGES[position - 1]
    return f"**{position}.**"
