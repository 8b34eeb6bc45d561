"""
coinbot.services.throttle — Sliding-window broadcast throttle
==============================================================

Rate-limits embeds posted to shared channels.  Anything over the limit
is parked and sent by a background drain task once the window reopens.

Parked embeds carry a ``key``; a newer embed with the same key replaces
the parked one.  A leaderboard posted twice while throttled only needs
its latest version delivered.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import defaultdict

import discord
from discord.abc import Messageable

logger = logging.getLogger(__name__)


class BroadcastThrottle:
    """Per-channel sliding window plus keyed overflow.

    - Up to ``max_per_window`` embeds per channel per ``window`` seconds.
    - Overflow is drained every ``drain_interval`` seconds, oldest key first.
    """

    def __init__(
        self, max_per_window: int = 3, window: int = 60, drain_interval: float = 10
    ) -> None:
        self.max_per_window = max_per_window
        self.window = window
        self.drain_interval = drain_interval
        self._sent_at: dict[int, list[float]] = defaultdict(list)
        # channel id → key → (embed, channel); dicts keep insertion order
        self._parked: dict[int, dict[str, tuple[discord.Embed, Messageable]]] = defaultdict(dict)
        self._counter = 0
        self._drain_task: asyncio.Task | None = None

    def try_acquire(self, channel_id: int) -> bool:
        """Claim a send slot for *channel_id*.  False means park the embed."""
        now = time.monotonic()
        recent = [t for t in self._sent_at[channel_id] if t > now - self.window]
        if len(recent) >= self.max_per_window:
            self._sent_at[channel_id] = recent
            return False
        recent.append(now)
        self._sent_at[channel_id] = recent
        return True

    def park(
        self,
        channel_id: int,
        embed: discord.Embed,
        channel: Messageable,
        key: str | None = None,
    ) -> None:
        """Hold *embed* for later.  Same *key* → replaces the parked embed."""
        if key is None:
            self._counter += 1
            key = f"_anon{self._counter}"
        parked = self._parked[channel_id]
        parked.pop(key, None)  # re-insert at the end
        parked[key] = (embed, channel)

    def pending(self, channel_id: int) -> int:
        return len(self._parked.get(channel_id, {}))

    async def send(
        self, channel: Messageable, embed: discord.Embed, key: str | None = None
    ) -> bool:
        """Send now if the window allows, else park.  Returns True if sent."""
        channel_id = getattr(channel, "id", 0)
        if not self.try_acquire(channel_id):
            self.park(channel_id, embed, channel, key)
            return False
        try:
            await channel.send(embed=embed)
        except Exception:
            logger.exception("Failed to send broadcast to channel %d", channel_id)
            return False
        return True

    async def drain_once(self) -> None:
        """Deliver parked embeds for channels whose window has reopened."""
        for ch_id, parked in list(self._parked.items()):
            while parked and self.try_acquire(ch_id):
                key = next(iter(parked))
                embed, channel = parked.pop(key)
                try:
                    await channel.send(embed=embed)
                except Exception:
                    logger.exception("Failed to send parked broadcast to channel %d", ch_id)
            if not parked:
                del self._parked[ch_id]

    def start(self, loop: asyncio.AbstractEventLoop) -> None:
        """Start the background drain task."""
        if self._drain_task is not None:
            return

        async def _drain_loop() -> None:
            while True:
                await asyncio.sleep(self.drain_interval)
                try:
                    await self.drain_once()
                except Exception:
                    logger.exception("Broadcast drain error")

        self._drain_task = loop.create_task(_drain_loop(), name="broadcast-drain")

    def stop(self) -> None:
        """Cancel the drain task."""
        if self._drain_task:
            self._drain_task.cancel()
            self._drain_task = None
