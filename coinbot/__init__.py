"""
Coinbot — Community Coins for Discord
======================================
Members claim credit for community actions, reviewers approve or decline
the claims, approved claims turn into coins, and coins unlock cosmetic
rewards in a tiered shop.

Package layout::

    coinbot/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Presentation constants
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   └── models.py      # ORM models (users, user_rewards, coin_requests)
    ├── engine/
    │   ├── catalog.py     # Immutable action + reward catalogs
    │   ├── errors.py      # Typed failures surfaced to members
    │   ├── eligibility.py # Per-action claim caps (pure)
    │   ├── purchase.py    # Shop authorization rules (pure)
    │   └── locks.py       # Per-user asyncio locks
    ├── services/
    │   ├── balance_service.py     # Credit / debit / reconcile / leaderboard
    │   ├── eligibility_service.py # Remaining claims, fail-open reads
    │   ├── request_service.py     # Submit, review, process requests
    │   ├── shop_service.py        # Purchases + shop listing
    │   ├── announcement_service.py # DMs and channel broadcasts
    │   ├── throttle.py            # Broadcast rate limiting
    │   └── embeds.py              # Embed builders
    ├── bot/
    │   ├── core.py        # Bot subclass, cog loader
    │   ├── views.py       # Selects, modal, stray coin button
    │   └── cogs/
    │       ├── collect.py # /collect
    │       ├── shop.py    # /shop, /buy
    │       ├── meta.py    # /coins, /leaderboard, /what
    │       ├── admin.py   # /update-coins, /reconcile, /requests, /review, /speak, /drop-stray
    │       └── tasks.py   # Periodic processing + leaderboard broadcast
    └── api/
        ├── main.py        # FastAPI app
        ├── deps.py        # Engine / config / admin JWT dependencies
        └── routes/        # Public + admin REST endpoints
"""

__version__ = "0.1.0"
