"""
coinbot.api.routes.public — Read-only public endpoints
=======================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import Engine

from coinbot.api.deps import get_catalog, get_engine
from coinbot.engine.catalog import Catalog
from coinbot.engine.errors import StoreUnavailable
from coinbot.services.balance_service import get_leaderboard

router = APIRouter(tags=["public"])


@router.get("/leaderboard")
def leaderboard(
    limit: int = Query(10, ge=1, le=100),
    engine: Engine = Depends(get_engine),
):
    """Top members by coin balance."""
    try:
        rows = get_leaderboard(engine, limit)
    except StoreUnavailable as exc:
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, exc.message)
    return {
        "leaderboard": [
            {"rank": i, "user_id": str(r["user_id"]), "name": r["name"], "coins": r["coins"]}
            for i, r in enumerate(rows, start=1)
        ],
    }


@router.get("/catalog")
def catalog(cat: Catalog = Depends(get_catalog)):
    """Ways to earn and rewards to buy."""
    return {
        "actions": [
            {
                "id": a.id,
                "label": a.label,
                "coins": a.coins,
                "max_claims": a.max_claims,
            }
            for a in cat.actions
        ],
        "rewards": [
            {
                "id": r.id,
                "name": r.name,
                "cost": r.cost,
                "prerequisite": r.prerequisite,
                "description": r.description,
            }
            for r in cat.rewards
        ],
    }
