"""
coinbot.api.routes.admin — Admin processing endpoints (JWT‑protected)
======================================================================

The HTTP twin of ``/update-coins`` and ``/reconcile``.  Route handlers
are sync, so FastAPI runs them in its threadpool; a process-wide
:class:`threading.Lock` keeps two processing runs from overlapping.
"""

from __future__ import annotations

import logging
import threading

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy import Engine

from coinbot.api.deps import get_config, get_current_admin, get_engine
from coinbot.config import CoinbotConfig
from coinbot.database.models import RequestStatus
from coinbot.engine.errors import StoreUnavailable
from coinbot.services import balance_service, request_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])

_process_lock = threading.Lock()


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class ReconcileOut(BaseModel):
    user_id: str
    before: int
    after: int
    corrected: bool


class RequestOut(BaseModel):
    id: int
    user_id: str
    display_name: str
    action: str
    status: RequestStatus
    coins_given: int | None
    processed: bool
    submitted_at: str
    proof_link: str | None
    note: str | None


# ---------------------------------------------------------------------------
# POST /admin/process
# ---------------------------------------------------------------------------
@router.post("/process")
def run_process(
    admin: dict = Depends(get_current_admin),
    engine: Engine = Depends(get_engine),
    cfg: CoinbotConfig = Depends(get_config),
):
    """Grant coins for approved requests and close declined ones."""
    if not _process_lock.acquire(blocking=False):
        raise HTTPException(status.HTTP_409_CONFLICT, "Processing already running")
    try:
        result = request_service.process_all(
            engine, batch_size=cfg.process_batch_size, seed=cfg.seed_coins
        )
    finally:
        _process_lock.release()
    logger.info("Processing triggered over HTTP by %s: %s", admin.get("sub"), result)
    return result


# ---------------------------------------------------------------------------
# POST /admin/reconcile
# ---------------------------------------------------------------------------
@router.post("/reconcile")
def run_reconcile(
    user_id: int | None = Query(None),
    admin: dict = Depends(get_current_admin),
    engine: Engine = Depends(get_engine),
    cfg: CoinbotConfig = Depends(get_config),
):
    """Re-derive one member's balance, or everyone's when *user_id* is omitted."""
    try:
        if user_id is None:
            return balance_service.reconcile_all(engine, seed=cfg.seed_coins)
        result = balance_service.reconcile_balance(engine, user_id, seed=cfg.seed_coins)
    except StoreUnavailable as exc:
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, exc.message)
    return ReconcileOut(
        user_id=str(result.user_id),
        before=result.before,
        after=result.after,
        corrected=result.corrected,
    )


# ---------------------------------------------------------------------------
# GET /admin/requests
# ---------------------------------------------------------------------------
@router.get("/requests", response_model=list[RequestOut])
def get_requests(
    status_filter: RequestStatus | None = Query(None, alias="status"),
    user_id: int | None = Query(None),
    include_processed: bool = Query(False),
    limit: int = Query(25, ge=1, le=200),
    admin: dict = Depends(get_current_admin),
    engine: Engine = Depends(get_engine),
):
    rows = request_service.list_requests(
        engine,
        status=status_filter,
        user_id=user_id,
        include_processed=include_processed,
        limit=limit,
    )
    return [
        RequestOut(
            id=r.id,
            user_id=str(r.user_id),
            display_name=r.display_name,
            action=r.action,
            status=r.status,
            coins_given=r.coins_given,
            processed=r.processed,
            submitted_at=r.submitted_at.isoformat(),
            proof_link=r.proof_link,
            note=r.note,
        )
        for r in rows
    ]
