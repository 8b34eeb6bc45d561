"""
coinbot.api.main — FastAPI application entry point
===================================================

Run with::

    uvicorn coinbot.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

from coinbot import __version__  # noqa: E402
from coinbot.api.deps import get_engine  # noqa: E402
from coinbot.api.routes.admin import router as admin_router  # noqa: E402
from coinbot.api.routes.public import router as public_router  # noqa: E402
from coinbot.database.engine import init_db  # noqa: E402

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Comma-separated ``CORS_ALLOW_ORIGINS``, or nothing."""
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle — warm the DB engine."""
    engine = get_engine()
    init_db(engine)
    logger.info("Coinbot API started — engine ready (%s)", engine.url.database)
    yield
    logger.info("Coinbot API shutting down")


app = FastAPI(
    title="Coinbot API",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(public_router, prefix="/api")
app.include_router(admin_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}
