"""
coinbot.database.models — SQLAlchemy 2.0 Data Models
=====================================================

Tables:
- users          — Community member balances (Discord snowflake PK)
- user_rewards   — Rewards a member owns, in purchase order
- coin_requests  — Claims of having performed an action, with review state
"""

from __future__ import annotations

import enum
from datetime import date, datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Coinbot ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class RequestStatus(enum.StrEnum):
    """Review state of a coin request.  Set by a reviewer, never by the bot."""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    DECLINED = "DECLINED"


# ---------------------------------------------------------------------------
# Users — one row per Discord member
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    coins: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    rewards: Mapped[list[UserReward]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="UserReward.id",
    )

    __table_args__ = (
        Index("ix_users_coins_desc", "coins"),
    )

    @property
    def owned_reward_ids(self) -> list[str]:
        return [r.reward_id for r in self.rewards]

    def __repr__(self) -> str:
        return f"<User id={self.id} name={self.display_name!r} coins={self.coins}>"


# ---------------------------------------------------------------------------
# UserReward — append-only ownership rows
# ---------------------------------------------------------------------------
class UserReward(Base):
    """A reward a member has bought.

    ``cost`` records the coins debited at purchase time so a balance can be
    re-derived even after the catalog price changes.
    """
    __tablename__ = "user_rewards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    reward_id: Mapped[str] = mapped_column(String(50), nullable=False)
    cost: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    purchased_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    user: Mapped[User] = relationship(back_populates="rewards")

    __table_args__ = (
        UniqueConstraint("user_id", "reward_id", name="uq_user_rewards_user_reward"),
    )

    def __repr__(self) -> str:
        return f"<UserReward user={self.user_id} reward={self.reward_id!r}>"


# ---------------------------------------------------------------------------
# CoinRequest — a claim of having performed an action
# ---------------------------------------------------------------------------
class CoinRequest(Base):
    """One member's claim, moving PENDING → APPROVED/DECLINED → processed.

    ``user_id`` is not a foreign key: the request row and the
    user upsert are independent writes, and a stored claim must survive a
    failed upsert.
    """
    __tablename__ = "coin_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[RequestStatus] = mapped_column(
        Enum(RequestStatus, name="request_status"),
        default=RequestStatus.PENDING,
        nullable=False,
    )
    coins_given: Mapped[int | None] = mapped_column(Integer, default=None)
    processed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    submitted_at: Mapped[date] = mapped_column(Date, nullable=False)
    proof_link: Mapped[str | None] = mapped_column(String(500), default=None)
    note: Mapped[str | None] = mapped_column(Text, default=None)
    reviewed_by: Mapped[int | None] = mapped_column(BigInteger, default=None)
    processed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_coin_requests_status_processed", "status", "processed"),
        Index("ix_coin_requests_user_action_status", "user_id", "action", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<CoinRequest id={self.id} user={self.user_id} action={self.action!r} "
            f"status={self.status} processed={self.processed}>"
        )
