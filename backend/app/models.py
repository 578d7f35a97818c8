from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, BigInteger, Boolean, DateTime, Float, Index, Integer, Numeric, SmallInteger, String
from sqlalchemy.engine import Dialect
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from .db import Base


class Wei(TypeDecorator):
    """Arbitrary precision integer column.

    uint256/int256 values fit in 78 decimal digits. SQLite would coerce values
    above 2**63 to REAL, so they are stored as decimal strings there.
    """

    impl = Numeric(78, 0)
    cache_ok = True

    def load_dialect_impl(self, dialect: Dialect):
        if dialect.name == "sqlite":
            return dialect.type_descriptor(String(80))
        return dialect.type_descriptor(Numeric(78, 0))

    def process_bind_param(self, value: Any, dialect: Dialect):
        if value is None:
            return None
        if dialect.name == "sqlite":
            return str(int(value))
        return Decimal(int(value))

    def process_result_value(self, value: Any, dialect: Dialect) -> int | None:
        if value is None:
            return None
        return int(value)


WEI = Wei()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RoundRecord(Base):
    __tablename__ = "rounds"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    chain_id: Mapped[int] = mapped_column(Integer, nullable=False)
    round_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    start_ts: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    end_ts: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    start_price: Mapped[int | None] = mapped_column(WEI, nullable=True)
    end_price: Mapped[int | None] = mapped_column(WEI, nullable=True)
    ai_prediction: Mapped[int | None] = mapped_column(SmallInteger, nullable=True)
    result: Mapped[int | None] = mapped_column(SmallInteger, nullable=True)
    total_up: Mapped[int] = mapped_column(WEI, nullable=False, default=0)
    total_down: Mapped[int] = mapped_column(WEI, nullable=False, default=0)
    protocol_fee_bps: Mapped[int] = mapped_column(Integer, nullable=False)
    protocol_fee_precision: Mapped[int] = mapped_column(Integer, nullable=False)
    participants: Mapped[list | None] = mapped_column(JSON, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (Index("ix_rounds_chain_round", "chain_id", "round_id"),)


class UserRoundRecord(Base):
    __tablename__ = "user_rounds"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    chain_id: Mapped[int] = mapped_column(Integer, nullable=False)
    round_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    user: Mapped[str] = mapped_column(String(42), nullable=False)
    up_amount: Mapped[int] = mapped_column(WEI, nullable=False, default=0)
    down_amount: Mapped[int] = mapped_column(WEI, nullable=False, default=0)
    total_bet: Mapped[int] = mapped_column(WEI, nullable=False, default=0)
    side: Mapped[int | None] = mapped_column(SmallInteger, nullable=True)
    gross_reward: Mapped[int] = mapped_column(WEI, nullable=False, default=0)
    net_pnl: Mapped[int] = mapped_column(WEI, nullable=False, default=0)
    won: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    claimed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("ix_user_rounds_chain_user_round", "chain_id", "user", "round_id"),
        Index("ix_user_rounds_chain_round", "chain_id", "round_id"),
    )


class RoundParticipantRecord(Base):
    __tablename__ = "round_participants"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    chain_id: Mapped[int] = mapped_column(Integer, nullable=False)
    round_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    user: Mapped[str] = mapped_column(String(42), nullable=False)
    processed_results: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class UserStatsRecord(Base):
    __tablename__ = "user_stats"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    chain_id: Mapped[int] = mapped_column(Integer, nullable=False)
    user: Mapped[str] = mapped_column(String(42), nullable=False)
    rounds_played: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    wins: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    losses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    pushes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_bet: Mapped[int] = mapped_column(WEI, nullable=False, default=0)
    total_gross_rewards: Mapped[int] = mapped_column(WEI, nullable=False, default=0)
    total_net_pnl: Mapped[int] = mapped_column(WEI, nullable=False, default=0)
    win_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)


class LeaderboardRowRecord(Base):
    __tablename__ = "leaderboard_rows"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    chain_id: Mapped[int] = mapped_column(Integer, nullable=False)
    user: Mapped[str] = mapped_column(String(42), nullable=False)
    total_net_pnl: Mapped[int] = mapped_column(WEI, nullable=False, default=0)
    win_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    rounds_played: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (Index("ix_leaderboard_chain_pnl", "chain_id", "total_net_pnl"),)


class AiStatsRecord(Base):
    __tablename__ = "ai_stats"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    chain_id: Mapped[int] = mapped_column(Integer, nullable=False)
    rounds_with_prediction: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    correct: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    incorrect: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    pushes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    accuracy: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)


class IndexerCheckpoint(Base):
    __tablename__ = "indexer_checkpoints"

    chain_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    contract_address: Mapped[str | None] = mapped_column(String(42), nullable=True)
    last_block: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    # Position of the last applied event; replays skip anything at or before it.
    last_event_block: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    last_event_log_index: Mapped[int | None] = mapped_column(Integer, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )
