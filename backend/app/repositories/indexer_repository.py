"""SQLAlchemy-backed indexer persistence and read-side queries."""

from __future__ import annotations

from typing import Any

from sqlalchemy import Select, desc, func, select
from sqlalchemy.orm import Session

from app.domain import AiStats, LeaderboardRow, Outcome, Round, RoundParticipant, UserRound, UserStats
from app.domain.keys import ai_stats_key, round_key, user_key, user_round_key
from app.models import (
    AiStatsRecord,
    IndexerCheckpoint,
    LeaderboardRowRecord,
    RoundParticipantRecord,
    RoundRecord,
    UserRoundRecord,
    UserStatsRecord,
)


def _outcome(value: int | None) -> Outcome | None:
    return Outcome(value) if value is not None else None


def _outcome_value(value: Outcome | None) -> int | None:
    return int(value) if value is not None else None


def _round_from_record(record: RoundRecord) -> Round:
    return Round(
        chain_id=record.chain_id,
        round_id=record.round_id,
        start_ts=record.start_ts,
        end_ts=record.end_ts,
        start_price=record.start_price,
        end_price=record.end_price,
        ai_prediction=_outcome(record.ai_prediction),
        result=_outcome(record.result),
        total_up=record.total_up,
        total_down=record.total_down,
        protocol_fee_bps=record.protocol_fee_bps,
        protocol_fee_precision=record.protocol_fee_precision,
        participants=list(record.participants or []),
    )


def _user_round_from_record(record: UserRoundRecord) -> UserRound:
    return UserRound(
        chain_id=record.chain_id,
        round_id=record.round_id,
        user=record.user,
        up_amount=record.up_amount,
        down_amount=record.down_amount,
        total_bet=record.total_bet,
        side=_outcome(record.side),
        gross_reward=record.gross_reward,
        net_pnl=record.net_pnl,
        won=record.won,
        claimed=record.claimed,
    )


def _user_stats_from_record(record: UserStatsRecord) -> UserStats:
    return UserStats(
        chain_id=record.chain_id,
        user=record.user,
        rounds_played=record.rounds_played,
        wins=record.wins,
        losses=record.losses,
        pushes=record.pushes,
        total_bet=record.total_bet,
        total_gross_rewards=record.total_gross_rewards,
        total_net_pnl=record.total_net_pnl,
        win_rate=record.win_rate,
    )


def _leaderboard_from_record(record: LeaderboardRowRecord) -> LeaderboardRow:
    return LeaderboardRow(
        chain_id=record.chain_id,
        user=record.user,
        total_net_pnl=record.total_net_pnl,
        win_rate=record.win_rate,
        rounds_played=record.rounds_played,
    )


def _ai_stats_from_record(record: AiStatsRecord) -> AiStats:
    return AiStats(
        chain_id=record.chain_id,
        rounds_with_prediction=record.rounds_with_prediction,
        correct=record.correct,
        incorrect=record.incorrect,
        pushes=record.pushes,
        accuracy=record.accuracy,
    )


def leaderboard_query(chain_id: int, *, limit: int) -> Select:
    """Leaderboard ordered and limited in SQL, for backends with numeric wei columns."""

    return (
        select(LeaderboardRowRecord)
        .where(LeaderboardRowRecord.chain_id == chain_id)
        .order_by(desc(LeaderboardRowRecord.total_net_pnl), LeaderboardRowRecord.user)
        .limit(limit)
    )


class SqlIndexerStore:
    """Encapsulate all indexer persistence concerns behind the async store port.

    Calls run synchronously on the wrapped session; every save flushes so the
    next read in the same transaction observes it.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def _upsert(self, model: type, key: str, values: dict[str, Any]) -> None:
        existing = self._session.get(model, key)
        if existing is None:
            existing = model(id=key)
            self._session.add(existing)
        for name, value in values.items():
            setattr(existing, name, value)
        self._session.flush()

    # ------------------------------------------------------------------
    # Store port

    async def get_round(self, chain_id: int, round_id: int) -> Round | None:
        record = self._session.get(RoundRecord, round_key(chain_id, round_id))
        return _round_from_record(record) if record else None

    async def save_round(self, round_: Round) -> None:
        self._upsert(
            RoundRecord,
            round_.key,
            {
                "chain_id": round_.chain_id,
                "round_id": round_.round_id,
                "start_ts": round_.start_ts,
                "end_ts": round_.end_ts,
                "start_price": round_.start_price,
                "end_price": round_.end_price,
                "ai_prediction": _outcome_value(round_.ai_prediction),
                "result": _outcome_value(round_.result),
                "total_up": round_.total_up,
                "total_down": round_.total_down,
                "protocol_fee_bps": round_.protocol_fee_bps,
                "protocol_fee_precision": round_.protocol_fee_precision,
                "participants": list(round_.participants),
            },
        )

    async def get_user_round(self, chain_id: int, round_id: int, user: str) -> UserRound | None:
        record = self._session.get(UserRoundRecord, user_round_key(chain_id, round_id, user))
        return _user_round_from_record(record) if record else None

    async def save_user_round(self, position: UserRound) -> None:
        self._upsert(
            UserRoundRecord,
            position.key,
            {
                "chain_id": position.chain_id,
                "round_id": position.round_id,
                "user": position.user,
                "up_amount": position.up_amount,
                "down_amount": position.down_amount,
                "total_bet": position.total_bet,
                "side": _outcome_value(position.side),
                "gross_reward": position.gross_reward,
                "net_pnl": position.net_pnl,
                "won": position.won,
                "claimed": position.claimed,
            },
        )

    async def get_participant(
        self, chain_id: int, round_id: int, user: str
    ) -> RoundParticipant | None:
        record = self._session.get(RoundParticipantRecord, user_round_key(chain_id, round_id, user))
        if record is None:
            return None
        return RoundParticipant(
            chain_id=record.chain_id,
            round_id=record.round_id,
            user=record.user,
            processed_results=record.processed_results,
        )

    async def save_participant(self, participant: RoundParticipant) -> None:
        self._upsert(
            RoundParticipantRecord,
            participant.key,
            {
                "chain_id": participant.chain_id,
                "round_id": participant.round_id,
                "user": participant.user,
                "processed_results": participant.processed_results,
            },
        )

    async def get_user_stats(self, chain_id: int, user: str) -> UserStats | None:
        record = self._session.get(UserStatsRecord, user_key(chain_id, user))
        return _user_stats_from_record(record) if record else None

    async def save_user_stats(self, stats: UserStats) -> None:
        self._upsert(
            UserStatsRecord,
            stats.key,
            {
                "chain_id": stats.chain_id,
                "user": stats.user,
                "rounds_played": stats.rounds_played,
                "wins": stats.wins,
                "losses": stats.losses,
                "pushes": stats.pushes,
                "total_bet": stats.total_bet,
                "total_gross_rewards": stats.total_gross_rewards,
                "total_net_pnl": stats.total_net_pnl,
                "win_rate": stats.win_rate,
            },
        )

    async def get_leaderboard_row(self, chain_id: int, user: str) -> LeaderboardRow | None:
        record = self._session.get(LeaderboardRowRecord, user_key(chain_id, user))
        return _leaderboard_from_record(record) if record else None

    async def save_leaderboard_row(self, row: LeaderboardRow) -> None:
        self._upsert(
            LeaderboardRowRecord,
            row.key,
            {
                "chain_id": row.chain_id,
                "user": row.user,
                "total_net_pnl": row.total_net_pnl,
                "win_rate": row.win_rate,
                "rounds_played": row.rounds_played,
            },
        )

    async def get_ai_stats(self, chain_id: int) -> AiStats | None:
        record = self._session.get(AiStatsRecord, ai_stats_key(chain_id))
        return _ai_stats_from_record(record) if record else None

    async def save_ai_stats(self, stats: AiStats) -> None:
        self._upsert(
            AiStatsRecord,
            stats.key,
            {
                "chain_id": stats.chain_id,
                "rounds_with_prediction": stats.rounds_with_prediction,
                "correct": stats.correct,
                "incorrect": stats.incorrect,
                "pushes": stats.pushes,
                "accuracy": stats.accuracy,
            },
        )

    # ------------------------------------------------------------------
    # Sync checkpoints

    def _checkpoint(self, chain_id: int) -> IndexerCheckpoint:
        record = self._session.get(IndexerCheckpoint, chain_id)
        if record is None:
            record = IndexerCheckpoint(chain_id=chain_id)
            self._session.add(record)
        return record

    def get_checkpoint(self, chain_id: int) -> int | None:
        record = self._session.get(IndexerCheckpoint, chain_id)
        return record.last_block if record else None

    def save_checkpoint(self, chain_id: int, contract_address: str, last_block: int) -> None:
        record = self._checkpoint(chain_id)
        record.contract_address = contract_address.lower()
        record.last_block = last_block
        self._session.flush()

    def get_event_cursor(self, chain_id: int) -> tuple[int, int] | None:
        record = self._session.get(IndexerCheckpoint, chain_id)
        if record is None or record.last_event_block is None:
            return None
        return record.last_event_block, record.last_event_log_index or 0

    def save_event_cursor(self, chain_id: int, block_number: int, log_index: int) -> None:
        record = self._checkpoint(chain_id)
        record.last_event_block = block_number
        record.last_event_log_index = log_index
        self._session.flush()


class IndexerQueryRepository:
    """Read-only queries backing the API."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def list_rounds(
        self,
        chain_id: int,
        *,
        ended: bool | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Round], int]:
        filters: list[Any] = [RoundRecord.chain_id == chain_id]
        if ended is True:
            filters.append(RoundRecord.end_ts.is_not(None))
        elif ended is False:
            filters.append(RoundRecord.end_ts.is_(None))

        query = (
            select(RoundRecord)
            .where(*filters)
            .order_by(desc(RoundRecord.round_id))
            .limit(limit)
            .offset(offset)
        )
        total_query = select(func.count(RoundRecord.id)).where(*filters)

        records = self._session.execute(query).scalars().all()
        total = self._session.execute(total_query).scalar_one()
        return [_round_from_record(record) for record in records], total

    def get_round(self, chain_id: int, round_id: int) -> Round | None:
        record = self._session.get(RoundRecord, round_key(chain_id, round_id))
        return _round_from_record(record) if record else None

    def get_user_stats(self, chain_id: int, user: str) -> UserStats | None:
        record = self._session.get(UserStatsRecord, user_key(chain_id, user))
        return _user_stats_from_record(record) if record else None

    def list_user_rounds(self, chain_id: int, user: str, *, limit: int = 20) -> list[UserRound]:
        query = (
            select(UserRoundRecord)
            .where(
                UserRoundRecord.chain_id == chain_id,
                UserRoundRecord.user == user.lower(),
            )
            .order_by(desc(UserRoundRecord.round_id))
            .limit(limit)
        )
        return [_user_round_from_record(record) for record in self._session.execute(query).scalars()]

    def list_recent_positions(self, chain_id: int, *, limit: int = 20) -> list[UserRound]:
        query = (
            select(UserRoundRecord)
            .where(UserRoundRecord.chain_id == chain_id)
            .order_by(desc(UserRoundRecord.round_id), UserRoundRecord.user)
            .limit(limit)
        )
        return [_user_round_from_record(record) for record in self._session.execute(query).scalars()]

    def list_leaderboard(self, chain_id: int, *, limit: int = 100) -> list[LeaderboardRow]:
        if self._session.get_bind().dialect.name != "sqlite":
            records = self._session.execute(leaderboard_query(chain_id, limit=limit)).scalars()
            return [_leaderboard_from_record(record) for record in records]

        # Wei columns are text on SQLite, so ordering happens on the decoded ints.
        query = select(LeaderboardRowRecord).where(LeaderboardRowRecord.chain_id == chain_id)
        rows = [_leaderboard_from_record(record) for record in self._session.execute(query).scalars()]
        rows.sort(key=lambda row: (-row.total_net_pnl, row.user))
        return rows[:limit]

    def get_ai_stats(self, chain_id: int) -> AiStats | None:
        record = self._session.get(AiStatsRecord, ai_stats_key(chain_id))
        return _ai_stats_from_record(record) if record else None


__all__ = ["SqlIndexerStore", "IndexerQueryRepository", "leaderboard_query"]
