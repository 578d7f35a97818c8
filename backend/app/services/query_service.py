"""Read-only facade over indexed state used by the API."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from sqlalchemy.orm import Session

from app.repositories import IndexerQueryRepository
from app.schemas import AiStats, LeaderboardRow, Round, UserRound, UserStats


@dataclass(slots=True)
class RoundQueryResult:
    total: int
    rounds: Sequence[Round]


class IndexerQueryService:
    def __init__(self, session: Session):
        self._repo = IndexerQueryRepository(session)

    def list_rounds(
        self, chain_id: int, *, ended: bool | None = None, limit: int = 20, offset: int = 0
    ) -> RoundQueryResult:
        rounds, total = self._repo.list_rounds(chain_id, ended=ended, limit=limit, offset=offset)
        return RoundQueryResult(total=total, rounds=[Round.model_validate(r) for r in rounds])

    def get_round(self, chain_id: int, round_id: int) -> Round | None:
        round_ = self._repo.get_round(chain_id, round_id)
        return Round.model_validate(round_) if round_ else None

    def get_user_stats(self, chain_id: int, user: str) -> UserStats | None:
        stats = self._repo.get_user_stats(chain_id, user)
        return UserStats.model_validate(stats) if stats else None

    def list_user_rounds(self, chain_id: int, user: str, *, limit: int = 20) -> list[UserRound]:
        return [
            UserRound.model_validate(position)
            for position in self._repo.list_user_rounds(chain_id, user, limit=limit)
        ]

    def list_recent_activity(self, chain_id: int, *, limit: int = 20) -> list[UserRound]:
        return [
            UserRound.model_validate(position)
            for position in self._repo.list_recent_positions(chain_id, limit=limit)
        ]

    def leaderboard(self, chain_id: int, *, limit: int = 100) -> list[LeaderboardRow]:
        return [LeaderboardRow.model_validate(row) for row in self._repo.list_leaderboard(chain_id, limit=limit)]

    def get_ai_stats(self, chain_id: int) -> AiStats | None:
        stats = self._repo.get_ai_stats(chain_id)
        return AiStats.model_validate(stats) if stats else None
