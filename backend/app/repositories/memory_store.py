"""Dict-backed store used by tests and dry runs."""

from __future__ import annotations

import copy
from typing import Any, TypeVar

from app.domain import AiStats, LeaderboardRow, Round, RoundParticipant, UserRound, UserStats
from app.domain.keys import ai_stats_key, round_key, user_key, user_round_key

T = TypeVar("T")


class InMemoryStore:
    """Keep entities in per-type dictionaries keyed by their composite id.

    Values are copied on the way in and out so handlers can never mutate
    stored state without an explicit save.
    """

    def __init__(self) -> None:
        self.rounds: dict[str, Round] = {}
        self.user_rounds: dict[str, UserRound] = {}
        self.participants: dict[str, RoundParticipant] = {}
        self.user_stats: dict[str, UserStats] = {}
        self.leaderboard: dict[str, LeaderboardRow] = {}
        self.ai_stats: dict[str, AiStats] = {}

    @staticmethod
    def _load(table: dict[str, T], key: str) -> T | None:
        value = table.get(key)
        return copy.deepcopy(value) if value is not None else None

    @staticmethod
    def _store(table: dict[str, Any], entity: Any) -> None:
        table[entity.key] = copy.deepcopy(entity)

    async def get_round(self, chain_id: int, round_id: int) -> Round | None:
        return self._load(self.rounds, round_key(chain_id, round_id))

    async def save_round(self, round_: Round) -> None:
        self._store(self.rounds, round_)

    async def get_user_round(self, chain_id: int, round_id: int, user: str) -> UserRound | None:
        return self._load(self.user_rounds, user_round_key(chain_id, round_id, user))

    async def save_user_round(self, position: UserRound) -> None:
        self._store(self.user_rounds, position)

    async def get_participant(
        self, chain_id: int, round_id: int, user: str
    ) -> RoundParticipant | None:
        return self._load(self.participants, user_round_key(chain_id, round_id, user))

    async def save_participant(self, participant: RoundParticipant) -> None:
        self._store(self.participants, participant)

    async def get_user_stats(self, chain_id: int, user: str) -> UserStats | None:
        return self._load(self.user_stats, user_key(chain_id, user))

    async def save_user_stats(self, stats: UserStats) -> None:
        self._store(self.user_stats, stats)

    async def get_leaderboard_row(self, chain_id: int, user: str) -> LeaderboardRow | None:
        return self._load(self.leaderboard, user_key(chain_id, user))

    async def save_leaderboard_row(self, row: LeaderboardRow) -> None:
        self._store(self.leaderboard, row)

    async def get_ai_stats(self, chain_id: int) -> AiStats | None:
        return self._load(self.ai_stats, ai_stats_key(chain_id))

    async def save_ai_stats(self, stats: AiStats) -> None:
        self._store(self.ai_stats, stats)


__all__ = ["InMemoryStore"]
