"""Async storage port consumed by the event handlers."""

from __future__ import annotations

from typing import Protocol

from app.domain import AiStats, LeaderboardRow, Round, RoundParticipant, UserRound, UserStats


class IndexerStore(Protocol):
    """Get-by-key and upsert access to every indexed entity.

    ``get_*`` returns ``None`` for unknown keys. ``save_*`` upserts by the
    entity's key and must be visible to every later ``get_*`` call.
    """

    async def get_round(self, chain_id: int, round_id: int) -> Round | None: ...

    async def save_round(self, round_: Round) -> None: ...

    async def get_user_round(self, chain_id: int, round_id: int, user: str) -> UserRound | None: ...

    async def save_user_round(self, position: UserRound) -> None: ...

    async def get_participant(
        self, chain_id: int, round_id: int, user: str
    ) -> RoundParticipant | None: ...

    async def save_participant(self, participant: RoundParticipant) -> None: ...

    async def get_user_stats(self, chain_id: int, user: str) -> UserStats | None: ...

    async def save_user_stats(self, stats: UserStats) -> None: ...

    async def get_leaderboard_row(self, chain_id: int, user: str) -> LeaderboardRow | None: ...

    async def save_leaderboard_row(self, row: LeaderboardRow) -> None: ...

    async def get_ai_stats(self, chain_id: int) -> AiStats | None: ...

    async def save_ai_stats(self, stats: AiStats) -> None: ...


__all__ = ["IndexerStore"]
