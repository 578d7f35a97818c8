"""Typed domain entities derived from the prediction arena event log."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum

from .keys import ai_stats_key, round_key, user_key, user_round_key

PROTOCOL_FEE_BPS = 200
PROTOCOL_FEE_PRECISION = 10_000


class Outcome(IntEnum):
    """Contract side/result encoding: 0 is a push, 1 is Up, 2 is Down."""

    NONE = 0
    UP = 1
    DOWN = 2


@dataclass(slots=True)
class Round:
    """One betting epoch; optional fields stay unset until their event arrives."""

    chain_id: int
    round_id: int
    start_ts: int | None = None
    end_ts: int | None = None
    start_price: int | None = None
    end_price: int | None = None
    ai_prediction: Outcome | None = None
    result: Outcome | None = None
    total_up: int = 0
    total_down: int = 0
    protocol_fee_bps: int = PROTOCOL_FEE_BPS
    protocol_fee_precision: int = PROTOCOL_FEE_PRECISION
    participants: list[str] = field(default_factory=list)

    @property
    def key(self) -> str:
        return round_key(self.chain_id, self.round_id)

    @property
    def is_resolved(self) -> bool:
        return self.result is not None and bool(self.end_ts)

    def add_participant(self, user: str) -> None:
        address = user.lower()
        if address not in self.participants:
            self.participants.append(address)


@dataclass(slots=True)
class UserRound:
    """A user's position in a single round."""

    chain_id: int
    round_id: int
    user: str
    up_amount: int = 0
    down_amount: int = 0
    total_bet: int = 0
    side: Outcome | None = None
    gross_reward: int = 0
    net_pnl: int = 0
    won: bool = False
    claimed: bool = False

    @property
    def key(self) -> str:
        return user_round_key(self.chain_id, self.round_id, self.user)

    @property
    def dominant_side(self) -> Outcome | None:
        """Side holding the larger stake; ties fall back to the last side staked."""

        if self.up_amount > self.down_amount:
            return Outcome.UP
        if self.down_amount > self.up_amount:
            return Outcome.DOWN
        return self.side


@dataclass(slots=True)
class RoundParticipant:
    """Fence guarding the once-per-round statistics update for a user."""

    chain_id: int
    round_id: int
    user: str
    processed_results: bool = False

    @property
    def key(self) -> str:
        return user_round_key(self.chain_id, self.round_id, self.user)


@dataclass(slots=True)
class UserStats:
    chain_id: int
    user: str
    rounds_played: int = 0
    wins: int = 0
    losses: int = 0
    pushes: int = 0
    total_bet: int = 0
    total_gross_rewards: int = 0
    total_net_pnl: int = 0
    win_rate: float = 0.0

    @property
    def key(self) -> str:
        return user_key(self.chain_id, self.user)


@dataclass(slots=True)
class LeaderboardRow:
    chain_id: int
    user: str
    total_net_pnl: int = 0
    win_rate: float = 0.0
    rounds_played: int = 0

    @property
    def key(self) -> str:
        return user_key(self.chain_id, self.user)

    @classmethod
    def from_stats(cls, stats: UserStats) -> LeaderboardRow:
        return cls(
            chain_id=stats.chain_id,
            user=stats.user,
            total_net_pnl=stats.total_net_pnl,
            win_rate=stats.win_rate,
            rounds_played=stats.rounds_played,
        )


@dataclass(slots=True)
class AiStats:
    """Running accuracy of the external prediction feed for one chain."""

    chain_id: int
    rounds_with_prediction: int = 0
    correct: int = 0
    incorrect: int = 0
    pushes: int = 0
    accuracy: float = 0.0

    @property
    def key(self) -> str:
        return ai_stats_key(self.chain_id)
