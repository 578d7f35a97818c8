from typing import Any

from pydantic import BaseModel, field_validator


def _as_decimal_string(value: Any) -> str | None:
    if value is None:
        return None
    return str(int(value))


class Round(BaseModel):
    key: str
    chain_id: int
    round_id: int
    start_ts: int | None = None
    end_ts: int | None = None
    start_price: str | None = None
    end_price: str | None = None
    ai_prediction: int | None = None
    result: int | None = None
    total_up: str
    total_down: str
    protocol_fee_bps: int
    protocol_fee_precision: int
    participants: list[str] = []

    model_config = {"from_attributes": True}

    @field_validator("start_price", "end_price", "total_up", "total_down", mode="before")
    @classmethod
    def _coerce_wei(cls, value: Any) -> str | None:
        return _as_decimal_string(value)


class RoundList(BaseModel):
    total: int
    items: list[Round]


class UserRound(BaseModel):
    key: str
    chain_id: int
    round_id: int
    user: str
    up_amount: str
    down_amount: str
    total_bet: str
    side: int | None = None
    dominant_side: int | None = None
    gross_reward: str
    net_pnl: str
    won: bool
    claimed: bool

    model_config = {"from_attributes": True}

    @field_validator("up_amount", "down_amount", "total_bet", "gross_reward", "net_pnl", mode="before")
    @classmethod
    def _coerce_wei(cls, value: Any) -> str | None:
        return _as_decimal_string(value)


class UserStats(BaseModel):
    key: str
    chain_id: int
    user: str
    rounds_played: int
    wins: int
    losses: int
    pushes: int
    total_bet: str
    total_gross_rewards: str
    total_net_pnl: str
    win_rate: float

    model_config = {"from_attributes": True}

    @field_validator("total_bet", "total_gross_rewards", "total_net_pnl", mode="before")
    @classmethod
    def _coerce_wei(cls, value: Any) -> str | None:
        return _as_decimal_string(value)


class LeaderboardRow(BaseModel):
    key: str
    chain_id: int
    user: str
    total_net_pnl: str
    win_rate: float
    rounds_played: int

    model_config = {"from_attributes": True}

    @field_validator("total_net_pnl", mode="before")
    @classmethod
    def _coerce_wei(cls, value: Any) -> str | None:
        return _as_decimal_string(value)


class AiStats(BaseModel):
    key: str
    chain_id: int
    rounds_with_prediction: int
    correct: int
    incorrect: int
    pushes: int
    accuracy: float

    model_config = {"from_attributes": True}
