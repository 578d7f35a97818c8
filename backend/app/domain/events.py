"""Decoded prediction arena contract events."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from .models import Outcome


@dataclass(slots=True, frozen=True)
class BetPlaced:
    chain_id: int
    round_id: int
    user: str
    amount: int
    side: Outcome
    block_number: int | None = None
    log_index: int | None = None


@dataclass(slots=True, frozen=True)
class RoundStarted:
    chain_id: int
    round_id: int
    start_ts: int
    start_price: int
    block_number: int | None = None
    log_index: int | None = None


@dataclass(slots=True, frozen=True)
class RoundEnded:
    chain_id: int
    round_id: int
    end_ts: int
    end_price: int
    result: Outcome
    block_number: int | None = None
    log_index: int | None = None


@dataclass(slots=True, frozen=True)
class ExternalPredictionAdded:
    chain_id: int
    round_id: int
    ai_prediction: Outcome
    block_number: int | None = None
    log_index: int | None = None


@dataclass(slots=True, frozen=True)
class RewardClaimed:
    chain_id: int
    round_id: int
    user: str
    amount: int
    block_number: int | None = None
    log_index: int | None = None


ContractEvent = Union[BetPlaced, RoundStarted, RoundEnded, ExternalPredictionAdded, RewardClaimed]


class UnsupportedEventError(ValueError):
    """Raised when an event name or type has no handler."""


EVENT_TYPES: dict[str, type] = {
    "BetPlaced": BetPlaced,
    "RoundStarted": RoundStarted,
    "RoundEnded": RoundEnded,
    "ExternalPredictionAdded": ExternalPredictionAdded,
    "RewardClaimed": RewardClaimed,
}
