"""Domain models representing indexed prediction arena state."""

from .events import (
    EVENT_TYPES,
    BetPlaced,
    ContractEvent,
    ExternalPredictionAdded,
    RewardClaimed,
    RoundEnded,
    RoundStarted,
    UnsupportedEventError,
)
from .models import (
    PROTOCOL_FEE_BPS,
    PROTOCOL_FEE_PRECISION,
    AiStats,
    LeaderboardRow,
    Outcome,
    Round,
    RoundParticipant,
    UserRound,
    UserStats,
)

__all__ = [
    "EVENT_TYPES",
    "PROTOCOL_FEE_BPS",
    "PROTOCOL_FEE_PRECISION",
    "AiStats",
    "BetPlaced",
    "ContractEvent",
    "ExternalPredictionAdded",
    "LeaderboardRow",
    "Outcome",
    "RewardClaimed",
    "Round",
    "RoundEnded",
    "RoundParticipant",
    "RoundStarted",
    "UnsupportedEventError",
    "UserRound",
    "UserStats",
]
