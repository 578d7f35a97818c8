"""Event handlers that fold contract events into indexed state."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from loguru import logger

from app.domain import (
    BetPlaced,
    ContractEvent,
    ExternalPredictionAdded,
    Outcome,
    RewardClaimed,
    Round,
    RoundEnded,
    RoundParticipant,
    RoundStarted,
    UnsupportedEventError,
    UserRound,
    UserStats,
)
from app.repositories import IndexerStore

from .results import finalize_user_round, finalize_user_rounds
from .statistics import ensure_ai_stats, record_ai_outcome, save_user_stats

# Rounds re-scanned after a claim in case the round-end sweep has not caught up.
CLAIM_RESCAN_WINDOW = 2


async def _load_round(store: IndexerStore, chain_id: int, round_id: int) -> Round:
    existing = await store.get_round(chain_id, round_id)
    return existing if existing is not None else Round(chain_id=chain_id, round_id=round_id)


async def handle_bet_placed(store: IndexerStore, event: BetPlaced) -> None:
    user = event.user.lower()
    is_up = event.side == Outcome.UP

    # A new bet is the chance to settle any of the user's older rounds.
    await finalize_user_rounds(store, event.chain_id, user, range(1, event.round_id))

    round_ = await _load_round(store, event.chain_id, event.round_id)
    if is_up:
        round_.total_up += event.amount
    else:
        round_.total_down += event.amount
    round_.add_participant(user)
    await store.save_round(round_)

    position = await store.get_user_round(event.chain_id, event.round_id, user)
    if position is None:
        position = UserRound(chain_id=event.chain_id, round_id=event.round_id, user=user)
    if is_up:
        position.up_amount += event.amount
    else:
        position.down_amount += event.amount
    position.total_bet = position.up_amount + position.down_amount
    position.side = Outcome.UP if is_up else Outcome.DOWN
    await store.save_user_round(position)

    participant = await store.get_participant(event.chain_id, event.round_id, user)
    if participant is None:
        await store.save_participant(
            RoundParticipant(chain_id=event.chain_id, round_id=event.round_id, user=user)
        )

    # Volume counts immediately; rounds played only count once resolved.
    stats = await store.get_user_stats(event.chain_id, user)
    if stats is None:
        stats = UserStats(chain_id=event.chain_id, user=user)
    stats.total_bet += event.amount
    await save_user_stats(store, stats)


async def handle_round_started(store: IndexerStore, event: RoundStarted) -> None:
    round_ = await _load_round(store, event.chain_id, event.round_id)
    if round_.start_ts is None:
        round_.start_ts = event.start_ts
        round_.start_price = event.start_price
    else:
        logger.debug("Round {} on chain {} already started; keeping first start", event.round_id, event.chain_id)
    await store.save_round(round_)
    await ensure_ai_stats(store, event.chain_id)


async def handle_external_prediction(store: IndexerStore, event: ExternalPredictionAdded) -> None:
    round_ = await _load_round(store, event.chain_id, event.round_id)
    if round_.result is None:
        round_.ai_prediction = event.ai_prediction
        await store.save_round(round_)
    else:
        logger.debug(
            "Ignoring prediction for already ended round {} on chain {}", event.round_id, event.chain_id
        )
    await ensure_ai_stats(store, event.chain_id)


async def handle_round_ended(store: IndexerStore, event: RoundEnded) -> None:
    round_ = await _load_round(store, event.chain_id, event.round_id)
    newly_ended = round_.result is None
    if newly_ended:
        round_.end_ts = event.end_ts
        round_.end_price = event.end_price
        round_.result = event.result
        await store.save_round(round_)

    logger.info(
        "Round {} on chain {} ended {}; settling {} participants",
        event.round_id,
        event.chain_id,
        round_.result.name if round_.result is not None else "UNKNOWN",
        len(round_.participants),
    )
    for participant in round_.participants:
        await finalize_user_round(store, event.chain_id, event.round_id, participant)

    if newly_ended and round_.ai_prediction is not None:
        await record_ai_outcome(store, event.chain_id, round_.ai_prediction, round_.result)


async def handle_reward_claimed(store: IndexerStore, event: RewardClaimed) -> None:
    user = event.user.lower()
    await finalize_user_rounds(store, event.chain_id, user, range(1, event.round_id + 1))
    recent_start = max(1, event.round_id - CLAIM_RESCAN_WINDOW)
    await finalize_user_rounds(store, event.chain_id, user, range(recent_start, event.round_id + 1))

    position = await store.get_user_round(event.chain_id, event.round_id, user)
    if position is not None and not position.claimed:
        position.claimed = True
        await store.save_user_round(position)


Handler = Callable[[IndexerStore, Any], Awaitable[None]]

HANDLERS: dict[type, Handler] = {
    BetPlaced: handle_bet_placed,
    RoundStarted: handle_round_started,
    ExternalPredictionAdded: handle_external_prediction,
    RoundEnded: handle_round_ended,
    RewardClaimed: handle_reward_claimed,
}


class EventProcessor:
    """Apply decoded contract events to a store strictly in the order given."""

    def __init__(self, store: IndexerStore) -> None:
        self.store = store

    async def process(self, event: ContractEvent) -> None:
        handler = HANDLERS.get(type(event))
        if handler is None:
            raise UnsupportedEventError(f"No handler for event type {type(event).__name__}")
        logger.debug("Processing {} for round {} on chain {}", type(event).__name__, event.round_id, event.chain_id)
        await handler(self.store, event)

    async def process_many(self, events: Iterable[ContractEvent]) -> int:
        count = 0
        for event in events:
            await self.process(event)
            count += 1
        return count


__all__ = [
    "CLAIM_RESCAN_WINDOW",
    "EventProcessor",
    "handle_bet_placed",
    "handle_external_prediction",
    "handle_reward_claimed",
    "handle_round_ended",
    "handle_round_started",
]
