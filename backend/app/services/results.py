"""Reconcile finished rounds into positions and user statistics."""

from __future__ import annotations

from enum import Enum

from loguru import logger

from app.domain import RoundParticipant
from app.repositories import IndexerStore

from .rewards import compute_gross_reward
from .statistics import record_round_result


class FinalizeOutcome(str, Enum):
    NO_POSITION = "no_position"
    UNRESOLVED = "unresolved"
    FINALIZED = "finalized"
    RECOMPUTED = "recomputed"


async def finalize_user_round(
    store: IndexerStore, chain_id: int, round_id: int, user: str
) -> FinalizeOutcome:
    """Bring one (round, user) position up to date with the round's result.

    Safe to call any number of times. Reward fields on the position are
    recomputed from stakes on every call, while user statistics are only
    folded in the first time, guarded by the participant fence.
    """

    position = await store.get_user_round(chain_id, round_id, user)
    if position is None:
        return FinalizeOutcome.NO_POSITION

    round_ = await store.get_round(chain_id, round_id)
    if round_ is None or not round_.is_resolved:
        return FinalizeOutcome.UNRESOLVED

    gross = compute_gross_reward(
        round_.result,
        position.up_amount,
        position.down_amount,
        round_.total_up,
        round_.total_down,
    )
    position.total_bet = position.up_amount + position.down_amount
    position.gross_reward = gross
    position.net_pnl = gross - position.total_bet
    position.won = position.net_pnl > 0
    await store.save_user_round(position)

    participant = await store.get_participant(chain_id, round_id, position.user)
    if participant is not None and participant.processed_results:
        return FinalizeOutcome.RECOMPUTED

    await record_round_result(store, round_.result, position)
    if participant is None:
        participant = RoundParticipant(chain_id=chain_id, round_id=round_id, user=position.user)
    participant.processed_results = True
    await store.save_participant(participant)

    logger.debug(
        "Finalized round {} for {} on chain {}: gross={} net={} won={}",
        round_id,
        position.user,
        chain_id,
        gross,
        position.net_pnl,
        position.won,
    )
    return FinalizeOutcome.FINALIZED


async def finalize_user_rounds(
    store: IndexerStore, chain_id: int, user: str, round_ids: range
) -> int:
    """Run finalization over a span of rounds, returning how many were newly finalized."""

    finalized = 0
    for round_id in round_ids:
        if await finalize_user_round(store, chain_id, round_id, user) is FinalizeOutcome.FINALIZED:
            finalized += 1
    return finalized


__all__ = ["FinalizeOutcome", "finalize_user_round", "finalize_user_rounds"]
