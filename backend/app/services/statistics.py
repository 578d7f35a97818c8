"""Running per-user and per-chain aggregates."""

from __future__ import annotations

from loguru import logger

from app.domain import AiStats, LeaderboardRow, Outcome, UserRound, UserStats
from app.repositories import IndexerStore


def win_rate(wins: int, losses: int, pushes: int) -> float:
    completed = wins + losses + pushes
    return wins / completed if completed > 0 else 0.0


def apply_round_result(stats: UserStats, result: Outcome, position: UserRound) -> UserStats:
    """Fold one finished round into the user's totals.

    Must only be called once per (round, user); the caller owns that guard.
    """

    stats.rounds_played += 1
    if result == Outcome.NONE:
        stats.pushes += 1
    elif position.won:
        stats.wins += 1
        stats.total_gross_rewards += position.gross_reward
    else:
        stats.losses += 1
    stats.total_net_pnl += position.net_pnl
    stats.win_rate = win_rate(stats.wins, stats.losses, stats.pushes)
    return stats


async def save_user_stats(store: IndexerStore, stats: UserStats) -> None:
    """Persist stats and overwrite the matching leaderboard projection."""

    await store.save_user_stats(stats)
    await store.save_leaderboard_row(LeaderboardRow.from_stats(stats))


async def record_round_result(store: IndexerStore, result: Outcome, position: UserRound) -> UserStats:
    stats = await store.get_user_stats(position.chain_id, position.user)
    if stats is None:
        stats = UserStats(chain_id=position.chain_id, user=position.user)
    apply_round_result(stats, result, position)
    await save_user_stats(store, stats)
    return stats


def apply_ai_outcome(stats: AiStats, prediction: Outcome, result: Outcome) -> AiStats:
    stats.rounds_with_prediction += 1
    if result == Outcome.NONE:
        stats.pushes += 1
    elif result == prediction:
        stats.correct += 1
    else:
        stats.incorrect += 1
    stats.accuracy = stats.correct / stats.rounds_with_prediction
    return stats


async def ensure_ai_stats(store: IndexerStore, chain_id: int) -> AiStats:
    stats = await store.get_ai_stats(chain_id)
    if stats is None:
        stats = AiStats(chain_id=chain_id)
        await store.save_ai_stats(stats)
    return stats


async def record_ai_outcome(
    store: IndexerStore, chain_id: int, prediction: Outcome, result: Outcome
) -> AiStats:
    stats = await ensure_ai_stats(store, chain_id)
    apply_ai_outcome(stats, prediction, result)
    await store.save_ai_stats(stats)
    logger.debug(
        "AI accuracy on chain {} now {:.4f} over {} rounds",
        chain_id,
        stats.accuracy,
        stats.rounds_with_prediction,
    )
    return stats


__all__ = [
    "apply_ai_outcome",
    "apply_round_result",
    "ensure_ai_stats",
    "record_ai_outcome",
    "record_round_result",
    "save_user_stats",
    "win_rate",
]
