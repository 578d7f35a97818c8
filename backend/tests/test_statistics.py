from __future__ import annotations

import pytest

from app.domain import AiStats, Outcome, UserRound, UserStats
from app.services.statistics import apply_ai_outcome, apply_round_result, record_round_result, win_rate

ETH = 10**18


def _position(**overrides) -> UserRound:
    values = {"chain_id": 1, "round_id": 1, "user": "0xabc"}
    values.update(overrides)
    return UserRound(**values)


def test_win_rate_includes_pushes_in_denominator():
    assert win_rate(0, 0, 0) == 0.0
    assert win_rate(1, 1, 2) == 0.25
    assert win_rate(3, 0, 0) == 1.0


def test_win_adds_gross_rewards_and_net_pnl():
    stats = UserStats(chain_id=1, user="0xabc", total_bet=ETH)
    position = _position(total_bet=ETH, gross_reward=2 * ETH, net_pnl=ETH, won=True)

    apply_round_result(stats, Outcome.UP, position)

    assert (stats.rounds_played, stats.wins, stats.losses, stats.pushes) == (1, 1, 0, 0)
    assert stats.total_gross_rewards == 2 * ETH
    assert stats.total_net_pnl == ETH
    assert stats.total_bet == ETH
    assert stats.win_rate == 1.0


def test_loss_keeps_gross_rewards_untouched():
    stats = UserStats(chain_id=1, user="0xabc")
    apply_round_result(stats, Outcome.DOWN, _position(total_bet=ETH, net_pnl=-ETH))

    assert stats.losses == 1
    assert stats.total_gross_rewards == 0
    assert stats.total_net_pnl == -ETH


def test_push_counts_separately_from_losses():
    stats = UserStats(chain_id=1, user="0xabc", wins=1, rounds_played=1)
    apply_round_result(stats, Outcome.NONE, _position(total_bet=ETH, net_pnl=-ETH))

    assert stats.pushes == 1
    assert stats.losses == 0
    assert stats.rounds_played == 2
    assert stats.win_rate == 0.5


def test_break_even_round_is_not_a_win():
    stats = UserStats(chain_id=1, user="0xabc")
    apply_round_result(stats, Outcome.UP, _position(total_bet=ETH, gross_reward=ETH, net_pnl=0, won=False))

    assert stats.losses == 1
    assert stats.total_gross_rewards == 0


@pytest.mark.parametrize(
    "prediction, result, expected",
    [
        (Outcome.UP, Outcome.UP, (1, 0, 0)),
        (Outcome.DOWN, Outcome.UP, (0, 1, 0)),
        (Outcome.UP, Outcome.NONE, (0, 0, 1)),
        (Outcome.NONE, Outcome.NONE, (0, 0, 1)),
        (Outcome.NONE, Outcome.DOWN, (0, 1, 0)),
    ],
)
def test_ai_outcome_classification(prediction, result, expected):
    stats = apply_ai_outcome(AiStats(chain_id=1), prediction, result)
    assert (stats.correct, stats.incorrect, stats.pushes) == expected
    assert stats.rounds_with_prediction == 1
    assert stats.accuracy == float(expected[0])


@pytest.mark.asyncio
async def test_record_round_result_creates_stats_and_leaderboard(store):
    position = _position(user="0xdef", total_bet=ETH, gross_reward=0, net_pnl=-ETH)
    stats = await record_round_result(store, Outcome.DOWN, position)

    assert stats.rounds_played == 1
    assert await store.get_user_stats(1, "0xdef") == stats
    row = await store.get_leaderboard_row(1, "0xdef")
    assert row.total_net_pnl == -ETH
    assert row.win_rate == 0.0
