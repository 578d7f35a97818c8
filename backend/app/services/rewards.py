"""Payout arithmetic mirroring the prediction arena contract."""

from __future__ import annotations

from app.domain import PROTOCOL_FEE_BPS, PROTOCOL_FEE_PRECISION, Outcome

PRECISION = 10**8


def compute_gross_reward(
    winning_side: Outcome | int,
    user_up: int,
    user_down: int,
    total_up: int,
    total_down: int,
) -> int:
    """Return the gross payout for a position in a finished round.

    Pushes and positions without stake on the winning side earn nothing.
    Otherwise the user receives their share of the winning pool plus the
    losing pool net of the protocol fee, using truncating integer division.
    """

    if winning_side == Outcome.UP and user_up > 0:
        total_winning, total_losing, user_stake = total_up, total_down, user_up
    elif winning_side == Outcome.DOWN and user_down > 0:
        total_winning, total_losing, user_stake = total_down, total_up, user_down
    else:
        return 0

    user_share = user_stake * PRECISION // max(total_winning, 1)

    if total_winning == 0:
        fee = total_losing
    else:
        fee = total_losing * PROTOCOL_FEE_BPS // PROTOCOL_FEE_PRECISION

    reward_pool = total_losing - fee
    total_payout = total_winning + reward_pool
    return user_share * total_payout // PRECISION


__all__ = ["PRECISION", "compute_gross_reward"]
