"""Composite identifiers shared by the store and the read API."""

from __future__ import annotations


def round_key(chain_id: int, round_id: int) -> str:
    return f"{chain_id}_{round_id}"


def user_round_key(chain_id: int, round_id: int, user: str) -> str:
    """Key for both a position and its participant fence."""

    return f"{chain_id}_{round_id}_{user.lower()}"


def user_key(chain_id: int, user: str) -> str:
    return f"{chain_id}_{user.lower()}"


def ai_stats_key(chain_id: int) -> str:
    return f"{chain_id}"
