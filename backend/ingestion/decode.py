from __future__ import annotations

import json
from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import Any

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError
from web3 import Web3

from app.domain import (
    BetPlaced,
    ContractEvent,
    ExternalPredictionAdded,
    Outcome,
    RewardClaimed,
    RoundEnded,
    RoundStarted,
    UnsupportedEventError,
)


class EventDecodeError(ValueError):
    """Raised when an event record is missing or mangles a required field."""


# name -> (signature, indexed topic types, data types)
EVENT_ABI: dict[str, tuple[str, tuple[str, ...], tuple[str, ...]]] = {
    "BetPlaced": ("BetPlaced(uint256,address,uint256,uint8)", ("uint256", "address"), ("uint256", "uint8")),
    "RoundStarted": ("RoundStarted(uint256,uint256,int256)", ("uint256",), ("uint256", "int256")),
    "RoundEnded": ("RoundEnded(uint256,uint256,int256,uint8)", ("uint256",), ("uint256", "int256", "uint8")),
    "RewardClaimed": ("RewardClaimed(uint256,address,uint256)", ("uint256", "address"), ("uint256",)),
    "ExternalPredictionAdded": ("ExternalPredictionAdded(uint256,uint8)", ("uint256",), ("uint8",)),
}

EVENT_TOPICS: dict[str, str] = {
    Web3.keccak(text=signature).hex().lower().removeprefix("0x"): name
    for name, (signature, _, _) in EVENT_ABI.items()
}


def _parse_int(value: Any, field: str) -> int:
    if isinstance(value, bool):
        raise EventDecodeError(f"Field '{field}' must be an integer, got a boolean")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        candidate = value.strip()
        try:
            if candidate.lower().startswith(("0x", "-0x")):
                return int(candidate, 16)
            return int(candidate)
        except ValueError as exc:
            raise EventDecodeError(f"Field '{field}' is not an integer: {value!r}") from exc
    raise EventDecodeError(f"Field '{field}' is not an integer: {value!r}")


def _optional_int(value: Any, field: str) -> int | None:
    if value is None:
        return None
    return _parse_int(value, field)


def _param(params: Mapping[str, Any], *names: str) -> Any:
    for name in names:
        if name in params and params[name] is not None:
            return params[name]
    raise EventDecodeError(f"Missing event parameter '{names[0]}'")


def _build_event(
    name: str,
    chain_id: int,
    params: Mapping[str, Any],
    *,
    block_number: int | None = None,
    log_index: int | None = None,
) -> ContractEvent:
    position = {"block_number": block_number, "log_index": log_index}
    round_id = _parse_int(_param(params, "roundId", "round_id"), "roundId")

    if name == "BetPlaced":
        return BetPlaced(
            chain_id=chain_id,
            round_id=round_id,
            user=str(_param(params, "user")),
            amount=_parse_int(_param(params, "amount"), "amount"),
            side=Outcome(_parse_int(_param(params, "side"), "side")),
            **position,
        )
    if name == "RoundStarted":
        return RoundStarted(
            chain_id=chain_id,
            round_id=round_id,
            start_ts=_parse_int(_param(params, "startTs", "start_ts"), "startTs"),
            start_price=_parse_int(_param(params, "startPrice", "start_price"), "startPrice"),
            **position,
        )
    if name == "RoundEnded":
        return RoundEnded(
            chain_id=chain_id,
            round_id=round_id,
            end_ts=_parse_int(_param(params, "endTs", "end_ts"), "endTs"),
            end_price=_parse_int(_param(params, "endPrice", "end_price"), "endPrice"),
            result=Outcome(_parse_int(_param(params, "result"), "result")),
            **position,
        )
    if name == "ExternalPredictionAdded":
        return ExternalPredictionAdded(
            chain_id=chain_id,
            round_id=round_id,
            ai_prediction=Outcome(_parse_int(_param(params, "aiPrediction", "ai_prediction"), "aiPrediction")),
            **position,
        )
    if name == "RewardClaimed":
        return RewardClaimed(
            chain_id=chain_id,
            round_id=round_id,
            user=str(_param(params, "user")),
            amount=_parse_int(_param(params, "amount"), "amount"),
            **position,
        )
    raise UnsupportedEventError(f"Unsupported event '{name}'")


def decode_event_record(record: Mapping[str, Any], *, default_chain_id: int | None = None) -> ContractEvent:
    """Decode a JSON event record such as those written by an indexer export.

    Expected shape: ``{"event": "BetPlaced", "chainId": 1, "params": {...}}``
    with optional ``blockNumber`` and ``logIndex``.
    """

    name = record.get("event") or record.get("name")
    if not name:
        raise EventDecodeError("Event record is missing its 'event' name")
    if name not in EVENT_ABI:
        raise UnsupportedEventError(f"Unsupported event '{name}'")

    raw_chain_id = record.get("chainId", record.get("chain_id", default_chain_id))
    if raw_chain_id is None:
        raise EventDecodeError("Event record is missing 'chainId'")

    params = record.get("params") or record.get("args") or {}
    if not isinstance(params, Mapping):
        raise EventDecodeError("Event 'params' must be an object")

    try:
        return _build_event(
            str(name),
            _parse_int(raw_chain_id, "chainId"),
            params,
            block_number=_optional_int(record.get("blockNumber"), "blockNumber"),
            log_index=_optional_int(record.get("logIndex"), "logIndex"),
        )
    except ValueError as exc:
        if isinstance(exc, (EventDecodeError, UnsupportedEventError)):
            raise
        # Outcome(...) rejects unknown enum values.
        raise EventDecodeError(str(exc)) from exc


def _topic_value(topic: str, abi_type: str) -> Any:
    raw = topic.lower().removeprefix("0x")
    if abi_type == "address":
        return "0x" + raw[-40:]
    return int(raw, 16)


def decode_log(log: Mapping[str, Any], chain_id: int) -> ContractEvent | None:
    """Decode a raw ``eth_getLogs`` entry; logs from unknown events yield ``None``."""

    topics = list(log.get("topics") or [])
    if not topics:
        return None
    name = EVENT_TOPICS.get(str(topics[0]).lower().removeprefix("0x"))
    if name is None:
        return None

    _, indexed_types, data_types = EVENT_ABI[name]
    if len(topics) - 1 < len(indexed_types):
        raise EventDecodeError(f"{name} log carries {len(topics) - 1} indexed topics")

    try:
        indexed = [_topic_value(str(topic), abi_type) for topic, abi_type in zip(topics[1:], indexed_types)]
        data = str(log.get("data") or "0x").removeprefix("0x")
        values = list(abi_decode(list(data_types), bytes.fromhex(data)))
    except (DecodingError, ValueError) as exc:
        raise EventDecodeError(f"{name} log could not be ABI-decoded: {exc}") from exc

    if name in ("BetPlaced", "RewardClaimed"):
        params: dict[str, Any] = {"roundId": indexed[0], "user": indexed[1], "amount": values[0]}
        if name == "BetPlaced":
            params["side"] = values[1]
    elif name == "RoundStarted":
        params = {"roundId": indexed[0], "startTs": values[0], "startPrice": values[1]}
    elif name == "RoundEnded":
        params = {"roundId": indexed[0], "endTs": values[0], "endPrice": values[1], "result": values[2]}
    else:
        params = {"roundId": indexed[0], "aiPrediction": values[0]}

    try:
        return _build_event(
            name,
            chain_id,
            params,
            block_number=_optional_int(log.get("blockNumber"), "blockNumber"),
            log_index=_optional_int(log.get("logIndex"), "logIndex"),
        )
    except ValueError as exc:
        if isinstance(exc, EventDecodeError):
            raise
        raise EventDecodeError(str(exc)) from exc


def iter_event_records(path: Path) -> Iterator[dict[str, Any]]:
    """Yield JSON objects from a JSON-lines event log, skipping blank lines."""

    with path.open("r", encoding="utf-8") as handle:
        for line_number, line in enumerate(handle, start=1):
            stripped = line.strip()
            if not stripped:
                continue
            try:
                payload = json.loads(stripped)
            except json.JSONDecodeError as exc:
                raise EventDecodeError(f"{path}:{line_number} is not valid JSON") from exc
            if not isinstance(payload, dict):
                raise EventDecodeError(f"{path}:{line_number} is not a JSON object")
            yield payload
