from __future__ import annotations

import asyncio
import json

import pytest
from eth_abi import encode as abi_encode

from app.core.config import Settings
from app.repositories import IndexerQueryRepository, SqlIndexerStore
from ingestion.client import ChainRpcError
from ingestion.decode import EVENT_TOPICS
from pipelines.replay_run import ReplayPipeline, _write_summary
from pipelines.sync_run import SyncPipeline

from conftest import ALICE, BOB, CONTRACT, ETH

TOPIC_BY_NAME = {name: "0x" + topic for topic, name in EVENT_TOPICS.items()}


def _topic(value: int | str) -> str:
    if isinstance(value, str):
        return "0x" + "0" * 24 + value.lower().removeprefix("0x")
    return "0x" + format(value, "064x")


def _log(block: int, index: int, name: str, indexed: list, data_types: list[str], values: list) -> dict:
    return {
        "address": CONTRACT.lower(),
        "blockNumber": hex(block),
        "logIndex": hex(index),
        "transactionHash": f"0x{block:04x}{index:04x}",
        "topics": [TOPIC_BY_NAME[name], *(_topic(value) for value in indexed)],
        "data": "0x" + abi_encode(data_types, values).hex(),
    }


class StubLogClient:
    def __init__(self, head: int, logs: list[dict], *, fail_from: int | None = None):
        self.head = head
        self.logs = logs
        self.fail_from = fail_from
        self.ranges: list[tuple[int, int]] = []
        self.closed = False

    def block_number(self) -> int:
        return self.head

    def iter_log_batches(self, address, from_block, to_block, batch_size):
        start = from_block
        while start <= to_block:
            end = min(start + batch_size - 1, to_block)
            if self.fail_from is not None and start >= self.fail_from:
                raise ChainRpcError("eth_getLogs", {"message": "upstream timeout"})
            self.ranges.append((start, end))
            batch = [log for log in self.logs if start <= int(log["blockNumber"], 16) <= end]
            yield start, end, sorted(batch, key=lambda log: (int(log["blockNumber"], 16), int(log["logIndex"], 16)))
            start = end + 1

    def close(self) -> None:
        self.closed = True


def _write_events(path, records) -> None:
    path.write_text("\n".join(json.dumps(record) for record in records) + "\n")


def test_replay_pipeline_indexes_event_log(tmp_path, test_settings, session_factory):
    events_path = tmp_path / "events.jsonl"
    _write_events(
        events_path,
        [
            {"event": "RoundStarted", "params": {"roundId": 1, "startTs": 100, "startPrice": "250000000000"}},
            {"event": "ExternalPredictionAdded", "params": {"roundId": 1, "aiPrediction": 1}},
            {"event": "BetPlaced", "params": {"roundId": 1, "user": ALICE, "amount": str(ETH), "side": 1}},
            {"event": "BetPlaced", "params": {"roundId": 1, "user": BOB, "amount": str(ETH), "side": 2}},
            {"event": "Paused", "params": {}},
            {"event": "RoundEnded", "params": {"roundId": 1, "endTs": 400, "endPrice": "260000000000", "result": 1}},
            {"event": "RewardClaimed", "params": {"roundId": 1, "user": ALICE, "amount": "1980000000000000000"}},
        ],
    )

    summary = ReplayPipeline(test_settings, session_factory=session_factory).run(events_path)

    assert summary.processed_events == 6
    assert summary.events_by_type["BetPlaced"] == 2
    assert summary.rounds_ended == [1]
    assert [failure["event"] for failure in summary.failures] == ["Paused"]

    with session_factory() as session:
        repo = IndexerQueryRepository(session)
        alice = repo.get_user_stats(31337, ALICE)
        ai = repo.get_ai_stats(31337)
        positions = repo.list_user_rounds(31337, ALICE)

    assert alice.wins == 1
    assert alice.total_net_pnl == 980_000_000_000_000_000
    assert ai.correct == 1 and ai.accuracy == 1.0
    assert positions[0].claimed is True

    report_path = tmp_path / "reports" / "summary.json"
    _write_summary(summary, report_path)
    assert json.loads(report_path.read_text())["processed_events"] == 6


def test_replay_pipeline_honours_explicit_chain_id(tmp_path, test_settings, session_factory):
    events_path = tmp_path / "events.jsonl"
    _write_events(events_path, [{"event": "RoundStarted", "params": {"roundId": 9, "startTs": 1, "startPrice": 1}}])

    ReplayPipeline(test_settings, session_factory=session_factory).run(events_path, chain_id=10)

    with session_factory() as session:
        repo = IndexerQueryRepository(session)
        assert repo.get_round(10, 9) is not None
        assert repo.get_round(31337, 9) is None


def test_sync_pipeline_applies_batches_and_checkpoints(test_settings, session_factory):
    logs = [
        _log(3, 0, "RoundStarted", [1], ["uint256", "int256"], [100, 2500]),
        _log(4, 1, "BetPlaced", [1, ALICE], ["uint256", "uint8"], [ETH, 1]),
        _log(4, 0, "BetPlaced", [1, BOB], ["uint256", "uint8"], [ETH, 2]),
        _log(12, 0, "RoundEnded", [1], ["uint256", "int256", "uint8"], [400, 2600, 1]),
        {"blockNumber": "0x15", "logIndex": "0x0", "transactionHash": "0xbad", "topics": [TOPIC_BY_NAME["BetPlaced"]], "data": "0x"},
        {"blockNumber": "0x16", "logIndex": "0x0", "transactionHash": "0xother", "topics": ["0x" + "11" * 32], "data": "0x"},
    ]
    client = StubLogClient(head=25, logs=logs)
    pipeline = SyncPipeline(test_settings, client=client, session_factory=session_factory)

    summary = pipeline.run()

    assert client.ranges == [(0, 9), (10, 19), (20, 25)]
    assert summary.batches == 3
    assert summary.logs_seen == 6
    assert summary.processed_events == 4
    assert [failure["transaction_hash"] for failure in summary.failures] == ["0xbad"]

    with session_factory() as session:
        assert SqlIndexerStore(session).get_checkpoint(31337) == 25
        store = SqlIndexerStore(session)
        alice = asyncio.run(store.get_user_stats(31337, ALICE))
        round_ = asyncio.run(store.get_round(31337, 1))

    assert alice.wins == 1
    assert round_.participants == [BOB.lower(), ALICE.lower()]

    rerun = pipeline.run()
    assert rerun.batches == 0
    assert rerun.from_block == 26

    pipeline.close()
    assert client.closed is True


def test_sync_pipeline_keeps_checkpoint_of_last_good_batch(test_settings, session_factory):
    client = StubLogClient(head=30, logs=[], fail_from=10)
    pipeline = SyncPipeline(test_settings, client=client, session_factory=session_factory)

    with pytest.raises(ChainRpcError):
        pipeline.run()

    with session_factory() as session:
        assert SqlIndexerStore(session).get_checkpoint(31337) == 9


def test_sync_pipeline_requires_contract_address(session_factory):
    settings = Settings(rpc_url="http://rpc.test", contract_address=None)

    with pytest.raises(ValueError):
        SyncPipeline(settings, client=StubLogClient(head=0, logs=[]), session_factory=session_factory)
    with pytest.raises(ValueError):
        SyncPipeline(Settings(rpc_url=None, contract_address=CONTRACT), session_factory=session_factory)


def _settled_round_records() -> list[dict]:
    return [
        {"event": "BetPlaced", "params": {"roundId": 1, "user": ALICE, "amount": str(ETH), "side": 1}},
        {"event": "BetPlaced", "params": {"roundId": 1, "user": BOB, "amount": str(ETH), "side": 2}},
        {"event": "RoundEnded", "params": {"roundId": 1, "endTs": 400, "endPrice": "2", "result": 1}},
    ]


def test_replaying_same_log_twice_changes_nothing(tmp_path, test_settings, session_factory):
    events_path = tmp_path / "events.jsonl"
    _write_events(events_path, _settled_round_records())
    pipeline = ReplayPipeline(test_settings, session_factory=session_factory)

    first = pipeline.run(events_path)
    second = pipeline.run(events_path)

    assert first.processed_events == 3
    assert second.processed_events == 0
    assert second.skipped_events == 3

    with session_factory() as session:
        repo = IndexerQueryRepository(session)
        round_ = repo.get_round(31337, 1)
        alice = repo.get_user_stats(31337, ALICE)
        position = repo.list_user_rounds(31337, ALICE)[0]

    assert round_.total_up == ETH
    assert alice.total_bet == ETH
    assert alice.rounds_played == 1
    assert position.gross_reward == 1_980_000_000_000_000_000


def test_replay_applies_only_events_past_the_cursor(tmp_path, test_settings, session_factory):
    records = [
        {**record, "blockNumber": 10 + index, "logIndex": 0} for index, record in enumerate(_settled_round_records())
    ]
    head_path = tmp_path / "head.jsonl"
    full_path = tmp_path / "full.jsonl"
    _write_events(head_path, records[:2])
    _write_events(full_path, records)
    pipeline = ReplayPipeline(test_settings, session_factory=session_factory)

    pipeline.run(head_path)
    summary = pipeline.run(full_path)

    assert summary.processed_events == 1
    assert summary.skipped_events == 2
    with session_factory() as session:
        assert SqlIndexerStore(session).get_event_cursor(31337) == (12, 0)
        alice = IndexerQueryRepository(session).get_user_stats(31337, ALICE)
    assert alice.total_bet == ETH
    assert alice.wins == 1


def test_replay_chain_id_overrides_record_chain(tmp_path, test_settings, session_factory):
    events_path = tmp_path / "events.jsonl"
    _write_events(
        events_path,
        [{"event": "RoundStarted", "chainId": 1, "params": {"roundId": 4, "startTs": 1, "startPrice": 1}}],
    )

    ReplayPipeline(test_settings, session_factory=session_factory).run(events_path, chain_id=10)

    with session_factory() as session:
        repo = IndexerQueryRepository(session)
        assert repo.get_round(10, 4) is not None
        assert repo.get_round(1, 4) is None


def test_sync_never_rescans_blocks_at_or_below_checkpoint(test_settings, session_factory):
    logs = [_log(4, 0, "BetPlaced", [1, ALICE], ["uint256", "uint8"], [ETH, 1])]
    client = StubLogClient(head=9, logs=logs)
    pipeline = SyncPipeline(test_settings, client=client, session_factory=session_factory)
    pipeline.run()

    client.head = 14
    summary = pipeline.run(from_block=0)

    assert summary.from_block == 10
    assert client.ranges == [(0, 9), (10, 14)]
    with session_factory() as session:
        round_ = asyncio.run(SqlIndexerStore(session).get_round(31337, 1))
    assert round_.total_up == ETH


def test_sync_skips_malformed_log_and_advances_checkpoint(test_settings, session_factory):
    truncated = _log(2, 0, "RoundEnded", [1], ["uint256", "int256", "uint8"], [400, 1, 1])
    truncated["data"] = truncated["data"][:18]
    logs = [truncated, _log(3, 0, "RoundStarted", [2], ["uint256", "int256"], [100, 5])]
    pipeline = SyncPipeline(test_settings, client=StubLogClient(head=5, logs=logs), session_factory=session_factory)

    summary = pipeline.run()

    assert summary.processed_events == 1
    assert len(summary.failures) == 1
    with session_factory() as session:
        assert SqlIndexerStore(session).get_checkpoint(31337) == 5
