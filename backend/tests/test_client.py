from __future__ import annotations

import json

import httpx
import pytest

from ingestion.client import ChainLogClient, ChainRpcError
from ingestion.decode import EVENT_TOPICS

from conftest import CONTRACT


class RecordingNode:
    """Minimal JSON-RPC node answering from a per-method handler table."""

    def __init__(self, handlers):
        self.handlers = handlers
        self.requests: list[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        self.requests.append(payload)
        result = self.handlers[payload["method"]](payload["params"])
        if isinstance(result, dict) and "error" in result:
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": payload["id"], "error": result["error"]})
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": payload["id"], "result": result})


def _client(node: RecordingNode) -> ChainLogClient:
    return ChainLogClient(rpc_url="http://rpc.test", timeout=1.0, transport=httpx.MockTransport(node))


def test_block_number_parses_hex_quantity():
    node = RecordingNode({"eth_blockNumber": lambda params: "0x1b4"})
    with _client(node) as client:
        assert client.block_number() == 436
    assert node.requests[0]["method"] == "eth_blockNumber"


def test_get_logs_filters_known_topics_and_sorts_by_position():
    logs = [
        {"blockNumber": "0x11", "logIndex": "0x0", "transactionHash": "0xc"},
        {"blockNumber": "0x10", "logIndex": "0x3", "transactionHash": "0xb"},
        {"blockNumber": "0x10", "logIndex": "0x1", "transactionHash": "0xa"},
    ]
    node = RecordingNode({"eth_getLogs": lambda params: logs})

    with _client(node) as client:
        result = client.get_logs(CONTRACT, 16, 17)

    assert [log["transactionHash"] for log in result] == ["0xa", "0xb", "0xc"]
    (filter_params,) = node.requests[0]["params"]
    assert filter_params["address"] == CONTRACT
    assert filter_params["fromBlock"] == "0x10"
    assert filter_params["toBlock"] == "0x11"
    assert sorted(filter_params["topics"][0]) == sorted("0x" + topic for topic in EVENT_TOPICS)


def test_iter_log_batches_covers_range_inclusively():
    node = RecordingNode({"eth_getLogs": lambda params: []})

    with _client(node) as client:
        batches = [(start, end) for start, end, _ in client.iter_log_batches(CONTRACT, 5, 16, 5)]

    assert batches == [(5, 9), (10, 14), (15, 16)]
    assert len(node.requests) == 3


def test_rpc_error_payload_raises():
    node = RecordingNode({"eth_getLogs": lambda params: {"error": {"code": -32005, "message": "query returned more than 10000 results"}}})

    with _client(node) as client:
        with pytest.raises(ChainRpcError) as excinfo:
            client.get_logs(CONTRACT, 0, 100_000)

    assert excinfo.value.method == "eth_getLogs"
    assert "more than 10000 results" in str(excinfo.value)


def test_http_failure_propagates():
    transport = httpx.MockTransport(lambda request: httpx.Response(502, text="bad gateway"))
    client = ChainLogClient(rpc_url="http://rpc.test", transport=transport)
    try:
        with pytest.raises(httpx.HTTPStatusError):
            client.block_number()
    finally:
        client.close()
