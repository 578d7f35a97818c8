from __future__ import annotations

from collections.abc import Iterator
from typing import Any

import httpx
from loguru import logger

from app.core.config import settings

from .decode import EVENT_TOPICS


class ChainRpcError(RuntimeError):
    """Raised when the node answers a JSON-RPC call with an error object."""

    def __init__(self, method: str, error: Any) -> None:
        self.method = method
        self.error = error
        message = error.get("message") if isinstance(error, dict) else error
        super().__init__(f"{method} failed: {message}")


class ChainLogClient:
    """Thin JSON-RPC wrapper for reading prediction arena logs."""

    def __init__(
        self,
        *,
        rpc_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.rpc_url = rpc_url or (str(settings.rpc_url) if settings.rpc_url else None)
        if not self.rpc_url:
            raise ValueError("An RPC URL is required to read contract logs")
        self.timeout = timeout or settings.rpc_timeout_seconds
        self.client = httpx.Client(timeout=self.timeout, transport=transport)
        self._request_id = 0

    def _call(self, method: str, params: list[Any]) -> Any:
        self._request_id += 1
        payload = {"jsonrpc": "2.0", "id": self._request_id, "method": method, "params": params}
        response = self.client.post(self.rpc_url, json=payload)
        response.raise_for_status()
        body = response.json()
        if body.get("error"):
            raise ChainRpcError(method, body["error"])
        return body.get("result")

    def block_number(self) -> int:
        return int(self._call("eth_blockNumber", []), 16)

    def get_logs(self, address: str, from_block: int, to_block: int) -> list[dict[str, Any]]:
        topics = ["0x" + topic for topic in EVENT_TOPICS]
        params = {
            "address": address,
            "fromBlock": hex(from_block),
            "toBlock": hex(to_block),
            "topics": [topics],
        }
        logger.debug("eth_getLogs {} blocks {}-{}", address, from_block, to_block)
        logs = self._call("eth_getLogs", [params]) or []
        return sorted(logs, key=_log_position)

    def iter_log_batches(
        self, address: str, from_block: int, to_block: int, batch_size: int
    ) -> Iterator[tuple[int, int, list[dict[str, Any]]]]:
        """Yield ``(start, end, logs)`` for consecutive inclusive block ranges."""

        start = from_block
        while start <= to_block:
            end = min(start + batch_size - 1, to_block)
            yield start, end, self.get_logs(address, start, end)
            start = end + 1

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "ChainLogClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def _log_position(log: dict[str, Any]) -> tuple[int, int]:
    def _as_int(value: Any) -> int:
        if isinstance(value, str):
            return int(value, 16) if value.startswith("0x") else int(value)
        return int(value or 0)

    return _as_int(log.get("blockNumber")), _as_int(log.get("logIndex"))
