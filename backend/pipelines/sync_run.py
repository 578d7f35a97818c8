"""Pull contract logs from a JSON-RPC node and index them batch by batch."""

from __future__ import annotations

import argparse
from dataclasses import dataclass, field
from typing import Any

from loguru import logger
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import Settings, get_settings
from app.db import init_db
from app.domain import ContractEvent
from app.repositories import SqlIndexerStore
from ingestion.client import ChainLogClient
from ingestion.decode import EventDecodeError, decode_log
from ingestion.service import apply_events, session_scope


@dataclass(slots=True)
class SyncSummary:
    from_block: int | None = None
    to_block: int | None = None
    batches: int = 0
    logs_seen: int = 0
    processed_events: int = 0
    failures: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "from_block": self.from_block,
            "to_block": self.to_block,
            "batches": self.batches,
            "logs_seen": self.logs_seen,
            "processed_events": self.processed_events,
            "failures": self.failures,
        }


class SyncPipeline:
    """Advance the indexer from its checkpoint to the chain head.

    Each block batch is applied in a single transaction together with the
    checkpoint, so a failed batch is retried in full on the next run.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        client: ChainLogClient | None = None,
        session_factory: sessionmaker[Session] | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        if client is None:
            rpc_url, _ = self.settings.require_rpc()
            client = ChainLogClient(rpc_url=rpc_url, timeout=self.settings.rpc_timeout_seconds)
        elif not self.settings.contract_address:
            raise ValueError("CONTRACT_ADDRESS must be set to sync contract logs")
        self._client = client
        self._session_factory = session_factory

    def _resume_block(self, from_block: int | None = None) -> int:
        with session_scope(self._session_factory) as session:
            checkpoint = SqlIndexerStore(session).get_checkpoint(self.settings.chain_id)
        if checkpoint is None:
            return from_block if from_block is not None else self.settings.start_block
        if from_block is None:
            return checkpoint + 1
        if from_block <= checkpoint:
            logger.warning(
                "Requested start block {} is already indexed; resuming from {}", from_block, checkpoint + 1
            )
            return checkpoint + 1
        return from_block

    def run(
        self,
        *,
        from_block: int | None = None,
        to_block: int | None = None,
        batch_size: int | None = None,
    ) -> SyncSummary:
        init_db(self._session_factory.kw.get("bind") if self._session_factory else None)
        address = self.settings.contract_address
        chain_id = self.settings.chain_id
        start = self._resume_block(from_block)
        end = to_block if to_block is not None else self._client.block_number()
        batch_size = batch_size or self.settings.sync_batch_size

        summary = SyncSummary(from_block=start, to_block=end)
        if start > end:
            logger.info("Chain {} already indexed up to block {}", chain_id, end)
            return summary

        logger.info("Starting log sync for chain {}: blocks {}-{}, batch_size={}", chain_id, start, end, batch_size)
        for batch_start, batch_end, logs in self._client.iter_log_batches(address, start, end, batch_size):
            events: list[ContractEvent] = []
            for log in logs:
                summary.logs_seen += 1
                try:
                    event = decode_log(log, chain_id)
                except EventDecodeError as exc:
                    logger.warning("Skipping undecodable log {}: {}", log.get("transactionHash"), exc)
                    summary.failures.append(
                        {"transaction_hash": log.get("transactionHash"), "reason": str(exc)}
                    )
                    continue
                if event is not None:
                    events.append(event)

            with session_scope(self._session_factory) as session:
                summary.processed_events += apply_events(session, events)
                SqlIndexerStore(session).save_checkpoint(chain_id, address, batch_end)
            summary.batches += 1
            logger.debug("Indexed blocks {}-{}: {} events", batch_start, batch_end, len(events))

        logger.info(
            "Log sync finished: batches={}, logs={}, events={}, failures={}",
            summary.batches,
            summary.logs_seen,
            summary.processed_events,
            len(summary.failures),
        )
        return summary

    def close(self) -> None:
        self._client.close()


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Index prediction arena logs from a JSON-RPC node")
    parser.add_argument("--from-block", type=int, default=None, help="First block to scan; blocks at or below the checkpoint are never rescanned")
    parser.add_argument("--to-block", type=int, default=None, help="Last block to scan (defaults to chain head)")
    parser.add_argument("--batch-size", type=int, default=None, help="Blocks per eth_getLogs request")
    return parser.parse_args()


def main() -> SyncSummary:
    args = _parse_args()
    pipeline = SyncPipeline(get_settings())
    try:
        return pipeline.run(from_block=args.from_block, to_block=args.to_block, batch_size=args.batch_size)
    finally:
        pipeline.close()


if __name__ == "__main__":
    main()
