"""Replay a JSON-lines contract event log into the indexer database."""

from __future__ import annotations

import argparse
import json
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from loguru import logger
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import Settings, get_settings
from app.db import init_db
from app.domain import RoundEnded
from ingestion.decode import iter_event_records
from ingestion.service import apply_events, decode_records, session_scope


@dataclass(slots=True)
class ReplaySummary:
    processed_events: int = 0
    skipped_events: int = 0
    events_by_type: Counter = field(default_factory=Counter)
    rounds_ended: list[int] = field(default_factory=list)
    failures: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "processed_events": self.processed_events,
            "skipped_events": self.skipped_events,
            "events_by_type": dict(self.events_by_type),
            "rounds_ended": self.rounds_ended,
            "failures": self.failures,
        }


class ReplayPipeline:
    """Decode an exported event log and fold it into the store in file order."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        session_factory: sessionmaker[Session] | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._session_factory = session_factory

    def run(self, path: Path, *, chain_id: int | None = None) -> ReplaySummary:
        init_db(self._session_factory.kw.get("bind") if self._session_factory else None)
        summary = ReplaySummary()
        logger.info("Starting replay of {} (chain {})", path, chain_id or self.settings.chain_id)
        events, failures = decode_records(
            iter_event_records(path),
            default_chain_id=self.settings.chain_id,
            chain_id=chain_id,
        )
        summary.failures.extend(failures)

        with session_scope(self._session_factory) as session:
            summary.processed_events = apply_events(session, events)
        summary.skipped_events = len(events) - summary.processed_events

        for event in events:
            summary.events_by_type[type(event).__name__] += 1
            if isinstance(event, RoundEnded):
                summary.rounds_ended.append(event.round_id)

        logger.info(
            "Replay finished: processed={}, skipped={}, rounds_ended={}, failures={}",
            summary.processed_events,
            summary.skipped_events,
            len(summary.rounds_ended),
            len(summary.failures),
        )
        return summary


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Replay a JSON-lines contract event log into the indexer")
    parser.add_argument("events_path", type=Path, help="Path to the JSON-lines event log")
    parser.add_argument(
        "--chain-id",
        type=int,
        default=None,
        help="Chain id assigned to every record, overriding any chain the record carries",
    )
    parser.add_argument(
        "--summary-path",
        type=Path,
        default=None,
        help="Optional path where a JSON summary report will be written",
    )
    return parser.parse_args()


def _write_summary(summary: ReplaySummary, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(summary.to_dict(), default=str, indent=2))
    logger.info("Replay summary written to {}", path)


def main() -> ReplaySummary:
    args = _parse_args()
    pipeline = ReplayPipeline(get_settings())
    summary = pipeline.run(args.events_path, chain_id=args.chain_id)
    if args.summary_path:
        _write_summary(summary, args.summary_path)
    return summary


if __name__ == "__main__":
    main()
