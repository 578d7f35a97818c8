from __future__ import annotations

import asyncio
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import replace
from typing import Any

from loguru import logger
from sqlalchemy.orm import Session, sessionmaker

from app.db import SessionLocal
from app.domain import ContractEvent, UnsupportedEventError
from app.repositories import SqlIndexerStore
from app.services.handlers import EventProcessor

from .decode import EventDecodeError, decode_event_record


@contextmanager
def session_scope(factory: sessionmaker[Session] | None = None) -> Iterator[Session]:
    session = (factory or SessionLocal)()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def decode_records(
    records: Iterable[dict[str, Any]],
    *,
    default_chain_id: int | None = None,
    chain_id: int | None = None,
) -> tuple[list[ContractEvent], list[dict[str, Any]]]:
    """Decode records, collecting undecodable ones instead of aborting the batch.

    ``chain_id`` overrides whatever chain a record carries, ``default_chain_id``
    only fills records without one. Records without a block position are
    positioned by their ordinal in the input (block 0) so that replays of the
    same export can be recognised.
    """

    events: list[ContractEvent] = []
    failures: list[dict[str, Any]] = []
    for index, record in enumerate(records):
        try:
            event = decode_event_record(record, default_chain_id=default_chain_id)
        except (EventDecodeError, UnsupportedEventError) as exc:
            logger.warning("Skipping event record {}: {}", index, exc)
            failures.append({"index": index, "event": record.get("event"), "reason": str(exc)})
            continue
        if chain_id is not None and event.chain_id != chain_id:
            event = replace(event, chain_id=chain_id)
        if event.block_number is None:
            event = replace(event, block_number=0, log_index=index)
        events.append(event)
    return events, failures


def _position(event: ContractEvent) -> tuple[int, int] | None:
    if event.block_number is None:
        return None
    return event.block_number, event.log_index or 0


def apply_events(session: Session, events: Iterable[ContractEvent]) -> int:
    """Run events through the handlers against the session-backed store.

    Events at or before a chain's stored event cursor were already applied and
    are skipped; the cursor advances to the last applied position. Returns the
    number of events applied.
    """

    store = SqlIndexerStore(session)
    cursors: dict[int, tuple[int, int] | None] = {}
    fresh: list[ContractEvent] = []
    skipped = 0
    for event in events:
        position = _position(event)
        if position is not None:
            if event.chain_id not in cursors:
                cursors[event.chain_id] = store.get_event_cursor(event.chain_id)
            cursor = cursors[event.chain_id]
            if cursor is not None and position <= cursor:
                skipped += 1
                continue
            cursors[event.chain_id] = position
        fresh.append(event)

    if skipped:
        logger.info("Skipped {} already applied events", skipped)

    processed = asyncio.run(EventProcessor(store).process_many(fresh))
    for chain_id, cursor in cursors.items():
        if cursor is not None:
            store.save_event_cursor(chain_id, *cursor)
    return processed
