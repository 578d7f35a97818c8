from __future__ import annotations

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import pytest

from app.core.config import Settings
from app.db import build_db_components, init_db
from app.repositories import InMemoryStore

ETH = 10**18
ALICE = "0xA11CE00000000000000000000000000000000001"
BOB = "0xB0B0000000000000000000000000000000000002"
CAROL = "0xCA201000000000000000000000000000000000C3"
CONTRACT = "0x00000000000000000000000000000000000A7E4A"


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def session_factory():
    engine, factory = build_db_components("sqlite://")
    init_db(engine)
    yield factory
    engine.dispose()


@pytest.fixture
def test_settings(tmp_path, monkeypatch) -> Settings:
    settings = Settings(
        database_url=f"sqlite:///{tmp_path/'predictron.db'}",
        chain_id=31337,
        rpc_url="http://rpc.test",
        contract_address=CONTRACT,
        sync_batch_size=10,
    )
    monkeypatch.setattr("app.core.config.get_settings", lambda: settings)
    monkeypatch.setattr("app.core.config.settings", settings)
    return settings
