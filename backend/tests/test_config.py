from __future__ import annotations

import pytest

from app.core.config import Settings


@pytest.mark.parametrize(
    "url",
    [
        "postgres://indexer:secret@db:5432/predictron",
        "postgresql://indexer:secret@db:5432/predictron",
        "postgresql+asyncpg://indexer:secret@db:5432/predictron",
    ],
)
def test_postgres_urls_use_psycopg_driver(url):
    settings = Settings(database_url=url)
    assert settings.resolved_database_url == "postgresql+psycopg://indexer:secret@db:5432/predictron"


def test_sqlite_url_is_left_alone():
    assert Settings(database_url="sqlite:///tmp/x.db").resolved_database_url == "sqlite:///tmp/x.db"


def test_contract_address_validation():
    assert Settings(contract_address="").contract_address is None
    with pytest.raises(ValueError):
        Settings(contract_address="0x1234")


def test_require_rpc_reports_missing_values():
    with pytest.raises(ValueError, match="RPC_URL"):
        Settings(rpc_url=None, contract_address=None).require_rpc()
    rpc_url, address = Settings(
        rpc_url="http://rpc.test", contract_address="0x00000000000000000000000000000000000A7E4A"
    ).require_rpc()
    assert rpc_url.startswith("http://rpc.test")
    assert address.endswith("A7E4A")


def test_settings_expose_only_indexer_fields():
    assert "environment" not in Settings.model_fields
