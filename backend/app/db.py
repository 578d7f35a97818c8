from collections.abc import Generator
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .core.config import settings


def _is_memory_sqlite(url: str) -> bool:
    parsed = make_url(url)
    return parsed.get_backend_name() == "sqlite" and parsed.database in (None, "", ":memory:")


def _ensure_sqlite_path(url: str) -> None:
    if not url.startswith("sqlite"):
        return

    parsed = make_url(url)
    database = parsed.database
    if not database or database == ":memory:":
        return

    path = Path(database)
    path.parent.mkdir(parents=True, exist_ok=True)


def _create_engine(url: str, *, echo: bool = False) -> Engine:
    connect_args: dict[str, object] = {}
    engine_kwargs: dict[str, object] = {
        "echo": echo,
        "future": True,
        "pool_pre_ping": True,
    }

    backend = make_url(url).get_backend_name()

    if backend == "sqlite":
        connect_args["check_same_thread"] = False
        if _is_memory_sqlite(url):
            # Every session must see the same in-memory database.
            engine_kwargs["poolclass"] = StaticPool
        else:
            _ensure_sqlite_path(url)
    else:
        engine_kwargs["pool_recycle"] = 300
        if backend.startswith("postgresql"):
            connect_args.setdefault("keepalives", 1)
            connect_args.setdefault("keepalives_idle", 120)

    if connect_args:
        engine_kwargs["connect_args"] = connect_args

    return create_engine(url, **engine_kwargs)


def _create_session_factory(engine: Engine) -> sessionmaker[Session]:
    # Autoflush keeps reads after an upsert consistent within one event batch.
    return sessionmaker(bind=engine, autoflush=True, autocommit=False, future=True)


def build_db_components(url: str, *, echo: bool = False) -> tuple[Engine, sessionmaker[Session]]:
    engine = _create_engine(url, echo=echo)
    session_factory = _create_session_factory(engine)
    return engine, session_factory


engine, SessionLocal = build_db_components(settings.resolved_database_url, echo=settings.debug)
Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def init_db(bind: Engine | None = None) -> None:
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
