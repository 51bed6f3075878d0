"""Database engine and session management."""

from collections.abc import Generator
from contextlib import contextmanager
from typing import Dict

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session as DBSession, sessionmaker
from sqlalchemy.pool import StaticPool

from server.config import Settings
from server.db.models import Base


# Engines and session factories are cached per database URL
_engines: Dict[str, Engine] = {}
_factories: Dict[str, sessionmaker] = {}


def _enable_sqlite_foreign_keys(dbapi_conn, _record) -> None:
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def get_engine(settings: Settings) -> Engine:
    url = settings.database_url
    engine = _engines.get(url)
    if engine is None:
        if url.startswith("sqlite"):
            kwargs = {"connect_args": {"check_same_thread": False}}
            if ":memory:" in url:
                # One shared connection, otherwise every session sees an empty DB
                kwargs["poolclass"] = StaticPool
            engine = create_engine(url, **kwargs)
            event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        else:
            engine = create_engine(url, pool_pre_ping=True)
        _engines[url] = engine
    return engine


def get_session_factory(settings: Settings) -> sessionmaker:
    factory = _factories.get(settings.database_url)
    if factory is None:
        factory = sessionmaker(autocommit=False, autoflush=False,
                               expire_on_commit=False, bind=get_engine(settings))
        _factories[settings.database_url] = factory
    return factory


@contextmanager
def get_db(settings: Settings) -> Generator[DBSession, None, None]:
    """Yield a session; commit on success, roll back on error."""
    session = get_session_factory(settings)()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def reset_engine() -> None:
    """Dispose cached engines and factories. Use between tests for isolation."""
    for engine in _engines.values():
        engine.dispose()
    _engines.clear()
    _factories.clear()


def init_db(settings: Settings) -> None:
    """Create all tables."""
    Base.metadata.create_all(bind=get_engine(settings))
