from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False)


def _enable_sqlite_savepoints(engine: Engine) -> None:
    # pysqlite defers BEGIN until the first DML, which breaks SAVEPOINT;
    # take over transaction control so begin_nested() behaves
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(connection):
        connection.exec_driver_sql("BEGIN")


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    connect_args = {}
    is_sqlite = database_url.startswith("sqlite")
    if is_sqlite:
        # the bot hands sessions across threads of the default executor
        connect_args["check_same_thread"] = False
    engine = create_engine(database_url, pool_pre_ping=True, echo=echo, connect_args=connect_args)
    if is_sqlite:
        _enable_sqlite_savepoints(engine)
    return engine


def init_engine(database_url: str, echo: bool = False) -> Engine:
    engine = create_db_engine(database_url, echo=echo)
    SessionLocal.configure(bind=engine)
    return engine


@contextmanager
def get_session() -> Iterator[Session]:
    """Yield a session that commits on success and rolls back on any error."""
    if SessionLocal.kw.get("bind") is None:
        raise RuntimeError("Database engine not initialized. Call init_engine() before use.")

    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
