from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .logger import get_logger

Base = declarative_base()

logger = get_logger("database")


class Database:
    """
    Explicitly owned data-access handle.

    The engine (and its connection pool) only exists between ``open()`` and
    ``close()``; the application lifespan drives both and hands the handle to
    request dependencies through ``app.state``.
    """

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        self.echo = echo
        self._engine: Optional[Engine] = None
        self._sessionmaker: Optional[sessionmaker] = None

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("Database is not open")
        return self._engine

    def open(self) -> "Database":
        if self._engine is not None:
            return self

        kwargs = {"echo": self.echo}
        sqlite = self.url.startswith("sqlite")
        in_memory = self.url in ("sqlite://", "sqlite:///:memory:")
        if sqlite:
            kwargs["connect_args"] = {"check_same_thread": False}
            # In-memory databases only live as long as their single connection
            if in_memory:
                kwargs["poolclass"] = StaticPool

        logger.info("Opening database engine for %s", self.engine_label)
        self._engine = create_engine(self.url, **kwargs)
        # a single shared in-memory connection has no second writer to fence off
        if sqlite and not in_memory:
            _begin_immediate(self._engine)
        self._sessionmaker = sessionmaker(autocommit=False, autoflush=False, bind=self._engine)
        return self

    def close(self) -> None:
        if self._engine is None:
            return
        self._engine.dispose()
        self._engine = None
        self._sessionmaker = None
        logger.info("Database engine closed")

    def session(self) -> Session:
        if self._sessionmaker is None:
            raise RuntimeError("Database is not open")
        return self._sessionmaker()

    def create_all(self) -> None:
        Base.metadata.create_all(bind=self.engine)

    def drop_all(self) -> None:
        Base.metadata.drop_all(bind=self.engine)

    @property
    def engine_label(self) -> str:
        # never log credentials
        return self.url.split("@")[-1]


def _begin_immediate(engine: Engine) -> None:
    """
    Start every SQLite transaction with ``BEGIN IMMEDIATE``.

    pysqlite defers ``BEGIN`` until the first write, so two sessions could
    both read a free slot and then both insert. Taking the write lock when
    the transaction opens makes a session's reads and writes run under one
    lock; a second writer waits (up to the driver's busy timeout) and then
    reads the committed state. ``SELECT ... FOR UPDATE`` covers the same
    ground on server databases.
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")
