"""Database connection handle and session management."""

import enum
import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import settings

logger = logging.getLogger(__name__)

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what SQLite hands back."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return uuid.uuid4().hex


class ConnectionState(enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class Database:
    """Owns the engine and session factory for one database URL.

    ``connect`` is safe to call from every request: the first call builds the
    engine and creates missing tables, later calls return immediately.
    """

    def __init__(self, url: str):
        self.url = url
        self.state = ConnectionState.DISCONNECTED
        self.engine: Engine | None = None
        self._session_factory: sessionmaker | None = None
        self._lock = threading.Lock()

    def _engine_options(self) -> dict:
        if not self.url.startswith("sqlite"):
            return {"pool_pre_ping": True}
        options = {"connect_args": {"check_same_thread": False}}
        if self.url in ("sqlite://", "sqlite:///:memory:"):
            # all threads share the single in-memory connection
            options["poolclass"] = StaticPool
        return options

    def connect(self) -> None:
        if self.state is ConnectionState.CONNECTED:
            return
        with self._lock:
            if self.state is ConnectionState.CONNECTED:
                return
            self.state = ConnectionState.CONNECTING
            try:
                # register the mapped tables before create_all
                from .models import product, user  # noqa: F401

                engine = create_engine(self.url, future=True, **self._engine_options())
                Base.metadata.create_all(bind=engine)
            except Exception:
                self.state = ConnectionState.DISCONNECTED
                logger.exception("database connection failed")
                raise
            self.engine = engine
            self._session_factory = sessionmaker(
                bind=engine, autoflush=False, autocommit=False, future=True
            )
            self.state = ConnectionState.CONNECTED
            logger.info("database connected url=%s", engine.url.render_as_string())

    def session(self) -> Session:
        self.connect()
        return self._session_factory()

    def dispose(self) -> None:
        with self._lock:
            if self.engine is not None:
                self.engine.dispose()
            self.engine = None
            self._session_factory = None
            self.state = ConnectionState.DISCONNECTED


db = Database(settings.database_url)


def get_session() -> Generator[Session, None, None]:
    """Provide a session scoped to a single request."""
    session = db.session()
    try:
        yield session
    finally:
        session.close()
