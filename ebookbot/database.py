import logging
import threading
from typing import Callable, Optional, TypeVar

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from ebookbot.errors import StoreUnavailable

logger = logging.getLogger(__name__)

Base = declarative_base()

T = TypeVar("T")


def make_engine(url: str, timeout: float = 10.0) -> Engine:
    if url.startswith("sqlite"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": timeout},
        )

    connect_args = {}
    if url.startswith("mysql+mysqlconnector"):
        connect_args["connection_timeout"] = int(timeout)

    return create_engine(
        url,
        connect_args=connect_args,
        pool_size=5,
        max_overflow=10,
        pool_timeout=timeout,
        pool_recycle=3600,
        pool_pre_ping=True,
    )


def is_connection_error(exc: DBAPIError) -> bool:
    return isinstance(exc, (OperationalError, InterfaceError)) or exc.connection_invalidated


class ResilientStore:
    """Owns the engine and session factory for the shop database.

    The engine is created on first use. Every operation is preceded by a
    ``SELECT 1`` liveness check; a dead engine is disposed and rebuilt. If the
    operation itself loses its connection, the store reconnects once and runs
    it again exactly once before raising :class:`StoreUnavailable`.

    Liveness checks and reconnects are serialized by a lock so concurrent
    callers never rebuild the engine twice for the same failure.
    """

    def __init__(self, url: str, timeout: float = 10.0):
        self.url = url
        self.timeout = timeout
        self._lock = threading.Lock()
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None

    @property
    def engine(self) -> Engine:
        self.ensure_alive()
        return self._engine

    def execute(self, operation: Callable[[Session], T]) -> T:
        self.ensure_alive()
        engine, session_factory = self._engine, self._session_factory

        try:
            return self._run(session_factory, operation)
        except DBAPIError as exc:
            if not is_connection_error(exc):
                raise
            logger.warning("DB query failed (%s), reconnecting and retrying once", type(exc).__name__)

        session_factory = self._reconnect(stale=engine)
        try:
            return self._run(session_factory, operation)
        except DBAPIError as exc:
            if not is_connection_error(exc):
                raise
            logger.error("DB query failed again after reconnect (%s)", type(exc).__name__)
            raise StoreUnavailable("database unavailable after retry") from exc

    def ensure_alive(self) -> None:
        with self._lock:
            if self._engine is None:
                self._connect()
            elif not self._ping(self._engine):
                logger.warning("DB connection lost, reconnecting...")
                self._connect()

    def ping(self) -> bool:
        try:
            self.ensure_alive()
        except StoreUnavailable:
            return False
        return True

    def create_schema(self) -> None:
        import ebookbot.models  # noqa: F401  registers the tables on Base

        Base.metadata.create_all(bind=self.engine)

    def dispose(self) -> None:
        with self._lock:
            if self._engine is not None:
                self._engine.dispose()
            self._engine = None
            self._session_factory = None

    def _reconnect(self, stale: Optional[Engine]) -> sessionmaker:
        with self._lock:
            # another caller may already have replaced the engine we failed on
            if self._engine is stale or self._engine is None:
                self._connect()
            return self._session_factory

    def _connect(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            self._session_factory = None

        engine = make_engine(self.url, self.timeout)
        if not self._ping(engine):
            engine.dispose()
            logger.error("DB connection failed")
            raise StoreUnavailable("database unreachable")

        self._engine = engine
        self._session_factory = sessionmaker(
            bind=engine, autocommit=False, autoflush=False, expire_on_commit=False
        )
        logger.info("Database connected")

    @staticmethod
    def _ping(engine: Engine) -> bool:
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except DBAPIError as exc:
            logger.warning("DB ping failed: %s", type(exc).__name__)
            return False
        return True

    @staticmethod
    def _run(session_factory: sessionmaker, operation: Callable[[Session], T]) -> T:
        with session_factory() as session:
            try:
                result = operation(session)
                session.commit()
            except Exception:
                session.rollback()
                raise
            return result
