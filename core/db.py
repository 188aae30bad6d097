# propmarket/core/db.py
"""
Ledger store for PropMarket.

One explicitly constructed LedgerStore per process (or per test) owns the
engine and session factory. Multi-row writes go through unit_of_work();
idempotent reads go through read(), which retries once on a dropped
connection.
"""
import logging
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, TypeVar

from sqlalchemy import create_engine, event
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from config import Config
from core.errors import Conflict, Unavailable
from models.base import Base
from models.listeners import register_all_listeners

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Storage failures that mean "try again later", not "bad request"
TRANSIENT_ERRORS = (OperationalError, InterfaceError)


class LedgerStore:
    """
    Transactional storage for Property, Booking, Dealer, Commission
    and CommissionConfig records.

    Usage:
        store = LedgerStore("sqlite:///propmarket.db")
        store.setup_database()

        with store.unit_of_work() as session:
            session.add(booking)
    """

    def __init__(self, database_url: Optional[str] = None, echo: bool = False):
        self.database_url = database_url or Config.get(
            Config.DATABASE_URL, "sqlite:///propmarket.db"
        )
        self.is_sqlite = self.database_url.startswith("sqlite")

        engine_kwargs = {"echo": echo, "pool_pre_ping": True}
        if self.is_sqlite:
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if self._is_memory_url(self.database_url):
                # Single shared connection so every session sees the same database
                engine_kwargs["poolclass"] = StaticPool

        self.engine = create_engine(self.database_url, **engine_kwargs)

        if self.is_sqlite:
            self._configure_sqlite()

        self._SessionFactory = sessionmaker(bind=self.engine, expire_on_commit=False)

        register_all_listeners()
        logger.info(f"LedgerStore created: {self._safe_url()}")

    # ═══════════════════════════════════════════════════════════════════════
    # LIFECYCLE
    # ═══════════════════════════════════════════════════════════════════════

    def setup_database(self) -> None:
        """Create all tables."""
        logger.info("Setting up database...")
        Base.metadata.create_all(self.engine)
        logger.info("Database setup completed")

    def drop_all_tables(self) -> None:
        """Drop all tables - USE WITH CAUTION!"""
        logger.warning("Dropping all tables...")
        Base.metadata.drop_all(self.engine)
        logger.info("All tables dropped")

    def dispose(self) -> None:
        """Release pooled connections (service shutdown)."""
        self.engine.dispose()
        logger.info("LedgerStore disposed")

    # ═══════════════════════════════════════════════════════════════════════
    # SESSIONS
    # ═══════════════════════════════════════════════════════════════════════

    @contextmanager
    def unit_of_work(self) -> Iterator[Session]:
        """
        Atomic unit of work: commit on success, rollback on any error.

        Storage failures are surfaced as Unavailable and are NOT retried:
        a blind retry of a multi-row write could apply side effects twice.

        Usage:
            with store.unit_of_work() as session:
                booking.status = "CONFIRMED"
                property.status = "BOOKED"
        """
        session = self._SessionFactory()
        try:
            yield session
            session.commit()
        except TRANSIENT_ERRORS as e:
            session.rollback()
            logger.error(f"Transaction aborted by storage layer: {e}")
            raise Unavailable("Storage temporarily unavailable, nothing was changed") from e
        except IntegrityError as e:
            session.rollback()
            logger.warning(f"Integrity violation, transaction rolled back: {e.orig}")
            raise Conflict("Concurrent modification detected, nothing was changed") from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def read(self, fn: Callable[[Session], T]) -> T:
        """
        Run an idempotent read, retrying once on a transient storage error.

        Args:
            fn: Function(session) -> result. Must not write.

        Returns:
            Whatever fn returns (ORM objects come back detached)
        """
        attempts = 2
        for attempt in range(1, attempts + 1):
            session = self._SessionFactory()
            try:
                return fn(session)
            except TRANSIENT_ERRORS as e:
                if attempt == attempts:
                    logger.error(f"Read failed after {attempts} attempts: {e}")
                    raise Unavailable("Storage temporarily unavailable") from e
                logger.warning(f"Transient read error, retrying once: {e}")
            finally:
                # close() ends the transaction without expiring loaded objects
                session.close()

    # ═══════════════════════════════════════════════════════════════════════
    # INTERNALS
    # ═══════════════════════════════════════════════════════════════════════

    def _configure_sqlite(self) -> None:
        """
        SQLite: enforce foreign keys and take the write lock at BEGIN,
        so check-then-write sequences are serialized between connections.
        """

        @event.listens_for(self.engine, "connect")
        def on_connect(dbapi_connection, connection_record):
            # Let SQLAlchemy emit BEGIN itself
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(self.engine, "begin")
        def on_begin(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    @staticmethod
    def _is_memory_url(url: str) -> bool:
        return url in ("sqlite://", "sqlite:///:memory:") or ":memory:" in url

    def _safe_url(self) -> str:
        return self.engine.url.render_as_string(hide_password=True)
