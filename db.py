import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Optional, Tuple

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from core.config import Settings, settings as default_settings
from core.exceptions import CompetitionException, StoreFailure
from core.logging import logger

# Базовий клас для моделей
Base = declarative_base()


def import_models():
    """Import all models so they are registered with Base.metadata"""
    from models.user import User  # noqa: F401
    from models.competition import Competition  # noqa: F401
    from models.city import City, CompetitionCity  # noqa: F401
    from models.participation import Participation  # noqa: F401
    from models.round import Round  # noqa: F401
    from models.round_participation import RoundParticipation  # noqa: F401
    from models.round_score import RoundScore  # noqa: F401
    from models.result import Result  # noqa: F401


def _configure_sqlite_connection(dbapi_connection, connection_record):
    # Let SQLAlchemy emit BEGIN itself so SAVEPOINT works with pysqlite
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _begin_sqlite_transaction(connection):
    connection.exec_driver_sql("BEGIN")


class Store:
    """
    Handle on the relational store shared by every engine component.

    The process entry point owns init()/close(); services receive the handle
    in their constructor and open one transaction per operation.
    """

    def __init__(self, database_url: str = None, config: Settings = None):
        self.settings = config or default_settings
        self.database_url = database_url or self.settings.database_url
        self.engine: Optional[Engine] = None
        self.SessionLocal: Optional[sessionmaker] = None
        # round id -> (lock, number of threads holding or waiting for it)
        self._round_locks: Dict[int, Tuple[threading.Lock, int]] = {}
        self._round_locks_guard = threading.Lock()

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    def init(self) -> "Store":
        if self.engine is not None:
            return self

        if self.is_sqlite:
            engine_kwargs = {"connect_args": {"check_same_thread": False}}
            if ":memory:" in self.database_url or self.database_url in ("sqlite://", "sqlite:///"):
                # One shared connection, otherwise every session sees an empty database
                engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs = {
                "pool_size": self.settings.db_pool_size,
                "max_overflow": self.settings.db_max_overflow,
                "pool_pre_ping": True,
                "pool_recycle": 3600,
            }
            if self.settings.db_sslmode and self.database_url.startswith("postgresql"):
                engine_kwargs["connect_args"] = {
                    "sslmode": self.settings.db_sslmode,
                    "connect_timeout": 10,
                }

        self.engine = create_engine(self.database_url, echo=self.settings.debug, **engine_kwargs)
        if self.is_sqlite:
            event.listen(self.engine, "connect", _configure_sqlite_connection)
            event.listen(self.engine, "begin", _begin_sqlite_transaction)

        self.SessionLocal = sessionmaker(
            autocommit=False, autoflush=False, expire_on_commit=False, bind=self.engine
        )
        logger.info("Store initialised (%s)", self.engine.url.render_as_string(hide_password=True))
        return self

    def create_all(self):
        """Create every table registered on Base (tests and local development)"""
        import_models()
        Base.metadata.create_all(bind=self._require_engine())

    def drop_all(self):
        import_models()
        Base.metadata.drop_all(bind=self._require_engine())

    def close(self):
        if self.engine is not None:
            self.engine.dispose()
            logger.info("Store closed")
        self.engine = None
        self.SessionLocal = None

    def _require_engine(self) -> Engine:
        if self.engine is None:
            raise RuntimeError("Store is not initialised, call init() first")
        return self.engine

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        One transactional unit: commit if the block finishes, roll back if it raises.
        Store-level errors are logged and surfaced as an opaque StoreFailure.
        """
        self._require_engine()
        db = self.SessionLocal()
        try:
            yield db
            db.commit()
        except CompetitionException:
            db.rollback()
            raise
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception(f"Store failure, transaction rolled back: {e}")
            raise StoreFailure() from e
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    @contextmanager
    def round_lock(self, round_id: int) -> Iterator[None]:
        """Serialize writers of one round inside this process"""
        with self._round_locks_guard:
            lock, holders = self._round_locks.get(round_id, (threading.Lock(), 0))
            self._round_locks[round_id] = (lock, holders + 1)
        try:
            with lock:
                yield
        finally:
            with self._round_locks_guard:
                lock, holders = self._round_locks[round_id]
                if holders <= 1:
                    del self._round_locks[round_id]
                else:
                    self._round_locks[round_id] = (lock, holders - 1)

    def test_connection(self) -> bool:
        try:
            with self._require_engine().connect() as connection:
                connection.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.error(f"Database connection failed: {e}")
            return False
