"""SQL change log store on its own SQLAlchemy engine.

Change logs should live on a connection separate from the tracked entities'
session: hooks append while the host's flush is still in progress, so the
store must not share that transaction.

Key exports:
- init_change_log_db(...)    Call at startup to initialize the engine
- close_change_log_db()      Call at shutdown to dispose the engine
- get_change_log_store()     FastAPI dependency returning the SQL store
- SqlChangeLogStore          Append-only store with read-by-object-id
"""

from __future__ import annotations

from sqlalchemy import Engine, create_engine, make_url, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from aumos_change_tracker.core.models import Base, ChangeLogRow
from aumos_change_tracker.core.records import ChangeLogRecord
from aumos_change_tracker.errors import NotFoundError, StoreError
from aumos_change_tracker.observability import get_logger

logger = get_logger(__name__)

# Module-level store, set by init_change_log_db()
_store: SqlChangeLogStore | None = None


def create_change_log_engine(
    database_url: str,
    pool_size: int = 5,
    max_overflow: int = 2,
    pool_timeout: int = 30,
) -> Engine:
    """Create the engine for the change log database.

    SQLite pools take no sizing arguments, so those are only passed to
    server databases.
    """
    if make_url(database_url).get_backend_name() == "sqlite":
        return create_engine(database_url, echo=False)
    return create_engine(
        database_url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_timeout=pool_timeout,
        # Change log queries must not log values
        echo=False,
        pool_pre_ping=True,
    )


class SqlChangeLogStore:
    """Append-only change log store backed by the change_logs table.

    There are no update or delete methods: the audit trail is immutable.

    Args:
        engine: Engine connected to the change log database.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._session_factory: sessionmaker[Session] = sessionmaker(
            bind=engine,
            expire_on_commit=False,
            autoflush=False,
        )

    @property
    def engine(self) -> Engine:
        return self._engine

    def create_schema(self) -> None:
        """Create the change_logs table if it does not exist."""
        try:
            Base.metadata.create_all(self._engine)
        except SQLAlchemyError as exc:
            raise StoreError(f"Cannot create change_logs schema: {exc}") from exc

    def append(self, record: ChangeLogRecord) -> None:
        """Insert a change log row in its own transaction.

        Raises:
            StoreError: If the insert fails.
        """
        try:
            with self._session_factory.begin() as session:
                session.execute(record.insert_statement())
        except SQLAlchemyError as exc:
            raise StoreError(f"Cannot append change log {record.id}: {exc}") from exc

        logger.debug("Change log row inserted", change_log_id=str(record.id), object_id=record.object_id)

    def query_by_object_id(self, object_id: str) -> list[ChangeLogRecord]:
        """Return all change logs for an object id ordered by created_at ascending.

        Raises:
            StoreError: If the query fails.
        """
        stmt = (
            select(ChangeLogRow)
            .where(ChangeLogRow.object_id == object_id)
            .order_by(ChangeLogRow.created_at.asc())
        )
        try:
            with self._session_factory() as session:
                rows = session.execute(stmt).scalars().all()
                return [ChangeLogRecord.from_row(row) for row in rows]
        except SQLAlchemyError as exc:
            raise StoreError(f"Cannot query change logs for {object_id}: {exc}") from exc

    def most_recent_by_object_id(self, object_id: str) -> ChangeLogRecord:
        """Return the newest change log for an object id.

        Raises:
            NotFoundError: If the object has no change logs.
            StoreError: If the query fails.
        """
        stmt = (
            select(ChangeLogRow)
            .where(ChangeLogRow.object_id == object_id)
            .order_by(ChangeLogRow.created_at.desc())
            .limit(1)
        )
        try:
            with self._session_factory() as session:
                row = session.execute(stmt).scalar_one_or_none()
                record = ChangeLogRecord.from_row(row) if row is not None else None
        except SQLAlchemyError as exc:
            raise StoreError(f"Cannot query change logs for {object_id}: {exc}") from exc

        if record is None:
            raise NotFoundError(resource="ChangeLog", resource_id=object_id)
        return record


def init_change_log_db(
    database_url: str,
    pool_size: int = 5,
    max_overflow: int = 2,
    pool_timeout: int = 30,
) -> SqlChangeLogStore:
    """Initialize the change log engine and create the schema.

    Must be called once at application startup (in the lifespan handler)
    before change logs can be read through get_change_log_store().

    Args:
        database_url: SQLAlchemy URL of the change log database.
        pool_size: Connection pool size.
        max_overflow: Max overflow connections above pool_size.
        pool_timeout: Seconds to wait for a connection before raising.

    Returns:
        The initialized store.
    """
    global _store  # noqa: PLW0603

    logger.info("Initializing change log engine", pool_size=pool_size, max_overflow=max_overflow)
    engine = create_change_log_engine(database_url, pool_size, max_overflow, pool_timeout)
    store = SqlChangeLogStore(engine)
    store.create_schema()
    _store = store
    logger.info("Change log engine initialized")
    return store


def close_change_log_db() -> None:
    """Dispose the change log engine. Called at application shutdown."""
    global _store  # noqa: PLW0603

    if _store is not None:
        logger.info("Disposing change log engine")
        _store.engine.dispose()
        _store = None


def get_change_log_store() -> SqlChangeLogStore:
    """FastAPI dependency returning the initialized SQL store.

    Raises:
        RuntimeError: If init_change_log_db() has not been called yet.
    """
    if _store is None:
        raise RuntimeError(
            "Change log database has not been initialized. "
            "Call init_change_log_db() in the application lifespan handler."
        )
    return _store
