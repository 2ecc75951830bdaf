import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Generator, Iterable, Iterator

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlmodel import SQLModel, Session, create_engine, select

from .config import DATABASE_URL, DB_LOCK_TIMEOUT_MS, DB_STATEMENT_TIMEOUT_MS, SQL_ECHO
from .errors import InternalError, ServiceError, StoreTimeout

logger = logging.getLogger(__name__)

_is_sqlite = DATABASE_URL.startswith("sqlite")

if _is_sqlite:
    _connect_args = {
        "check_same_thread": False,
        "timeout": DB_LOCK_TIMEOUT_MS / 1000,
    }
else:
    _connect_args = {
        "options": (
            f"-c statement_timeout={DB_STATEMENT_TIMEOUT_MS} "
            f"-c lock_timeout={DB_LOCK_TIMEOUT_MS}"
        )
    }

# Execution option that makes the next SQLite BEGIN take the write lock
BEGIN_IMMEDIATE = "sqlite_begin_immediate"


def configure_sqlite(sqlite_engine: Engine) -> Engine:
    """Take over transaction control from pysqlite.

    Reads begin with a plain deferred ``BEGIN``. Units of work opened by
    ``transaction()`` begin with ``BEGIN IMMEDIATE``, which takes the
    database write lock up front. SQLite has no row locks, so this is what
    keeps check-then-write sequences (capacity checks, slot booking) from
    interleaving. It also makes SAVEPOINT behave.
    """

    @event.listens_for(sqlite_engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(sqlite_engine, "begin")
    def _begin(conn):
        if conn.get_execution_options().get(BEGIN_IMMEDIATE):
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")

    return sqlite_engine


engine = create_engine(
    DATABASE_URL,
    echo=SQL_ECHO,
    pool_pre_ping=not _is_sqlite,
    connect_args=_connect_args,
)

if _is_sqlite:
    configure_sqlite(engine)

# query_canceled, lock_not_available, deadlock_detected
_PG_RETRYABLE_CODES = {"57014", "55P03", "40P01"}
# SQLITE_BUSY, SQLITE_LOCKED
_SQLITE_RETRYABLE_CODES = {5, 6}


def create_db_and_tables():
    """Create all database tables."""
    import app.models  # noqa: F401

    SQLModel.metadata.create_all(engine)


def get_session() -> Generator[Session, None, None]:
    """Dependency for getting database sessions."""
    with Session(engine) as session:
        yield session


def _is_retryable(exc: OperationalError) -> bool:
    orig = exc.orig
    if getattr(orig, "pgcode", None) in _PG_RETRYABLE_CODES:
        return True
    return getattr(orig, "sqlite_errorcode", None) in _SQLITE_RETRYABLE_CODES


def store_error(exc: SQLAlchemyError) -> ServiceError:
    """Map a store failure to ``StoreTimeout`` (safe to retry) or ``InternalError``."""
    if isinstance(exc, OperationalError) and _is_retryable(exc):
        logger.warning("Store timeout: %s", exc.orig)
        return StoreTimeout()
    logger.error("Store error: %s", exc)
    return InternalError()


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """Run a unit of work: commit on success, roll back on any error.

    Any read transaction the session already has open is committed first, so
    the unit starts fresh with the write lock on SQLite. Domain errors are
    re-raised as they are; store errors go through ``store_error``.
    """
    try:
        if db.in_transaction():
            db.commit()
        db.connection(execution_options={BEGIN_IMMEDIATE: True})
        yield db
        db.commit()
    except ServiceError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        raise store_error(exc) from exc
    except Exception:
        db.rollback()
        raise



def lock_for_update(statement):
    """Lock the selected rows until the enclosing transaction ends.

    Renders ``SELECT ... FOR UPDATE`` on PostgreSQL. SQLite has no row locks
    and serialises writers at the database level instead.
    """
    return statement.with_for_update()


def insert_memberships(db: Session, team_id: int, user_ids: Iterable[int]) -> None:
    """Insert membership rows, skipping any (team, user) pair that already exists."""
    from .models.team import TeamMembership

    user_ids = list(user_ids)
    if not user_ids:
        return

    db.flush()
    now = datetime.utcnow()
    rows = [{"team_id": team_id, "user_id": user_id, "joined_at": now} for user_id in user_ids]
    dialect = db.get_bind().dialect.name

    if dialect in ("postgresql", "sqlite"):
        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        else:
            from sqlalchemy.dialects.sqlite import insert

        statement = (
            insert(TeamMembership.__table__)
            .values(rows)
            .on_conflict_do_nothing(index_elements=["team_id", "user_id"])
        )
        db.connection().execute(statement)
        return

    existing = set(db.exec(
        select(TeamMembership.user_id).where(
            TeamMembership.team_id == team_id,
            TeamMembership.user_id.in_(user_ids)
        )
    ).all())
    for row in rows:
        if row["user_id"] not in existing:
            db.add(TeamMembership(**row))
    db.flush()
