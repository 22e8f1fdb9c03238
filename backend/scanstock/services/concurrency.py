# Overview: Transaction, row-locking and storage-error translation helpers shared by the stock services.

from __future__ import annotations

from contextlib import contextmanager

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConflictError, StockError, StorageError
from ..extensions import db

# Driver messages that mean "could not get the lock in time", not a broken database.
_LOCK_TIMEOUT_MARKERS = (
    "database is locked",
    "lock timeout",
    "lock_timeout",
    "could not obtain lock",
    "deadlock detected",
    "canceling statement due to lock timeout",
)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_write() takes the
    database write lock up front there instead.
    """
    return query.with_for_update()


def begin_write() -> None:
    """
    Open the unit of work for a counter mutation.

    - SQLite: BEGIN IMMEDIATE so concurrent writers serialize on the database
      write lock (bounded by the connection busy timeout).
    - PostgreSQL: bound row-lock waits with SET LOCAL lock_timeout.
    """
    dialect = db.engine.dialect.name
    if dialect == "sqlite":
        raw = db.session.connection().connection.dbapi_connection
        if not raw.in_transaction:
            db.session.execute(text("BEGIN IMMEDIATE"))
    elif dialect == "postgresql":
        timeout_ms = int(float(current_app.config.get("LOCK_TIMEOUT_SECONDS", 5)) * 1000)
        db.session.execute(text(f"SET LOCAL lock_timeout = '{timeout_ms}ms'"))


def _is_lock_timeout(exc: OperationalError) -> bool:
    message = str(getattr(exc, "orig", exc)).lower()
    return any(marker in message for marker in _LOCK_TIMEOUT_MARKERS)


@contextmanager
def unit_of_work(action: str):
    """
    Run a block as one atomic unit and translate failures.

    Any exception rolls the session back, so a rejected mutation leaves
    storage unchanged. StockError subclasses propagate as-is; SQLAlchemy
    errors become ConflictError (lock timeout, unique key, stale version) or
    StorageError (everything else). Nothing is retried here.
    """
    try:
        yield
    except StockError:
        db.session.rollback()
        raise
    except IntegrityError as exc:
        db.session.rollback()
        current_app.logger.warning("%s rejected by a constraint: %s", action, exc.orig)
        raise ConflictError(f"{action} conflicts with existing data", details={"constraint": str(exc.orig)})
    except StaleDataError:
        db.session.rollback()
        current_app.logger.warning("%s hit a concurrent modification", action)
        raise ConflictError(f"{action} conflicted with a concurrent update; retry the request")
    except OperationalError as exc:
        db.session.rollback()
        if _is_lock_timeout(exc):
            current_app.logger.warning("%s timed out waiting for a lock", action)
            raise ConflictError(f"{action} timed out waiting for a lock; retry the request")
        current_app.logger.exception("%s failed in the datastore", action)
        raise StorageError()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("%s failed in the datastore", action)
        raise StorageError()
    except Exception:
        db.session.rollback()
        raise
