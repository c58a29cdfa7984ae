# Overview: Unit-of-work and row-locking helpers shared by the fulfillment services.

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterable, Iterator

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from .errors import PersistenceFailure

logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; atomic() takes the database
    write lock up front instead (BEGIN IMMEDIATE).

    populate_existing() makes the ORM overwrite any copy already in the
    identity map with the row as read under the lock.
    """
    return query.with_for_update().populate_existing()


def lock_rows(model, ids: Iterable[int]) -> dict:
    """
    Lock rows of `model` by primary key in ascending id order.

    A fixed acquisition order means two units of work touching overlapping
    id sets queue behind each other instead of deadlocking.
    """
    wanted = sorted(set(ids))
    if not wanted:
        return {}
    query = (
        db.session.query(model)
        .filter(model.id.in_(wanted))
        .order_by(model.id)
    )
    return {row.id: row for row in lock_for_update(query).all()}


@contextmanager
def atomic() -> Iterator:
    """
    Run the enclosed block as one database transaction.

    Commits when the block exits cleanly, rolls back on any exception.
    FulfillmentError and other exceptions propagate unchanged; storage faults
    (SQLAlchemyError) surface as PersistenceFailure. Nothing is retried.

    Must be the outermost transaction boundary: services called inside the
    block flush but never commit.
    """
    try:
        if db.engine.dialect.name == "sqlite":
            db.session.execute(text("BEGIN IMMEDIATE"))
        yield db.session
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("Unit of work rolled back after storage fault: %s", exc)
        raise PersistenceFailure("Storage failure; transaction rolled back", details={"cause": str(exc)}) from exc
    except BaseException:
        db.session.rollback()
        raise
