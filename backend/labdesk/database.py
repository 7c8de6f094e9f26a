from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Callable, Iterator, TypeVar

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .errors import ConcurrencyConflict

logger = logging.getLogger(__name__)

Base = declarative_base()

T = TypeVar("T")

_LOCK_ERROR_MARKERS = (
    "database is locked",
    "deadlock",
    "lock wait timeout",
    "could not obtain lock",
    "could not serialize access",
    "lock timeout",
)


def is_lock_error(exc: DBAPIError) -> bool:
    """Return True when a driver error reports lock contention rather than bad data."""

    message = str(exc.orig if exc.orig is not None else exc).lower()
    return any(marker in message for marker in _LOCK_ERROR_MARKERS)


class Store:
    """Explicitly constructed handle on the relational store.

    One instance is built by the process entry point and passed to every
    service; it owns the engine and hands out sessions and transactions.
    """

    def __init__(self, database_url: str, *, retry_attempts: int = 3, echo: bool = False) -> None:
        if database_url.startswith("sqlite"):
            connect_args = {"check_same_thread": False, "timeout": 30}
        else:
            connect_args = {}
        self.database_url = database_url
        self.engine = create_engine(
            database_url,
            connect_args=connect_args,
            pool_pre_ping=True,
            echo=echo,
        )
        self.session_factory = sessionmaker(
            bind=self.engine,
            autoflush=False,
            expire_on_commit=False,
        )
        self.retry_attempts = max(1, retry_attempts)

    def create_all(self) -> None:
        # models must be imported so their tables are registered on Base
        from . import models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    def drop_all(self) -> None:
        from . import models  # noqa: F401

        Base.metadata.drop_all(bind=self.engine)

    def dispose(self) -> None:
        self.engine.dispose()

    def session(self) -> Session:
        return self.session_factory()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Yield a session whose work commits as one unit or rolls back in full."""

        db = self.session_factory()
        try:
            yield db
            db.commit()
        except DBAPIError as exc:
            db.rollback()
            if is_lock_error(exc):
                raise ConcurrencyConflict(str(exc.orig or exc)) from exc
            raise
        except BaseException:
            db.rollback()
            raise
        finally:
            db.close()

    def run(self, operation: Callable[[Session], T]) -> T:
        """Run ``operation`` in its own transaction, retrying lock conflicts a bounded number of times."""

        for attempt in range(1, self.retry_attempts + 1):
            try:
                with self.transaction() as db:
                    return operation(db)
            except ConcurrencyConflict:
                if attempt >= self.retry_attempts:
                    raise
                logger.warning(
                    "lock conflict on attempt %s/%s, retrying",
                    attempt,
                    self.retry_attempts,
                )
        raise AssertionError("unreachable")


def get_db(request: Request):
    db = request.app.state.store.session()
    try:
        yield db
    finally:
        db.close()
