"""Transaction and savepoint scopes over a :class:`~docql.drivers.base.Driver`.

``transaction`` reserves one pooled connection for the duration of the
block and guarantees it goes back to the pool exactly once::

    async with transaction(driver, "SERIALIZABLE") as session:
        await driver.query("UPDATE ...", params, session=session)

On any failure, cancellation included, the transaction is rolled back
before the connection is released and the original exception propagates.
A failing rollback or release is logged and never masks that exception.
"""
from __future__ import annotations

import logging
import uuid
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import TypeVar

from docql.drivers.base import Driver, Session

logger = logging.getLogger(__name__)

T = TypeVar("T")


@asynccontextmanager
async def transaction(
    driver: Driver, isolation_level: str | None = None
) -> AsyncIterator[Session]:
    """Run the block in a transaction; commit on success, roll back on failure."""
    session = await driver.start_session(isolation_level)
    try:
        yield session
        await driver.commit(session)
    except BaseException:
        try:
            await driver.rollback(session)
        except Exception as rollback_exc:
            logger.error("Transaction rollback failed: %s", rollback_exc)
        try:
            await driver.release(session)
        except Exception as release_exc:
            logger.error("Session release failed: %s", release_exc)
        raise
    await driver.release(session)


async def with_transaction(
    driver: Driver,
    fn: Callable[[Session], Awaitable[T]],
    isolation_level: str | None = None,
) -> T:
    """Call ``fn(session)`` inside :func:`transaction` and return its result."""
    async with transaction(driver, isolation_level) as session:
        return await fn(session)


@asynccontextmanager
async def savepoint(
    driver: Driver, session: Session, name: str | None = None
) -> AsyncIterator[str]:
    """Scope a savepoint inside an open session.

    The savepoint is released when the block succeeds and rolled back to
    when it raises; the exception still propagates to the enclosing
    transaction.
    """
    name = name or f"sp_{uuid.uuid4().hex[:12]}"
    await driver.create_savepoint(session, name)
    try:
        yield name
    except BaseException:
        await driver.rollback_to_savepoint(session, name)
        raise
    await driver.release_savepoint(session, name)


async def with_savepoint(
    driver: Driver,
    session: Session,
    fn: Callable[[], Awaitable[T]],
    name: str | None = None,
) -> T:
    """Call ``fn()`` inside :func:`savepoint` and return its result."""
    async with savepoint(driver, session, name):
        return await fn()
