"""Unit tests for transaction and savepoint scopes."""

from __future__ import annotations

import asyncio
import logging

import pytest

from docql.errors import TransactionError
from docql.transaction import savepoint, transaction, with_savepoint, with_transaction
from tests.fixtures import RecordingDriver


@pytest.mark.asyncio
async def test_commit_then_release(driver):
    async with transaction(driver) as session:
        await driver.query("SELECT 1", session=session)
    assert driver.events == ["begin", "commit", "release"]
    assert session.released


@pytest.mark.asyncio
async def test_failure_after_write_rolls_back_and_releases_once(db, driver):
    async def work(session):
        await db.insert_one("users", {"n": 1}, session=session)
        raise ValueError("boom")

    with pytest.raises(ValueError, match="boom"):
        await with_transaction(driver, work)

    assert len(driver.writes("INSERT")) == 1
    assert driver.events == ["begin", "rollback", "release"]
    assert driver.events.count("release") == 1


@pytest.mark.asyncio
async def test_rollback_failure_does_not_mask_original(driver, caplog):
    driver.fail_rollback = True

    async def work(session):
        raise KeyError("original")

    with caplog.at_level(logging.ERROR, logger="docql.transaction"):
        with pytest.raises(KeyError):
            await with_transaction(driver, work)
    assert driver.events == ["begin", "rollback", "release"]
    assert "rollback failed" in caplog.text


@pytest.mark.asyncio
async def test_release_failure_does_not_mask_original(driver, caplog):
    driver.fail_release = True

    async def work(session):
        raise KeyError("original")

    with caplog.at_level(logging.ERROR, logger="docql.transaction"):
        with pytest.raises(KeyError, match="original"):
            await with_transaction(driver, work)
    assert driver.events == ["begin", "rollback", "release"]
    assert "release failed" in caplog.text


@pytest.mark.asyncio
async def test_cancellation_rolls_back(driver):
    async def work(session):
        raise asyncio.CancelledError()

    with pytest.raises(asyncio.CancelledError):
        await with_transaction(driver, work)
    assert driver.events == ["begin", "rollback", "release"]


@pytest.mark.asyncio
async def test_with_transaction_returns_result(db):
    async def work(session):
        return (await db.insert_one("users", {"n": 1}, session=session)).row_id

    assert await db.with_transaction(work) == 1


@pytest.mark.asyncio
async def test_isolation_level_is_normalized(driver):
    async with transaction(driver, "serializable"):
        pass
    async with transaction(driver, "read_committed"):
        pass
    assert driver.events[0] == "begin:SERIALIZABLE"
    assert driver.events[3] == "begin:READ COMMITTED"


@pytest.mark.asyncio
async def test_unknown_isolation_level(driver):
    with pytest.raises(TransactionError) as exc_info:
        async with transaction(driver, "chaos"):
            pass
    assert exc_info.value.code == "INVALID_ISOLATION_LEVEL"
    assert driver.events == []


@pytest.mark.asyncio
async def test_savepoint_released_on_success(driver):
    async with transaction(driver) as session:
        async with savepoint(driver, session, "sp1") as name:
            assert name == "sp1"
    assert driver.sql_log() == ['SAVEPOINT "sp1"', 'RELEASE SAVEPOINT "sp1"']
    assert all(s.session is session for s in driver.statements)


@pytest.mark.asyncio
async def test_savepoint_rolled_back_on_failure_and_outer_commits():
    driver = RecordingDriver("mysql")

    async def failing():
        raise RuntimeError("inner")

    async with transaction(driver) as session:
        with pytest.raises(RuntimeError):
            await with_savepoint(driver, session, failing, "sp1")

    assert driver.sql_log() == ["SAVEPOINT `sp1`", "ROLLBACK TO SAVEPOINT `sp1`"]
    assert driver.events == ["begin", "commit", "release"]


@pytest.mark.asyncio
async def test_savepoint_generated_name(driver):
    async with transaction(driver) as session:
        async with savepoint(driver, session) as name:
            pass
    assert name.startswith("sp_")
    assert driver.sql_log()[0] == f'SAVEPOINT "{name}"'


@pytest.mark.asyncio
async def test_invalid_savepoint_name(db, driver):
    async def noop():
        return None

    async with db.transaction() as session:
        with pytest.raises(TransactionError) as exc_info:
            await db.with_savepoint(session, noop, 'x"; DROP TABLE users; --')
    assert exc_info.value.code == "INVALID_SAVEPOINT"
    assert driver.statements == []


@pytest.mark.asyncio
async def test_release_is_idempotent(driver):
    session = await driver.start_session()
    await driver.release(session)
    await driver.release(session)
    assert driver.events == ["begin", "release"]
