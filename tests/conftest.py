"""Shared pytest fixtures for docQL unit tests."""
from __future__ import annotations

import pytest

from docql import DocQL
from docql.compile.mysql import MySQLCompiler
from docql.compile.postgres import PostgresCompiler
from tests.fixtures import RecordingDriver


@pytest.fixture
def pg() -> PostgresCompiler:
    return PostgresCompiler()


@pytest.fixture
def my() -> MySQLCompiler:
    return MySQLCompiler()


@pytest.fixture
def driver() -> RecordingDriver:
    """Postgres-flavoured recording driver with an existing ``users`` collection."""
    return RecordingDriver("postgres", tables=("users",))


@pytest.fixture
def db(driver: RecordingDriver) -> DocQL:
    return DocQL({"driver": "postgres", "config": {"user": "docql", "database": "docql_test"}}, driver=driver)


@pytest.fixture
def mysql_driver() -> RecordingDriver:
    return RecordingDriver("mysql", tables=("users",))


@pytest.fixture
def mysql_db(mysql_driver: RecordingDriver) -> DocQL:
    return DocQL(
        {"driver": "mysql", "config": {"user": "docql", "database": "docql_test"}},
        driver=mysql_driver,
    )
