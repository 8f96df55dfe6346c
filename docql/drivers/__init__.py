"""docQL drivers: pooled async adapters for PostgreSQL and MySQL."""
from docql.drivers.base import Driver, ExecutionResult, Session
from docql.drivers.mysql import MySQLDriver
from docql.drivers.postgres import PostgresDriver
from docql.drivers.profiler import QueryProfiler
from docql.drivers.registry import DriverFactory

__all__ = [
    "Driver",
    "ExecutionResult",
    "Session",
    "MySQLDriver",
    "PostgresDriver",
    "QueryProfiler",
    "DriverFactory",
]
