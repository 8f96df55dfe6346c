"""Document store adapter abstractions: Session, ExecutionResult and the Driver ABC.

A ``Driver`` wraps one native async driver and its connection pool.  It
executes compiled SQL, hands out transaction sessions and runs the
collection / index DDL produced by its dialect's
:class:`~docql.compile.base.SQLCompiler`.

Every engine failure surfaces as :class:`~docql.errors.QueryExecutionError`
(or :class:`~docql.errors.DocQLConnectionError` while connecting) with the
driver exception kept on ``original_error``, so callers handle one error
kind whatever the dialect.
"""
from __future__ import annotations

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Sequence
from dataclasses import dataclass, field
from typing import Any, ClassVar, TypeVar

from docql.compile.base import CompiledSQL, SQLCompiler
from docql.compile.registry import CompilerFactory
from docql.drivers.profiler import QueryProfiler
from docql.errors import DocQLConnectionError, QueryExecutionError, TransactionError
from docql.schema.config import ConnectionConfig
from docql.schema.options import IndexDescription, IndexOptions

logger = logging.getLogger(__name__)

T = TypeVar("T")

_SAVEPOINT_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}$")

ISOLATION_LEVELS: frozenset[str] = frozenset(
    ["READ UNCOMMITTED", "READ COMMITTED", "REPEATABLE READ", "SERIALIZABLE"]
)


@dataclass
class ExecutionResult:
    """Raw outcome of one statement."""

    rows: list[dict[str, Any]] = field(default_factory=list)
    rowcount: int = -1
    last_row_id: int | None = None


@dataclass
class Session:
    """Exclusive handle over one pooled connection and its open transaction.

    Attributes:
        connection: The native connection checked out of the pool.
        dialect: Dialect of the owning driver.
        isolation_level: Isolation level requested at start, if any.
        released: Set once the connection went back to the pool.
    """

    connection: Any
    dialect: str
    isolation_level: str | None = None
    released: bool = False


def normalize_isolation_level(level: str | None) -> str | None:
    if level is None:
        return None
    normalized = " ".join(level.replace("_", " ").upper().split())
    if normalized not in ISOLATION_LEVELS:
        raise TransactionError(
            f"Unsupported isolation level: '{level}'.", code="INVALID_ISOLATION_LEVEL"
        )
    return normalized


class Driver(ABC):
    """Abstract base for dialect-specific document store adapters.

    Subclasses provide the pool lifecycle, statement execution and session
    primitives; DDL, savepoints and health checks are shared.

    Args:
        config: Connection parameters.
        profiler: Statement profiler; a default one is created if omitted.
    """

    dialect: ClassVar[str]
    label: ClassVar[str]
    connect_error_code: ClassVar[str]
    query_error_code: ClassVar[str]
    driver_errors: ClassVar[tuple[type[BaseException], ...]] = ()

    def __init__(
        self,
        config: ConnectionConfig,
        profiler: QueryProfiler | None = None,
    ) -> None:
        self._config = config
        self._compiler = CompilerFactory.create(self.dialect)
        self._profiler = profiler or QueryProfiler()

    @property
    def compiler(self) -> SQLCompiler:
        return self._compiler

    @property
    def profiler(self) -> QueryProfiler:
        return self._profiler

    def get_dialect(self) -> str:
        """Return the SQL dialect name (``'postgres'`` or ``'mysql'``)."""
        return self.dialect

    # ------------------------------------------------------------------
    # Dialect hooks
    # ------------------------------------------------------------------

    @abstractmethod
    async def _open_pool(self) -> None:
        """Create the native pool and wait until it can serve connections."""

    @abstractmethod
    async def _close_pool(self) -> None:
        """Close the native pool."""

    @abstractmethod
    async def _execute(
        self, sql: str, params: tuple[Any, ...], session: Session | None
    ) -> ExecutionResult:
        """Run one statement on the session connection or a pooled one."""

    @abstractmethod
    async def _begin(self, isolation_level: str | None) -> Session:
        """Check a connection out of the pool and open a transaction on it."""

    @abstractmethod
    async def _commit(self, session: Session) -> None: ...

    @abstractmethod
    async def _rollback(self, session: Session) -> None: ...

    @abstractmethod
    async def _release(self, session: Session) -> None:
        """Return the session connection to the pool."""

    @abstractmethod
    def _inserted_ids(self, result: ExecutionResult, count: int) -> list[int]:
        """Extract generated row ids from an INSERT result."""

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the pool, retrying ``connect_retries`` times with ``retry_delay``.

        Raises:
            DocQLConnectionError: If every attempt fails.
        """
        attempts = self._config.retries_for(self.dialect)
        for attempt in range(1, attempts + 1):
            try:
                await self._open_pool()
            except (*self.driver_errors, OSError, asyncio.TimeoutError) as exc:
                if attempt == attempts:
                    raise DocQLConnectionError(
                        f"Failed to connect to {self.label} after {attempts} attempt(s)",
                        code=self.connect_error_code,
                        original_error=exc,
                    ) from exc
                logger.warning(
                    "%s connection attempt %d/%d failed: %s", self.label, attempt, attempts, exc
                )
                await asyncio.sleep(self._config.retry_delay)
            else:
                logger.info("Connected to %s at %s", self.label, self._config.host)
                return

    async def disconnect(self) -> None:
        await self._close_pool()
        logger.info("Disconnected from %s", self.label)

    async def health_check(self) -> bool:
        """Return whether the pool can run ``SELECT 1``; never raises."""
        try:
            await self._execute("SELECT 1", (), None)
        except Exception as exc:  # health checks report instead of propagating
            logger.error("%s health check failed: %s", self.label, exc)
            return False
        return True

    def _not_connected(self) -> DocQLConnectionError:
        return DocQLConnectionError(
            f"{self.label} driver is not connected; call connect() first",
            code="NOT_CONNECTED",
        )

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute(
        self,
        sql: str,
        params: Sequence[Any] | None = None,
        session: Session | None = None,
    ) -> ExecutionResult:
        bound = tuple(params or ())
        return await self._guard(
            "query",
            self._profiler.profile(sql, bound, lambda: self._execute(sql, bound, session)),
            sql,
        )

    async def query(
        self,
        sql: str,
        params: Sequence[Any] | None = None,
        session: Session | None = None,
    ) -> list[dict[str, Any]]:
        """Execute parameterized SQL and return its rows as dicts."""
        result = await self.execute(sql, params, session)
        return result.rows

    async def run(self, statement: CompiledSQL, session: Session | None = None) -> list[dict[str, Any]]:
        """Execute a compiled statement and return its rows."""
        return await self.query(statement.sql, statement.params, session)

    async def insert(self, statement: CompiledSQL, count: int, session: Session | None = None) -> list[int]:
        """Execute a compiled INSERT and return the generated row ids."""
        result = await self.execute(statement.sql, statement.params, session)
        return self._inserted_ids(result, count)

    async def _guard(self, action: str, awaitable: Awaitable[T], sql: str | None = None) -> T:
        try:
            return await awaitable
        except self.driver_errors as exc:
            raise QueryExecutionError(
                f"{self.label} {action} failed",
                code=self.query_error_code,
                original_error=exc,
                sql=sql,
            ) from exc

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def start_session(self, isolation_level: str | None = None) -> Session:
        """Reserve a connection and begin a transaction on it."""
        level = normalize_isolation_level(isolation_level)
        session = await self._guard("begin", self._begin(level))
        logger.debug("Started %s session (isolation=%s)", self.label, level or "default")
        return session

    async def commit(self, session: Session) -> None:
        await self._guard("commit", self._commit(session))

    async def rollback(self, session: Session) -> None:
        await self._guard("rollback", self._rollback(session))

    async def release(self, session: Session) -> None:
        """Return the session connection to the pool; later calls are no-ops."""
        if session.released:
            return
        session.released = True
        await self._guard("release", self._release(session))

    async def create_savepoint(self, session: Session, name: str) -> None:
        await self.query(self._savepoint("create", name), session=session)

    async def release_savepoint(self, session: Session, name: str) -> None:
        await self.query(self._savepoint("release", name), session=session)

    async def rollback_to_savepoint(self, session: Session, name: str) -> None:
        await self.query(self._savepoint("rollback", name), session=session)

    def _savepoint(self, action: str, name: str) -> str:
        if not _SAVEPOINT_NAME.match(name):
            raise TransactionError(f"Invalid savepoint name: '{name}'.", code="INVALID_SAVEPOINT")
        return self._compiler.savepoint_sql(action, name)

    # ------------------------------------------------------------------
    # Collections (tables)
    # ------------------------------------------------------------------

    async def table_exists(self, table: str) -> bool:
        rows = await self.run(self._compiler.table_exists_query(table))
        return bool(rows and rows[0]["present"])

    async def create_table(self, table: str) -> None:
        await self.query(self._compiler.create_table_sql(table))

    async def drop_table(self, table: str) -> None:
        await self.query(self._compiler.drop_table_sql(table))

    async def list_tables(self) -> list[str]:
        rows = await self.run(self._compiler.list_tables_query())
        return [str(row["name"]) for row in rows]

    # ------------------------------------------------------------------
    # Indexes
    # ------------------------------------------------------------------

    async def create_index(
        self,
        table: str,
        spec: dict[str, int],
        options: IndexOptions | None = None,
    ) -> str:
        """Create an expression index over document fields and return its name."""
        options = options or IndexOptions()
        name = options.name or "idx_" + "_".join(f.replace(".", "_") for f in spec)
        await self.query(self._compiler.create_index_sql(table, name, spec, options.unique))
        return name

    async def drop_index(self, table: str, name: str) -> None:
        await self.query(self._compiler.drop_index_sql(table, name))

    async def list_indexes(self, table: str) -> list[IndexDescription]:
        rows = await self.run(self._compiler.list_indexes_query(table))
        return self._compiler.parse_indexes(rows)
