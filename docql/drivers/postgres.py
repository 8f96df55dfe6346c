"""PostgreSQL driver built on psycopg 3 and ``psycopg_pool``."""
from __future__ import annotations

from typing import Any, ClassVar

import psycopg
from psycopg import AsyncConnection, IsolationLevel
from psycopg.conninfo import make_conninfo
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from docql.drivers.base import Driver, ExecutionResult, Session

_ISOLATION: dict[str, IsolationLevel] = {
    "READ UNCOMMITTED": IsolationLevel.READ_UNCOMMITTED,
    "READ COMMITTED": IsolationLevel.READ_COMMITTED,
    "REPEATABLE READ": IsolationLevel.REPEATABLE_READ,
    "SERIALIZABLE": IsolationLevel.SERIALIZABLE,
}


class PostgresDriver(Driver):
    """Executes compiled SQL on a psycopg async connection pool.

    Rows come back as dicts (``dict_row``); ``JSONB`` columns are already
    decoded by psycopg.  Connecting is retried three times by default.
    """

    dialect: ClassVar[str] = "postgres"
    label: ClassVar[str] = "PostgreSQL"
    connect_error_code: ClassVar[str] = "PG_CONNECT"
    query_error_code: ClassVar[str] = "PG_QUERY"
    driver_errors: ClassVar[tuple[type[BaseException], ...]] = (psycopg.Error,)

    _pool: AsyncConnectionPool | None = None

    def _conninfo(self) -> str:
        cfg = self._config
        return make_conninfo(
            host=cfg.host,
            port=cfg.port_for(self.dialect),
            user=cfg.user,
            password=cfg.password,
            dbname=cfg.database,
        )

    def _require_pool(self) -> AsyncConnectionPool:
        if self._pool is None:
            raise self._not_connected()
        return self._pool

    async def _open_pool(self) -> None:
        pool = AsyncConnectionPool(
            self._conninfo(),
            min_size=self._config.min_pool_size,
            max_size=self._config.pool_size,
            kwargs={"row_factory": dict_row},
            open=False,
        )
        try:
            await pool.open(wait=True, timeout=self._config.connect_timeout)
        except Exception:
            await pool.close()
            raise
        self._pool = pool

    async def _close_pool(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    @staticmethod
    async def _fetch(conn: AsyncConnection[Any], sql: str, params: tuple[Any, ...]) -> ExecutionResult:
        async with conn.cursor() as cur:
            await cur.execute(sql, params)
            rows = await cur.fetchall() if cur.description else []
            return ExecutionResult(rows=list(rows), rowcount=cur.rowcount)

    async def _execute(
        self, sql: str, params: tuple[Any, ...], session: Session | None
    ) -> ExecutionResult:
        if session is not None:
            return await self._fetch(session.connection, sql, params)
        # pool.connection() commits on clean exit and rolls back on error
        async with self._require_pool().connection() as conn:
            return await self._fetch(conn, sql, params)

    def _inserted_ids(self, result: ExecutionResult, count: int) -> list[int]:
        return [int(row["id"]) for row in result.rows]

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def _begin(self, isolation_level: str | None) -> Session:
        pool = self._require_pool()
        conn = await pool.getconn()
        try:
            if isolation_level is not None:
                await conn.set_isolation_level(_ISOLATION[isolation_level])
        except Exception:
            await pool.putconn(conn)
            raise
        # psycopg opens the transaction implicitly on the first statement
        return Session(connection=conn, dialect=self.dialect, isolation_level=isolation_level)

    async def _commit(self, session: Session) -> None:
        await session.connection.commit()

    async def _rollback(self, session: Session) -> None:
        await session.connection.rollback()

    async def _release(self, session: Session) -> None:
        pool = self._require_pool()
        conn = session.connection
        try:
            if session.isolation_level is not None and not conn.closed:
                await conn.set_isolation_level(None)
        finally:
            await pool.putconn(conn)
