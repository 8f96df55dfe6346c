"""MySQL driver built on aiomysql."""
from __future__ import annotations

from typing import Any, ClassVar

import aiomysql
import pymysql

from docql.drivers.base import Driver, ExecutionResult, Session


class MySQLDriver(Driver):
    """Executes compiled SQL on an aiomysql pool.

    Pooled connections run in autocommit mode; sessions open an explicit
    transaction with ``BEGIN``.  ``JSON`` columns come back as text and are
    decoded by the caller.  Generated row ids are derived from
    ``lastrowid``, which MySQL reports for the first row of a multi-row
    INSERT.
    """

    dialect: ClassVar[str] = "mysql"
    label: ClassVar[str] = "MySQL"
    connect_error_code: ClassVar[str] = "MYSQL_CONNECT"
    query_error_code: ClassVar[str] = "MYSQL_QUERY"
    driver_errors: ClassVar[tuple[type[BaseException], ...]] = (pymysql.err.MySQLError,)

    _pool: aiomysql.Pool | None = None

    def _require_pool(self) -> aiomysql.Pool:
        if self._pool is None:
            raise self._not_connected()
        return self._pool

    async def _open_pool(self) -> None:
        cfg = self._config
        self._pool = await aiomysql.create_pool(
            host=cfg.host,
            port=cfg.port_for(self.dialect),
            user=cfg.user,
            password=cfg.password,
            db=cfg.database,
            minsize=cfg.min_pool_size,
            maxsize=cfg.pool_size,
            connect_timeout=cfg.connect_timeout,
            autocommit=True,
            cursorclass=aiomysql.DictCursor,
            charset="utf8mb4",
        )

    async def _close_pool(self) -> None:
        if self._pool is not None:
            self._pool.close()
            await self._pool.wait_closed()
            self._pool = None

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    @staticmethod
    async def _fetch(conn: aiomysql.Connection, sql: str, params: tuple[Any, ...]) -> ExecutionResult:
        async with conn.cursor() as cur:
            await cur.execute(sql, params)
            rows = await cur.fetchall() if cur.description else []
            return ExecutionResult(
                rows=list(rows), rowcount=cur.rowcount, last_row_id=cur.lastrowid
            )

    async def _execute(
        self, sql: str, params: tuple[Any, ...], session: Session | None
    ) -> ExecutionResult:
        if session is not None:
            return await self._fetch(session.connection, sql, params)
        async with self._require_pool().acquire() as conn:
            return await self._fetch(conn, sql, params)

    def _inserted_ids(self, result: ExecutionResult, count: int) -> list[int]:
        if result.last_row_id is None:
            return []
        return [result.last_row_id + offset for offset in range(count)]

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def _begin(self, isolation_level: str | None) -> Session:
        pool = self._require_pool()
        conn = await pool.acquire()
        try:
            if isolation_level is not None:
                async with conn.cursor() as cur:
                    # applies to the next transaction only
                    await cur.execute(f"SET TRANSACTION ISOLATION LEVEL {isolation_level}")
            await conn.begin()
        except Exception:
            pool.release(conn)
            raise
        return Session(connection=conn, dialect=self.dialect, isolation_level=isolation_level)

    async def _commit(self, session: Session) -> None:
        await session.connection.commit()

    async def _rollback(self, session: Session) -> None:
        await session.connection.rollback()

    async def _release(self, session: Session) -> None:
        self._require_pool().release(session.connection)
