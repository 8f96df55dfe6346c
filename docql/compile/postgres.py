"""PostgreSQL dialect compiler."""

from __future__ import annotations

import re
from typing import Any

from docql.compile.base import (
    DOCUMENT_COLUMN,
    ROW_ID_COLUMN,
    CompiledSQL,
    SQLCompiler,
    split_path,
    sql_literal,
)
from docql.schema.options import IndexDescription

_INDEX_KEY = re.compile(
    r"data (?P<op>->>|#>>) '(?P<path>(?:[^']|'')*)'::text(?:\[\])?\)+(?P<desc> DESC)?"
)


class PostgresCompiler(SQLCompiler):
    """Compiles document operations to PostgreSQL-flavoured SQL.

    Documents live in a ``JSONB`` column.  Field access uses ``->>`` for
    top-level fields and ``#>>`` for dotted paths, both of which yield text
    (JSON ``null`` and missing fields become SQL ``NULL``).  Comparisons
    check ``jsonb_typeof`` first and only cast JSON numbers to ``NUMERIC``,
    so a string in a numeric field never aborts the statement.

    Parameter style: ``%s`` – psycopg positional execution.
    """

    @property
    def dialect_name(self) -> str:
        return "postgres"

    def quote_identifier(self, name: str) -> str:
        escaped = name.replace('"', '""').replace("%", "%%")
        return f'"{escaped}"'

    # ------------------------------------------------------------------
    # Document field access
    # ------------------------------------------------------------------

    def field_path(self, path: str) -> str:
        parts = split_path(path)
        if len(parts) == 1:
            return f"{DOCUMENT_COLUMN}->>{sql_literal(parts[0])}"
        return f"{DOCUMENT_COLUMN} #>> {self._path_array(parts)}"

    def json_path(self, path: str) -> str:
        parts = split_path(path)
        if len(parts) == 1:
            return f"{DOCUMENT_COLUMN}->{sql_literal(parts[0])}"
        return f"{DOCUMENT_COLUMN} #> {self._path_array(parts)}"

    def has_json_type(self, path: str, json_type: str) -> str:
        return f"jsonb_typeof({self.json_path(path)}) = {sql_literal(json_type)}"

    def numeric(self, expr: str) -> str:
        return f"CAST({expr} AS NUMERIC)"

    def json_param(self) -> str:
        return f"{self.param_placeholder()}::jsonb"

    def _path_array(self, parts: list[str]) -> str:
        items = []
        for part in parts:
            if self._is_simple_key(part):
                items.append(part)
            else:
                escaped = part.replace("\\", "\\\\").replace('"', '\\"')
                items.append(f'"{escaped}"')
        return sql_literal("{" + ",".join(items) + "}")

    # ------------------------------------------------------------------
    # DML
    # ------------------------------------------------------------------

    def insert_sql(self, table: str, count: int) -> str:
        return f"{super().insert_sql(table, count)} RETURNING {ROW_ID_COLUMN}"

    # ------------------------------------------------------------------
    # DDL and catalog
    # ------------------------------------------------------------------

    def create_table_sql(self, table: str) -> str:
        return (
            f"CREATE TABLE IF NOT EXISTS {self.quote_identifier(table)} "
            f"({ROW_ID_COLUMN} SERIAL PRIMARY KEY, {DOCUMENT_COLUMN} JSONB)"
        )

    def table_exists_query(self, table: str) -> CompiledSQL:
        return CompiledSQL(
            sql=f"SELECT to_regclass({self.param_placeholder()}) IS NOT NULL AS present",
            params=['"{}"'.format(table.replace('"', '""'))],
            dialect=self.dialect_name,
        )

    def list_tables_query(self) -> CompiledSQL:
        return CompiledSQL(
            sql="SELECT tablename AS name FROM pg_tables WHERE schemaname = current_schema()",
            dialect=self.dialect_name,
        )

    def create_index_sql(
        self, table: str, name: str, spec: dict[str, int], unique: bool
    ) -> str:
        keys = ", ".join(
            f"({self.field_path(field)}){' DESC' if direction == -1 else ''}"
            for field, direction in spec.items()
        )
        prefix = "CREATE UNIQUE INDEX" if unique else "CREATE INDEX"
        return (
            f"{prefix} IF NOT EXISTS {self.quote_identifier(name)} "
            f"ON {self.quote_identifier(table)} ({keys})"
        )

    def drop_index_sql(self, table: str, name: str) -> str:
        return f"DROP INDEX IF EXISTS {self.quote_identifier(name)}"

    def list_indexes_query(self, table: str) -> CompiledSQL:
        return CompiledSQL(
            sql=(
                "SELECT indexname AS name, indexdef AS definition FROM pg_indexes "
                f"WHERE schemaname = current_schema() AND tablename = {self.param_placeholder()}"
            ),
            params=[table],
            dialect=self.dialect_name,
        )

    def parse_indexes(self, rows: list[dict[str, Any]]) -> list[IndexDescription]:
        indexes: list[IndexDescription] = []
        for row in rows:
            definition = row.get("definition") or ""
            key: dict[str, int] = {}
            for match in _INDEX_KEY.finditer(definition):
                path = match.group("path").replace("''", "'")
                if match.group("op") == "#>>":
                    path = ".".join(p.strip('"') for p in path.strip("{}").split(","))
                key[path] = -1 if match.group("desc") else 1
            indexes.append(
                IndexDescription(
                    name=row["name"],
                    key=key,
                    unique="UNIQUE" in definition,
                )
            )
        return indexes
