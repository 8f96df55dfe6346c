"""MySQL dialect compiler."""

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

#: MySQL requires a LIMIT whenever OFFSET is used; this is its documented
#: "no limit" value.
_MAX_LIMIT = 18446744073709551615

_INDEX_PATH = re.compile(r"'\$\.((?:[^']|'')*)'")

#: ``JSON_TYPE`` names for each JSON type a comparison operand can have.
_JSON_TYPES = {
    "number": "'INTEGER', 'UNSIGNED INTEGER', 'DOUBLE', 'DECIMAL'",
    "string": "'STRING'",
    "boolean": "'BOOLEAN'",
}


class MySQLCompiler(SQLCompiler):
    """Compiles document operations to MySQL-flavoured SQL.

    Documents live in a ``JSON`` column.  Field access uses
    ``JSON_UNQUOTE(JSON_EXTRACT(data, '$.path'))``, which yields text.
    Comparisons check ``JSON_TYPE`` first so that a string is never coerced
    to a number (``'6abc'`` would otherwise equal ``6``).  This is also the
    fallback form for unknown dialect names.

    Parameter style: ``%s`` – aiomysql / PyMySQL positional execution.

    Identifiers are quoted with backticks (`` ` ``) rather than double-quotes.
    """

    @property
    def dialect_name(self) -> str:
        return "mysql"

    def quote_identifier(self, name: str) -> str:
        escaped = name.replace("`", "``").replace("%", "%%")
        return f"`{escaped}`"

    # ------------------------------------------------------------------
    # Document field access
    # ------------------------------------------------------------------

    def field_path(self, path: str) -> str:
        return f"JSON_UNQUOTE({self.json_path(path)})"

    def json_path(self, path: str) -> str:
        return f"JSON_EXTRACT({DOCUMENT_COLUMN}, {self._json_path_literal(path)})"

    def has_json_type(self, path: str, json_type: str) -> str:
        return f"JSON_TYPE({self.json_path(path)}) IN ({_JSON_TYPES[json_type]})"

    def numeric(self, expr: str) -> str:
        return f"CAST({expr} AS DECIMAL(65, 10))"

    def is_null(self, path: str) -> str:
        # JSON_UNQUOTE turns a JSON null into the string 'null'.
        extracted = self.json_path(path)
        return f"({extracted} IS NULL OR JSON_TYPE({extracted}) = 'NULL')"

    def is_not_null(self, path: str) -> str:
        extracted = self.json_path(path)
        return f"({extracted} IS NOT NULL AND JSON_TYPE({extracted}) <> 'NULL')"

    def json_param(self) -> str:
        return f"CAST({self.param_placeholder()} AS JSON)"

    def _json_path_literal(self, path: str) -> str:
        items = []
        for part in split_path(path):
            if self._is_simple_key(part):
                items.append(part)
            else:
                escaped = part.replace("\\", "\\\\").replace('"', '\\"')
                items.append(f'"{escaped}"')
        return sql_literal("$." + ".".join(items))

    # ------------------------------------------------------------------
    # Paging
    # ------------------------------------------------------------------

    def limit_offset(self, limit: int | None, offset: int | None) -> list[str]:
        if offset and limit is None:
            limit = _MAX_LIMIT
        return super().limit_offset(limit, offset)

    # ------------------------------------------------------------------
    # DDL and catalog
    # ------------------------------------------------------------------

    def create_table_sql(self, table: str) -> str:
        return (
            f"CREATE TABLE IF NOT EXISTS {self.quote_identifier(table)} "
            f"({ROW_ID_COLUMN} INT AUTO_INCREMENT PRIMARY KEY, {DOCUMENT_COLUMN} JSON)"
        )

    def table_exists_query(self, table: str) -> CompiledSQL:
        return CompiledSQL(
            sql=(
                "SELECT COUNT(*) > 0 AS present FROM information_schema.tables "
                f"WHERE table_schema = DATABASE() AND table_name = {self.param_placeholder()}"
            ),
            params=[table],
            dialect=self.dialect_name,
        )

    def list_tables_query(self) -> CompiledSQL:
        return CompiledSQL(
            sql=(
                "SELECT table_name AS name FROM information_schema.tables "
                "WHERE table_schema = DATABASE() AND table_type = 'BASE TABLE'"
            ),
            dialect=self.dialect_name,
        )

    def create_index_sql(
        self, table: str, name: str, spec: dict[str, int], unique: bool
    ) -> str:
        # JSON_UNQUOTE yields LONGTEXT, which cannot be indexed without a cast.
        keys = ", ".join(
            f"(CAST({self.field_path(field)} AS CHAR(255)) COLLATE utf8mb4_bin)"
            f"{' DESC' if direction == -1 else ''}"
            for field, direction in spec.items()
        )
        prefix = "CREATE UNIQUE INDEX" if unique else "CREATE INDEX"
        return f"{prefix} {self.quote_identifier(name)} ON {self.quote_identifier(table)} ({keys})"

    def drop_index_sql(self, table: str, name: str) -> str:
        return f"DROP INDEX {self.quote_identifier(name)} ON {self.quote_identifier(table)}"

    def list_indexes_query(self, table: str) -> CompiledSQL:
        return CompiledSQL(
            sql=(
                "SELECT index_name AS name, non_unique AS non_unique, "
                "column_name AS column_name, expression AS expression, "
                "collation AS collation FROM information_schema.statistics "
                f"WHERE table_schema = DATABASE() AND table_name = {self.param_placeholder()} "
                "ORDER BY index_name, seq_in_index"
            ),
            params=[table],
            dialect=self.dialect_name,
        )

    def parse_indexes(self, rows: list[dict[str, Any]]) -> list[IndexDescription]:
        by_name: dict[str, IndexDescription] = {}
        for row in rows:
            name = row["name"]
            index = by_name.setdefault(
                name, IndexDescription(name=name, unique=not row.get("non_unique"))
            )
            direction = -1 if row.get("collation") == "D" else 1
            match = _INDEX_PATH.search(row.get("expression") or "")
            if match:
                field = ".".join(p.strip('"') for p in match.group(1).replace("''", "'").split("."))
            else:
                field = row.get("column_name")
            if field:
                index.key[field] = direction
        return list(by_name.values())
