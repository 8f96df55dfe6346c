"""Compiler abstractions: CompiledSQL, CompiledClause and the SQLCompiler ABC.

The Template Method pattern (GoF) is used:
- ``SQLCompiler`` owns every piece of dialect-specific SQL text: the
  path-extraction expression that projects a field out of the document
  blob, type coercion for comparisons, paging syntax and the DDL used by
  the drivers.
- ``PostgresCompiler`` and ``MySQLCompiler`` override the dialect steps.

The predicate, pipeline and statement builders never branch on the dialect
name; they call these methods instead.
"""
from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, NamedTuple

from docql.schema.options import IndexDescription

#: Physical column holding the serialized document.
DOCUMENT_COLUMN = "data"
#: Physical column holding the driver-generated row identifier.
ROW_ID_COLUMN = "id"

_SIMPLE_KEY = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class CompiledClause(NamedTuple):
    """A SQL fragment plus its positional parameters.

    Unpacks as ``clause, params = compile_filter(...)``.
    """

    clause: str
    params: list[Any]


@dataclass
class CompiledSQL:
    """A complete statement ready for execution.

    Attributes:
        sql: The compiled SQL string with positional placeholders.
        params: Values bound to the placeholders, in placeholder order.
        dialect: The target dialect (``'postgres'`` or ``'mysql'``).
    """

    sql: str
    params: list[Any] = field(default_factory=list)
    dialect: str = ""


def split_path(path: str) -> list[str]:
    """Split a dotted field path into its segments."""
    return [p for p in path.split(".") if p]


def sql_literal(text: str) -> str:
    """Return ``text`` as a single-quoted SQL string literal.

    ``%`` is doubled because both drivers use ``%s`` placeholders and run
    the statement text through ``%`` formatting.
    """
    escaped = text.replace("'", "''").replace("%", "%%")
    return f"'{escaped}'"


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class SQLCompiler(ABC):
    """Abstract base for dialect-specific SQL compilers.

    Subclasses implement the dialect-specific methods; the builders use this
    interface via the Strategy / Template Method patterns.
    """

    @property
    @abstractmethod
    def dialect_name(self) -> str:
        """Return the canonical dialect name (``'postgres'`` or ``'mysql'``)."""

    def param_placeholder(self) -> str:
        """Return the positional placeholder (``%s`` for psycopg and aiomysql)."""
        return "%s"

    @abstractmethod
    def quote_identifier(self, name: str) -> str:
        """Return a properly-quoted SQL identifier."""

    # ------------------------------------------------------------------
    # Document field access
    # ------------------------------------------------------------------

    @abstractmethod
    def field_path(self, path: str) -> str:
        """Return the expression projecting ``path`` out of the blob as text."""

    @abstractmethod
    def json_path(self, path: str) -> str:
        """Return the expression projecting ``path`` as a JSON-typed value."""

    @abstractmethod
    def has_json_type(self, path: str, json_type: str) -> str:
        """Return a condition true when the value at ``path`` has ``json_type``.

        Args:
            path: Dotted field path.
            json_type: One of ``'number'``, ``'string'`` or ``'boolean'``.
        """

    def json_type_of(self, value: Any) -> str | None:
        """Return the JSON type name of a scalar, or ``None`` for anything else."""
        if isinstance(value, bool):
            return "boolean"
        if is_number(value):
            return "number"
        if isinstance(value, str):
            return "string"
        return None

    def comparable(self, path: str, value: Any) -> str:
        """Return the expression at ``path`` to compare against ``value``.

        Stored values whose JSON type differs from ``value`` project to
        ``NULL``, so they never match and never reach a numeric cast.
        """
        json_type = self.json_type_of(value)
        if json_type == "number":
            return self.numeric_value(path)
        if json_type is not None:
            return f"CASE WHEN {self.has_json_type(path, json_type)} THEN {self.field_path(path)} END"
        return self.field_path(path)

    def numeric_value(self, path: str) -> str:
        """Numeric value at ``path``; ``NULL`` unless the stored value is a JSON number."""
        return (
            f"CASE WHEN {self.has_json_type(path, 'number')} "
            f"THEN {self.numeric(self.field_path(path))} END"
        )

    @abstractmethod
    def numeric(self, expr: str) -> str:
        """Cast a text expression to the dialect's exact numeric type."""

    def is_null(self, path: str) -> str:
        """Match a missing field or a JSON ``null`` at ``path``."""
        return f"{self.field_path(path)} IS NULL"

    def is_not_null(self, path: str) -> str:
        return f"{self.field_path(path)} IS NOT NULL"

    @abstractmethod
    def json_param(self) -> str:
        """Return the placeholder for a serialized JSON parameter."""

    def coerce_param(self, value: Any) -> Any:
        """Map a Python value onto the text form the path expression yields."""
        if isinstance(value, bool):
            return "true" if value else "false"
        return value

    # ------------------------------------------------------------------
    # Paging
    # ------------------------------------------------------------------

    def limit_offset(self, limit: int | None, offset: int | None) -> list[str]:
        """Return the LIMIT / OFFSET lines for a statement."""
        parts: list[str] = []
        if limit is not None:
            parts.append(f"LIMIT {int(limit)}")
        if offset:
            parts.append(f"OFFSET {int(offset)}")
        return parts

    # ------------------------------------------------------------------
    # DML
    # ------------------------------------------------------------------

    def insert_sql(self, table: str, count: int) -> str:
        values = ", ".join(f"({self.json_param()})" for _ in range(count))
        return f"INSERT INTO {self.quote_identifier(table)} ({DOCUMENT_COLUMN}) VALUES {values}"

    # ------------------------------------------------------------------
    # DDL
    # ------------------------------------------------------------------

    @abstractmethod
    def create_table_sql(self, table: str) -> str:
        """DDL for a collection table (row id + document blob)."""

    def drop_table_sql(self, table: str) -> str:
        return f"DROP TABLE IF EXISTS {self.quote_identifier(table)}"

    @abstractmethod
    def table_exists_query(self, table: str) -> CompiledSQL:
        """Catalog query returning one row with a boolean ``present`` column."""

    @abstractmethod
    def list_tables_query(self) -> CompiledSQL:
        """Catalog query returning one ``name`` column per table."""

    @abstractmethod
    def create_index_sql(
        self, table: str, name: str, spec: dict[str, int], unique: bool
    ) -> str:
        """DDL for an expression index over document fields."""

    @abstractmethod
    def drop_index_sql(self, table: str, name: str) -> str:
        """DDL dropping an index."""

    @abstractmethod
    def list_indexes_query(self, table: str) -> CompiledSQL:
        """Catalog query listing the indexes of ``table``."""

    @abstractmethod
    def parse_indexes(self, rows: list[dict[str, Any]]) -> list[IndexDescription]:
        """Turn :meth:`list_indexes_query` rows into index descriptions."""

    def savepoint_sql(self, action: str, name: str) -> str:
        statements = {
            "create": "SAVEPOINT {}",
            "release": "RELEASE SAVEPOINT {}",
            "rollback": "ROLLBACK TO SAVEPOINT {}",
        }
        return statements[action].format(self.quote_identifier(name))

    @staticmethod
    def _is_simple_key(key: str) -> bool:
        return bool(_SIMPLE_KEY.match(key))
