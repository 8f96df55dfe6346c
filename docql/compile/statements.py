"""Statement-level SQL builders for the façade verbs.

``DocumentStatements`` assembles complete statements from the clause
pieces: the WHERE fragment from :class:`~docql.compile.predicate.PredicateBuilder`,
ORDER BY on JSON-typed field paths, and the dialect's paging syntax.  A
single :class:`~docql.compile.predicate.ParamCollector` is created per
statement and bound in text order, so placeholders and params always line
up.

Update and delete statements are keyed on the document's ``id`` field and
rewrite / remove one row at a time.
"""
from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from docql.compile.base import DOCUMENT_COLUMN, CompiledSQL, SQLCompiler
from docql.compile.predicate import ParamCollector, PredicateBuilder
from docql.schema.expressions import ID_FIELD


def encode_document(document: Mapping[str, Any]) -> str:
    """Serialize a document into the blob stored in the ``data`` column."""
    return json.dumps(document)


def decode_document(value: Any) -> dict[str, Any]:
    """Decode a ``data`` column value into a document.

    psycopg already decodes ``JSONB`` into dicts; aiomysql returns ``JSON``
    columns as text.
    """
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8")
    if isinstance(value, str):
        return json.loads(value)
    return dict(value)


class DocumentStatements:
    """Builds the statements issued by :class:`~docql.client.DocQL`.

    Args:
        compiler: Dialect-specific compiler.
        strict: Forwarded to the predicate builder.
    """

    def __init__(self, compiler: SQLCompiler, strict: bool = False) -> None:
        self._compiler = compiler
        self._strict = strict

    @property
    def compiler(self) -> SQLCompiler:
        return self._compiler

    # ------------------------------------------------------------------
    # Clause helpers
    # ------------------------------------------------------------------

    def new_params(self) -> ParamCollector:
        return ParamCollector(self._compiler.param_placeholder())

    def where(self, filt: Mapping[str, Any] | None, params: ParamCollector) -> str:
        """Return ``WHERE <clause>`` or ``""`` for an empty filter."""
        clause = PredicateBuilder(self._compiler, params, self._strict).build(filt)
        return f"WHERE {clause}" if clause else ""

    def order_by(
        self,
        sort: Mapping[str, Any] | None,
        aliases: frozenset[str] = frozenset(),
    ) -> str:
        """Return ``ORDER BY ...``; 1 sorts ascending, anything else descending.

        Keys listed in ``aliases`` name output columns rather than document
        fields.
        """
        if not sort:
            return ""
        items = []
        for key, direction in sort.items():
            if key in aliases:
                expr = self._compiler.quote_identifier(key)
            else:
                expr = self._compiler.json_path(key)
            items.append(f"{expr} {'ASC' if direction == 1 else 'DESC'}")
        return f"ORDER BY {', '.join(items)}"

    def assemble(self, parts: list[str], params: ParamCollector) -> CompiledSQL:
        return CompiledSQL(
            sql="\n".join(p for p in parts if p),
            params=params.values,
            dialect=self._compiler.dialect_name,
        )

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def select_documents(
        self,
        collection: str,
        filt: Mapping[str, Any] | None = None,
        sort: Mapping[str, Any] | None = None,
        limit: int | None = None,
        skip: int | None = None,
    ) -> CompiledSQL:
        params = self.new_params()
        parts = [
            f"SELECT {DOCUMENT_COLUMN} FROM {self._compiler.quote_identifier(collection)}",
            self.where(filt, params),
            self.order_by(sort),
            *self._compiler.limit_offset(limit, skip),
        ]
        return self.assemble(parts, params)

    def count_documents(
        self, collection: str, filt: Mapping[str, Any] | None = None
    ) -> CompiledSQL:
        params = self.new_params()
        parts = [
            f"SELECT COUNT(*) AS count FROM {self._compiler.quote_identifier(collection)}",
            self.where(filt, params),
        ]
        return self.assemble(parts, params)

    def insert_documents(
        self, collection: str, documents: list[Mapping[str, Any]]
    ) -> CompiledSQL:
        return CompiledSQL(
            sql=self._compiler.insert_sql(collection, len(documents)),
            params=[encode_document(d) for d in documents],
            dialect=self._compiler.dialect_name,
        )

    def update_document(
        self, collection: str, doc_id: Any, document: Mapping[str, Any]
    ) -> CompiledSQL:
        params = self.new_params()
        params.bind(encode_document(document))
        parts = [
            f"UPDATE {self._compiler.quote_identifier(collection)} "
            f"SET {DOCUMENT_COLUMN} = {self._compiler.json_param()}",
            self.where({ID_FIELD: doc_id}, params),
        ]
        return self.assemble(parts, params)

    def delete_document(self, collection: str, doc_id: Any) -> CompiledSQL:
        params = self.new_params()
        parts = [
            f"DELETE FROM {self._compiler.quote_identifier(collection)}",
            self.where({ID_FIELD: doc_id}, params),
        ]
        return self.assemble(parts, params)
