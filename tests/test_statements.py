"""Unit tests for DocumentStatements (both dialects)."""

from __future__ import annotations

import json

from docql.compile.mysql import MySQLCompiler
from docql.compile.postgres import PostgresCompiler
from docql.compile.statements import DocumentStatements, decode_document, encode_document


def _pg() -> DocumentStatements:
    return DocumentStatements(PostgresCompiler())


def _my() -> DocumentStatements:
    return DocumentStatements(MySQLCompiler())


def test_select_with_every_clause():
    r = _pg().select_documents("users", {"name": "ada"}, {"age": 1, "name": -1}, limit=10, skip=5)
    assert r.sql == (
        'SELECT data FROM "users"\n'
        "WHERE (CASE WHEN jsonb_typeof(data->'name') = 'string' THEN data->>'name' END = %s)\n"
        "ORDER BY data->'age' ASC, data->'name' DESC\n"
        "LIMIT 10\n"
        "OFFSET 5"
    )
    assert r.params == ["ada"]
    assert r.dialect == "postgres"


def test_select_without_filter_has_no_where():
    r = _my().select_documents("users")
    assert r.sql == "SELECT data FROM `users`"
    assert r.params == []


def test_zero_skip_emits_no_offset():
    assert "OFFSET" not in _pg().select_documents("users", limit=3, skip=0).sql


def test_count():
    r = _pg().count_documents("users", {"age": {"$gte": 18}})
    assert r.sql == (
        'SELECT COUNT(*) AS count FROM "users"\n'
        "WHERE (CASE WHEN jsonb_typeof(data->'age') = 'number' "
        "THEN CAST(data->>'age' AS NUMERIC) END >= %s)"
    )
    assert r.params == [18]


def test_insert_many_rows_postgres_returns_ids():
    docs = [{"id": "a"}, {"id": "b"}]
    r = _pg().insert_documents("users", docs)
    assert r.sql == 'INSERT INTO "users" (data) VALUES (%s::jsonb), (%s::jsonb) RETURNING id'
    assert [json.loads(p) for p in r.params] == docs


def test_insert_mysql():
    r = _my().insert_documents("users", [{"id": "a"}])
    assert r.sql == "INSERT INTO `users` (data) VALUES (CAST(%s AS JSON))"


def test_update_binds_blob_before_key():
    r = _pg().update_document("users", "abc", {"id": "abc", "n": 1})
    assert r.sql == (
        'UPDATE "users" SET data = %s::jsonb\n'
        "WHERE (CASE WHEN jsonb_typeof(data->'id') = 'string' THEN data->>'id' END = %s)"
    )
    assert r.params == ['{"id": "abc", "n": 1}', "abc"]


def test_update_with_numeric_id_only_casts_json_numbers():
    # Rows holding a generated string id sit in the same table; the cast
    # must never see them.
    r = _pg().update_document("users", 7, {"id": 7})
    assert r.sql.endswith(
        "WHERE (CASE WHEN jsonb_typeof(data->'id') = 'number' "
        "THEN CAST(data->>'id' AS NUMERIC) END = %s)"
    )
    assert r.params[-1] == 7


def test_mysql_numeric_id_delete_skips_string_ids():
    r = _my().delete_document("users", 6)
    assert r.sql == (
        "DELETE FROM `users`\n"
        "WHERE (CASE WHEN JSON_TYPE(JSON_EXTRACT(data, '$.id')) "
        "IN ('INTEGER', 'UNSIGNED INTEGER', 'DOUBLE', 'DECIMAL') "
        "THEN CAST(JSON_UNQUOTE(JSON_EXTRACT(data, '$.id')) AS DECIMAL(65, 10)) END = %s)"
    )
    assert r.params == [6]


def test_delete_keyed_on_id():
    r = _my().delete_document("users", "abc")
    assert r.sql == (
        "DELETE FROM `users`\n"
        "WHERE (CASE WHEN JSON_TYPE(JSON_EXTRACT(data, '$.id')) IN ('STRING') "
        "THEN JSON_UNQUOTE(JSON_EXTRACT(data, '$.id')) END = %s)"
    )
    assert r.params == ["abc"]


def test_order_by_aliases_use_identifiers():
    assert _pg().order_by({"total": -1}, frozenset({"total"})) == 'ORDER BY "total" DESC'
    assert _pg().order_by(None) == ""


def test_encode_decode():
    doc = {"id": "x", "tags": ["a"], "nested": {"k": None}}
    text = encode_document(doc)
    assert decode_document(text) == doc
    assert decode_document(text.encode("utf-8")) == doc
    assert decode_document(doc) == doc
