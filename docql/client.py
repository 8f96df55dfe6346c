"""The ``DocQL`` client: a document-store interface over a relational engine.

Each collection is a table with an auto-increment ``id`` row key and one
JSON ``data`` column holding the document.  Filters, sorts and pipelines are
compiled to parameterized SQL; updates are applied to decoded snapshots in
memory and written back one row at a time, keyed on the document ``id``.

Usage::

    async with DocQL({"driver": "postgres", "config": {...}}) as db:
        await db.insert_one("users", {"name": "ada", "age": 36})
        adults = await db.find("users", {"age": {"$gte": 18}},
                               FindOptions(sort={"age": -1}, limit=10))

Updates and deletes re-select before writing and are not atomic: a write
that lands between the select and the per-row statement is overwritten.
Wrap the call in :meth:`DocQL.transaction` when that matters.
"""
from __future__ import annotations

import binascii
import logging
import os
import time
from collections.abc import AsyncIterator, Awaitable, Callable, Mapping, Sequence
from contextlib import asynccontextmanager
from typing import Any, TypeVar

from docql.compile.pipeline import PipelineBuilder
from docql.compile.statements import DocumentStatements, decode_document
from docql.compile.update import UpdateApplier
from docql.drivers.base import Driver, Session
from docql.drivers.profiler import QueryProfiler
from docql.drivers.registry import DriverFactory
from docql.schema.config import ClientOptions
from docql.schema.expressions import ID_FIELD, LOGICAL_OPS, LogicalOp, normalize_key
from docql.schema.options import (
    Collection,
    CursorOptions,
    CursorPage,
    DeleteResult,
    FindOptions,
    IndexDescription,
    IndexOptions,
    InsertManyResult,
    InsertOneResult,
    UpdateOptions,
    UpdateResult,
)
from docql.transaction import transaction, with_savepoint, with_transaction
from docql.validate.schema_registry import SchemaRegistry

logger = logging.getLogger(__name__)

T = TypeVar("T")

Document = dict[str, Any]


def generate_object_id() -> str:
    """Generate a 24-char hex id prefixed with the current unix time."""
    ts = int(time.time())
    rand = binascii.b2a_hex(os.urandom(8)).decode("ascii")
    return f"{ts:08x}{rand}"[:24]


def project(document: Mapping[str, Any], projection: Mapping[str, Any] | None) -> Document:
    """Apply a find projection.

    Any truthy flag makes it an inclusion projection keeping only the
    flagged fields; if every flag is falsy the flagged fields are dropped.
    """
    if not projection:
        return dict(document)
    if any(projection.values()):
        return {k: document[k] for k, flag in projection.items() if flag and k in document}
    return {k: v for k, v in document.items() if k not in projection}


def equality_fields(filt: Mapping[str, Any] | None) -> Document:
    """Return the plain ``field: value`` equality pairs of a filter."""
    fields: Document = {}
    for key, value in (filt or {}).items():
        if key.startswith("$") or normalize_key(key) in LOGICAL_OPS:
            continue
        if isinstance(value, Mapping) and any(str(k).startswith("$") for k in value):
            continue
        fields[key] = value
    return fields


class DocQL:
    """Async document-store client for PostgreSQL and MySQL.

    Args:
        options: :class:`~docql.schema.config.ClientOptions` or a dict
            accepted by it.
        driver: Pre-built driver; when omitted one is created from
            ``options.driver``.

    Raises:
        ConfigurationError: If the options are invalid or name an
            unregistered driver.
    """

    def __init__(
        self,
        options: ClientOptions | dict[str, Any],
        driver: Driver | None = None,
    ) -> None:
        self._options = ClientOptions.parse(options)
        if driver is None:
            profiler = QueryProfiler(
                slow_query_threshold_ms=self._options.slow_query_threshold_ms,
                enabled=self._options.profile_queries,
                log_queries=self._options.log_queries,
            )
            driver = DriverFactory.create(self._options.driver, self._options.config, profiler)
        self._driver = driver

        strict = self._options.strict_operators
        self._statements = DocumentStatements(driver.compiler, strict)
        self._pipelines = PipelineBuilder(driver.compiler, strict)
        self._updates = UpdateApplier(strict)
        self._schemas = SchemaRegistry()

    @property
    def driver(self) -> Driver:
        return self._driver

    @property
    def schemas(self) -> SchemaRegistry:
        """Validators registered on this client."""
        return self._schemas

    def get_dialect(self) -> str:
        return self._driver.get_dialect()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        await self._driver.connect()

    async def disconnect(self) -> None:
        await self._driver.disconnect()

    async def __aenter__(self) -> DocQL:
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.disconnect()

    async def health_check(self) -> bool:
        return await self._driver.health_check()

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    async def create_collection(
        self, name: str, schema: Mapping[str, Any] | None = None
    ) -> Collection:
        """Create the backing table (if missing) and register ``schema``."""
        if schema is not None:
            self._schemas.register(name, schema)
        await self._driver.create_table(name)
        logger.info("Created collection '%s'", name)
        return Collection(name=name)

    async def drop_collection(self, name: str) -> None:
        await self._driver.drop_table(name)
        self._schemas.unregister(name)
        logger.info("Dropped collection '%s'", name)

    async def list_collections(self) -> list[str]:
        return await self._driver.list_tables()

    async def alter_collection(self, name: str, sql: str) -> None:
        """Run raw DDL against a collection's table.

        ``sql`` is executed verbatim; it must not come from untrusted input.
        """
        logger.info("Altering collection '%s'", name)
        await self._driver.query(sql)

    def register_schema(self, collection: str, schema: Mapping[str, Any]) -> None:
        self._schemas.register(collection, schema)

    def register_inferred_schema(self, collection: str, document: Mapping[str, Any]) -> Document:
        return self._schemas.register_inferred(collection, document)

    # ------------------------------------------------------------------
    # Inserts
    # ------------------------------------------------------------------

    async def _ensure_collection(self, collection: str) -> None:
        if not await self._driver.table_exists(collection):
            logger.debug("Creating missing collection '%s'", collection)
            await self._driver.create_table(collection)

    def _prepare(self, collection: str, doc: Mapping[str, Any]) -> Document:
        document = dict(doc)
        if document.get(ID_FIELD) is None:
            document[ID_FIELD] = generate_object_id()
        self._schemas.validate(collection, document)
        return document

    async def insert_one(
        self,
        collection: str,
        doc: Mapping[str, Any],
        session: Session | None = None,
    ) -> InsertOneResult:
        """Insert one document, creating the collection on first use.

        Raises:
            DocumentValidationError: If the collection has a schema and the
                document fails it.
        """
        document = self._prepare(collection, doc)
        await self._ensure_collection(collection)
        statement = self._statements.insert_documents(collection, [document])
        row_ids = await self._driver.insert(statement, 1, session)
        return InsertOneResult(
            inserted_id=document[ID_FIELD],
            row_id=row_ids[0] if row_ids else None,
            inserted=document,
        )

    async def insert_many(
        self,
        collection: str,
        docs: Sequence[Mapping[str, Any]],
        session: Session | None = None,
    ) -> InsertManyResult:
        """Insert several documents with a single multi-row INSERT."""
        if not docs:
            return InsertManyResult()
        documents = [self._prepare(collection, d) for d in docs]
        await self._ensure_collection(collection)
        statement = self._statements.insert_documents(collection, documents)
        row_ids = await self._driver.insert(statement, len(documents), session)
        return InsertManyResult(
            inserted_ids=[d[ID_FIELD] for d in documents],
            row_ids=row_ids,
            inserted=documents,
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def find(
        self,
        collection: str,
        filter: Mapping[str, Any] | None = None,
        options: FindOptions | None = None,
        session: Session | None = None,
    ) -> list[Document]:
        """Return the documents matching ``filter``; ``[]`` if the collection is missing."""
        options = options or FindOptions()
        if not await self._driver.table_exists(collection):
            return []
        statement = self._statements.select_documents(
            collection, filter, options.sort, options.limit, options.skip
        )
        rows = await self._driver.run(statement, session)
        return [project(decode_document(row["data"]), options.projection) for row in rows]

    async def find_one(
        self,
        collection: str,
        filter: Mapping[str, Any] | None = None,
        options: FindOptions | None = None,
        session: Session | None = None,
    ) -> Document | None:
        options = (options or FindOptions()).model_copy(update={"limit": 1})
        docs = await self.find(collection, filter, options, session)
        return docs[0] if docs else None

    async def count_documents(
        self,
        collection: str,
        filter: Mapping[str, Any] | None = None,
        session: Session | None = None,
    ) -> int:
        if not await self._driver.table_exists(collection):
            return 0
        rows = await self._driver.run(self._statements.count_documents(collection, filter), session)
        return int(rows[0]["count"]) if rows else 0

    async def aggregate(
        self,
        collection: str,
        pipeline: Sequence[Mapping[str, Any]],
        session: Session | None = None,
    ) -> list[Document]:
        """Run an aggregation pipeline.

        Grouped pipelines return one row per group (``_id`` plus the
        accumulator columns) and do not apply ``$project`` / ``$unwind``.
        """
        if not await self._driver.table_exists(collection):
            return []
        plan = self._pipelines.build(collection, pipeline)
        rows = await self._driver.run(plan.statement, session)
        return plan.apply_post_stages(plan.decode_rows(rows))

    async def find_with_cursor(
        self,
        collection: str,
        filter: Mapping[str, Any] | None = None,
        options: CursorOptions | None = None,
        session: Session | None = None,
    ) -> CursorPage:
        """Return one page of documents after (or before) ``cursor_value``.

        One extra row is fetched to compute ``has_more``.  ``next_cursor``
        is set only when the page is full.
        """
        options = options or CursorOptions()
        field = options.cursor_field
        sort = options.sort or {field: -1 if options.reverse else 1}

        page_filter: Mapping[str, Any] | None = filter
        if options.cursor_value is not None:
            bound = {field: {"$lt" if options.reverse else "$gt": options.cursor_value}}
            page_filter = {LogicalOp.AND.value: [filter, bound]} if filter else bound

        docs = await self.find(
            collection, page_filter, FindOptions(sort=sort, limit=options.limit + 1), session
        )
        data = docs[: options.limit]
        next_cursor = data[-1].get(field) if len(data) == options.limit else None
        total = await self.count_documents(collection, filter, session) if options.count else None
        return CursorPage(
            data=data,
            next_cursor=next_cursor,
            has_more=len(docs) > options.limit,
            total_count=total,
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def _update(
        self,
        collection: str,
        filter: Mapping[str, Any] | None,
        update: Mapping[str, Any],
        options: UpdateOptions | None,
        session: Session | None,
        limit: int | None,
    ) -> UpdateResult:
        options = options or UpdateOptions()
        docs: list[Document] = []
        if await self._driver.table_exists(collection):
            docs = await self.find(collection, filter, FindOptions(limit=limit), session)

        if not docs:
            if not options.upsert:
                return UpdateResult()
            seed = self._updates.apply(equality_fields(filter), update)
            inserted = await self.insert_one(collection, seed, session)
            return UpdateResult(upserted_id=inserted.inserted_id)

        modified = 0
        for doc in docs:
            doc_id = doc.get(ID_FIELD)
            if doc_id is None:
                logger.warning("Skipping document without '%s' in '%s'", ID_FIELD, collection)
                continue
            updated = self._updates.apply(doc, update)
            self._schemas.validate(collection, updated)
            await self._driver.run(
                self._statements.update_document(collection, doc_id, updated), session
            )
            modified += 1
        return UpdateResult(matched_count=len(docs), modified_count=modified)

    async def update_one(
        self,
        collection: str,
        filter: Mapping[str, Any] | None,
        update: Mapping[str, Any],
        options: UpdateOptions | None = None,
        session: Session | None = None,
    ) -> UpdateResult:
        return await self._update(collection, filter, update, options, session, limit=1)

    async def update_many(
        self,
        collection: str,
        filter: Mapping[str, Any] | None,
        update: Mapping[str, Any],
        options: UpdateOptions | None = None,
        session: Session | None = None,
    ) -> UpdateResult:
        """Apply ``update`` to every matching document, one UPDATE per row."""
        return await self._update(collection, filter, update, options, session, limit=None)

    async def _delete(
        self,
        collection: str,
        filter: Mapping[str, Any] | None,
        session: Session | None,
        limit: int | None,
    ) -> DeleteResult:
        if not await self._driver.table_exists(collection):
            return DeleteResult()
        docs = await self.find(collection, filter, FindOptions(limit=limit), session)
        deleted = 0
        for doc in docs:
            doc_id = doc.get(ID_FIELD)
            if doc_id is None:
                logger.warning("Skipping document without '%s' in '%s'", ID_FIELD, collection)
                continue
            await self._driver.run(self._statements.delete_document(collection, doc_id), session)
            deleted += 1
        return DeleteResult(deleted_count=deleted)

    async def delete_one(
        self,
        collection: str,
        filter: Mapping[str, Any] | None,
        session: Session | None = None,
    ) -> DeleteResult:
        return await self._delete(collection, filter, session, limit=1)

    async def delete_many(
        self,
        collection: str,
        filter: Mapping[str, Any] | None,
        session: Session | None = None,
    ) -> DeleteResult:
        return await self._delete(collection, filter, session, limit=None)

    # ------------------------------------------------------------------
    # Indexes
    # ------------------------------------------------------------------

    async def create_index(
        self,
        collection: str,
        spec: Mapping[str, int],
        options: IndexOptions | None = None,
    ) -> str:
        """Create an expression index on document fields; returns its name."""
        return await self._driver.create_index(collection, dict(spec), options)

    async def drop_index(self, collection: str, name: str) -> None:
        await self._driver.drop_index(collection, name)

    async def list_indexes(self, collection: str) -> list[IndexDescription]:
        return await self._driver.list_indexes(collection)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    async def start_session(self, isolation_level: str | None = None) -> Session:
        """Reserve a connection with an open transaction.

        The caller owns the session and must commit or roll back and then
        release it through :attr:`driver`; prefer :meth:`transaction`.
        """
        return await self._driver.start_session(isolation_level)

    @asynccontextmanager
    async def transaction(self, isolation_level: str | None = None) -> AsyncIterator[Session]:
        async with transaction(self._driver, isolation_level) as session:
            yield session

    async def with_transaction(
        self,
        fn: Callable[[Session], Awaitable[T]],
        isolation_level: str | None = None,
    ) -> T:
        return await with_transaction(self._driver, fn, isolation_level)

    async def with_savepoint(
        self,
        session: Session,
        fn: Callable[[], Awaitable[T]],
        name: str | None = None,
    ) -> T:
        return await with_savepoint(self._driver, session, fn, name)
