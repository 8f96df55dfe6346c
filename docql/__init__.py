"""docQL – MongoDB-style documents on PostgreSQL and MySQL.

Store Documents. Query Them Like Rows.

Public API
----------
``DocQL``
    Async client: CRUD, aggregation, cursor pagination, indexes,
    transactions and per-collection JSON-schema validation.

``compile_filter`` / ``compile_pipeline`` / ``apply_update``
    The pure compilation layer, usable without a database connection.

Re-exported types
-----------------
``ClientOptions``, ``ConnectionConfig``, the per-call option and result
models, ``CompiledSQL`` and all error classes.

Extensibility
-------------
New dialects are a compiler plus a driver, registered by name::

    from docql.compile.registry import CompilerFactory
    from docql.drivers.registry import DriverFactory

    @CompilerFactory.register("mariadb")
    class MariaDBCompiler(MySQLCompiler):
        ...

    @DriverFactory.register("mariadb")
    class MariaDBDriver(MySQLDriver):
        dialect = "mariadb"
"""

from __future__ import annotations

from docql.client import DocQL, generate_object_id
from docql.compile.base import CompiledClause, CompiledSQL, SQLCompiler
from docql.compile.mysql import MySQLCompiler
from docql.compile.pipeline import AggregationPlan, compile_pipeline
from docql.compile.postgres import PostgresCompiler
from docql.compile.predicate import compile_filter
from docql.compile.registry import CompilerFactory
from docql.compile.update import apply_update
from docql.drivers.base import Driver, Session
from docql.drivers.mysql import MySQLDriver
from docql.drivers.postgres import PostgresDriver
from docql.drivers.registry import DriverFactory
from docql.errors import (
    ConfigurationError,
    DocQLConnectionError,
    DocQLError,
    DocumentValidationError,
    InvalidUpdateError,
    QueryExecutionError,
    TransactionError,
    UnsupportedOperatorError,
)
from docql.schema.config import ClientOptions, ConnectionConfig
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
from docql.transaction import savepoint, transaction, with_savepoint, with_transaction
from docql.validate.schema_registry import SchemaRegistry, infer_schema

# ---------------------------------------------------------------------------
# Register built-in compilers and drivers
# ---------------------------------------------------------------------------

CompilerFactory.register_class("postgres", PostgresCompiler)
CompilerFactory.register_class("mysql", MySQLCompiler)

DriverFactory.register_class("postgres", PostgresDriver)
DriverFactory.register_class("mysql", MySQLDriver)

__all__ = [
    # Client
    "DocQL",
    "generate_object_id",
    # Configuration
    "ClientOptions",
    "ConnectionConfig",
    # Options and results
    "Collection",
    "CursorOptions",
    "CursorPage",
    "DeleteResult",
    "FindOptions",
    "IndexDescription",
    "IndexOptions",
    "InsertManyResult",
    "InsertOneResult",
    "UpdateOptions",
    "UpdateResult",
    # Compilation
    "compile_filter",
    "compile_pipeline",
    "apply_update",
    "AggregationPlan",
    "CompiledClause",
    "CompiledSQL",
    "SQLCompiler",
    "CompilerFactory",
    "MySQLCompiler",
    "PostgresCompiler",
    # Drivers
    "Driver",
    "Session",
    "DriverFactory",
    "MySQLDriver",
    "PostgresDriver",
    # Transactions
    "transaction",
    "with_transaction",
    "savepoint",
    "with_savepoint",
    # Validation
    "SchemaRegistry",
    "infer_schema",
    # Errors
    "DocQLError",
    "ConfigurationError",
    "DocQLConnectionError",
    "QueryExecutionError",
    "UnsupportedOperatorError",
    "InvalidUpdateError",
    "DocumentValidationError",
    "TransactionError",
]
