"""docQL schema models: client configuration, call options and results."""
from docql.schema.config import ClientOptions, ConnectionConfig, DialectTarget
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

__all__ = [
    "ClientOptions",
    "ConnectionConfig",
    "DialectTarget",
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
]
