"""Pydantic models for per-call options and call results."""
from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

SortDirection = Literal[1, -1]


class FindOptions(BaseModel):
    """Options for ``find`` / ``find_one``.

    Attributes:
        limit: Maximum number of documents.
        skip: Number of documents to skip.
        sort: ``{field: 1 | -1}`` in priority order.
        projection: ``{field: 1}`` inclusion or ``{field: 0}`` exclusion.
    """

    model_config = ConfigDict(extra="forbid")

    limit: int | None = Field(default=None, ge=0)
    skip: int | None = Field(default=None, ge=0)
    sort: dict[str, SortDirection] | None = None
    projection: dict[str, int | bool] | None = None


class CursorOptions(BaseModel):
    """Options for cursor pagination.

    Attributes:
        cursor_field: Field the pages are ordered and cut on.
        cursor_value: Boundary value taken from the previous page.
        limit: Page size.
        reverse: Walk the cursor field in descending order.
        count: Also return the total number of matching documents.
        sort: Explicit sort; defaults to the cursor field in walk order.
    """

    model_config = ConfigDict(extra="forbid")

    cursor_field: str = "id"
    cursor_value: Any = None
    limit: int = Field(default=10, ge=1)
    reverse: bool = False
    count: bool = False
    sort: dict[str, SortDirection] | None = None


class UpdateOptions(BaseModel):
    """Options for ``update_one`` / ``update_many``."""

    model_config = ConfigDict(extra="forbid")

    upsert: bool = False


class IndexOptions(BaseModel):
    """Options for ``create_index``."""

    model_config = ConfigDict(extra="forbid")

    unique: bool = False
    name: str | None = None


class IndexDescription(BaseModel):
    """An index as reported by the engine catalog."""

    name: str
    key: dict[str, int] = Field(default_factory=dict)
    unique: bool = False


class Collection(BaseModel):
    """Handle returned by ``create_collection``."""

    name: str


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class InsertOneResult(BaseModel):
    acknowledged: bool = True
    inserted_id: Any = None
    row_id: int | None = None
    inserted: dict[str, Any]


class InsertManyResult(BaseModel):
    acknowledged: bool = True
    inserted_ids: list[Any] = Field(default_factory=list)
    row_ids: list[int] = Field(default_factory=list)
    inserted: list[dict[str, Any]] = Field(default_factory=list)


class UpdateResult(BaseModel):
    acknowledged: bool = True
    matched_count: int = 0
    modified_count: int = 0
    upserted_id: Any = None


class DeleteResult(BaseModel):
    acknowledged: bool = True
    deleted_count: int = 0


class CursorPage(BaseModel):
    """One page of a cursor-paginated find.

    Attributes:
        data: Documents on this page.
        next_cursor: Cursor value of the last document when the page is
            full, otherwise ``None``.
        has_more: Whether at least one more document follows this page.
        total_count: Total matches (only when ``count`` was requested).
    """

    data: list[dict[str, Any]] = Field(default_factory=list)
    next_cursor: Any = None
    has_more: bool = False
    total_count: int | None = None
