"""Constants and helpers for filter, update and pipeline keys.

Filters, update specifications and pipeline stages are plain dicts, as in
MongoDB.  This module defines the recognised key sets used by the compilers.
Every key may be written with or without its leading ``$``; the
:func:`normalize_key` helper maps both spellings to the canonical form.
"""

from __future__ import annotations

from enum import Enum

# ---------------------------------------------------------------------------
# Filter operators
# ---------------------------------------------------------------------------


class ComparisonOp(str, Enum):
    """Field comparison operators (one operand)."""

    EQ = "$eq"
    NE = "$ne"
    GT = "$gt"
    GTE = "$gte"
    LT = "$lt"
    LTE = "$lte"


class MembershipOp(str, Enum):
    """Set membership operators (a sequence operand)."""

    IN = "$in"
    NIN = "$nin"


class LogicalOp(str, Enum):
    """Logical combinators."""

    AND = "$and"
    OR = "$or"
    NOT = "$not"


# ---------------------------------------------------------------------------
# Update operators
# ---------------------------------------------------------------------------


class UpdateOp(str, Enum):
    """Update operators, declared in application order."""

    SET = "$set"
    INC = "$inc"
    PUSH = "$push"
    PULL = "$pull"
    UNSET = "$unset"


# ---------------------------------------------------------------------------
# Pipeline stages and accumulators
# ---------------------------------------------------------------------------


class Stage(str, Enum):
    """Aggregation pipeline stage names."""

    MATCH = "$match"
    SORT = "$sort"
    GROUP = "$group"
    PROJECT = "$project"
    LIMIT = "$limit"
    SKIP = "$skip"
    UNWIND = "$unwind"


class Accumulator(str, Enum):
    """Accumulators recognised inside a ``$group`` stage."""

    SUM = "$sum"
    AVG = "$avg"
    MIN = "$min"
    MAX = "$max"
    COUNT = "$count"


COMPARISON_SQL: dict[str, str] = {
    ComparisonOp.EQ.value: "=",
    ComparisonOp.NE.value: "<>",
    ComparisonOp.GT.value: ">",
    ComparisonOp.GTE.value: ">=",
    ComparisonOp.LT.value: "<",
    ComparisonOp.LTE.value: "<=",
}

LOGICAL_OPS: frozenset[str] = frozenset(op.value for op in LogicalOp)
FIELD_OPS: frozenset[str] = frozenset(
    [*COMPARISON_SQL, *(op.value for op in MembershipOp), LogicalOp.NOT.value]
)
UPDATE_ORDER: tuple[str, ...] = tuple(op.value for op in UpdateOp)
STAGES: frozenset[str] = frozenset(s.value for s in Stage)

#: Identity field used to match rows for update and delete.
ID_FIELD = "id"


def normalize_key(key: str) -> str:
    """Return ``key`` with a leading ``$`` (``"gte"`` → ``"$gte"``)."""
    return key if key.startswith("$") else f"${key}"


def strip_field_ref(ref: str) -> str:
    """Turn a ``"$field"`` reference into a plain field path."""
    return ref[1:] if ref.startswith("$") else ref
