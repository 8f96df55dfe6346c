"""Filter → WHERE clause compiler.

``PredicateBuilder`` walks a MongoDB-style filter dict depth-first and emits
a SQL fragment.  Every placeholder is bound through a shared
:class:`ParamCollector` at the moment it is emitted, so the parameter list
always follows the left-to-right order of the placeholders in the text.

Scalar comparisons only see stored values of the operand's JSON type, so
``{"id": 6}`` never matches the string id ``"6abc..."`` and a string in a
numeric field never reaches a numeric cast.  Negations (``$ne``, ``$nin``,
``$not``) also match rows where the comparison is unknown.

Filters never fail to compile: malformed entries and unknown operators are
skipped (logged at DEBUG) unless the builder runs in strict mode.

Example::

    clause, params = compile_filter({"age": {"$gte": 18, "$lte": 30}}, "postgres")
    # clause == "(CASE WHEN jsonb_typeof(data->'age') = 'number'
    #            THEN CAST(data->>'age' AS NUMERIC) END >= %s) AND (... <= %s)"
    # params == [18, 30]
"""
from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from docql.compile.base import CompiledClause, SQLCompiler
from docql.compile.registry import CompilerFactory
from docql.errors import UnsupportedOperatorError
from docql.schema.expressions import (
    COMPARISON_SQL,
    ComparisonOp,
    LogicalOp,
    MembershipOp,
    normalize_key,
)

logger = logging.getLogger(__name__)

_BARE_LOGICAL = {"and": LogicalOp.AND.value, "or": LogicalOp.OR.value, "not": LogicalOp.NOT.value}


# ---------------------------------------------------------------------------
# Positional parameter accumulator
# ---------------------------------------------------------------------------


@dataclass
class ParamCollector:
    """Accumulates positional parameters during a single compilation run.

    A single instance is shared by every builder contributing to one
    statement so the values line up with the placeholders.
    """

    placeholder: str = "%s"
    values: list[Any] = field(default_factory=list)

    def bind(self, value: Any) -> str:
        """Store ``value`` and return the placeholder to emit in its place."""
        self.values.append(value)
        return self.placeholder


# ---------------------------------------------------------------------------
# Predicate builder
# ---------------------------------------------------------------------------


class PredicateBuilder:
    """Compiles filter dicts to SQL.

    Args:
        compiler: Dialect-specific compiler (path extraction, coercion).
        params: Shared parameter accumulator for the statement.
        strict: Raise :class:`UnsupportedOperatorError` on unknown keys
            instead of skipping them.
    """

    def __init__(
        self,
        compiler: SQLCompiler,
        params: ParamCollector | None = None,
        strict: bool = False,
    ) -> None:
        self._compiler = compiler
        self._params = params or ParamCollector(compiler.param_placeholder())
        self._strict = strict

    @property
    def params(self) -> ParamCollector:
        return self._params

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def build(self, filt: Mapping[str, Any] | None) -> str:
        """Compile ``filt``; an empty or missing filter yields ``""``."""
        if not isinstance(filt, Mapping):
            return ""
        clauses: list[str] = []
        for key, value in filt.items():
            logical = self._logical_key(key, value)
            if logical is not None:
                sql = self._build_logical(logical, value)
            elif key.startswith("$"):
                self._unsupported(key)
                continue
            else:
                sql = self._build_field(key, value)
            if sql:
                clauses.append(sql)
        return " AND ".join(clauses)

    # ------------------------------------------------------------------
    # Logical combinators
    # ------------------------------------------------------------------

    @staticmethod
    def _logical_key(key: str, value: Any) -> str | None:
        op = key if key.startswith("$") else _BARE_LOGICAL.get(key)
        if op in (LogicalOp.AND.value, LogicalOp.OR.value):
            is_list = isinstance(value, Sequence) and not isinstance(value, str)
            return op if is_list else None
        if op == LogicalOp.NOT.value:
            return op if isinstance(value, Mapping) else None
        return None

    def _build_logical(self, op: str, value: Any) -> str:
        if op == LogicalOp.NOT.value:
            inner = self.build(value)
            return _negated(inner) if inner else ""

        parts = [f"({sql})" for sql in (self.build(sub) for sub in value) if sql]
        if not parts:
            return ""
        joiner = " AND " if op == LogicalOp.AND.value else " OR "
        return f"({joiner.join(parts)})"

    # ------------------------------------------------------------------
    # Field conditions
    # ------------------------------------------------------------------

    def _build_field(self, path: str, value: Any) -> str:
        if not isinstance(value, Mapping):
            return f"({self._equality(path, value, negate=False)})"

        parts: list[str] = []
        for key, operand in value.items():
            sql = self._dispatch(path, normalize_key(key), operand)
            if sql:
                parts.append(sql)
        return " AND ".join(parts)

    def _dispatch(self, path: str, op: str, operand: Any) -> str:
        if op == ComparisonOp.EQ.value:
            return f"({self._equality(path, operand, negate=False)})"

        if op == ComparisonOp.NE.value:
            return f"({self._equality(path, operand, negate=True)})"

        if op in COMPARISON_SQL:
            expr = self._compiler.comparable(path, operand)
            placeholder = self._params.bind(self._compiler.coerce_param(operand))
            return f"({expr} {COMPARISON_SQL[op]} {placeholder})"

        if op in (MembershipOp.IN.value, MembershipOp.NIN.value):
            return self._membership(path, op, operand)

        if op == LogicalOp.NOT.value:
            inner = self._build_field(path, operand)
            return f"({_negated(inner)})" if inner else ""

        self._unsupported(op)
        return ""

    def _equality(self, path: str, value: Any, negate: bool) -> str:
        if value is None:
            return self._compiler.is_not_null(path) if negate else self._compiler.is_null(path)

        if isinstance(value, (Mapping, list, tuple)):
            # Arrays and sub-documents compare as JSON values.
            expr = self._compiler.json_path(path)
            self._params.bind(json.dumps(value))
            sql = f"{expr} = {self._compiler.json_param()}"
        else:
            expr = self._compiler.comparable(path, value)
            sql = f"{expr} = {self._params.bind(self._compiler.coerce_param(value))}"
        return _negated(sql) if negate else sql

    def _membership(self, path: str, op: str, operand: Any) -> str:
        if not isinstance(operand, Sequence) or isinstance(operand, str):
            logger.debug("Ignoring %s on '%s': operand is not a sequence", op, path)
            return ""
        values = list(operand)
        negate = op == MembershipOp.NIN.value
        if not values:
            # Nothing is a member of the empty set.
            return "" if negate else "(1 = 0)"

        json_types = {self._compiler.json_type_of(v) for v in values}
        if len(json_types) == 1 and None not in json_types:
            expr = self._compiler.comparable(path, values[0])
            placeholders = ", ".join(
                self._params.bind(self._compiler.coerce_param(v)) for v in values
            )
            sql = f"{expr} IN ({placeholders})"
        else:
            # Mixed types: one typed equality per element, in operand order.
            sql = " OR ".join(
                f"({self._equality(path, v, negate=False)})" for v in values
            )
        return f"({_negated(sql)})" if negate else f"({sql})"

    def _unsupported(self, op: str) -> None:
        if self._strict:
            raise UnsupportedOperatorError(op, "filter")
        logger.debug("Skipping unsupported filter operator '%s'", op)


def _negated(sql: str) -> str:
    """Negate ``sql`` so that rows where it is unknown (``NULL``) match."""
    return f"NOT COALESCE(({sql}), FALSE)"


def compile_filter(
    filt: Mapping[str, Any] | None,
    dialect: str | SQLCompiler = "postgres",
    strict: bool = False,
) -> CompiledClause:
    """Compile a filter into ``(clause, params)``.

    Args:
        filt: MongoDB-style filter; ``None`` or ``{}`` matches everything.
        dialect: Dialect name or compiler instance.  Unknown names fall back
            to the mysql path-extraction form.
        strict: Raise on unknown operators instead of skipping them.

    Returns:
        :class:`~docql.compile.base.CompiledClause` with the WHERE fragment
        (without the ``WHERE`` keyword) and its positional params.
    """
    compiler = CompilerFactory.resolve(dialect)
    builder = PredicateBuilder(compiler, strict=strict)
    clause = builder.build(filt)
    return CompiledClause(clause, builder.params.values)
