"""Aggregation pipeline → SQL statement plus in-memory post-processing plan.

One pass over the stages accumulates the SQL-expressible parts:

* ``$match``  → WHERE (several match stages are AND-ed in order)
* ``$sort``   → ORDER BY (last one wins)
* ``$limit`` / ``$skip`` → LIMIT / OFFSET (last one wins)
* ``$group``  → replaces the statement shape with a GROUP BY aggregate
  (only the first group stage is honoured)

``$project`` and ``$unwind`` reshape documents inside the opaque blob, so
they are recorded as post stages and applied, in pipeline order, to the
decoded rows.  Grouped statements skip the post stages and return their
rows with ``Decimal`` aggregates turned into ``int`` or ``float``.  The
``$sum`` / ``$avg`` / ``$min`` / ``$max`` accumulators only see JSON numbers;
other values are ignored like SQL ``NULL``.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from docql.compile.base import CompiledSQL, SQLCompiler, is_number
from docql.compile.registry import CompilerFactory
from docql.compile.statements import DocumentStatements, decode_document
from docql.errors import UnsupportedOperatorError
from docql.schema.expressions import (
    Accumulator,
    LogicalOp,
    Stage,
    normalize_key,
    strip_field_ref,
)

logger = logging.getLogger(__name__)

GROUP_KEY = "_id"

_NUMERIC_ACCUMULATORS = {
    Accumulator.SUM.value: "SUM",
    Accumulator.AVG.value: "AVG",
    Accumulator.MIN.value: "MIN",
    Accumulator.MAX.value: "MAX",
}


@dataclass
class PostStage:
    """A stage applied to decoded documents after the statement runs."""

    stage: Stage
    spec: Any


@dataclass
class AggregationPlan:
    """The output of pipeline compilation.

    Attributes:
        statement: The SQL statement to execute.
        grouped: Whether the statement returns grouped aggregate rows
            instead of document blobs.
        post_stages: ``$project`` / ``$unwind`` stages to run in memory.
    """

    statement: CompiledSQL
    grouped: bool = False
    post_stages: list[PostStage] = field(default_factory=list)

    @property
    def sql(self) -> str:
        return self.statement.sql

    @property
    def params(self) -> list[Any]:
        return self.statement.params

    def decode_rows(self, rows: list[Mapping[str, Any]]) -> list[dict[str, Any]]:
        if self.grouped:
            return [{k: _json_number(v) for k, v in row.items()} for row in rows]
        return [decode_document(row["data"]) for row in rows]

    def apply_post_stages(self, documents: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Run the recorded post stages over ``documents`` in pipeline order."""
        result = documents
        for post in self.post_stages:
            if post.stage is Stage.PROJECT:
                result = [project_document(doc, post.spec) for doc in result]
            else:
                result = unwind_documents(result, post.spec)
        return result


def _json_number(value: Any) -> Any:
    """Turn driver ``Decimal`` aggregates into ``int`` or ``float``."""
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    return value


def project_document(document: Mapping[str, Any], spec: Mapping[str, Any]) -> dict[str, Any]:
    """Keep only the fields flagged truthy in ``spec``."""
    return {key: document[key] for key, flag in spec.items() if flag and key in document}


def unwind_documents(documents: list[dict[str, Any]], spec: Any) -> list[dict[str, Any]]:
    """Emit one document per element of the array at the unwind path.

    Documents whose value is missing or not an array pass through unchanged.
    """
    path = spec.get("path", "") if isinstance(spec, Mapping) else spec
    path = strip_field_ref(str(path))
    unwound: list[dict[str, Any]] = []
    for doc in documents:
        value = doc.get(path)
        if isinstance(value, list):
            unwound.extend({**doc, path: item} for item in value)
        else:
            unwound.append(doc)
    return unwound


class PipelineBuilder:
    """Compiles an aggregation pipeline for one collection.

    Args:
        compiler: Dialect-specific compiler.
        strict: Raise on unknown stages / accumulators / filter operators.
    """

    def __init__(self, compiler: SQLCompiler, strict: bool = False) -> None:
        self._compiler = compiler
        self._strict = strict
        self._statements = DocumentStatements(compiler, strict)

    def build(self, collection: str, pipeline: Sequence[Mapping[str, Any]]) -> AggregationPlan:
        matches: list[Any] = []
        sort: Mapping[str, Any] | None = None
        limit: int | None = None
        skip: int | None = None
        group: Mapping[str, Any] | None = None
        post_stages: list[PostStage] = []

        for stage in pipeline:
            if not isinstance(stage, Mapping):
                continue
            for key, spec in stage.items():
                name = normalize_key(key)
                if name == Stage.MATCH.value:
                    matches.append(spec)
                elif name == Stage.SORT.value:
                    sort = spec
                elif name == Stage.LIMIT.value:
                    limit = self._count(key, spec, limit)
                elif name == Stage.SKIP.value:
                    skip = self._count(key, spec, skip)
                elif name == Stage.GROUP.value:
                    if group is None:
                        group = spec
                    else:
                        logger.debug("Ignoring additional $group stage in pipeline")
                elif name in (Stage.PROJECT.value, Stage.UNWIND.value):
                    post_stages.append(PostStage(Stage(name), spec))
                elif self._strict:
                    raise UnsupportedOperatorError(key, "pipeline stage")
                else:
                    logger.debug("Skipping unsupported pipeline stage '%s'", key)

        filt = _combine_matches(matches)
        if group is not None:
            if post_stages:
                logger.debug(
                    "Grouped pipeline on '%s': %d post stage(s) not applied",
                    collection,
                    len(post_stages),
                )
            statement = self._build_grouped(collection, group, filt, sort, limit, skip)
            return AggregationPlan(statement=statement, grouped=True)

        statement = self._statements.select_documents(collection, filt, sort, limit, skip)
        return AggregationPlan(statement=statement, post_stages=post_stages)

    def _count(self, key: str, spec: Any, current: int | None) -> int | None:
        """Validate a ``$limit`` / ``$skip`` value; malformed stages are skipped."""
        if isinstance(spec, float) and spec.is_integer():
            spec = int(spec)
        if is_number(spec) and isinstance(spec, int) and spec >= 0:
            return spec
        if self._strict:
            raise UnsupportedOperatorError(f"{key}: {spec!r}", "pipeline stage")
        logger.debug("Skipping malformed %s stage: %r", key, spec)
        return current

    # ------------------------------------------------------------------
    # $group
    # ------------------------------------------------------------------

    def _build_grouped(
        self,
        collection: str,
        group: Mapping[str, Any],
        filt: Mapping[str, Any] | None,
        sort: Mapping[str, Any] | None,
        limit: int | None,
        skip: int | None,
    ) -> CompiledSQL:
        quote = self._compiler.quote_identifier
        key_ref = group.get(GROUP_KEY)
        key_expr = (
            self._compiler.field_path(strip_field_ref(key_ref))
            if isinstance(key_ref, str)
            else None
        )

        items = [f"{key_expr or 'NULL'} AS {quote(GROUP_KEY)}"]
        aliases = {GROUP_KEY}
        for name, expr in group.items():
            if name == GROUP_KEY:
                continue
            sql = self._accumulator(name, expr)
            if sql:
                items.append(f"{sql} AS {quote(name)}")
                aliases.add(name)

        params = self._statements.new_params()
        parts = [
            f"SELECT {', '.join(items)}",
            f"FROM {quote(collection)}",
            self._statements.where(filt, params),
            f"GROUP BY {key_expr}" if key_expr else "",
            self._statements.order_by(sort, frozenset(aliases)),
            *self._compiler.limit_offset(limit, skip),
        ]
        return self._statements.assemble(parts, params)

    def _accumulator(self, name: str, expr: Any) -> str:
        if not isinstance(expr, Mapping) or len(expr) != 1:
            logger.debug("Skipping malformed accumulator '%s'", name)
            return ""
        key, operand = next(iter(expr.items()))
        op = normalize_key(key)

        if op == Accumulator.COUNT.value:
            return "COUNT(*)"
        if op == Accumulator.SUM.value and is_number(operand):
            return "COUNT(*)" if operand == 1 else f"SUM({operand})"
        if op in _NUMERIC_ACCUMULATORS and isinstance(operand, str):
            # Non-numeric values are ignored, as SQL aggregates ignore NULL.
            value = self._compiler.numeric_value(strip_field_ref(operand))
            return f"{_NUMERIC_ACCUMULATORS[op]}({value})"

        if self._strict:
            raise UnsupportedOperatorError(key, "accumulator")
        logger.debug("Skipping unsupported accumulator '%s' for '%s'", key, name)
        return ""


def _combine_matches(matches: list[Any]) -> Mapping[str, Any] | None:
    filters = [m for m in matches if isinstance(m, Mapping) and m]
    if not filters:
        return None
    if len(filters) == 1:
        return filters[0]
    return {LogicalOp.AND.value: filters}


def compile_pipeline(
    collection: str,
    pipeline: Sequence[Mapping[str, Any]],
    dialect: str | SQLCompiler = "postgres",
    strict: bool = False,
) -> AggregationPlan:
    """Compile ``pipeline`` against ``collection`` for ``dialect``."""
    return PipelineBuilder(CompilerFactory.resolve(dialect), strict).build(collection, pipeline)
