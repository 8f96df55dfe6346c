"""docQL compilation layer: filters, updates and pipelines → parameterized SQL."""
from docql.compile.base import CompiledClause, CompiledSQL, SQLCompiler
from docql.compile.mysql import MySQLCompiler
from docql.compile.pipeline import AggregationPlan, PipelineBuilder, compile_pipeline
from docql.compile.postgres import PostgresCompiler
from docql.compile.predicate import ParamCollector, PredicateBuilder, compile_filter
from docql.compile.statements import DocumentStatements
from docql.compile.update import UpdateApplier, apply_update

__all__ = [
    "CompiledClause",
    "CompiledSQL",
    "SQLCompiler",
    "MySQLCompiler",
    "PostgresCompiler",
    "AggregationPlan",
    "PipelineBuilder",
    "compile_pipeline",
    "ParamCollector",
    "PredicateBuilder",
    "compile_filter",
    "DocumentStatements",
    "UpdateApplier",
    "apply_update",
]
