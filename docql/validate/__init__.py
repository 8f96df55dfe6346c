"""docQL document validation: per-client JSON-schema registry."""
from docql.validate.schema_registry import SchemaRegistry, infer_schema

__all__ = ["SchemaRegistry", "infer_schema"]
