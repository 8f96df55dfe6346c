"""Per-client registry of collection document validators.

Each :class:`~docql.client.DocQL` instance owns one ``SchemaRegistry`` so
separate clients never share or clobber each other's validators.  The
registry lives in memory only; validators are lost when the process exits.

Validators are compiled with ``jsonschema`` (Draft 7)::

    registry = SchemaRegistry()
    registry.register("users", {"type": "object", "required": ["email"]})
    registry.validate("users", {"email": "a@b.c"})
"""
from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from jsonschema import Draft7Validator
from jsonschema.exceptions import SchemaError

from docql.errors import ConfigurationError, DocumentValidationError

_JSON_TYPES: tuple[tuple[type | tuple[type, ...], str], ...] = (
    (bool, "boolean"),
    ((int, float), "number"),
    (str, "string"),
    ((list, tuple), "array"),
    (Mapping, "object"),
)


def infer_schema(document: Mapping[str, Any]) -> dict[str, Any]:
    """Infer a flat object schema from a sample document.

    Every key becomes a required property typed after its sample value.
    """
    properties: dict[str, Any] = {}
    for key, value in document.items():
        if value is None:
            properties[key] = {"type": "null"}
            continue
        for py_type, json_type in _JSON_TYPES:
            if isinstance(value, py_type):
                properties[key] = {"type": json_type}
                break
    return {"type": "object", "properties": properties, "required": list(document)}


class SchemaRegistry:
    """Maps collection names to compiled JSON-schema validators."""

    def __init__(self) -> None:
        self._validators: dict[str, Draft7Validator] = {}

    def register(self, collection: str, schema: Mapping[str, Any]) -> None:
        """Compile ``schema`` and attach it to ``collection``.

        Raises:
            ConfigurationError: If ``schema`` is not a valid JSON schema.
        """
        try:
            Draft7Validator.check_schema(schema)
        except SchemaError as exc:
            raise ConfigurationError(
                f"Invalid schema for collection '{collection}': {exc.message}",
                original_error=exc,
            ) from exc
        self._validators[collection] = Draft7Validator(schema)

    def register_inferred(self, collection: str, document: Mapping[str, Any]) -> dict[str, Any]:
        """Infer a schema from ``document``, register it and return it."""
        schema = infer_schema(document)
        self.register(collection, schema)
        return schema

    def unregister(self, collection: str) -> None:
        self._validators.pop(collection, None)

    def __contains__(self, collection: object) -> bool:
        return collection in self._validators

    def is_valid(self, collection: str, document: Mapping[str, Any]) -> bool:
        """Return whether ``document`` passes; collections without a schema accept all."""
        validator = self._validators.get(collection)
        return validator is None or validator.is_valid(document)

    def validate(self, collection: str, document: Mapping[str, Any]) -> None:
        """Raise DocumentValidationError if ``document`` fails the collection schema."""
        validator = self._validators.get(collection)
        if validator is None:
            return
        errors = sorted(validator.iter_errors(document), key=lambda e: list(e.path))
        if errors:
            raise DocumentValidationError(collection, [e.message for e in errors])
