"""Custom exception hierarchy for docQL.

All public errors inherit from DocQLError so callers can catch the base
class for any docQL-specific failure regardless of the dialect in use.
The ``code`` and ``category`` attributes distinguish the root cause without
inspecting driver messages.
"""
from __future__ import annotations

from typing import Any

_DEFAULT_USER_MESSAGE = "An unexpected error occurred."


class DocQLError(Exception):
    """Base exception for all docQL errors.

    Args:
        message: Developer-facing description.
        code: Machine-readable error code (e.g. ``PG_QUERY``).
        original_error: The underlying driver / library exception, if any.
        category: Error category tag (``Configuration``, ``Connection``,
            ``Query``, ...).
        user_message: Message safe to show to end users.
    """

    category: str = "General"

    def __init__(
        self,
        message: str,
        code: str = "GENERAL",
        original_error: BaseException | None = None,
        category: str | None = None,
        user_message: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        if category is not None:
            self.category = category
        self.user_message = user_message or _DEFAULT_USER_MESSAGE
        self.original_error = original_error

    def to_error_response(self) -> dict[str, Any]:
        """Returns a structured error response for API layers."""
        return {
            "error": self.code,
            "category": self.category,
            "message": str(self),
            "user_message": self.user_message,
        }


class ConfigurationError(DocQLError):
    """Raised when client options are invalid (e.g. unsupported driver)."""

    category = "Configuration"

    def __init__(
        self,
        message: str,
        original_error: BaseException | None = None,
    ) -> None:
        super().__init__(
            message,
            code="CONFIG",
            original_error=original_error,
            user_message="The database client is misconfigured.",
        )


class DocQLConnectionError(DocQLError):
    """Raised when the driver cannot reach the database."""

    category = "Connection"

    def __init__(
        self,
        message: str,
        code: str,
        original_error: BaseException | None = None,
    ) -> None:
        super().__init__(
            message,
            code=code,
            original_error=original_error,
            user_message="Could not connect to the database.",
        )


class QueryExecutionError(DocQLError):
    """Raised when the underlying engine rejects a statement.

    Args:
        message: Human-readable description.
        code: ``PG_QUERY`` or ``MYSQL_QUERY``.
        original_error: The driver exception.
        sql: The statement that failed.
    """

    category = "Query"

    def __init__(
        self,
        message: str,
        code: str,
        original_error: BaseException | None = None,
        sql: str | None = None,
    ) -> None:
        super().__init__(
            message,
            code=code,
            original_error=original_error,
            user_message="The database query failed.",
        )
        self.sql = sql


class UnsupportedOperatorError(DocQLError):
    """Raised in strict mode when a filter, update or stage key is unknown."""

    category = "Query"

    def __init__(self, operator: str, kind: str) -> None:
        super().__init__(
            f"Unsupported {kind} operator: '{operator}'.",
            code="UNSUPPORTED_OPERATOR",
            user_message="The query uses an unsupported operator.",
        )
        self.operator = operator
        self.kind = kind


class InvalidUpdateError(DocQLError):
    """Raised when an update operator cannot be applied to a document."""

    category = "Query"

    def __init__(
        self,
        message: str,
        field: str,
        original_error: BaseException | None = None,
    ) -> None:
        super().__init__(
            message,
            code="INVALID_UPDATE",
            original_error=original_error,
            user_message="The update could not be applied.",
        )
        self.field = field


class DocumentValidationError(DocQLError):
    """Raised when a document does not satisfy its collection schema.

    Args:
        collection: Collection whose validator rejected the document.
        errors: Messages reported by the validator.
    """

    category = "Validation"

    def __init__(self, collection: str, errors: list[str]) -> None:
        summary = "; ".join(errors) if errors else "schema mismatch"
        super().__init__(
            f"Document rejected by schema of collection '{collection}': {summary}",
            code="DOCUMENT_INVALID",
            user_message="The document does not match the collection schema.",
        )
        self.collection = collection
        self.errors = errors

    def to_error_response(self) -> dict[str, Any]:
        response = super().to_error_response()
        response["details"] = {"collection": self.collection, "errors": self.errors}
        return response


class TransactionError(DocQLError):
    """Raised when a transaction primitive is misused (e.g. bad savepoint name)."""

    category = "Transaction"

    def __init__(self, message: str, code: str = "TRANSACTION") -> None:
        super().__init__(
            message,
            code=code,
            user_message="The transaction could not be completed.",
        )
