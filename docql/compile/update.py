"""Update specification → new document snapshot.

Updates are not compiled to SQL.  The façade re-selects the matching
documents, runs :func:`apply_update` on each in-memory snapshot and rewrites
the whole blob of the row.

Operators are applied in the fixed order ``$set``, ``$inc``, ``$push``,
``$pull``, ``$unset`` whatever their order in the update dict, so combined
updates are reproducible.  Application is not idempotent: running the same
``$inc`` / ``$push`` twice increments and appends twice.
"""
from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Mapping
from typing import Any

from docql.errors import InvalidUpdateError, UnsupportedOperatorError
from docql.schema.expressions import UPDATE_ORDER, UpdateOp, normalize_key

logger = logging.getLogger(__name__)

Document = dict[str, Any]


def _strict_equal(left: Any, right: Any) -> bool:
    """Equality that does not conflate ``1``, ``1.0`` and ``True``."""
    return type(left) is type(right) and left == right


class UpdateApplier:
    """Applies update operators to document snapshots.

    Args:
        strict: Raise :class:`UnsupportedOperatorError` on unknown update
            operators instead of skipping them.
    """

    def __init__(self, strict: bool = False) -> None:
        self._strict = strict
        self._handlers: dict[str, Callable[[Document, Mapping[str, Any]], None]] = {
            UpdateOp.SET.value: self._set,
            UpdateOp.INC.value: self._inc,
            UpdateOp.PUSH.value: self._push,
            UpdateOp.PULL.value: self._pull,
            UpdateOp.UNSET.value: self._unset,
        }

    def apply(self, document: Mapping[str, Any], update: Mapping[str, Any]) -> Document:
        """Return a new document with ``update`` applied; ``document`` is untouched."""
        operators: dict[str, Any] = {}
        for key, operand in update.items():
            op = normalize_key(key)
            if op not in self._handlers:
                if self._strict:
                    raise UnsupportedOperatorError(key, "update")
                logger.debug("Skipping unsupported update operator '%s'", key)
                continue
            operators[op] = operand

        updated: Document = copy.deepcopy(dict(document))
        for op in UPDATE_ORDER:
            if op not in operators:
                continue
            operand = operators[op]
            if op == UpdateOp.UNSET.value and isinstance(operand, (list, tuple)):
                operand = dict.fromkeys(operand, "")
            if not isinstance(operand, Mapping):
                logger.debug("Ignoring %s: operand is not a mapping", op)
                continue
            self._handlers[op](updated, operand)
        return updated

    # ------------------------------------------------------------------
    # Operators
    # ------------------------------------------------------------------

    @staticmethod
    def _set(doc: Document, operand: Mapping[str, Any]) -> None:
        doc.update(copy.deepcopy(dict(operand)))

    @staticmethod
    def _inc(doc: Document, operand: Mapping[str, Any]) -> None:
        for field, amount in operand.items():
            current = doc.get(field)
            if current is None:
                current = 0
            try:
                doc[field] = current + amount
            except TypeError as exc:
                raise InvalidUpdateError(
                    f"Cannot apply $inc to field '{field}' holding {type(current).__name__}",
                    field=field,
                    original_error=exc,
                ) from exc

    @staticmethod
    def _push(doc: Document, operand: Mapping[str, Any]) -> None:
        for field, item in operand.items():
            if not isinstance(doc.get(field), list):
                doc[field] = []
            doc[field].append(copy.deepcopy(item))

    @staticmethod
    def _pull(doc: Document, operand: Mapping[str, Any]) -> None:
        for field, item in operand.items():
            current = doc.get(field)
            if isinstance(current, list):
                doc[field] = [v for v in current if not _strict_equal(v, item)]

    @staticmethod
    def _unset(doc: Document, operand: Mapping[str, Any]) -> None:
        for field in operand:
            doc.pop(field, None)


def apply_update(
    document: Mapping[str, Any],
    update: Mapping[str, Any],
    strict: bool = False,
) -> Document:
    """Apply a MongoDB-style update to ``document`` and return the new snapshot."""
    return UpdateApplier(strict=strict).apply(document, update)
