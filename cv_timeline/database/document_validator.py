"""
Storage-safety validation for MongoDB documents.

Checks a payload for values MongoDB cannot (or should not) store and returns
a sanitized copy with the offending entries removed:
- UNDEFINED markers and the literal string "undefined"
- NaN/inf floats and unsupported value types
- Empty, dotted or $-prefixed field names
- Nesting deeper than max_depth
- BSON size above the document limit
"""
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

import bson

from cv_timeline.models.timeline import UNDEFINED

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 15
DEFAULT_MAX_DOCUMENT_BYTES = 1024 * 1024
UNDEFINED_LITERAL = "undefined"

_SCALAR_TYPES = (str, int, float, bool, datetime)

_REMOVE = object()


@dataclass
class DocumentValidationResult:
    """Outcome of DocumentValidator.validate()."""
    is_valid: bool
    sanitized_data: Any = None
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    undefined_fields_removed: int = 0


def _join(path: str, key: Any) -> str:
    return f"{path}.{key}" if path else str(key)


class DocumentValidator:
    """Validates and sanitizes documents before they are written."""

    def __init__(self, max_document_bytes: int = DEFAULT_MAX_DOCUMENT_BYTES):
        self.max_document_bytes = max_document_bytes

    def validate(
        self,
        data: Any,
        context: str = "document",
        strict: bool = False,
        sanitize: bool = True,
        allow_null: bool = True,
        max_depth: int = DEFAULT_MAX_DEPTH,
        max_document_bytes: Optional[int] = None,
        required_fields: Optional[List[str]] = None,
    ) -> DocumentValidationResult:
        """
        Validate a document for storage.

        Args:
            data: Document to check (normally a dict).
            context: Label used in log messages.
            strict: Treat None values as errors even when allow_null is set.
            sanitize: Build a sanitized copy without the offending entries.
            allow_null: Accept None values.
            max_depth: Maximum nesting depth.
            max_document_bytes: BSON size limit (validator default if None).
            required_fields: Top-level fields that must be present.

        Returns:
            DocumentValidationResult. is_valid is False if any error was found.
        """
        result = DocumentValidationResult(is_valid=True)

        if not isinstance(data, dict):
            result.errors.append(f"Document must be an object, got {type(data).__name__}")
            result.is_valid = False
            return result

        for name in required_fields or []:
            if name not in data or data[name] is None or data[name] is UNDEFINED:
                result.errors.append(f"Required field '{name}' is missing")

        sanitized = self._check(data, "", 0, result, strict, allow_null, max_depth)
        if sanitized is _REMOVE:
            sanitized = {}

        limit = max_document_bytes or self.max_document_bytes
        size = self._bson_size(sanitized, result)
        if size is not None and size > limit:
            result.errors.append(f"Document size {size} bytes exceeds limit of {limit} bytes")

        result.sanitized_data = sanitized if sanitize else data
        result.is_valid = not result.errors

        if result.errors:
            LOGGER.warning("Validation of %s failed with %d error(s): %s", context, len(result.errors), result.errors[:5])
        elif result.warnings:
            LOGGER.debug("Validation of %s passed with %d warning(s)", context, len(result.warnings))
        return result

    def _bson_size(self, data: Any, result: DocumentValidationResult) -> Optional[int]:
        try:
            return len(bson.encode(data))
        except Exception as e:
            result.errors.append(f"Unsupported document encoding: {e}")
            return None

    def _check(
        self,
        value: Any,
        path: str,
        depth: int,
        result: DocumentValidationResult,
        strict: bool,
        allow_null: bool,
        max_depth: int,
    ) -> Any:
        if value is UNDEFINED or (isinstance(value, str) and value.strip().lower() == UNDEFINED_LITERAL):
            result.errors.append(f"Field '{path or '<root>'}' is undefined")
            result.undefined_fields_removed += 1
            return _REMOVE

        if value is None:
            if allow_null and not strict:
                return None
            result.errors.append(f"Field '{path}' is null")
            return _REMOVE

        if isinstance(value, float) and not math.isfinite(value):
            result.errors.append(f"Unsupported value at '{path}': {value}")
            return _REMOVE

        if isinstance(value, str):
            if not value.strip():
                result.warnings.append(f"Field '{path}' is an empty string")
            return value

        if isinstance(value, _SCALAR_TYPES):
            return value

        if isinstance(value, (dict, list, tuple)):
            if depth >= max_depth:
                result.errors.append(f"Nesting depth exceeds {max_depth} at '{path}'")
                return _REMOVE

        if isinstance(value, dict):
            cleaned: Dict[str, Any] = {}
            for key, item in value.items():
                item_path = _join(path, key)
                if not isinstance(key, str) or not key or "." in key or key.startswith("$"):
                    result.errors.append(f"Unsupported field name '{key}' at '{path or '<root>'}'")
                    continue
                checked = self._check(item, item_path, depth + 1, result, strict, allow_null, max_depth)
                if checked is not _REMOVE:
                    cleaned[key] = checked
            return cleaned

        if isinstance(value, (list, tuple)):
            items = []
            for index, item in enumerate(value):
                checked = self._check(item, f"{path}[{index}]", depth + 1, result, strict, allow_null, max_depth)
                if checked is not _REMOVE:
                    items.append(checked)
            return items

        result.errors.append(f"Unsupported value type {type(value).__name__} at '{path}'")
        return _REMOVE
