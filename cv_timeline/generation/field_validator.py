"""
Timeline Field Validator.

Schema-driven validation of single timeline event fields plus deep cleaning
of array fields. Failures are recorded in DataQualityMetrics; callers decide
whether a failing field drops the field or the whole event.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from cv_timeline.generation.date_parser import DateParser
from cv_timeline.models.timeline import EVENT_TYPES, DataQualityMetrics, is_missing

LOGGER = logging.getLogger(__name__)

SLOW_PROCESSING_MS = 1000


@dataclass(frozen=True)
class FieldRule:
    """Validation rule for one field."""
    required: bool
    type: str  # "string", "boolean", "array", "date"
    choices: Optional[Tuple[str, ...]] = None


EVENT_SCHEMA: Dict[str, FieldRule] = {
    "id": FieldRule(required=True, type="string"),
    "type": FieldRule(required=True, type="string", choices=EVENT_TYPES),
    "title": FieldRule(required=True, type="string"),
    "organization": FieldRule(required=True, type="string"),
    "startDate": FieldRule(required=True, type="date"),
    "endDate": FieldRule(required=False, type="date"),
    "current": FieldRule(required=False, type="boolean"),
    "description": FieldRule(required=False, type="string"),
    "achievements": FieldRule(required=False, type="array"),
    "skills": FieldRule(required=False, type="array"),
    "location": FieldRule(required=False, type="string"),
    "logo": FieldRule(required=False, type="string"),
    "impact": FieldRule(required=False, type="array"),
}

REQUIRED_EVENT_FIELDS: List[str] = [name for name, rule in EVENT_SCHEMA.items() if rule.required]


class FieldValidator:
    """Validates event fields against a declared schema."""

    def __init__(self, schema: Optional[Dict[str, FieldRule]] = None, date_parser: Optional[DateParser] = None):
        self.schema = schema if schema is not None else EVENT_SCHEMA
        self.date_parser = date_parser or DateParser()
        self._predicates: Dict[str, Callable[[Any], bool]] = {
            "string": lambda v: isinstance(v, str) and len(v.strip()) > 0,
            "boolean": lambda v: isinstance(v, bool),
            "array": lambda v: isinstance(v, (list, tuple)) and len(v) > 0,
            "date": self.date_parser.is_parseable,
        }

    def validate_field(
        self,
        name: str,
        value: Any,
        metrics: DataQualityMetrics,
        schema: Optional[Dict[str, FieldRule]] = None,
    ) -> bool:
        """
        Validate a single field value.

        Args:
            name: Field name.
            value: Field value (None/UNDEFINED mean "missing").
            metrics: Metrics accumulator; validation_errors is incremented on failure.
            schema: Optional schema overriding the validator's own.

        Returns:
            True if the value is valid, or missing on an optional field.
        """
        rules = schema if schema is not None else self.schema
        rule = rules.get(name)
        if rule is None:
            return False

        if is_missing(value):
            if rule.required:
                metrics.validation_errors += 1
                LOGGER.debug("Required field '%s' is missing", name)
                return False
            return True

        predicate = self._predicates.get(rule.type)
        if predicate is None:
            return False

        try:
            valid = predicate(value)
        except Exception as e:
            LOGGER.debug("Predicate for '%s' raised: %s", name, e)
            valid = False

        if valid and rule.choices is not None:
            valid = value.strip() in rule.choices

        if not valid:
            metrics.validation_errors += 1
            LOGGER.debug("Field '%s' failed %s validation", name, rule.type)
        return valid


def _is_valid_impact(item: Any) -> bool:
    if not isinstance(item, dict):
        return False
    metric = item.get("metric")
    value = item.get("value")
    return (
        isinstance(metric, str) and len(metric.strip()) > 0
        and isinstance(value, str) and len(value.strip()) > 0
    )


class ArraySanitizer:
    """Deep-cleans array fields, dropping invalid elements instead of the whole field."""

    def sanitize_array(self, value: Any, field_name: str, metrics: DataQualityMetrics) -> Optional[List[Any]]:
        """
        Clean an array-typed field.

        Args:
            value: Raw field value.
            field_name: Field name ("impact" gets structured-entry checks).
            metrics: Metrics accumulator; fields_removed[field_name] is
                incremented when the field ends up omitted.

        Returns:
            Cleaned non-empty list, or None when the field must be omitted.
        """
        if not isinstance(value, (list, tuple)):
            metrics.record_removed(field_name)
            return None

        cleaned: List[Any] = []
        for item in value:
            if is_missing(item):
                continue
            if field_name == "impact":
                if _is_valid_impact(item):
                    cleaned.append({"metric": item["metric"].strip(), "value": item["value"].strip()})
                continue
            if isinstance(item, str):
                text = item.strip()
                if text:
                    cleaned.append(text)
                continue
            cleaned.append(item)

        if not cleaned:
            metrics.record_removed(field_name)
            return None
        return cleaned


def log_data_quality_metrics(metrics: DataQualityMetrics) -> None:
    """Log a sanitization run's quality metrics."""
    LOGGER.info(
        "Timeline data quality: %d/%d events kept (%.1f%%), %d validation errors, %d fields removed, %.1fms",
        metrics.cleaned_events,
        metrics.total_events,
        metrics.success_rate,
        metrics.validation_errors,
        metrics.total_fields_removed,
        metrics.processing_time_ms,
    )
    for field_name, count in metrics.fields_removed.items():
        if count > 0:
            LOGGER.info("  removed '%s': %d", field_name, count)
    if metrics.processing_time_ms > SLOW_PROCESSING_MS:
        LOGGER.warning("Timeline sanitization took %.0fms", metrics.processing_time_ms)
