"""
Timeline Sanitizer.

Makes a TimelineData payload storage-safe:
- Events with an invalid required field are dropped (others are kept)
- Optional scalar fields are validated, trimmed and omitted when empty
- Array fields are deep-cleaned by ArraySanitizer
- Summary and insights are type-coerced to safe defaults
- A final recursive pass strips None/UNDEFINED, empty strings and empty lists

clean_timeline_data() never raises. On an unexpected failure it returns a
minimal safe structure built from the first event.
"""
import logging
import math
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from cv_timeline.generation.date_parser import to_iso
from cv_timeline.generation.field_validator import (
    EVENT_SCHEMA,
    REQUIRED_EVENT_FIELDS,
    ArraySanitizer,
    FieldValidator,
    log_data_quality_metrics,
)
from cv_timeline.generation.timeline_insights import DEFAULT_INDUSTRY_FOCUS, DEFAULT_NEXT_STEPS, FALLBACK_INSIGHTS
from cv_timeline.models.timeline import (
    OPTIONAL_EVENT_FIELDS,
    DataQualityMetrics,
    TimelineData,
    TimelineEvent,
    is_missing,
)

LOGGER = logging.getLogger(__name__)

ARRAY_FIELDS = [name for name in OPTIONAL_EVENT_FIELDS if EVENT_SCHEMA[name].type == "array"]
OPTIONAL_SCALAR_FIELDS = [name for name in OPTIONAL_EVENT_FIELDS if name not in ARRAY_FIELDS]
SUMMARY_COUNT_FIELDS = ["totalYearsExperience", "companiesWorked", "degreesEarned", "certificationsEarned"]

DEFAULT_CAREER_PROGRESSION = "Career progression data not available"
DEFAULT_SKILL_EVOLUTION = "Skill evolution data not available"


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _non_empty_text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def remove_undefined_values(obj: Any) -> Any:
    """
    Recursively strip None/UNDEFINED, empty strings and empty lists.

    Args:
        obj: Any JSON-like value.

    Returns:
        Cleaned copy; None for missing input or a mapping left empty.
    """
    if is_missing(obj):
        return None

    if isinstance(obj, (list, tuple)):
        cleaned_items = [remove_undefined_values(item) for item in obj]
        return [item for item in cleaned_items if item is not None]

    if isinstance(obj, Mapping):
        cleaned: Dict[str, Any] = {}
        for key, value in obj.items():
            cleaned_value = remove_undefined_values(value)
            if cleaned_value is None:
                continue
            if isinstance(cleaned_value, str) and not cleaned_value.strip():
                continue
            if isinstance(cleaned_value, list) and not cleaned_value:
                continue
            cleaned[key] = cleaned_value
        return cleaned or None

    return obj


def default_summary() -> Dict[str, Any]:
    return {
        "totalYearsExperience": 0,
        "companiesWorked": 0,
        "degreesEarned": 0,
        "certificationsEarned": 0,
        "careerHighlights": [],
    }


def default_insights() -> Dict[str, Any]:
    return {
        "careerProgression": FALLBACK_INSIGHTS["careerProgression"],
        "industryFocus": list(FALLBACK_INSIGHTS["industryFocus"]),
        "skillEvolution": FALLBACK_INSIGHTS["skillEvolution"],
        "nextSteps": list(FALLBACK_INSIGHTS["nextSteps"]),
    }


def minimal_safe_structure(events: List[Any]) -> Dict[str, Any]:
    """
    Last-resort payload: required event fields only, defaulted where absent.

    Args:
        events: Raw events to keep (normally just the first one).

    Returns:
        TimelineData-shaped dict that always passes storage validation.
    """
    safe_events = []
    for index, event in enumerate(events):
        if not isinstance(event, Mapping):
            event = {}
        title = event.get("title")
        organization = event.get("organization")
        start_date = event.get("startDate")
        safe_events.append({
            "id": _non_empty_text(event.get("id")) or f"fallback-{index}",
            "type": _non_empty_text(event.get("type")) or "work",
            "title": _non_empty_text(title) or "Untitled",
            "organization": _non_empty_text(organization) or "Unknown",
            "startDate": _non_empty_text(start_date) or to_iso(datetime.now(timezone.utc)),
        })
    return {
        "events": safe_events,
        "summary": default_summary(),
        "insights": default_insights(),
    }


class TimelineSanitizer:
    """Cleans timeline payloads before storage."""

    def __init__(
        self,
        field_validator: Optional[FieldValidator] = None,
        array_sanitizer: Optional[ArraySanitizer] = None,
    ):
        self.field_validator = field_validator or FieldValidator()
        self.array_sanitizer = array_sanitizer or ArraySanitizer()

    # ==================================================================
    # Events
    # ==================================================================

    def _process_optional_field(self, name: str, value: Any, clean_event: Dict[str, Any], metrics: DataQualityMetrics) -> None:
        if is_missing(value):
            return
        if not self.field_validator.validate_field(name, value, metrics):
            LOGGER.debug("Dropping invalid optional field '%s'", name)
            metrics.record_removed(name)
            return
        if isinstance(value, str):
            trimmed = value.strip()
            if trimmed:
                clean_event[name] = trimmed
            else:
                metrics.record_removed(name)
        else:
            clean_event[name] = value

    def _process_array_field(self, name: str, value: Any, clean_event: Dict[str, Any], metrics: DataQualityMetrics) -> None:
        if is_missing(value):
            return
        cleaned = self.array_sanitizer.sanitize_array(value, name, metrics)
        if cleaned:
            clean_event[name] = cleaned

    def sanitize_event(self, event: Any, index: int, metrics: DataQualityMetrics) -> Optional[TimelineEvent]:
        """
        Sanitize one event.

        Args:
            event: Raw event dict.
            index: Position in the input list (for logging).
            metrics: Metrics accumulator.

        Returns:
            Clean event, or None if a required field is invalid.
        """
        if not isinstance(event, Mapping):
            metrics.validation_errors += 1
            LOGGER.warning("Dropping event #%d: not an object", index)
            return None

        try:
            for name in REQUIRED_EVENT_FIELDS:
                if not self.field_validator.validate_field(name, event.get(name), metrics):
                    LOGGER.warning("Dropping event #%d: invalid required field '%s'", index, name)
                    return None

            clean_event: Dict[str, Any] = {name: event[name].strip() for name in REQUIRED_EVENT_FIELDS}

            for name in OPTIONAL_SCALAR_FIELDS:
                self._process_optional_field(name, event.get(name), clean_event, metrics)
            for name in ARRAY_FIELDS:
                self._process_array_field(name, event.get(name), clean_event, metrics)
            return clean_event
        except Exception as e:
            metrics.validation_errors += 1
            LOGGER.warning("Dropping event #%d: %s", index, e)
            return None

    # ==================================================================
    # Summary / insights
    # ==================================================================

    def sanitize_summary(self, summary: Any, metrics: DataQualityMetrics) -> Dict[str, Any]:
        if not isinstance(summary, Mapping):
            return default_summary()

        clean: Dict[str, Any] = {}
        for name in SUMMARY_COUNT_FIELDS:
            value = summary.get(name)
            clean[name] = value if _is_number(value) else 0

        highlights = summary.get("careerHighlights")
        if not is_missing(highlights):
            clean["careerHighlights"] = self.array_sanitizer.sanitize_array(highlights, "careerHighlights", metrics) or []
        return clean

    def sanitize_insights(self, insights: Any, metrics: DataQualityMetrics) -> Dict[str, Any]:
        if not isinstance(insights, Mapping):
            return default_insights()

        industry_focus = insights.get("industryFocus")
        next_steps = insights.get("nextSteps")
        return {
            "careerProgression": _non_empty_text(insights.get("careerProgression")) or DEFAULT_CAREER_PROGRESSION,
            "industryFocus": (
                self.array_sanitizer.sanitize_array(industry_focus, "industryFocus", metrics)
                if not is_missing(industry_focus) else None
            ) or list(DEFAULT_INDUSTRY_FOCUS),
            "skillEvolution": _non_empty_text(insights.get("skillEvolution")) or DEFAULT_SKILL_EVOLUTION,
            "nextSteps": (
                self.array_sanitizer.sanitize_array(next_steps, "nextSteps", metrics)
                if not is_missing(next_steps) else None
            ) or list(DEFAULT_NEXT_STEPS),
        }

    # ==================================================================
    # Entry point
    # ==================================================================

    def clean_timeline_data(self, raw: Any) -> TimelineData:
        """
        Sanitize a whole timeline payload.

        Args:
            raw: TimelineData-shaped dict (untrusted).

        Returns:
            Storage-safe dict with "events", "summary" and "insights".
            Never raises.
        """
        start = time.perf_counter()
        metrics: Optional[DataQualityMetrics] = None
        raw_events: List[Any] = []

        try:
            if isinstance(raw, Mapping) and isinstance(raw.get("events"), (list, tuple)):
                raw_events = list(raw["events"])
            metrics = DataQualityMetrics()
            metrics.total_events = len(raw_events)

            events = [self.sanitize_event(event, index, metrics) for index, event in enumerate(raw_events)]
            events = [event for event in events if event is not None]
            metrics.cleaned_events = len(events)

            source = raw if isinstance(raw, Mapping) else {}
            try:
                summary = self.sanitize_summary(source.get("summary"), metrics)
            except Exception as e:
                LOGGER.warning("Summary sanitization failed: %s", e)
                metrics.validation_errors += 1
                summary = default_summary()

            try:
                insights = self.sanitize_insights(source.get("insights"), metrics)
            except Exception as e:
                LOGGER.warning("Insights sanitization failed: %s", e)
                metrics.validation_errors += 1
                insights = default_insights()

            result = remove_undefined_values({"events": events, "summary": summary, "insights": insights}) or {}
            # "events" is structural and survives even when empty
            result["events"] = result.get("events", [])
            return result
        except Exception as e:
            if metrics is not None:
                metrics.validation_errors += 1
            LOGGER.error("Timeline sanitization failed, using minimal safe structure: %s", e)
            return minimal_safe_structure(raw_events[:1])
        finally:
            if metrics is not None:
                metrics.processing_time_ms = (time.perf_counter() - start) * 1000
                log_data_quality_metrics(metrics)
