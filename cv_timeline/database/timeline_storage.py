"""
Timeline Storage.

Persists sanitized timelines on the job document with three tiers:

1. PRIMARY: validate, write the (validator-sanitized) payload, retry on
   transient MongoDB errors
2. FALLBACK: coerce every field to a primitive-safe form, validate strictly,
   write tagged isFallback
3. MINIMAL: write a fixed empty-events structure tagged status "failed"

Only a failure of the minimal write escapes, as TimelineStorageError.
"""
import logging
import math
import random
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from pymongo.collection import Collection
from pymongo.errors import AutoReconnect, ConnectionFailure, NetworkTimeout, PyMongoError, WriteConcernError

from cv_timeline.config import Settings, get_settings
from cv_timeline.database.document_validator import DocumentValidationResult, DocumentValidator
from cv_timeline.generation.date_parser import to_iso
from cv_timeline.models.timeline import is_missing

LOGGER = logging.getLogger(__name__)

CRITICAL_ERROR_MARKERS = ("undefined", "Unsupported", "exceeds")
TRANSIENT_ERRORS = (AutoReconnect, NetworkTimeout, ConnectionFailure, WriteConcernError)

FALLBACK_TITLE = "Experience"
FALLBACK_CAREER_PROGRESSION = "Career progression analysis"
FALLBACK_SKILL_EVOLUTION = "Skill evolution analysis"
MINIMAL_ANALYSIS_TEXT = "Timeline generation failed - data not available"


class TimelineStorageError(Exception):
    """Raised when not even the minimal timeline could be stored for a job."""
    def __init__(self, job_id: str, message: str):
        self.job_id = job_id
        self.message = message
        super().__init__(self.message)


# ==================================================================
# Fallback coercion
# ==================================================================

def _safe_text(value: Any, default: str = "") -> str:
    if is_missing(value):
        return default
    text = str(value).strip()
    if not text or text.lower() == "undefined":
        return default
    return text


def _safe_number(value: Any) -> float:
    if isinstance(value, bool) or is_missing(value):
        return 0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(number):
        return 0
    return int(number) if number.is_integer() else number


def _safe_text_list(value: Any) -> List[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [text for text in (_safe_text(item) for item in value if isinstance(item, str)) if text]


def build_fallback_data(data: Any) -> Dict[str, Any]:
    """
    Reduced-fidelity copy of a timeline with primitive-safe values only.

    Args:
        data: Timeline payload that failed primary storage.

    Returns:
        Timeline dict holding only strings, booleans, numbers and lists.
    """
    source = data if isinstance(data, Mapping) else {}
    raw_events = source.get("events")
    summary = source.get("summary") if isinstance(source.get("summary"), Mapping) else {}
    insights = source.get("insights") if isinstance(source.get("insights"), Mapping) else {}

    events = []
    for event in raw_events if isinstance(raw_events, (list, tuple)) else []:
        if not isinstance(event, Mapping) or not _safe_text(event.get("id")):
            continue
        safe_event: Dict[str, Any] = {
            "id": _safe_text(event.get("id")),
            "type": _safe_text(event.get("type"), "work"),
            "title": _safe_text(event.get("title"), FALLBACK_TITLE),
            "organization": _safe_text(event.get("organization")),
            "startDate": _safe_text(event.get("startDate")) or to_iso(datetime.now(timezone.utc)),
            "current": event.get("current") is True,
        }
        for name in ("endDate", "description"):
            text = _safe_text(event.get(name))
            if text:
                safe_event[name] = text
        events.append(safe_event)

    return {
        "events": events,
        "summary": {
            "totalYearsExperience": _safe_number(summary.get("totalYearsExperience")),
            "companiesWorked": _safe_number(summary.get("companiesWorked")),
            "degreesEarned": _safe_number(summary.get("degreesEarned")),
            "certificationsEarned": _safe_number(summary.get("certificationsEarned")),
            "careerHighlights": _safe_text_list(summary.get("careerHighlights")),
        },
        "insights": {
            "careerProgression": _safe_text(insights.get("careerProgression"), FALLBACK_CAREER_PROGRESSION),
            "industryFocus": _safe_text_list(insights.get("industryFocus")),
            "skillEvolution": _safe_text(insights.get("skillEvolution"), FALLBACK_SKILL_EVOLUTION),
            "nextSteps": _safe_text_list(insights.get("nextSteps")),
        },
    }


def minimal_fallback_data() -> Dict[str, Any]:
    return {
        "events": [],
        "summary": {
            "totalYearsExperience": 0,
            "companiesWorked": 0,
            "degreesEarned": 0,
            "certificationsEarned": 0,
            "careerHighlights": [],
        },
        "insights": {
            "careerProgression": MINIMAL_ANALYSIS_TEXT,
            "industryFocus": [],
            "skillEvolution": MINIMAL_ANALYSIS_TEXT,
            "nextSteps": [],
        },
    }


# ==================================================================
# Storage gateway
# ==================================================================

def _is_transient_error(exc: Exception) -> bool:
    """Detect transient MongoDB errors that should be retried."""
    return isinstance(exc, TRANSIENT_ERRORS)


class TimelineStorage:
    """Writes timelines to the jobs collection."""

    def __init__(
        self,
        collection: Collection,
        settings: Optional[Settings] = None,
        validator: Optional[DocumentValidator] = None,
    ):
        self.collection = collection
        self.settings = settings or get_settings()
        self.validator = validator or DocumentValidator(self.settings.storage_max_document_bytes)

    def _sleep_with_backoff(self, attempt: int) -> None:
        """Exponential backoff with jitter."""
        backoff = self.settings.storage_backoff_seconds * (2 ** (attempt - 1))
        jitter = random.uniform(0, backoff * 0.2)
        sleep_for = backoff + jitter
        LOGGER.debug("Backoff: sleeping %.2fs (attempt %d)", sleep_for, attempt)
        time.sleep(sleep_for)

    def _write(self, job_id: str, timeline_doc: Dict[str, Any]) -> None:
        self.collection.update_one(
            {"_id": job_id},
            {"$set": {self.settings.timeline_field: timeline_doc}},
            upsert=True,
        )

    def _write_with_retry(self, job_id: str, timeline_doc: Dict[str, Any]) -> None:
        attempts = max(1, self.settings.storage_retry_attempts)
        for attempt in range(1, attempts + 1):
            try:
                self._write(job_id, timeline_doc)
                return
            except PyMongoError as e:
                LOGGER.warning("Timeline write for job %s, attempt %d failed: %s", job_id, attempt, e)
                if attempt == attempts or not _is_transient_error(e):
                    raise
                self._sleep_with_backoff(attempt)

    def validate_timeline_data(self, data: Any, context: str = "unknown") -> DocumentValidationResult:
        """
        Check a timeline payload for storage safety.

        Args:
            data: Timeline payload.
            context: Label for log messages.

        Returns:
            DocumentValidationResult with a sanitized copy of the payload.
        """
        return self.validator.validate(
            data,
            f"timeline-validation:{context}",
            strict=False,
            sanitize=True,
            allow_null=True,
            max_depth=self.settings.storage_max_depth,
            max_document_bytes=self.settings.storage_max_document_bytes,
            required_fields=[],
        )

    def store_timeline_data(self, job_id: str, data: Any) -> str:
        """
        Store a timeline on the job document.

        Args:
            job_id: Job document id.
            data: Sanitized timeline payload.

        Returns:
            The tier that succeeded: "primary", "fallback" or "minimal".

        Raises:
            TimelineStorageError: If even the minimal structure could not be written.
        """
        try:
            if data is None:
                raise ValueError("Timeline data is missing")

            validation = self.validate_timeline_data(data, f"timeline-storage:{job_id}")
            critical = [e for e in validation.errors if any(m in e for m in CRITICAL_ERROR_MARKERS)]
            if critical:
                LOGGER.warning(
                    "Critical validation errors prevent storage for job %s: %s", job_id, "; ".join(critical[:5])
                )
                return self._store_fallback(job_id, data)

            final_data = validation.sanitized_data
            timeline_doc = {
                "enabled": True,
                "status": "completed",
                "data": final_data,
                "generatedAt": datetime.now(timezone.utc),
                "dataQuality": {
                    "eventsCount": len(final_data.get("events") or []),
                    "validationPassed": validation.is_valid,
                    "cleaningVersion": self.settings.cleaning_version,
                    "warningCount": len(validation.warnings),
                    "undefinedFieldsRemoved": validation.undefined_fields_removed,
                },
            }
        except Exception as e:
            LOGGER.error("Timeline validation for job %s failed: %s", job_id, e)
            return self._store_fallback(job_id, data)

        try:
            self._write_with_retry(job_id, timeline_doc)
        except Exception as e:
            LOGGER.error("Primary timeline write for job %s failed: %s", job_id, e)
            return self._store_fallback(job_id, final_data)

        LOGGER.info("Stored timeline for job %s (%d events)", job_id, timeline_doc["dataQuality"]["eventsCount"])
        return "primary"

    def _store_fallback(self, job_id: str, data: Any) -> str:
        try:
            fallback_data = build_fallback_data(data)
            validation = self.validator.validate(
                fallback_data,
                f"fallback-storage:{job_id}",
                strict=True,
                max_depth=self.settings.storage_max_depth,
                max_document_bytes=self.settings.storage_max_document_bytes,
            )
            if not validation.is_valid:
                raise ValueError(f"Fallback data is also invalid: {validation.errors[:3]}")

            self._write(job_id, {
                "enabled": True,
                "status": "completed",
                "data": validation.sanitized_data,
                "generatedAt": datetime.now(timezone.utc),
                "dataQuality": {
                    "eventsCount": len(validation.sanitized_data.get("events") or []),
                    "validationPassed": True,
                    "cleaningVersion": f"{self.settings.cleaning_version}-fallback",
                    "isFallback": True,
                    "originalDataFailed": True,
                },
            })
        except Exception as e:
            LOGGER.error("Fallback timeline storage for job %s failed: %s", job_id, e)
            return self._store_minimal(job_id)

        LOGGER.warning("Stored fallback timeline for job %s", job_id)
        return "fallback"

    def _store_minimal(self, job_id: str) -> str:
        try:
            self._write(job_id, {
                "enabled": True,
                "status": "failed",
                "error": "Storage validation failed",
                "data": minimal_fallback_data(),
                "generatedAt": datetime.now(timezone.utc),
                "dataQuality": {
                    "eventsCount": 0,
                    "validationPassed": False,
                    "cleaningVersion": f"{self.settings.cleaning_version}-minimal",
                    "isMinimalFallback": True,
                },
            })
        except Exception as e:
            raise TimelineStorageError(job_id, f"Complete storage failure for job {job_id}: {e}") from e

        LOGGER.error("Stored minimal failed-timeline marker for job %s", job_id)
        return "minimal"
