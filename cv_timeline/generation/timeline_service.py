"""
Timeline Service.

Entry points of the pipeline:
    normalize_cv -> TimelineOrchestrator -> TimelineSanitizer -> TimelineStorage

Components are wired explicitly by build_timeline_service(); nothing here is a
process-wide singleton.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pymongo.collection import Collection

from cv_timeline.config import Settings, get_settings
from cv_timeline.database.document_validator import DocumentValidator
from cv_timeline.database.timeline_storage import TimelineStorage
from cv_timeline.generation.date_parser import DateParser
from cv_timeline.generation.event_processor import AchievementRules, EventProcessor
from cv_timeline.generation.field_validator import ArraySanitizer, FieldValidator
from cv_timeline.generation.timeline_insights import TimelineInsights
from cv_timeline.generation.timeline_orchestrator import TimelineOrchestrator
from cv_timeline.generation.timeline_sanitizer import TimelineSanitizer
from cv_timeline.models.cv import normalize_cv
from cv_timeline.models.timeline import TimelineData

LOGGER = logging.getLogger(__name__)


@dataclass
class TimelineValidationResult:
    """Outcome of a dry-run timeline generation."""
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    data: Optional[Dict[str, Any]] = None


class TimelineService:
    """Generates, validates and stores CV timelines."""

    def __init__(
        self,
        orchestrator: TimelineOrchestrator,
        sanitizer: TimelineSanitizer,
        storage: Optional[TimelineStorage] = None,
        validator: Optional[DocumentValidator] = None,
    ):
        self.orchestrator = orchestrator
        self.sanitizer = sanitizer
        self.storage = storage
        self.validator = validator or DocumentValidator()

    def _build(self, cv: Any) -> TimelineData:
        parsed = normalize_cv(cv)
        events, failures = self.orchestrator.process_cv(parsed)
        summary = self.orchestrator.generate_summary(events, parsed)
        insights = self.orchestrator.generate_insights(events, parsed)

        LOGGER.info(
            "Processed CV: %d events, %d record(s) skipped at conversion, %d at normalization",
            len(events),
            len(failures),
            parsed.skipped_records,
        )
        return self.sanitizer.clean_timeline_data({"events": events, "summary": summary, "insights": insights})

    def generate_timeline(self, cv: Any, job_id: str, should_store: bool = False) -> TimelineData:
        """
        Generate a sanitized timeline for a job's CV.

        Args:
            cv: Raw CV mapping (or a ParsedCV).
            job_id: Job document id.
            should_store: Persist the timeline on the job document.

        Returns:
            Sanitized timeline dict.

        Raises:
            ValueError: If the CV is missing, the job id is not a non-empty
                string, or storing is requested without a storage gateway.
            TimelineStorageError: If nothing could be stored.
        """
        if cv is None:
            raise ValueError("CV data is required")
        if not isinstance(job_id, str) or not job_id.strip():
            raise ValueError("Job id must be a non-empty string")

        timeline = self._build(cv)

        if should_store:
            if self.storage is None:
                raise ValueError("Timeline storage is not configured")
            tier = self.storage.store_timeline_data(job_id, timeline)
            LOGGER.info("Timeline for job %s stored (%s)", job_id, tier)

        return timeline

    def validate_timeline(self, cv: Any) -> TimelineValidationResult:
        """
        Dry-run the pipeline without storing.

        Args:
            cv: Raw CV mapping.

        Returns:
            TimelineValidationResult; never raises.
        """
        errors: List[str] = []
        try:
            timeline = self._build(cv)
        except Exception as e:
            LOGGER.warning("Timeline validation failed: %s", e)
            return TimelineValidationResult(is_valid=False, errors=[str(e)])

        if not isinstance(timeline.get("events"), list):
            errors.append("Timeline has no events list")
        # Whole "undefined" values only, not prose containing the word
        check = self.validator.validate(timeline, "timeline-dry-run", sanitize=False)
        undefined = [e for e in check.errors if e.endswith("is undefined")]
        if undefined:
            errors.append(f"Timeline contains undefined values: {'; '.join(undefined[:5])}")

        return TimelineValidationResult(is_valid=not errors, errors=errors, data=timeline)


def build_timeline_service(
    settings: Optional[Settings] = None,
    collection: Optional[Collection] = None,
    rules: Optional[AchievementRules] = None,
) -> TimelineService:
    """
    Wire a TimelineService.

    Args:
        settings: Settings (defaults to get_settings()).
        collection: Jobs collection; storage is disabled without one.
        rules: Achievement title/organization rules.

    Returns:
        Ready-to-use TimelineService.
    """
    settings = settings or get_settings()
    date_parser = DateParser()

    orchestrator = TimelineOrchestrator(
        processor=EventProcessor(date_parser, rules),
        insights=TimelineInsights(date_parser),
        date_parser=date_parser,
    )
    sanitizer = TimelineSanitizer(FieldValidator(date_parser=date_parser), ArraySanitizer())

    validator = DocumentValidator(settings.storage_max_document_bytes)
    storage = None
    if collection is not None:
        storage = TimelineStorage(collection, settings, validator)

    return TimelineService(orchestrator, sanitizer, storage, validator)
