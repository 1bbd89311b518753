"""
Timeline Generation Package.

This package turns a canonical CV into a storage-safe timeline:
- date_parser: Free-text CV date parsing (never fails)
- field_validator: Schema validation of event fields, array cleaning
- event_processor: CV record -> timeline event conversion
- timeline_orchestrator: Event batch, summary and sorting
- timeline_insights: Career insights from events
- timeline_sanitizer: Final cleaning before storage
- timeline_service: Generate/validate entry points (imports the database layer)
"""

from cv_timeline.generation.date_parser import DateParser, to_iso
from cv_timeline.generation.field_validator import ArraySanitizer, FieldValidator
from cv_timeline.generation.event_processor import AchievementRules, EventProcessor, EventResult
from cv_timeline.generation.timeline_orchestrator import TimelineOrchestrator
from cv_timeline.generation.timeline_insights import TimelineInsights
from cv_timeline.generation.timeline_sanitizer import TimelineSanitizer

__all__ = [
    # Main classes
    "DateParser",
    "FieldValidator",
    "ArraySanitizer",
    "AchievementRules",
    "EventProcessor",
    "EventResult",
    "TimelineOrchestrator",
    "TimelineInsights",
    "TimelineSanitizer",

    # Helpers
    "to_iso",
]
