"""
Timeline Orchestrator.

Runs the EventProcessor over every CV section, folds per-record results into
events and failure reasons, sorts events chronologically and builds the
summary and insights blocks of a timeline.

Run: Used by TimelineService before sanitization
"""
import logging
from datetime import datetime, timezone
from typing import Any, List, Optional, Tuple

from cv_timeline.generation.date_parser import DateParser
from cv_timeline.generation.event_processor import EventProcessor, EventResult
from cv_timeline.generation.timeline_insights import TimelineInsights
from cv_timeline.models.cv import ParsedCV
from cv_timeline.models.timeline import TimelineEvent, TimelineSummary

LOGGER = logging.getLogger(__name__)

MAX_MONTHS_PER_ENTRY = 600
MAX_HIGHLIGHTS = 5
MAX_ACHIEVEMENT_HIGHLIGHTS = 2


def _empty_summary() -> TimelineSummary:
    return {
        "totalYearsExperience": 0,
        "companiesWorked": 0,
        "degreesEarned": 0,
        "certificationsEarned": 0,
        "careerHighlights": [],
    }


class TimelineOrchestrator:
    """Builds timeline events, summary and insights from a canonical CV."""

    def __init__(
        self,
        processor: Optional[EventProcessor] = None,
        insights: Optional[TimelineInsights] = None,
        date_parser: Optional[DateParser] = None,
    ):
        self.date_parser = date_parser or DateParser()
        self.processor = processor or EventProcessor(self.date_parser)
        self.insights = insights or TimelineInsights(self.date_parser)

    # ==================================================================
    # Events
    # ==================================================================

    def _sections(self, cv: ParsedCV) -> List[Tuple[str, List[Any]]]:
        return [
            ("work", cv.experience),
            ("education", cv.education),
            ("certification", cv.certifications),
            ("achievement", cv.achievements),
        ]

    def process_cv(self, cv: ParsedCV) -> Tuple[List[TimelineEvent], List[str]]:
        """
        Convert every CV record into a timeline event.

        Args:
            cv: Canonical CV.

        Returns:
            Tuple of (events sorted by startDate, failure reasons).
        """
        events: List[TimelineEvent] = []
        failures: List[str] = []

        for kind, records in self._sections(cv):
            for record in records:
                result: EventResult = self.processor.process(kind, record, len(events), cv)
                if result.ok:
                    events.append(result.event)
                else:
                    failures.append(result.reason or f"{kind} record could not be processed")

        if failures:
            LOGGER.warning("Skipped %d of %d CV records: %s", len(failures), len(events) + len(failures), failures)

        return self.sort_events(events), failures

    def sort_events(self, events: List[TimelineEvent]) -> List[TimelineEvent]:
        """Stable sort by startDate; input order is kept if sorting fails."""
        try:
            return sorted(events, key=lambda e: self.date_parser.parse(e.get("startDate")))
        except Exception as e:
            LOGGER.warning("Failed to sort timeline events, keeping input order: %s", e)
            return list(events)

    # ==================================================================
    # Summary
    # ==================================================================

    def _months_between(self, start: datetime, end: datetime) -> int:
        return (end.year - start.year) * 12 + (end.month - start.month)

    def generate_summary(self, events: List[TimelineEvent], cv: Optional[ParsedCV] = None) -> TimelineSummary:
        """
        Summarize a processed timeline.

        Work spans outside [0, 600] months are treated as corrupt and not
        counted.

        Args:
            events: Timeline events.
            cv: Canonical CV (source of highlight achievements).

        Returns:
            Summary dict; all-zero summary if anything fails.
        """
        try:
            work_events = [e for e in events if e.get("type") == "work"]
            now = datetime.now(timezone.utc).replace(tzinfo=None)

            total_months = 0
            for event in work_events:
                start = self.date_parser.parse(event.get("startDate"))
                end = self.date_parser.parse(event["endDate"]) if event.get("endDate") else now
                months = self._months_between(start, end)
                if 0 <= months <= MAX_MONTHS_PER_ENTRY:
                    total_months += months
                else:
                    LOGGER.debug("Ignoring %d-month span of event %s", months, event.get("id"))

            highlights: List[str] = []
            current_role = next((e for e in work_events if e.get("current") is True), None)
            if current_role and current_role.get("title") and current_role.get("organization"):
                highlights.append(f"Currently {current_role['title']} at {current_role['organization']}")
            if cv is not None:
                highlights.extend(a.text for a in cv.achievements[:MAX_ACHIEVEMENT_HIGHLIGHTS] if a.text)

            organizations = {e.get("organization") for e in work_events if e.get("organization")}
            return {
                "totalYearsExperience": max(0, round(total_months / 12, 1)),
                "companiesWorked": len(organizations),
                "degreesEarned": sum(1 for e in events if e.get("type") == "education"),
                "certificationsEarned": sum(1 for e in events if e.get("type") == "certification"),
                "careerHighlights": highlights[:MAX_HIGHLIGHTS],
            }
        except Exception as e:
            LOGGER.warning("Summary generation failed: %s", e)
            return _empty_summary()

    # ==================================================================
    # Insights
    # ==================================================================

    def generate_insights(self, events: List[TimelineEvent], cv: Optional[ParsedCV] = None):
        """Career insights for a processed timeline (never raises)."""
        return self.insights.generate(events, cv)
