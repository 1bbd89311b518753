"""
Timeline Insights.

Derives career-level insights from processed timeline events:
- Career progression label from job-title keywords
- Industry focus from a fixed industry -> keyword table (max 3)
- Skill evolution from earliest vs latest work event
- Next-step suggestions (max 4)

Insight generation never raises; any failure yields fixed fallback strings.
"""
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from cv_timeline.generation.date_parser import DateParser
from cv_timeline.models.cv import ParsedCV
from cv_timeline.models.timeline import TimelineEvent
from cv_timeline.models.timeline import TimelineInsights as InsightsData

LOGGER = logging.getLogger(__name__)

MAX_INDUSTRIES = 3
MAX_NEXT_STEPS = 4
STALE_CERTIFICATION_DAYS = 365

INDUSTRY_KEYWORDS: Dict[str, List[str]] = {
    "Technology": ["software", "tech", "it", "digital", "app", "platform", "saas"],
    "Finance": ["bank", "financial", "investment", "trading", "fintech", "insurance"],
    "Healthcare": ["health", "medical", "pharma", "hospital", "clinic", "biotech"],
    "E-commerce": ["ecommerce", "retail", "marketplace", "shopping"],
    "Education": ["education", "university", "school", "learning", "training"],
    "Consulting": ["consulting", "advisory", "strategy", "management consulting"],
}

MANAGEMENT_KEYWORDS = ("manager", "director", "lead", "head")
SENIOR_KEYWORDS = ("senior", "principal")
LEADERSHIP_SKILL_KEYWORDS = ("lead", "architect", "senior")
CLOUD_KEYWORDS = ("aws", "azure", "gcp")
AI_SKILL_RE = re.compile(r"\b(?:ai|ml|machine learning)\b", re.IGNORECASE)

DEFAULT_INDUSTRY_FOCUS = ["General"]
DEFAULT_NEXT_STEPS = ["Keep your timeline current with new roles and achievements"]

FALLBACK_INSIGHTS: InsightsData = {
    "careerProgression": "Career progression analysis not available",
    "industryFocus": ["Industry analysis not available"],
    "skillEvolution": "Skill evolution analysis not available",
    "nextSteps": ["Next steps analysis not available"],
}


def _keyword_pattern(keyword: str) -> "re.Pattern":
    # Word-start boundary so "it" matches "IT Services" but not "Digital"
    return re.compile(r"\b" + re.escape(keyword), re.IGNORECASE)


_INDUSTRY_PATTERNS = {
    industry: [_keyword_pattern(k) for k in keywords]
    for industry, keywords in INDUSTRY_KEYWORDS.items()
}


def _work_events(events: List[TimelineEvent]) -> List[TimelineEvent]:
    return [e for e in events if isinstance(e, dict) and e.get("type") == "work"]


class TimelineInsights:
    """Keyword-based career analysis over timeline events."""

    def __init__(self, date_parser: Optional[DateParser] = None):
        self.date_parser = date_parser or DateParser()

    def career_progression(self, work_events: List[TimelineEvent]) -> str:
        if len(work_events) <= 1:
            return "Steady career growth"
        titles = [str(e.get("title", "")).lower() for e in work_events]
        if any(k in t for t in titles for k in MANAGEMENT_KEYWORDS):
            return "Progressive advancement into leadership roles"
        if any(k in t for t in titles for k in SENIOR_KEYWORDS):
            return "Technical expertise growth to senior levels"
        return "Steady career growth"

    def industry_focus(self, work_events: List[TimelineEvent]) -> List[str]:
        industries: List[str] = []
        for event in work_events:
            combined = f"{event.get('organization', '')} {event.get('description', '')}"
            for industry, patterns in _INDUSTRY_PATTERNS.items():
                if industry not in industries and any(p.search(combined) for p in patterns):
                    industries.append(industry)
        return industries[:MAX_INDUSTRIES] or list(DEFAULT_INDUSTRY_FOCUS)

    def skill_evolution(self, work_events: List[TimelineEvent]) -> str:
        if not work_events:
            return "Building foundational skills"

        earliest = work_events[0].get("skills") or []
        latest = work_events[-1].get("skills") or []

        for skill in latest:
            if skill in earliest:
                continue
            lowered = str(skill).lower()
            if any(k in lowered for k in LEADERSHIP_SKILL_KEYWORDS):
                return "Evolution from implementation to architecture and leadership"

        if len(latest) > len(earliest) * 1.5:
            return "Expanding technical expertise across multiple domains"
        return "Deepening expertise in core technology areas"

    def next_steps(self, events: List[TimelineEvent], cv: Optional[ParsedCV]) -> List[str]:
        suggestions: List[str] = []
        work_events = _work_events(events)

        current_role = next((e for e in work_events if e.get("current") is True), None)
        if current_role is not None:
            title = str(current_role.get("title", "")).lower()
            if not any(k in title for k in ("senior", "lead", "manager")):
                suggestions.append("Consider advancing to a senior or lead position")
            elif not any(k in title for k in ("manager", "director")):
                suggestions.append("Explore management or technical leadership opportunities")

        cutoff = datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(days=STALE_CERTIFICATION_DAYS)
        recent_certs = [
            e for e in events
            if isinstance(e, dict) and e.get("type") == "certification"
            and self.date_parser.parse(e.get("startDate")) > cutoff
        ]
        if not recent_certs:
            suggestions.append("Update certifications to stay current with industry standards")

        skills = cv.technical_skills if cv is not None else []
        if skills:
            lowered = [s.lower() for s in skills]
            if not any(k in s for s in lowered for k in CLOUD_KEYWORDS):
                suggestions.append("Add cloud platform expertise (AWS, Azure, or GCP)")
            if not any(AI_SKILL_RE.search(s) for s in skills):
                suggestions.append("Explore AI/ML technologies to stay ahead of industry trends")

        return suggestions[:MAX_NEXT_STEPS] or list(DEFAULT_NEXT_STEPS)

    def generate(self, events: List[TimelineEvent], cv: Optional[ParsedCV] = None) -> InsightsData:
        """
        Generate insights for a processed timeline.

        Args:
            events: Sorted timeline events.
            cv: Canonical CV the events came from.

        Returns:
            Insights dict; fallback strings if analysis fails.
        """
        try:
            work_events = _work_events(events)
            return {
                "careerProgression": self.career_progression(work_events),
                "industryFocus": self.industry_focus(work_events),
                "skillEvolution": self.skill_evolution(work_events),
                "nextSteps": self.next_steps(events, cv),
            }
        except Exception as e:
            LOGGER.warning("Insight generation failed, using fallback insights: %s", e)
            return {
                "careerProgression": FALLBACK_INSIGHTS["careerProgression"],
                "industryFocus": list(FALLBACK_INSIGHTS["industryFocus"]),
                "skillEvolution": FALLBACK_INSIGHTS["skillEvolution"],
                "nextSteps": list(FALLBACK_INSIGHTS["nextSteps"]),
            }
