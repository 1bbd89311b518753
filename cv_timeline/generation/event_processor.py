"""
Timeline Event Processor.

Converts canonical CV records (work experience, education, certification,
achievement) into uniform timeline events:
- Dates resolved through DateParser (never fails)
- Impact metrics pulled out of achievement lines
- Titles and organizations guessed for free-text achievements
- Education start dates estimated from graduation date and degree type

process() wraps each conversion in an EventResult so one bad record never
aborts the batch.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Pattern, Tuple

from cv_timeline.generation.date_parser import DateParser, to_iso
from cv_timeline.models.cv import AchievementEntry, CertificationEntry, EducationEntry, ParsedCV, WorkExperience
from cv_timeline.models.timeline import ImpactMetric, TimelineEvent

LOGGER = logging.getLogger(__name__)

MAX_METRIC_VALUE_LENGTH = 50
MAX_METRIC_NAME_LENGTH = 100
MAX_FALLBACK_TITLE_LENGTH = 50
DEFAULT_ACHIEVEMENT_ORG = "Achievement"

# (pattern, value group, metric group); first matching pattern per line wins
IMPACT_PATTERNS: List[Tuple[Pattern, int, int]] = [
    (re.compile(r"\b(?:increased|improved|grew|boosted)\s+(.+?)\s+by\s+(\d+(?:\.\d+)?%)", re.IGNORECASE), 2, 1),
    (re.compile(r"\b(?:reduced|decreased|cut|lowered)\s+(.+?)\s+by\s+(\d+(?:\.\d+)?%)", re.IGNORECASE), 2, 1),
    (re.compile(r"(\d+(?:\.\d+)?%)\s+(.+)"), 1, 2),
    (re.compile(r"(\$[\d,]+(?:\.\d+)?[KMB]?)\s+(.+)"), 1, 2),
    (re.compile(r"([\d,]+)\s+(users|customers|clients|projects|team members)", re.IGNORECASE), 1, 2),
]


@dataclass
class AchievementRules:
    """
    Pattern rules for guessing achievement titles and organizations.

    Best-effort heuristics; swap in different patterns per deployment.
    Title patterns must expose the title in their last non-empty group;
    organization patterns in group 1.
    """
    title_patterns: List[Pattern] = field(default_factory=lambda: [
        re.compile(
            r"^(?:Awarded|Received|Won|Achieved|Earned)\s+(.+?)(?=\s+(?:for|in|at|by|from)\b|[.,;]|$)",
            re.IGNORECASE,
        ),
        re.compile(r"^(.+?\s+(?:Award|Prize|Recognition|Certificate))\b", re.IGNORECASE),
    ])
    organization_patterns: List[Pattern] = field(default_factory=lambda: [
        re.compile(r"\b(?:at|from|by)\s+([A-Z][\w&.'-]*(?:\s+(?:&\s+)?[A-Z][\w&.'-]*)*)"),
        re.compile(r"\b([A-Z][\w&'-]*(?:\s+[A-Z][\w&'-]*)*)\s+(?:Award|Prize|Recognition)\b"),
    ])
    default_organization: str = DEFAULT_ACHIEVEMENT_ORG


@dataclass
class EventResult:
    """Outcome of converting one CV record: an event or a failure reason."""
    event: Optional[TimelineEvent] = None
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.event is not None


def extract_impact_metrics(achievements: List[str]) -> List[ImpactMetric]:
    """
    Extract quantified impact from achievement lines.

    Args:
        achievements: Achievement strings (e.g. "Increased revenue by 25%").

    Returns:
        De-duplicated list of {metric, value} entries.
    """
    if not isinstance(achievements, (list, tuple)):
        return []

    metrics: List[ImpactMetric] = []
    seen = set()
    for line in achievements:
        if not isinstance(line, str) or not line.strip():
            continue
        for pattern, value_group, metric_group in IMPACT_PATTERNS:
            match = pattern.search(line)
            if not match:
                continue
            value = match.group(value_group).strip()
            metric = match.group(metric_group).strip().rstrip(".;,")
            # Overly long captures are noise, not metrics
            if not value or not metric or len(value) > MAX_METRIC_VALUE_LENGTH or len(metric) > MAX_METRIC_NAME_LENGTH:
                continue
            key = (metric, value)
            if key not in seen:
                seen.add(key)
                metrics.append({"metric": metric, "value": value})
            break
    return metrics


class EventProcessor:
    """Converts CV records into timeline events."""

    def __init__(self, date_parser: Optional[DateParser] = None, rules: Optional[AchievementRules] = None):
        self.date_parser = date_parser or DateParser()
        self.rules = rules or AchievementRules()
        self._converters: Dict[str, Callable[..., TimelineEvent]] = {
            "work": self.process_work_experience,
            "education": self.process_education,
            "certification": self.process_certification,
            "achievement": self.process_achievement,
        }

    # ------------------------------------------------------------------
    # Heuristics
    # ------------------------------------------------------------------

    def extract_achievement_title(self, text: str) -> str:
        """Short title for a free-text achievement."""
        if not isinstance(text, str) or not text.strip():
            return DEFAULT_ACHIEVEMENT_ORG
        text = text.strip()
        for pattern in self.rules.title_patterns:
            match = pattern.search(text)
            if match:
                groups = [g for g in match.groups() if g and g.strip()]
                if groups:
                    return groups[-1].strip()
        if len(text) > MAX_FALLBACK_TITLE_LENGTH:
            return text[:MAX_FALLBACK_TITLE_LENGTH].rstrip() + "..."
        return text

    def extract_achievement_organization(self, text: str, known_companies: List[str]) -> str:
        """Owning organization for a free-text achievement."""
        if not isinstance(text, str) or not text.strip():
            return self.rules.default_organization

        lowered = text.lower()
        for company in known_companies:
            if company and company.lower() in lowered:
                return company

        for pattern in self.rules.organization_patterns:
            match = pattern.search(text)
            if match and match.group(1).strip():
                return match.group(1).strip()

        return self.rules.default_organization

    # ------------------------------------------------------------------
    # Per-kind conversion
    # ------------------------------------------------------------------

    @staticmethod
    def _add_optional(event: Dict[str, Any], key: str, value: Any) -> None:
        if value is None:
            return
        if isinstance(value, (str, list)) and not value:
            return
        event[key] = value

    def process_work_experience(self, exp: WorkExperience, index: int, cv: Optional[ParsedCV] = None) -> TimelineEvent:
        event: Dict[str, Any] = {
            "id": f"work-{index}",
            "type": "work",
            "title": exp.position or "",
            "organization": exp.company or "",
            "startDate": self.date_parser.parse_iso(exp.start_date),
        }
        if exp.end_date:
            event["endDate"] = self.date_parser.parse_iso(exp.end_date)
        if exp.current is True:
            event["current"] = True
        self._add_optional(event, "description", exp.description)
        self._add_optional(event, "achievements", list(exp.achievements))
        self._add_optional(event, "skills", list(exp.technologies))
        self._add_optional(event, "location", exp.location)
        self._add_optional(event, "logo", exp.logo)
        self._add_optional(event, "impact", extract_impact_metrics(exp.achievements))
        return event

    def process_education(self, edu: EducationEntry, index: int, cv: Optional[ParsedCV] = None) -> TimelineEvent:
        title_parts = [p for p in (edu.degree, edu.field) if p]
        title = " in ".join(title_parts)

        if edu.start_date:
            start = self.date_parser.parse(edu.start_date)
        else:
            start = self.date_parser.estimate_education_start(edu.graduation_date, edu.degree)

        event: Dict[str, Any] = {
            "id": f"education-{index}",
            "type": "education",
            "title": title,
            "organization": edu.institution or "",
            "startDate": to_iso(start),
        }
        if edu.graduation_date:
            if self.date_parser.is_recent(edu.graduation_date):
                event["current"] = True
            else:
                event["endDate"] = self.date_parser.parse_iso(edu.graduation_date)

        description = edu.description
        if not description:
            extras = []
            if edu.honors:
                extras.append(edu.honors)
            if edu.gpa:
                extras.append(f"GPA: {edu.gpa}")
            description = "; ".join(extras)
        self._add_optional(event, "description", description)
        self._add_optional(event, "location", edu.location)
        return event

    def process_certification(self, cert: CertificationEntry, index: int, cv: Optional[ParsedCV] = None) -> TimelineEvent:
        event: Dict[str, Any] = {
            "id": f"certification-{index}",
            "type": "certification",
            "title": cert.name or "",
            "organization": cert.issuer or "",
            "startDate": self.date_parser.parse_iso(cert.date),
        }
        if cert.expiry_date:
            event["endDate"] = self.date_parser.parse_iso(cert.expiry_date)
        if cert.credential_id:
            event["description"] = f"Credential ID: {cert.credential_id}"
        return event

    def process_achievement(self, achievement: AchievementEntry, index: int, cv: Optional[ParsedCV] = None) -> TimelineEvent:
        known_companies = cv.company_names() if cv is not None else []
        organization = achievement.organization or self.extract_achievement_organization(
            achievement.text, known_companies
        )
        date_source = achievement.date or achievement.text
        return {
            "id": f"achievement-{index}",
            "type": "achievement",
            "title": self.extract_achievement_title(achievement.text),
            "organization": organization,
            "startDate": self.date_parser.parse_iso(date_source),
            "description": achievement.text,
        }

    def process(self, kind: str, record: Any, index: int, cv: Optional[ParsedCV] = None) -> EventResult:
        """
        Convert one record of the given kind.

        Args:
            kind: "work", "education", "certification" or "achievement".
            record: Canonical CV record.
            index: Number of events produced so far (used for the event id).
            cv: Whole CV, for cross-section heuristics.

        Returns:
            EventResult with the event, or with a failure reason.
        """
        converter = self._converters.get(kind)
        if converter is None:
            return EventResult(reason=f"unknown record kind '{kind}'")
        try:
            return EventResult(event=converter(record, index, cv))
        except Exception as e:
            LOGGER.warning("Failed to process %s record #%d: %s", kind, index, e)
            return EventResult(reason=f"{kind} record #{index}: {e}")
