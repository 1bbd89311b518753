"""
Timeline data model.

Timeline payloads are plain dictionaries with camelCase keys because they are
stored as-is. The TypedDicts below document their shape.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, TypedDict

EVENT_TYPES = ("work", "education", "achievement", "certification")

OPTIONAL_EVENT_FIELDS = (
    "location",
    "description",
    "achievements",
    "skills",
    "logo",
    "impact",
    "endDate",
    "current",
)


class _Undefined:
    """Marker for a key that exists but was never given a value."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNDEFINED"

    def __bool__(self) -> bool:
        return False

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self


UNDEFINED = _Undefined()


def is_missing(value: Any) -> bool:
    """True for None and UNDEFINED."""
    return value is None or value is UNDEFINED


class ImpactMetric(TypedDict):
    metric: str
    value: str


class _TimelineEventRequired(TypedDict):
    id: str
    type: str
    title: str
    organization: str
    startDate: str


class TimelineEvent(_TimelineEventRequired, total=False):
    endDate: str
    current: bool
    description: str
    achievements: List[str]
    skills: List[str]
    location: str
    logo: str
    impact: List[ImpactMetric]


class TimelineSummary(TypedDict):
    totalYearsExperience: float
    companiesWorked: int
    degreesEarned: int
    certificationsEarned: int
    careerHighlights: List[str]


class TimelineInsights(TypedDict):
    careerProgression: str
    industryFocus: List[str]
    skillEvolution: str
    nextSteps: List[str]


class TimelineData(TypedDict):
    events: List[TimelineEvent]
    summary: TimelineSummary
    insights: TimelineInsights


def _default_fields_removed() -> Dict[str, int]:
    return {name: 0 for name in OPTIONAL_EVENT_FIELDS}


@dataclass
class DataQualityMetrics:
    """Counters collected during one sanitization run (logged, never stored)."""
    total_events: int = 0
    cleaned_events: int = 0
    validation_errors: int = 0
    fields_removed: Dict[str, int] = field(default_factory=_default_fields_removed)
    processing_time_ms: float = 0.0

    def record_removed(self, field_name: str) -> None:
        self.fields_removed[field_name] = self.fields_removed.get(field_name, 0) + 1

    @property
    def total_fields_removed(self) -> int:
        return sum(self.fields_removed.values())

    @property
    def success_rate(self) -> float:
        """Share of events that survived cleaning, in percent."""
        if self.total_events <= 0:
            return 100.0
        return round(self.cleaned_events / self.total_events * 100, 1)
