"""Shared fixtures for timeline pipeline tests."""
from unittest.mock import MagicMock

import pytest

from cv_timeline.config import Settings
from cv_timeline.database.timeline_storage import TimelineStorage
from cv_timeline.generation.date_parser import DateParser
from cv_timeline.generation.timeline_sanitizer import TimelineSanitizer
from cv_timeline.generation.timeline_service import build_timeline_service
from cv_timeline.models.timeline import DataQualityMetrics


@pytest.fixture
def settings():
    """Settings with instant retries and no .env lookup."""
    return Settings(
        _env_file=None,
        storage_retry_attempts=3,
        storage_backoff_seconds=0,
    )


@pytest.fixture
def metrics():
    return DataQualityMetrics()


@pytest.fixture
def date_parser():
    return DateParser()


@pytest.fixture
def sanitizer():
    return TimelineSanitizer()


@pytest.fixture
def collection():
    """Mocked MongoDB jobs collection."""
    return MagicMock()


@pytest.fixture
def storage(collection, settings):
    return TimelineStorage(collection, settings)


@pytest.fixture
def service(settings, collection):
    return build_timeline_service(settings, collection)


@pytest.fixture
def sample_cv():
    """A realistic CV covering every section."""
    return {
        "experience": [
            {
                "company": "Acme Corp",
                "position": "Software Engineer",
                "startDate": "Jan 2016",
                "endDate": "Dec 2018",
                "description": "Built SaaS billing platform",
                "achievements": ["Increased revenue by 25%", "Shipped v2"],
                "technologies": ["Python", "Django"],
            },
            {
                "company": "Globex Bank",
                "position": "Senior Engineer",
                "startDate": "Jan 2019",
                "current": True,
                "achievements": ["Reduced latency by 40%", "Served 10,000 users"],
                "technologies": ["Python", "Kafka", "AWS", "Solution Architect"],
            },
        ],
        "education": [
            {
                "institution": "ETH Zurich",
                "degree": "Master",
                "field": "Computer Science",
                "graduationDate": "2015",
            },
        ],
        "certifications": [
            {"name": "AWS Solutions Architect", "issuer": "Amazon", "date": "2020"},
        ],
        "achievements": [
            "Awarded Employee of the Year by Acme Corp in 2017",
            "Speaker at PyCon 2019",
        ],
        "skills": {
            "technical": ["Python", "Kafka"],
            "cloud": ["AWS"],
            "soft": ["Communication"],
        },
    }


@pytest.fixture
def make_event():
    """Factory for well-formed timeline events with optional overrides."""
    def _make(**overrides):
        event = {
            "id": "work-0",
            "type": "work",
            "title": "Engineer",
            "organization": "Acme",
            "startDate": "2020-01-01T00:00:00.000Z",
        }
        event.update(overrides)
        return event
    return _make
