"""
Tests for tiered timeline storage.

Tests cover:
- Primary write with the expected $set document
- Retry on transient errors only
- Fallback on critical validation errors or failed primary writes
- Minimal failed-marker write and complete storage failure
- Fallback coercion

Run: pytest tests/test_timeline_storage.py -v
"""
import pytest
from pymongo.errors import AutoReconnect, ConnectionFailure, OperationFailure

from cv_timeline.database.timeline_storage import (
    MINIMAL_ANALYSIS_TEXT,
    TimelineStorageError,
    build_fallback_data,
    minimal_fallback_data,
)
from cv_timeline.models.timeline import UNDEFINED


def _timeline(events):
    return {
        "events": events,
        "summary": {
            "totalYearsExperience": 3.5,
            "companiesWorked": 2,
            "degreesEarned": 1,
            "certificationsEarned": 0,
            "careerHighlights": ["Currently Engineer at Acme"],
        },
        "insights": {
            "careerProgression": "Steady career growth",
            "industryFocus": ["Technology"],
            "skillEvolution": "Building foundational skills",
            "nextSteps": ["Consider advancing to a senior or lead position"],
        },
    }


def _stored_doc(collection, call=-1):
    args, kwargs = collection.update_one.call_args_list[call]
    return args[0], args[1]["$set"]["enhancedFeatures.timeline"], kwargs


class TestPrimaryStorage:
    """Test the primary storage tier."""

    def test_stores_sanitized_payload(self, storage, collection, make_event):
        """Store a timeline, verify the primary document."""
        data = _timeline([make_event()])
        assert storage.store_timeline_data("job-1", data) == "primary"

        query, doc, kwargs = _stored_doc(collection)
        assert query == {"_id": "job-1"}
        assert kwargs == {"upsert": True}
        assert doc["status"] == "completed"
        assert doc["enabled"] is True
        assert doc["data"] == data
        assert doc["dataQuality"] == {
            "eventsCount": 1,
            "validationPassed": True,
            "cleaningVersion": "2.1.0",
            "warningCount": 0,
            "undefinedFieldsRemoved": 0,
        }

    def test_retries_transient_errors(self, storage, collection, make_event):
        """A transient error is retried."""
        collection.update_one.side_effect = [AutoReconnect("primary stepped down"), None]
        assert storage.store_timeline_data("job-1", _timeline([make_event()])) == "primary"
        assert collection.update_one.call_count == 2

    def test_null_values_do_not_block_primary(self, storage, collection, make_event):
        """None values still allow a primary write."""
        data = _timeline([make_event()])
        data["insights"]["careerProgression"] = None
        assert storage.store_timeline_data("job-1", data) == "primary"


class TestFallbackStorage:
    """Test degradation to the fallback tier."""

    def test_undefined_value_triggers_fallback(self, storage, collection, make_event):
        """An undefined marker forces the fallback tier."""
        data = _timeline([make_event(description=UNDEFINED, location="Zurich")])
        assert storage.store_timeline_data("job-1", data) == "fallback"
        assert collection.update_one.call_count == 1

        _, doc, _ = _stored_doc(collection)
        assert doc["dataQuality"]["isFallback"] is True
        assert doc["dataQuality"]["originalDataFailed"] is True
        assert doc["dataQuality"]["cleaningVersion"] == "2.1.0-fallback"
        event = doc["data"]["events"][0]
        assert "description" not in event
        assert "location" not in event
        assert event["current"] is False

    def test_literal_undefined_string_triggers_fallback(self, storage, collection, make_event):
        """A literal "undefined" string forces the fallback tier."""
        data = _timeline([make_event(title="undefined")])
        assert storage.store_timeline_data("job-1", data) == "fallback"
        _, doc, _ = _stored_doc(collection)
        assert doc["data"]["events"][0]["title"] == "Experience"

    def test_dotted_key_triggers_fallback(self, storage, make_event):
        """A dotted key forces the fallback tier."""
        data = _timeline([make_event()])
        data["summary"]["bad.key"] = 1
        assert storage.store_timeline_data("job-1", data) == "fallback"

    def test_missing_data_triggers_fallback(self, storage, collection):
        """Missing data is stored as an empty fallback."""
        assert storage.store_timeline_data("job-1", None) == "fallback"
        _, doc, _ = _stored_doc(collection)
        assert doc["data"]["events"] == []

    def test_non_transient_error_is_not_retried(self, storage, collection, make_event):
        """Non-transient errors go straight to fallback."""
        collection.update_one.side_effect = [OperationFailure("write rejected"), None]
        assert storage.store_timeline_data("job-1", _timeline([make_event()])) == "fallback"
        assert collection.update_one.call_count == 2

    def test_exhausted_retries_fall_back(self, storage, collection, make_event):
        """Exhausted retries go to fallback."""
        collection.update_one.side_effect = [ConnectionFailure("down")] * 3 + [None]
        assert storage.store_timeline_data("job-1", _timeline([make_event()])) == "fallback"
        assert collection.update_one.call_count == 4


class TestMinimalStorage:
    """Test the last-resort tier."""

    def test_minimal_marker_written(self, storage, collection, make_event):
        """A failing fallback writes the minimal marker."""
        collection.update_one.side_effect = [OperationFailure("rejected"), OperationFailure("rejected"), None]
        assert storage.store_timeline_data("job-1", _timeline([make_event()])) == "minimal"

        _, doc, _ = _stored_doc(collection)
        assert doc["status"] == "failed"
        assert doc["error"] == "Storage validation failed"
        assert doc["dataQuality"]["isMinimalFallback"] is True
        assert doc["data"] == minimal_fallback_data()

    def test_complete_failure_raises(self, storage, collection, make_event):
        """All tiers failing raises TimelineStorageError."""
        collection.update_one.side_effect = ConnectionFailure("cluster unreachable")
        with pytest.raises(TimelineStorageError) as exc_info:
            storage.store_timeline_data("job-9", _timeline([make_event()]))

        assert "Complete storage failure for job job-9" in str(exc_info.value)
        assert exc_info.value.job_id == "job-9"
        # 3 primary attempts, 1 fallback, 1 minimal
        assert collection.update_one.call_count == 5


class TestFallbackData:
    """Test build_fallback_data coercion."""

    def test_coerces_fields(self):
        """Verify fallback coercion of events, summary and insights."""
        data = build_fallback_data({
            "events": [
                {"id": "work-0", "type": "work", "title": "  ", "organization": UNDEFINED,
                 "startDate": "2020-01-01T00:00:00.000Z", "current": "yes", "skills": ["Python"]},
                {"title": "no id"},
                "not an event",
            ],
            "summary": {"totalYearsExperience": float("nan"), "companiesWorked": "2", "degreesEarned": True},
            "insights": {"careerProgression": UNDEFINED, "industryFocus": ["Technology", None, ""]},
        })

        assert data["events"] == [{
            "id": "work-0",
            "type": "work",
            "title": "Experience",
            "organization": "",
            "startDate": "2020-01-01T00:00:00.000Z",
            "current": False,
        }]
        assert data["summary"] == {
            "totalYearsExperience": 0,
            "companiesWorked": 2,
            "degreesEarned": 0,
            "certificationsEarned": 0,
            "careerHighlights": [],
        }
        assert data["insights"] == {
            "careerProgression": "Career progression analysis",
            "industryFocus": ["Technology"],
            "skillEvolution": "Skill evolution analysis",
            "nextSteps": [],
        }

    def test_non_mapping_input(self):
        """Non-mapping input yields an empty fallback."""
        data = build_fallback_data("garbage")
        assert data["events"] == []
        assert data["summary"]["companiesWorked"] == 0

    def test_minimal_data(self):
        """Verify the minimal structure."""
        data = minimal_fallback_data()
        assert data["events"] == []
        assert data["insights"]["careerProgression"] == MINIMAL_ANALYSIS_TEXT
