"""
Tests for storage-safety document validation.

Run: pytest tests/test_document_validator.py -v
"""
import pytest

from cv_timeline.database.document_validator import DocumentValidator
from cv_timeline.models.timeline import UNDEFINED


@pytest.fixture
def validator():
    return DocumentValidator()


class TestValidate:
    """Test DocumentValidator.validate."""

    def test_clean_document_passes_unchanged(self, validator):
        """A storage-safe document passes unchanged."""
        data = {"events": [{"id": "work-0", "current": False, "years": 2.5}], "summary": {"companiesWorked": 1}}
        result = validator.validate(data)
        assert result.is_valid
        assert result.errors == []
        assert result.sanitized_data == data

    def test_non_object_rejected(self, validator):
        """Non-object documents are rejected."""
        result = validator.validate(["events"])
        assert not result.is_valid
        assert "Document must be an object" in result.errors[0]

    def test_undefined_values_removed_and_counted(self, validator):
        """Undefined markers and "undefined" strings are removed and counted."""
        result = validator.validate({"a": UNDEFINED, "b": {"c": "undefined"}, "d": ["x", " Undefined "], "e": 1})
        assert not result.is_valid
        assert result.undefined_fields_removed == 3
        assert result.sanitized_data == {"b": {}, "d": ["x"], "e": 1}
        assert "Field 'a' is undefined" in result.errors

    def test_null_allowed_unless_strict(self, validator):
        """None is accepted unless strict or allow_null=False."""
        assert validator.validate({"a": None}).is_valid

        strict = validator.validate({"a": None}, strict=True)
        assert not strict.is_valid
        assert strict.errors == ["Field 'a' is null"]
        assert strict.sanitized_data == {}

        assert not validator.validate({"a": None}, allow_null=False).is_valid

    @pytest.mark.parametrize("value", [float("nan"), float("inf")])
    def test_non_finite_floats_rejected(self, validator, value):
        """NaN and inf are rejected and removed."""
        result = validator.validate({"score": value, "ok": 1.5})
        assert not result.is_valid
        assert "Unsupported value" in result.errors[0]
        assert result.sanitized_data == {"ok": 1.5}

    @pytest.mark.parametrize("key", ["a.b", "$set", ""])
    def test_bad_field_names_rejected(self, validator, key):
        """Dotted, $-prefixed and empty keys are rejected."""
        result = validator.validate({key: 1, "ok": 2})
        assert not result.is_valid
        assert "Unsupported field name" in result.errors[0]
        assert result.sanitized_data == {"ok": 2}

    def test_unsupported_type_rejected(self, validator):
        """Arbitrary objects are rejected."""
        result = validator.validate({"obj": object()})
        assert not result.is_valid
        assert "Unsupported value type object" in result.errors[0]

    def test_depth_limit(self, validator):
        """Nesting beyond max_depth is rejected and trimmed."""
        result = validator.validate({"a": {"b": {"c": 1}}}, max_depth=2)
        assert not result.is_valid
        assert "Nesting depth exceeds 2" in result.errors[0]
        assert result.sanitized_data == {"a": {}}

        assert validator.validate({"a": {"b": {"c": 1}}}, max_depth=3).is_valid

    def test_size_limit(self, validator):
        """Documents over the BSON size limit are rejected."""
        result = validator.validate({"text": "x" * 200}, max_document_bytes=100)
        assert not result.is_valid
        assert "exceeds limit of 100 bytes" in result.errors[0]

    def test_validator_default_size_limit(self):
        """The constructor size limit applies by default."""
        result = DocumentValidator(max_document_bytes=50).validate({"text": "x" * 100})
        assert not result.is_valid

    def test_empty_string_is_only_a_warning(self, validator):
        """Blank strings produce a warning, not an error."""
        result = validator.validate({"organization": "  "})
        assert result.is_valid
        assert result.warnings == ["Field 'organization' is an empty string"]
        assert result.sanitized_data == {"organization": "  "}

    def test_required_fields(self, validator):
        """Missing required fields are reported."""
        result = validator.validate({"events": []}, required_fields=["events", "summary"])
        assert result.errors == ["Required field 'summary' is missing"]

    def test_sanitize_false_returns_original(self, validator):
        """sanitize=False returns the input object."""
        data = {"a": UNDEFINED}
        result = validator.validate(data, sanitize=False)
        assert result.sanitized_data is data

    def test_errors_logged(self, validator, caplog):
        """Validation errors are logged with the context label."""
        with caplog.at_level("WARNING"):
            validator.validate({"a": UNDEFINED}, context="unit")
        assert "Validation of unit failed" in caplog.text
