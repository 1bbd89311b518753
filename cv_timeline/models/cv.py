"""
Canonical CV input model.

CV data arrives in several shapes (camelCase or snake_case keys, aliases for
the same concept, skills as a list or as categories, achievements as strings
or objects). normalize_cv() converts every accepted shape into one ParsedCV
before the timeline pipeline runs, so the pipeline only ever sees one struct.
"""
import logging
from datetime import date, datetime
from typing import Any, Iterable, List, Mapping, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from cv_timeline.models.timeline import is_missing

LOGGER = logging.getLogger(__name__)

TECHNICAL_SKILL_CATEGORIES = [
    "technical",
    "frontend",
    "backend",
    "databases",
    "cloud",
    "frameworks",
    "tools",
    "expertise",
]

SECTION_ALIASES = {
    "experience": ("experience", "workExperience", "work_experience"),
    "education": ("education",),
    "certifications": ("certifications",),
    "achievements": ("achievements",),
    "skills": ("skills",),
}


def coerce_text(value: Any) -> Optional[str]:
    """
    Coerce an untrusted scalar into a trimmed string.

    Args:
        value: Any value from the raw CV.

    Returns:
        Trimmed non-empty string, or None if nothing usable remains.
    """
    if is_missing(value) or isinstance(value, bool):
        return None
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            return None
        return str(int(value)) if value.is_integer() else str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return None


def coerce_text_list(value: Any) -> List[str]:
    """Coerce a string, a list of strings or a list of {name} objects into a list of strings."""
    if is_missing(value):
        return []
    if isinstance(value, str):
        text = value.strip()
        return [text] if text else []
    if not isinstance(value, (list, tuple)):
        return []

    result = []
    for item in value:
        if isinstance(item, Mapping):
            item = item.get("name")
        text = coerce_text(item)
        if text:
            result.append(text)
    return result


class _CVRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class WorkExperience(_CVRecord):
    company: Optional[str] = Field(None, validation_alias=AliasChoices("company", "employer", "organization"))
    position: Optional[str] = Field(None, validation_alias=AliasChoices("position", "title", "role"))
    start_date: Optional[str] = Field(None, validation_alias=AliasChoices("startDate", "start_date", "from"))
    end_date: Optional[str] = Field(None, validation_alias=AliasChoices("endDate", "end_date", "to"))
    current: Optional[bool] = None
    description: Optional[str] = None
    achievements: List[str] = Field(default_factory=list)
    technologies: List[str] = Field(default_factory=list, validation_alias=AliasChoices("technologies", "skills"))
    location: Optional[str] = None
    logo: Optional[str] = None

    @field_validator("company", "position", "start_date", "end_date", "description", "location", "logo", mode="before")
    @classmethod
    def _text(cls, value: Any) -> Optional[str]:
        return coerce_text(value)

    @field_validator("achievements", "technologies", mode="before")
    @classmethod
    def _text_list(cls, value: Any) -> List[str]:
        return coerce_text_list(value)

    @field_validator("current", mode="before")
    @classmethod
    def _literal_bool(cls, value: Any) -> Optional[bool]:
        # Only an actual boolean counts; "yes", 1, "present" do not.
        return value if isinstance(value, bool) else None


class EducationEntry(_CVRecord):
    institution: Optional[str] = Field(None, validation_alias=AliasChoices("institution", "school", "university"))
    degree: Optional[str] = None
    field: Optional[str] = Field(
        None, validation_alias=AliasChoices("field", "fieldOfStudy", "field_of_study", "major")
    )
    start_date: Optional[str] = Field(None, validation_alias=AliasChoices("startDate", "start_date"))
    graduation_date: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("graduationDate", "graduation_date", "endDate", "end_date", "year"),
    )
    location: Optional[str] = None
    description: Optional[str] = None
    gpa: Optional[str] = None
    honors: Optional[str] = None

    @field_validator(
        "institution", "degree", "field", "start_date", "graduation_date",
        "location", "description", "gpa", "honors",
        mode="before",
    )
    @classmethod
    def _text(cls, value: Any) -> Optional[str]:
        return coerce_text(value)


class CertificationEntry(_CVRecord):
    name: Optional[str] = Field(None, validation_alias=AliasChoices("name", "title"))
    issuer: Optional[str] = Field(None, validation_alias=AliasChoices("issuer", "organization", "authority"))
    date: Optional[str] = Field(None, validation_alias=AliasChoices("date", "issueDate", "issue_date", "year"))
    expiry_date: Optional[str] = Field(None, validation_alias=AliasChoices("expiryDate", "expiry_date"))
    credential_id: Optional[str] = Field(None, validation_alias=AliasChoices("credentialId", "credential_id"))

    @field_validator("name", "issuer", "date", "expiry_date", "credential_id", mode="before")
    @classmethod
    def _text(cls, value: Any) -> Optional[str]:
        return coerce_text(value)


class AchievementEntry(_CVRecord):
    """A free-text achievement, optionally with an explicit date and organization."""
    text: str
    date: Optional[str] = None
    organization: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _from_text_or_object(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"text": data}
        if isinstance(data, Mapping):
            text = coerce_text(data.get("text"))
            if not text:
                parts = [coerce_text(data.get("title")), coerce_text(data.get("description"))]
                text = " - ".join(p for p in parts if p) or None
            return {
                "text": text,
                "date": data.get("date"),
                "organization": data.get("organization"),
            }
        return data

    @field_validator("text", mode="before")
    @classmethod
    def _required_text(cls, value: Any) -> str:
        text = coerce_text(value)
        if not text:
            raise ValueError("achievement text is empty")
        return text

    @field_validator("date", "organization", mode="before")
    @classmethod
    def _text(cls, value: Any) -> Optional[str]:
        return coerce_text(value)


class ParsedCV(BaseModel):
    """Canonical CV struct consumed by the timeline pipeline."""
    experience: List[WorkExperience] = Field(default_factory=list)
    education: List[EducationEntry] = Field(default_factory=list)
    certifications: List[CertificationEntry] = Field(default_factory=list)
    achievements: List[AchievementEntry] = Field(default_factory=list)
    technical_skills: List[str] = Field(default_factory=list)
    skipped_records: int = 0

    def company_names(self) -> List[str]:
        """Distinct company names from work history, in input order."""
        names: List[str] = []
        for exp in self.experience:
            if exp.company and exp.company not in names:
                names.append(exp.company)
        return names


def extract_technical_skills(skills: Any) -> List[str]:
    """
    Extract technical skills from the accepted skill shapes.

    Args:
        skills: List of strings, list of {name} objects, or a mapping of
            category to skill list.

    Returns:
        Flat list of skill names. Non-technical categories are ignored.
    """
    if is_missing(skills):
        return []
    if isinstance(skills, Mapping):
        collected: List[str] = []
        for category in TECHNICAL_SKILL_CATEGORIES:
            collected.extend(coerce_text_list(skills.get(category)))
        return collected
    return coerce_text_list(skills)


def _section(raw: Mapping[str, Any], name: str) -> List[Any]:
    for key in SECTION_ALIASES[name]:
        value = raw.get(key)
        if isinstance(value, (list, tuple)):
            return list(value)
    return []


def _validate_records(records: Iterable[Any], model: type, section: str, accept_strings: bool = False) -> tuple:
    valid = []
    skipped = 0
    for index, record in enumerate(records):
        if not isinstance(record, Mapping) and not (accept_strings and isinstance(record, str)):
            LOGGER.warning("Skipping %s[%d]: expected an object, got %s", section, index, type(record).__name__)
            skipped += 1
            continue
        try:
            valid.append(model.model_validate(record))
        except ValidationError as e:
            LOGGER.warning("Skipping %s[%d]: %s", section, index, e.errors()[0].get("msg", "invalid record"))
            skipped += 1
    return valid, skipped


def normalize_cv(raw: Any) -> ParsedCV:
    """
    Convert a raw CV mapping into a ParsedCV.

    Args:
        raw: Raw CV dictionary (or an already-normalized ParsedCV).

    Returns:
        ParsedCV with every section present (possibly empty).

    Raises:
        ValueError: If raw is not a mapping.
    """
    if isinstance(raw, ParsedCV):
        return raw
    if not isinstance(raw, Mapping):
        raise ValueError(f"CV data must be a mapping, got {type(raw).__name__}")

    experience, skipped_exp = _validate_records(_section(raw, "experience"), WorkExperience, "experience")
    education, skipped_edu = _validate_records(_section(raw, "education"), EducationEntry, "education")
    certifications, skipped_cert = _validate_records(
        _section(raw, "certifications"), CertificationEntry, "certifications"
    )
    achievements, skipped_ach = _validate_records(
        _section(raw, "achievements"), AchievementEntry, "achievements", accept_strings=True
    )

    skills_raw = raw.get("skills")
    return ParsedCV(
        experience=experience,
        education=education,
        certifications=certifications,
        achievements=achievements,
        technical_skills=extract_technical_skills(skills_raw),
        skipped_records=skipped_exp + skipped_edu + skipped_cert + skipped_ach,
    )
