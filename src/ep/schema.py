"""Typed preset records, structural validation, and the static fallback preset."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_serializer
from pydantic.alias_generators import to_camel

__all__ = [
    "ActivityGroup",
    "ActivityPriority",
    "FALLBACK_PRESET",
    "FALLBACK_PRESET_VERSION",
    "MAX_ACTIVITY_HOURS",
    "MAX_TITLE_LENGTH",
    "PipelineActivity",
    "PresetOutput",
    "PresetValidation",
    "TechCategory",
    "TechnicalDetails",
    "fallback_preset",
    "preset_payload",
    "validate_preset",
]

MAX_ACTIVITY_HOURS = 320
MAX_TITLE_LENGTH = 150


class ActivityGroup(str, Enum):
    """Estimation phase an activity belongs to."""

    ANALYSIS = "ANALYSIS"
    DEV = "DEV"
    TEST = "TEST"
    OPS = "OPS"
    GOVERNANCE = "GOVERNANCE"


class ActivityPriority(str, Enum):
    """How strongly an activity is recommended for the preset."""

    CORE = "core"
    RECOMMENDED = "recommended"
    OPTIONAL = "optional"


class TechCategory(str, Enum):
    """Technology family the preset targets."""

    FRONTEND = "FRONTEND"
    BACKEND = "BACKEND"
    MULTI = "MULTI"


class PresetModel(BaseModel):
    """Base model: camelCase on the wire, snake_case in Python, unknown keys ignored."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class TechnicalDetails(PresetModel):
    suggested_files: Optional[List[str]] = None
    suggested_commands: Optional[List[str]] = None
    suggested_tests: Optional[List[str]] = None
    dependencies: Optional[List[str]] = None


class PipelineActivity(PresetModel):
    """One estimation work item."""

    title: str = Field(min_length=10, max_length=MAX_TITLE_LENGTH)
    description: Optional[str] = None
    group: ActivityGroup
    estimated_hours: float = Field(gt=0, le=MAX_ACTIVITY_HOURS)
    priority: ActivityPriority
    confidence: Optional[float] = Field(default=None, ge=0, le=1)
    acceptance_criteria: Optional[List[str]] = None
    technical_details: Optional[TechnicalDetails] = None
    estimated_hours_justification: Optional[str] = None

    @field_serializer("estimated_hours")
    def _serialize_hours(self, value: float) -> float | int:
        if float(value).is_integer():
            return int(value)
        return value


class PresetOutput(PresetModel):
    """The pipeline's unit of output and cache value."""

    name: str = Field(min_length=5, max_length=100)
    description: str = Field(min_length=20, max_length=500)
    detailed_description: str = Field(min_length=100, max_length=2000)
    tech_category: TechCategory
    activities: List[PipelineActivity]
    driver_values: Dict[str, str]
    risk_codes: List[str]
    reasoning: str = Field(min_length=50, max_length=2000)
    confidence: float = Field(ge=0, le=1)


@dataclass(slots=True)
class PresetValidation:
    """Outcome of a structural validation pass."""

    ok: bool
    errors: list[str] = field(default_factory=list)
    preset: PresetOutput | None = None


def preset_payload(preset: PresetOutput) -> dict[str, Any]:
    """Return the JSON-ready camelCase mapping for ``preset``."""
    return preset.model_dump(mode="json", by_alias=True, exclude_none=True)


def validate_preset(
    candidate: Any,
    *,
    min_activities: int = 5,
    max_activities: int = 20,
) -> PresetValidation:
    """Schema-check a candidate preset and report every violation found."""
    if isinstance(candidate, PresetOutput):
        candidate = preset_payload(candidate)

    errors: list[str] = []
    preset: PresetOutput | None = None
    try:
        preset = PresetOutput.model_validate(candidate)
    except ValidationError as error:
        errors.extend(_format_validation_errors(error))

    activities = candidate.get("activities") if isinstance(candidate, Mapping) else None
    if isinstance(activities, list):
        count = len(activities)
        if count < min_activities:
            errors.append(f"/activities: must NOT have fewer than {min_activities} items (got {count})")
        if count > max_activities:
            errors.append(f"/activities: must NOT have more than {max_activities} items (got {count})")

    if errors:
        return PresetValidation(ok=False, errors=errors, preset=None)
    return PresetValidation(ok=True, errors=[], preset=preset)


def _format_validation_errors(error: ValidationError) -> list[str]:
    formatted: list[str] = []
    for detail in error.errors(include_url=False):
        location = "/".join(str(part) for part in detail.get("loc", ()))
        formatted.append(f"/{location}: {detail.get('msg', 'invalid value')}")
    return formatted


FALLBACK_PRESET_VERSION = "1.0.0"

_FALLBACK_PRESET_DATA: dict[str, Any] = {
    "name": "Generic Software Project",
    "description": "Standard software development project with basic activities",
    "detailedDescription": (
        "This is a fallback preset generated when AI-powered estimation is unavailable or fails validation. "
        "It includes common software development activities covering requirements analysis, design, "
        "implementation, testing, deployment, and documentation. Time estimates are conservative and should "
        "be adjusted based on project specifics.\n\n"
        "This preset serves as a starting point and should be customized according to:\n"
        "- Actual technology stack and architecture\n"
        "- Team size and experience level\n"
        "- Business requirements and complexity\n"
        "- Quality and compliance standards"
    ),
    "techCategory": "MULTI",
    "activities": [
        {
            "title": "Requirements Analysis and Documentation",
            "description": "Gather, analyze, and document functional and non-functional requirements",
            "group": "ANALYSIS",
            "estimatedHours": 8,
            "priority": "core",
            "confidence": 0.8,
            "acceptanceCriteria": [
                "All requirements documented and approved",
                "User stories created with acceptance criteria",
                "Non-functional requirements defined",
            ],
        },
        {
            "title": "System Architecture Design",
            "description": "Design overall system architecture, components, and data flow",
            "group": "ANALYSIS",
            "estimatedHours": 8,
            "priority": "core",
            "confidence": 0.8,
            "acceptanceCriteria": [
                "Architecture diagram created",
                "Technology stack selected",
                "Component interfaces defined",
            ],
        },
        {
            "title": "Database Schema Design and Setup",
            "description": "Design and implement database schema with tables, relationships, and indexes",
            "group": "DEV",
            "estimatedHours": 6,
            "priority": "core",
            "confidence": 0.8,
        },
        {
            "title": "Core Business Logic Implementation",
            "description": "Implement main application logic and business rules",
            "group": "DEV",
            "estimatedHours": 8,
            "priority": "core",
            "confidence": 0.7,
        },
        {
            "title": "API/Interface Development",
            "description": "Create APIs or user interfaces for system interaction",
            "group": "DEV",
            "estimatedHours": 8,
            "priority": "core",
            "confidence": 0.7,
        },
        {
            "title": "Authentication and Authorization",
            "description": "Implement user authentication and role-based access control",
            "group": "DEV",
            "estimatedHours": 7,
            "priority": "core",
            "confidence": 0.75,
        },
        {
            "title": "Unit Testing",
            "description": "Write and execute unit tests for core components",
            "group": "TEST",
            "estimatedHours": 8,
            "priority": "recommended",
            "confidence": 0.8,
        },
        {
            "title": "Integration Testing",
            "description": "Test integration between system components",
            "group": "TEST",
            "estimatedHours": 6,
            "priority": "recommended",
            "confidence": 0.75,
        },
        {
            "title": "CI/CD Pipeline Setup",
            "description": "Configure continuous integration and deployment automation",
            "group": "OPS",
            "estimatedHours": 6,
            "priority": "recommended",
            "confidence": 0.7,
        },
        {
            "title": "Production Deployment",
            "description": "Deploy application to production environment",
            "group": "OPS",
            "estimatedHours": 5,
            "priority": "core",
            "confidence": 0.8,
        },
        {
            "title": "Technical Documentation",
            "description": "Create technical documentation including API docs and deployment guides",
            "group": "GOVERNANCE",
            "estimatedHours": 6,
            "priority": "recommended",
            "confidence": 0.8,
        },
    ],
    "driverValues": {
        "complexity": "5",
        "quality": "6",
        "team": "5",
        "urgency": "5",
    },
    "riskCodes": ["TECH_NEW", "SCOPE_CHANGE"],
    "reasoning": (
        "Fallback preset with standard software development activities. This is a generic template "
        "that should be customized based on project specifics."
    ),
    "confidence": 0.5,
}

FALLBACK_PRESET: PresetOutput = PresetOutput.model_validate(_FALLBACK_PRESET_DATA)


def fallback_preset() -> PresetOutput:
    """Return a private copy of the fallback preset."""
    return FALLBACK_PRESET.model_copy(deep=True)
