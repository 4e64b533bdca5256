"""Typed quest requirements and verification rules.

Quests store these as JSON; every read and write goes through the models below
so malformed requirements are caught when a quest is seeded or a verification
request arrives, not halfway through evaluation.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

SubmissionType = Literal["receipt", "photo", "ticket", "video"]
QuestCategory = Literal["budget", "exploration", "transport", "cultural", "social_impact"]

# Requirement fields each category may constrain
CATEGORY_REQUIREMENT_FIELDS: dict[str, frozenset[str]] = {
    "budget": frozenset({"max_amount", "min_items"}),
    "transport": frozenset({"transport_types"}),
    "exploration": frozenset({"expected_location", "min_locations"}),
    "cultural": frozenset({"expected_location", "min_locations"}),
    "social_impact": frozenset({"expected_location", "min_items"}),
}


class InvalidRequirementsError(ValueError):
    """Quest requirements or verification rules failed validation."""


class QuestRequirements(BaseModel):
    """Acceptance criteria for a quest. Absent fields impose no constraint."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    max_amount: float | None = Field(default=None, ge=0)
    min_items: int | None = Field(default=None, ge=0)
    min_locations: int | None = Field(default=None, ge=0)
    transport_types: list[str] | None = None
    expected_location: str | None = None

    @field_validator("transport_types")
    @classmethod
    def _normalize_transport_types(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return None
        cleaned = [t.strip().lower() for t in value if t and t.strip()]
        return cleaned

    @field_validator("expected_location")
    @classmethod
    def _blank_location_is_none(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return value.strip()


class VerificationRules(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    accepted_submission_types: list[SubmissionType] | None = None


def parse_requirements(category: str, raw: dict[str, Any] | None) -> QuestRequirements:
    """Validate raw requirements against the model and the category allow-list."""
    try:
        requirements = QuestRequirements.model_validate(raw or {})
    except ValidationError as e:
        msg = f"Invalid quest requirements: {e.errors(include_url=False)}"
        raise InvalidRequirementsError(msg) from e

    allowed = CATEGORY_REQUIREMENT_FIELDS.get(category)
    if allowed is None:
        msg = f"Unknown quest category '{category}'"
        raise InvalidRequirementsError(msg)

    used = set(requirements.model_dump(exclude_none=True))
    not_allowed = sorted(used - allowed)
    if not_allowed:
        msg = f"Requirements {not_allowed} do not apply to {category} quests"
        raise InvalidRequirementsError(msg)
    return requirements


def parse_verification_rules(raw: dict[str, Any] | None) -> VerificationRules:
    """Validate raw verification rules."""
    try:
        return VerificationRules.model_validate(raw or {})
    except ValidationError as e:
        msg = f"Invalid verification rules: {e.errors(include_url=False)}"
        raise InvalidRequirementsError(msg) from e
