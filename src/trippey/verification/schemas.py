"""Pydantic models for the verification pipeline and its endpoints."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

VerificationStatus = Literal["verified", "rejected", "under_review"]


class VerificationResult(BaseModel):
    """Evaluator verdict. Stored verbatim as quest_submissions.verification_results."""

    model_config = ConfigDict(populate_by_name=True)

    status: VerificationStatus
    confidence: float = Field(ge=0.0, le=1.0)
    details: dict[str, Any] = {}
    extracted_text: str | None = Field(default=None, alias="extractedText")

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


# --- Service entry point (camelCase wire format) ---


class QuestVerificationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    submission_id: uuid.UUID = Field(alias="submissionId")
    file_url: str = Field(alias="fileUrl", min_length=1)
    submission_type: str = Field(alias="submissionType")
    quest_requirements: dict[str, Any] | None = Field(default=None, alias="questRequirements")
    verification_rules: dict[str, Any] | None = Field(default=None, alias="verificationRules")


class QuestVerificationResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    verification_results: dict[str, Any] = Field(alias="verificationResults")
    coins_awarded: int = Field(default=0, alias="coinsAwarded")


# --- User-facing submissions ---


class SubmissionCreateRequest(BaseModel):
    submission_type: Literal["receipt", "photo", "ticket", "video"]
    file_url: str = Field(min_length=1, max_length=2048)


class SubmissionResponse(BaseModel):
    id: uuid.UUID
    attempt_id: uuid.UUID
    submission_type: str
    file_url: str
    status: str
    verification_results: dict[str, Any] | None = None
    reviewer_notes: str | None = None
    created_at: datetime
    updated_at: datetime | None = None
    coins_awarded: int = 0


class SubmissionListResponse(BaseModel):
    submissions: list[SubmissionResponse]
