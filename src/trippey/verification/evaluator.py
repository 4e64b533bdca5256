"""Verification rule evaluator: pure decision logic, no I/O.

Per submission type:
- receipt: rejected when the amount exceeds max_amount or the item count is
  below min_items; verified otherwise (0.9 / 0.1).
- photo: verified on a location match, under review otherwise (0.8 / 0.5).
  Never rejected.
- ticket: verified when a required transport type (or, with none listed, any
  transport keyword) appears in the text (0.85 / 0.2).
- video: always under review (0.5).
Absent requirements impose no constraint. Thresholds are inclusive on the
accepting side: an amount equal to max_amount passes.
"""

from __future__ import annotations

from trippey.db.models import SUBMISSION_TYPES
from trippey.quests.requirements import QuestRequirements, VerificationRules
from trippey.verification.evidence import (
    Evidence,
    count_items,
    detect_amount,
    find_required_transport_type,
    find_transport_keyword,
)
from trippey.verification.schemas import VerificationResult

RECEIPT_CONFIDENCE = (0.9, 0.1)
PHOTO_CONFIDENCE = (0.8, 0.5)
TICKET_CONFIDENCE = (0.85, 0.2)
VIDEO_CONFIDENCE = 0.5
INSUFFICIENT_EVIDENCE_CONFIDENCE = 0.0


def evaluate(
    submission_type: str,
    evidence: Evidence,
    requirements: QuestRequirements,
    rules: VerificationRules | None = None,
) -> VerificationResult:
    """Judge extracted evidence against a quest's requirements."""
    if submission_type not in SUBMISSION_TYPES:
        return VerificationResult(
            status="rejected",
            confidence=0.0,
            details={"error": "Unsupported submission type"},
        )

    if rules and rules.accepted_submission_types and submission_type not in rules.accepted_submission_types:
        return VerificationResult(
            status="rejected",
            confidence=0.0,
            details={
                "error": "Submission type not accepted for this quest",
                "acceptedSubmissionTypes": list(rules.accepted_submission_types),
            },
            extractedText=evidence.extracted_text,
        )

    if submission_type == "video":
        return VerificationResult(
            status="under_review",
            confidence=VIDEO_CONFIDENCE,
            details={"requiresManualReview": True},
            extractedText=evidence.extracted_text,
        )

    if evidence.extraction_failed:
        # Fail closed: never verify without evidence
        return VerificationResult(
            status="under_review",
            confidence=INSUFFICIENT_EVIDENCE_CONFIDENCE,
            details={
                "insufficientEvidence": True,
                "reason": evidence.failure_reason or "Evidence extraction failed",
            },
            extractedText=evidence.extracted_text,
        )

    if submission_type == "receipt":
        return _evaluate_receipt(evidence, requirements)
    if submission_type == "photo":
        return _evaluate_photo(evidence)
    return _evaluate_ticket(evidence, requirements)


def _evaluate_receipt(evidence: Evidence, requirements: QuestRequirements) -> VerificationResult:
    text = evidence.extracted_text
    amount = evidence.detected_amount if evidence.detected_amount is not None else detect_amount(text)
    item_count = evidence.item_count if evidence.item_count is not None else count_items(text)

    max_amount_met = requirements.max_amount is None or amount <= requirements.max_amount
    min_items_met = requirements.min_items is None or item_count >= requirements.min_items
    is_valid = max_amount_met and min_items_met

    verified, rejected = RECEIPT_CONFIDENCE
    return VerificationResult(
        status="verified" if is_valid else "rejected",
        confidence=verified if is_valid else rejected,
        details={
            "detectedAmount": amount,
            "itemCount": item_count,
            "requirementsMet": {"maxAmount": max_amount_met, "minItems": min_items_met},
        },
        extractedText=text,
    )


def _evaluate_photo(evidence: Evidence) -> VerificationResult:
    is_valid = evidence.location_matches is True
    verified, review = PHOTO_CONFIDENCE
    return VerificationResult(
        status="verified" if is_valid else "under_review",
        confidence=verified if is_valid else review,
        details={
            "location": evidence.detected_location,
            "isLocationValid": is_valid,
        },
        extractedText=evidence.extracted_text,
    )


def _evaluate_ticket(evidence: Evidence, requirements: QuestRequirements) -> VerificationResult:
    text = evidence.extracted_text
    has_keyword = evidence.has_transport_keyword
    transport_type = evidence.transport_type
    if has_keyword is None:
        keyword = find_transport_keyword(text)
        has_keyword = keyword is not None
        transport_type = (
            find_required_transport_type(text, requirements.transport_types)
            if requirements.transport_types
            else keyword
        )

    # transport_type holds the required type that matched, or any keyword when none is required
    is_valid = transport_type is not None

    verified, rejected = TICKET_CONFIDENCE
    return VerificationResult(
        status="verified" if is_valid else "rejected",
        confidence=verified if is_valid else rejected,
        details={
            "hasTransportKeyword": has_keyword,
            "transportType": transport_type or "unknown",
            "extractedText": text[:200],
        },
        extractedText=text,
    )
