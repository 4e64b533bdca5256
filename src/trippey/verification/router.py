"""Verification endpoints: the service-to-service entry point and user submissions."""

from __future__ import annotations

import uuid
from typing import Any

import structlog
from fastapi import APIRouter, Body, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from trippey.auth.dependencies import get_current_user_id, require_service_role
from trippey.database import get_session
from trippey.db.models import QuestSubmission
from trippey.dependencies import get_redis_dep
from trippey.quests.requirements import InvalidRequirementsError
from trippey.quests.service import AttemptNotFoundError, AttemptStateError
from trippey.verification.evidence import EvidenceExtractor
from trippey.verification.pipeline import CoinAwardError, get_evidence_extractor, verify_submission
from trippey.verification.schemas import (
    QuestVerificationRequest,
    QuestVerificationResponse,
    SubmissionCreateRequest,
    SubmissionListResponse,
    SubmissionResponse,
)
from trippey.verification.submission_service import (
    SubmissionNotFoundError,
    SubmissionStateError,
    create_submission,
    get_submission_for_user,
    list_attempt_submissions,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1", tags=["Verification"])


def _failure(status_code: int, details: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": "Verification failed", "details": details},
    )


def _to_response(submission: QuestSubmission, coins_awarded: int = 0) -> SubmissionResponse:
    return SubmissionResponse(
        id=submission.id,
        attempt_id=submission.user_quest_id,
        submission_type=submission.submission_type,
        file_url=submission.file_url,
        status=submission.status,
        verification_results=submission.verification_results,
        reviewer_notes=submission.reviewer_notes,
        created_at=submission.created_at,
        updated_at=submission.updated_at,
        coins_awarded=coins_awarded,
    )


# ── Service entry point ──


@router.post("/verification/quest", dependencies=[Depends(require_service_role)])
async def verify_quest_submission(
    payload: dict[str, Any] = Body(...),
    db: AsyncSession = Depends(get_session),
    extractor: EvidenceExtractor = Depends(get_evidence_extractor),
    redis: object = Depends(get_redis_dep),
):
    """Verify a stored submission and, when verified, complete the quest and award coins."""
    try:
        request = QuestVerificationRequest.model_validate(payload)
    except ValidationError as e:
        return _failure(400, str(e))

    try:
        outcome = await verify_submission(
            db,
            extractor,
            request.submission_id,
            file_url=request.file_url,
            submission_type=request.submission_type,
            requirements=request.quest_requirements,
            rules=request.verification_rules,
            redis=redis,
        )
    except SubmissionNotFoundError as e:
        return _failure(404, str(e))
    except SubmissionStateError as e:
        return _failure(409, str(e))
    except InvalidRequirementsError as e:
        return _failure(422, str(e))
    except CoinAwardError as e:
        return _failure(500, str(e))
    except SQLAlchemyError:
        await db.rollback()
        logger.error("quest_verification_persistence_failed", submission_id=str(request.submission_id), exc_info=True)
        return _failure(500, "Verification result could not be stored")

    logger.info(
        "quest_verification_completed",
        submission_id=str(request.submission_id),
        status=outcome.result.status,
        coins_awarded=outcome.coins_awarded,
    )
    return QuestVerificationResponse(
        verification_results=outcome.result.to_record(),
        coins_awarded=outcome.coins_awarded,
    ).model_dump(by_alias=True)


# ── User submissions ──


@router.post("/attempts/{attempt_id}/submissions", response_model=SubmissionResponse, status_code=201)
async def submit_proof(
    attempt_id: uuid.UUID,
    body: SubmissionCreateRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
    extractor: EvidenceExtractor = Depends(get_evidence_extractor),
    redis: object = Depends(get_redis_dep),
):
    """Upload proof for an active attempt and verify it straight away."""
    try:
        submission = await create_submission(db, user_id, attempt_id, body.submission_type, body.file_url)
    except AttemptNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except AttemptStateError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e

    submission_id = submission.id
    try:
        outcome = await verify_submission(db, extractor, submission_id, redis=redis)
    except CoinAwardError:
        # Verdict is stored; the reconciler credits the coins later
        logger.warning("submission_award_deferred", submission_id=str(submission_id))
        return _to_response(await get_submission_for_user(db, user_id, submission_id))
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("submission_verdict_not_stored", submission_id=str(submission_id), exc_info=True)
        raise HTTPException(status_code=500, detail="Verification result could not be stored") from e

    return _to_response(outcome.submission, outcome.coins_awarded)


@router.get("/attempts/{attempt_id}/submissions", response_model=SubmissionListResponse)
async def attempt_submissions(
    attempt_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    try:
        submissions = await list_attempt_submissions(db, user_id, attempt_id)
    except AttemptNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return SubmissionListResponse(submissions=[_to_response(s) for s in submissions])


@router.get("/submissions/{submission_id}", response_model=SubmissionResponse)
async def submission_detail(
    submission_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    try:
        submission = await get_submission_for_user(db, user_id, submission_id)
    except SubmissionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return _to_response(submission)
