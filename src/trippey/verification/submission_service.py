"""Submission record store: one row per proof upload and its verdict."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from trippey.db.models import QuestSubmission, UserQuestAttempt
from trippey.quests.service import AttemptStateError, get_attempt_for_user
from trippey.verification.schemas import VerificationResult

logger = logging.getLogger(__name__)


class SubmissionNotFoundError(LookupError):
    """Submission does not exist or belongs to another user."""


class SubmissionStateError(ValueError):
    """Submission was already resolved or does not match the request."""


async def create_submission(
    db: AsyncSession,
    user_id: uuid.UUID,
    attempt_id: uuid.UUID,
    submission_type: str,
    file_url: str,
    now: datetime | None = None,
) -> QuestSubmission:
    """Persist a pending submission. The attempt must be the user's and active."""
    attempt = await get_attempt_for_user(db, user_id, attempt_id)
    if attempt.status != "active":
        msg = f"Submissions are only accepted for active quest attempts (status: {attempt.status})"
        raise AttemptStateError(msg)

    if now is None:
        now = datetime.now(timezone.utc)
    submission = QuestSubmission(
        user_quest_id=attempt.id,
        submission_type=submission_type,
        file_url=file_url,
        status="pending",
        created_at=now,
        updated_at=now,
    )
    db.add(submission)
    await db.commit()
    logger.info("Submission %s created for attempt %s (%s)", submission.id, attempt.id, submission_type)
    return await get_submission(db, submission.id)


async def get_submission(db: AsyncSession, submission_id: uuid.UUID) -> QuestSubmission:
    result = await db.execute(
        select(QuestSubmission)
        .where(QuestSubmission.id == submission_id)
        .execution_options(populate_existing=True)
    )
    submission = result.scalar_one_or_none()
    if submission is None:
        msg = "Submission not found"
        raise SubmissionNotFoundError(msg)
    return submission


async def get_submission_for_user(
    db: AsyncSession,
    user_id: uuid.UUID,
    submission_id: uuid.UUID,
) -> QuestSubmission:
    submission = await get_submission(db, submission_id)
    if submission.attempt.user_id != user_id:
        msg = "Submission not found"
        raise SubmissionNotFoundError(msg)
    return submission


async def list_attempt_submissions(
    db: AsyncSession,
    user_id: uuid.UUID,
    attempt_id: uuid.UUID,
) -> list[QuestSubmission]:
    await get_attempt_for_user(db, user_id, attempt_id)
    result = await db.execute(
        select(QuestSubmission)
        .where(QuestSubmission.user_quest_id == attempt_id)
        .order_by(QuestSubmission.created_at.desc())
    )
    return list(result.scalars().all())


async def record_verdict(
    db: AsyncSession,
    submission_id: uuid.UUID,
    result: VerificationResult,
    now: datetime | None = None,
) -> None:
    """Write the verdict and commit. Only a pending submission can be resolved.

    The row's status and verification_results.status are written together
    from the same verdict.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    updated = await db.execute(
        update(QuestSubmission)
        .where(QuestSubmission.id == submission_id, QuestSubmission.status == "pending")
        .values(status=result.status, verification_results=result.to_record(), updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if updated.rowcount != 1:
        await db.rollback()
        msg = "Submission was already resolved"
        raise SubmissionStateError(msg)
    await db.commit()
    logger.info("Submission %s resolved as %s (confidence %.2f)", submission_id, result.status, result.confidence)


async def list_verified_unsettled(db: AsyncSession, limit: int = 100) -> list[QuestSubmission]:
    """Verified submissions whose attempt is still active: verdict written, coins not yet credited."""
    result = await db.execute(
        select(QuestSubmission)
        .join(UserQuestAttempt, QuestSubmission.user_quest_id == UserQuestAttempt.id)
        .where(QuestSubmission.status == "verified", UserQuestAttempt.status == "active")
        .order_by(QuestSubmission.updated_at.asc())
        .limit(limit)
        .execution_options(populate_existing=True)
    )
    return list(result.unique().scalars().all())
