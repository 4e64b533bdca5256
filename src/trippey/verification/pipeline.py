"""Quest verification pipeline.

pending submission -> extract evidence -> evaluate -> commit verdict
  -> (verified) complete attempt + award coins in one transaction

The verdict is committed before the award transaction starts. If the award
fails, the submission stays verified with its attempt still active; the
reconciler (or a repeated verification call) settles it later, and the
submission-derived idempotency key prevents double credit.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from trippey.config import get_settings
from trippey.db.models import QuestSubmission
from trippey.quests.requirements import (
    QuestRequirements,
    VerificationRules,
    parse_requirements,
    parse_verification_rules,
)
from trippey.quests.service import complete_attempt
from trippey.rewards.coin_service import (
    award_quest_coins,
    get_ledger,
    publish_coins_update,
    quest_award_key,
)
from trippey.verification.evaluator import evaluate
from trippey.verification.evidence import Evidence, EvidenceExtractor
from trippey.verification.schemas import VerificationResult
from trippey.verification.submission_service import (
    SubmissionStateError,
    get_submission,
    list_verified_unsettled,
    record_verdict,
)
from trippey.verification.vision import get_vision_provider

logger = logging.getLogger(__name__)


class CoinAwardError(Exception):
    """Submission was verified but completing the quest or crediting coins failed."""


@dataclass
class PipelineOutcome:
    submission: QuestSubmission
    result: VerificationResult
    coins_awarded: int = 0


def get_evidence_extractor() -> EvidenceExtractor:
    """Extractor backed by the configured vision provider (FastAPI dependency)."""
    return EvidenceExtractor(get_vision_provider())


async def _extract_with_deadline(
    extractor: EvidenceExtractor,
    file_url: str,
    submission_type: str,
    requirements: QuestRequirements,
) -> Evidence:
    timeout = get_settings().extraction_total_timeout_seconds
    try:
        return await asyncio.wait_for(
            extractor.extract(file_url, submission_type, requirements),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        logger.warning("Evidence extraction exceeded %.1fs for %s", timeout, file_url)
        return Evidence(extraction_failed=True, failure_reason="Evidence extraction timed out")


async def verify_submission(
    db: AsyncSession,
    extractor: EvidenceExtractor,
    submission_id: uuid.UUID,
    *,
    file_url: str | None = None,
    submission_type: str | None = None,
    requirements: dict[str, Any] | None = None,
    rules: dict[str, Any] | None = None,
    redis: object = None,
) -> PipelineOutcome:
    """Run verification for one submission and settle it if verified.

    Requirements and rules default to the quest's stored ones; when supplied
    they are validated against the quest's category. Re-running on an already
    resolved submission returns the stored verdict and retries settlement.
    """
    submission = await get_submission(db, submission_id)
    attempt = submission.attempt
    quest = attempt.quest

    if submission_type is not None and submission_type != submission.submission_type:
        msg = f"Submission type '{submission_type}' does not match stored type '{submission.submission_type}'"
        raise SubmissionStateError(msg)

    if submission.status != "pending":
        stored = submission.verification_results or {"status": submission.status, "confidence": 0.0}
        result = VerificationResult.model_validate(stored)
        coins = 0
        if submission.status == "verified":
            coins = await settle_verified_submission(db, submission, redis=redis)
        return PipelineOutcome(submission=await get_submission(db, submission_id), result=result, coins_awarded=coins)

    quest_requirements = parse_requirements(
        quest.category, requirements if requirements is not None else quest.requirements
    )
    verification_rules: VerificationRules = parse_verification_rules(
        rules if rules is not None else quest.verification_rules
    )

    if attempt.status != "active":
        result = VerificationResult(
            status="rejected",
            confidence=0.0,
            details={"error": f"Quest attempt is not active (status: {attempt.status})"},
        )
    else:
        evidence = await _extract_with_deadline(
            extractor, file_url or submission.file_url, submission.submission_type, quest_requirements
        )
        result = evaluate(submission.submission_type, evidence, quest_requirements, verification_rules)
        logger.info(
            "Submission %s evaluated: %s (type=%s, extraction_failed=%s)",
            submission.id, result.status, submission.submission_type, evidence.extraction_failed,
        )

    await record_verdict(db, submission.id, result)

    coins = 0
    if result.status == "verified":
        coins = await settle_verified_submission(db, submission, redis=redis)

    return PipelineOutcome(submission=await get_submission(db, submission_id), result=result, coins_awarded=coins)


async def settle_verified_submission(
    db: AsyncSession,
    submission: QuestSubmission,
    redis: object = None,
) -> int:
    """Complete the attempt and award the quest's coins in one transaction.

    Returns coins credited; 0 when the attempt was no longer active or the award
    was a duplicate. Raises CoinAwardError on persistence failure.
    """
    # Plain values: a rollback below expires every loaded instance
    submission_id = submission.id
    attempt_id = submission.attempt.id
    user_id = submission.attempt.user_id
    quest = submission.attempt.quest
    quest_id, base_coins, bonus_coins = quest.id, quest.reward_coins, quest.bonus_coins

    try:
        if not await complete_attempt(db, attempt_id):
            await db.rollback()
            logger.info("Attempt %s no longer active; nothing to settle for %s", attempt_id, submission_id)
            return 0
        outcome = await award_quest_coins(
            db,
            user_id=user_id,
            quest_id=quest_id,
            base_coins=base_coins,
            bonus_coins=bonus_coins,
            idempotency_key=quest_award_key(user_id, quest_id),
            submission_id=submission_id,
        )
        if outcome.duplicate:
            # Coins were already credited for this submission; the attempt must still end completed
            await complete_attempt(db, attempt_id)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Coin award failed for verified submission %s", submission_id, exc_info=True)
        msg = f"Submission {submission_id} verified but coin award failed"
        raise CoinAwardError(msg) from e

    if outcome.total_awarded:
        ledger = await get_ledger(db, user_id)
        await publish_coins_update(redis, user_id, ledger, "quest_award")
    return outcome.total_awarded


async def reconcile_verified_submissions(db: AsyncSession, limit: int = 100, redis: object = None) -> int:
    """Settle verified submissions left uncredited by an earlier failure. Returns number settled."""
    pending = [s.id for s in await list_verified_unsettled(db, limit=limit)]
    settled = 0
    for submission_id in pending:
        try:
            submission = await get_submission(db, submission_id)
            if await settle_verified_submission(db, submission, redis=redis):
                settled += 1
        except CoinAwardError:
            logger.warning("Reconcile will retry submission %s next run", submission_id)
    if pending:
        logger.info("Reconciled %d of %d verified submissions", settled, len(pending))
    return settled
