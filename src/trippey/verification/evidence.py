"""Evidence extraction: turn a proof file into typed facts for the evaluator.

The vision model's answers are untrusted free text. Everything here parses
defensively, and any provider failure degrades to an evidence record flagged
``extraction_failed`` instead of raising.
"""

from __future__ import annotations

import json
import re
from dataclasses import asdict, dataclass
from typing import Any

import structlog

from trippey.quests.requirements import QuestRequirements
from trippey.verification.vision import BaseVisionProvider, VisionProviderError

logger = structlog.get_logger()

TRANSPORT_KEYWORDS: tuple[str, ...] = ("bus", "train", "metro", "taxi", "flight", "ticket", "transport")

VIDEO_REVIEW_NOTE = "Video submission requires manual review"

_TOTAL_RE = re.compile(r"(?:total|amount|sum)[^\d]*(\d+(?:\.\d{2})?)", re.IGNORECASE)
_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)

TEXT_INSTRUCTION = 'Extract all text from this image. Format as JSON with extracted text in a "text" field.'
LOCATION_MATCH_INSTRUCTION = (
    "Analyze this image and determine if it shows {expected}. "
    'Return JSON with "isValid" (boolean) and "detectedLocation" (string).'
)
LOCATION_DESCRIBE_INSTRUCTION = (
    'Analyze this image and identify the location shown. Return JSON with "location" (string describing the place).'
)


@dataclass
class Evidence:
    """Normalized facts extracted from one proof file."""

    extracted_text: str = ""
    detected_amount: float | None = None
    item_count: int | None = None
    has_transport_keyword: bool | None = None
    transport_type: str | None = None
    detected_location: str | None = None
    location_matches: bool | None = None
    extraction_failed: bool = False
    failure_reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# ---------------------------------------------------------------------------
# Parsing helpers (pure)
# ---------------------------------------------------------------------------


def _load_json_object(content: str) -> dict[str, Any] | None:
    """Parse a JSON object from model output, tolerating a ```json fence."""
    stripped = content.strip()
    fenced = _FENCE_RE.match(stripped)
    if fenced:
        stripped = fenced.group(1)
    try:
        parsed = json.loads(stripped)
    except ValueError:
        return None
    return parsed if isinstance(parsed, dict) else None


def parse_text_content(content: str) -> str:
    """Extracted text from a text-extraction answer; raw content when it is not JSON."""
    parsed = _load_json_object(content)
    if parsed is None:
        return content
    text = parsed.get("text")
    if isinstance(text, str):
        return text
    if isinstance(text, list):
        return "\n".join(str(line) for line in text)
    return content


def parse_location_content(content: str, expected_location: str | None) -> tuple[bool | None, str | None]:
    """(matches, detected_location) from a location answer.

    Without an expected location, any described place counts as a match.
    Unparseable answers yield (None, None): inconclusive.
    """
    parsed = _load_json_object(content)
    if parsed is None:
        return None, None

    detected = parsed.get("detectedLocation") or parsed.get("location")
    detected = detected.strip() if isinstance(detected, str) and detected.strip() else None

    if expected_location:
        is_valid = parsed.get("isValid")
        return (is_valid if isinstance(is_valid, bool) else None), detected
    return (True if detected else None), detected


def detect_amount(text: str) -> float:
    """First number after a total/amount/sum label. No label means 0."""
    match = _TOTAL_RE.search(text)
    return float(match.group(1)) if match else 0.0


def count_items(text: str) -> int:
    """Line breaks in the text, used as a rough line-item count."""
    return text.count("\n")


def find_transport_keyword(text: str) -> str | None:
    lowered = text.lower()
    for keyword in TRANSPORT_KEYWORDS:
        if keyword in lowered:
            return keyword
    return None


def find_required_transport_type(text: str, transport_types: list[str]) -> str | None:
    lowered = text.lower()
    for transport_type in transport_types:
        if transport_type.lower() in lowered:
            return transport_type.lower()
    return None


# ---------------------------------------------------------------------------
# Extractor
# ---------------------------------------------------------------------------


class EvidenceExtractor:
    """Fetch and normalize facts for one submission."""

    def __init__(self, provider: BaseVisionProvider) -> None:
        self.provider = provider

    async def extract(
        self,
        file_url: str,
        submission_type: str,
        requirements: QuestRequirements,
    ) -> Evidence:
        if submission_type == "video":
            return Evidence(extracted_text=VIDEO_REVIEW_NOTE)

        try:
            content = await self.provider.describe(file_url, TEXT_INSTRUCTION, max_tokens=1000)
        except VisionProviderError as e:
            logger.warning("evidence_extraction_failed", submission_type=submission_type, error=str(e))
            return Evidence(extraction_failed=True, failure_reason=str(e))

        text = parse_text_content(content)
        evidence = Evidence(extracted_text=text)

        if submission_type == "receipt":
            evidence.detected_amount = detect_amount(text)
            evidence.item_count = count_items(text)
        elif submission_type == "ticket":
            keyword = find_transport_keyword(text)
            evidence.has_transport_keyword = keyword is not None
            if requirements.transport_types:
                evidence.transport_type = find_required_transport_type(text, requirements.transport_types)
            else:
                evidence.transport_type = keyword
        elif submission_type == "photo":
            await self._judge_location(file_url, requirements.expected_location, evidence)

        return evidence

    async def _judge_location(self, file_url: str, expected_location: str | None, evidence: Evidence) -> None:
        instruction = (
            LOCATION_MATCH_INSTRUCTION.format(expected=expected_location)
            if expected_location
            else LOCATION_DESCRIBE_INSTRUCTION
        )
        try:
            content = await self.provider.describe(file_url, instruction, max_tokens=300)
        except VisionProviderError as e:
            logger.warning("location_judgment_failed", error=str(e))
            evidence.extraction_failed = True
            evidence.failure_reason = str(e)
            return
        evidence.location_matches, evidence.detected_location = parse_location_content(content, expected_location)
