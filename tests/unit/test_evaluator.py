"""Verification rule evaluator: per-type decisions, thresholds and fail-closed paths."""

from __future__ import annotations

from trippey.quests.requirements import QuestRequirements, VerificationRules
from trippey.verification.evaluator import evaluate
from trippey.verification.evidence import Evidence


def _receipt(text: str) -> Evidence:
    from trippey.verification.evidence import count_items, detect_amount

    return Evidence(extracted_text=text, detected_amount=detect_amount(text), item_count=count_items(text))


class TestReceipt:
    def test_amount_at_max_is_verified(self):
        result = evaluate("receipt", _receipt("Thali\nTotal: 500.00"), QuestRequirements(max_amount=500))
        assert result.status == "verified"
        assert result.confidence == 0.9
        assert result.details["detectedAmount"] == 500.0
        assert result.details["requirementsMet"] == {"maxAmount": True, "minItems": True}

    def test_amount_just_over_max_is_rejected(self):
        result = evaluate("receipt", _receipt("Thali\nTotal: 500.01"), QuestRequirements(max_amount=500))
        assert result.status == "rejected"
        assert result.confidence == 0.1
        assert result.details["requirementsMet"]["maxAmount"] is False

    def test_min_items_counts_line_breaks(self):
        text = "Rice\nDal\nChai\nTotal: 120"
        assert evaluate("receipt", _receipt(text), QuestRequirements(min_items=3)).status == "verified"
        assert evaluate("receipt", _receipt(text), QuestRequirements(min_items=4)).status == "rejected"

    def test_zero_max_amount_is_enforced(self):
        result = evaluate("receipt", _receipt("Total: 1"), QuestRequirements(max_amount=0))
        assert result.status == "rejected"

    def test_no_requirements_accepts_any_receipt(self):
        result = evaluate("receipt", _receipt("Total: 99999"), QuestRequirements())
        assert result.status == "verified"

    def test_unlabelled_receipt_reads_as_zero(self):
        result = evaluate("receipt", _receipt("Masala dosa 80"), QuestRequirements(max_amount=50))
        assert result.details["detectedAmount"] == 0.0
        assert result.status == "verified"

    def test_extracted_text_is_kept(self):
        result = evaluate("receipt", _receipt("Total: 10"), QuestRequirements())
        assert result.extracted_text == "Total: 10"
        assert result.to_record()["extractedText"] == "Total: 10"


class TestPhoto:
    def test_location_match_is_verified(self):
        evidence = Evidence(location_matches=True, detected_location="Taj Mahal, Agra")
        result = evaluate("photo", evidence, QuestRequirements(expected_location="Taj Mahal"))
        assert result.status == "verified"
        assert result.confidence == 0.8
        assert result.details == {"location": "Taj Mahal, Agra", "isLocationValid": True}

    def test_mismatch_goes_to_review_not_rejection(self):
        evidence = Evidence(location_matches=False, detected_location="Qutub Minar")
        result = evaluate("photo", evidence, QuestRequirements(expected_location="Taj Mahal"))
        assert result.status == "under_review"
        assert result.confidence == 0.5

    def test_inconclusive_without_expected_location(self):
        result = evaluate("photo", Evidence(location_matches=None), QuestRequirements())
        assert result.status == "under_review"


class TestTicket:
    def test_bus_ticket_is_verified(self):
        result = evaluate("ticket", Evidence(extracted_text="Bus Ticket #123"), QuestRequirements())
        assert result.status == "verified"
        assert result.confidence == 0.85
        assert result.details["hasTransportKeyword"] is True
        assert result.details["transportType"] == "bus"

    def test_flight_rejected_when_bus_or_train_required(self):
        result = evaluate(
            "ticket",
            Evidence(extracted_text="Flight BA202"),
            QuestRequirements(transport_types=["bus", "train"]),
        )
        assert result.status == "rejected"
        assert result.confidence == 0.2
        assert result.details["transportType"] == "unknown"
        # "flight" is still a transport keyword
        assert result.details["hasTransportKeyword"] is True

    def test_required_type_match_is_case_insensitive(self):
        result = evaluate(
            "ticket",
            Evidence(extracted_text="INDIAN RAILWAYS TRAIN 12002"),
            QuestRequirements(transport_types=["Train"]),
        )
        assert result.status == "verified"
        assert result.details["transportType"] == "train"

    def test_no_keyword_is_rejected(self):
        result = evaluate("ticket", Evidence(extracted_text="Museum entry"), QuestRequirements())
        assert result.status == "rejected"
        assert result.details["hasTransportKeyword"] is False

    def test_detail_text_is_truncated(self):
        result = evaluate("ticket", Evidence(extracted_text="bus " * 100), QuestRequirements())
        assert len(result.details["extractedText"]) == 200

    def test_extracted_transport_fields_are_trusted(self):
        evidence = Evidence(extracted_text="Museum entry", has_transport_keyword=True, transport_type="metro")
        result = evaluate("ticket", evidence, QuestRequirements())
        assert result.status == "verified"
        assert result.details["transportType"] == "metro"

    def test_extracted_no_match_is_rejected(self):
        evidence = Evidence(extracted_text="Bus 42", has_transport_keyword=True, transport_type=None)
        result = evaluate("ticket", evidence, QuestRequirements(transport_types=["train"]))
        assert result.status == "rejected"
        assert result.details["transportType"] == "unknown"


class TestFailClosed:
    def test_video_always_needs_review(self):
        result = evaluate("video", Evidence(), QuestRequirements())
        assert result.status == "under_review"
        assert result.confidence == 0.5
        assert result.details["requiresManualReview"] is True

    def test_extraction_failure_is_never_verified(self):
        evidence = Evidence(extraction_failed=True, failure_reason="timed out")
        for submission_type in ("receipt", "photo", "ticket"):
            result = evaluate(submission_type, evidence, QuestRequirements())
            assert result.status == "under_review"
            assert result.confidence == 0.0
            assert result.details["insufficientEvidence"] is True

    def test_unsupported_type_is_rejected(self):
        result = evaluate("audio", Evidence(), QuestRequirements())
        assert result.status == "rejected"
        assert result.details["error"] == "Unsupported submission type"

    def test_type_outside_accepted_rules_is_rejected(self):
        rules = VerificationRules(accepted_submission_types=["receipt"])
        result = evaluate("ticket", Evidence(extracted_text="bus"), QuestRequirements(), rules)
        assert result.status == "rejected"
        assert result.details["acceptedSubmissionTypes"] == ["receipt"]
