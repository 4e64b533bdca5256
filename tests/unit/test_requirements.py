"""Typed quest requirements: category allow-list and normalization."""

from __future__ import annotations

import pytest

from trippey.quests.requirements import (
    InvalidRequirementsError,
    parse_requirements,
    parse_verification_rules,
)
from trippey.quests.seed import QUEST_SEED_DATA


class TestParseRequirements:
    def test_budget_fields(self):
        req = parse_requirements("budget", {"max_amount": 500, "min_items": 2})
        assert req.max_amount == 500.0
        assert req.min_items == 2

    def test_empty_means_no_constraint(self):
        req = parse_requirements("transport", None)
        assert req.transport_types is None

    def test_transport_types_are_normalized(self):
        req = parse_requirements("transport", {"transport_types": [" Bus", "TRAIN", ""]})
        assert req.transport_types == ["bus", "train"]

    def test_blank_location_is_dropped(self):
        assert parse_requirements("cultural", {"expected_location": "  "}).expected_location is None

    def test_unknown_key_is_rejected(self):
        with pytest.raises(InvalidRequirementsError):
            parse_requirements("budget", {"maxAmount": 500})

    def test_field_outside_category_is_rejected(self):
        with pytest.raises(InvalidRequirementsError, match="transport_types"):
            parse_requirements("budget", {"transport_types": ["bus"]})

    def test_negative_amount_is_rejected(self):
        with pytest.raises(InvalidRequirementsError):
            parse_requirements("budget", {"max_amount": -1})

    def test_unknown_category(self):
        with pytest.raises(InvalidRequirementsError):
            parse_requirements("nightlife", {})


class TestVerificationRules:
    def test_accepted_types(self):
        rules = parse_verification_rules({"accepted_submission_types": ["photo", "video"]})
        assert rules.accepted_submission_types == ["photo", "video"]

    def test_unknown_type_is_rejected(self):
        with pytest.raises(InvalidRequirementsError):
            parse_verification_rules({"accepted_submission_types": ["audio"]})


def test_seed_catalog_is_valid():
    for quest in QUEST_SEED_DATA:
        parse_requirements(quest["category"], quest["requirements"])
        parse_verification_rules(quest["verification_rules"])
