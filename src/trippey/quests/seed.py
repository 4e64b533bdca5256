"""Quest catalog seed data: upserted on startup by slug."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from trippey.db.base import dialect_insert
from trippey.db.models import Quest
from trippey.quests.requirements import parse_requirements, parse_verification_rules

logger = logging.getLogger(__name__)

QUEST_SEED_DATA: list[dict] = [
    {
        "slug": "street_food_under_budget",
        "title": "Street Food Saver",
        "description": "Eat a full local meal for 500 or less and upload the receipt.",
        "category": "budget",
        "reward_coins": 20,
        "bonus_coins": 5,
        "requirements": {"max_amount": 500},
        "verification_rules": {"accepted_submission_types": ["receipt"]},
        "difficulty_level": 1,
        "sort_order": 1,
    },
    {
        "slug": "market_haul",
        "title": "Market Haul",
        "description": "Shop at a local market: at least 3 items, total under 1000.",
        "category": "budget",
        "reward_coins": 30,
        "bonus_coins": 0,
        "requirements": {"max_amount": 1000, "min_items": 3},
        "verification_rules": {"accepted_submission_types": ["receipt"]},
        "difficulty_level": 2,
        "sort_order": 2,
    },
    {
        "slug": "ride_like_a_local",
        "title": "Ride Like a Local",
        "description": "Take a bus or a train instead of a taxi and upload your ticket.",
        "category": "transport",
        "reward_coins": 25,
        "bonus_coins": 10,
        "requirements": {"transport_types": ["bus", "train"]},
        "verification_rules": {"accepted_submission_types": ["ticket"]},
        "difficulty_level": 2,
        "sort_order": 3,
    },
    {
        "slug": "any_public_transport",
        "title": "Public Transport Explorer",
        "description": "Use any form of public transport and upload the ticket.",
        "category": "transport",
        "reward_coins": 15,
        "bonus_coins": 0,
        "requirements": {},
        "verification_rules": {"accepted_submission_types": ["ticket"]},
        "difficulty_level": 1,
        "sort_order": 4,
    },
    {
        "slug": "heritage_site_visit",
        "title": "Heritage Hunter",
        "description": "Visit the Taj Mahal and share a photo from the grounds.",
        "category": "cultural",
        "reward_coins": 50,
        "bonus_coins": 20,
        "requirements": {"expected_location": "Taj Mahal"},
        "verification_rules": {"accepted_submission_types": ["photo", "video"]},
        "difficulty_level": 3,
        "sort_order": 5,
    },
    {
        "slug": "hidden_gem",
        "title": "Hidden Gem",
        "description": "Find a place that is not in any guidebook and photograph it.",
        "category": "exploration",
        "reward_coins": 40,
        "bonus_coins": 0,
        "requirements": {"min_locations": 1},
        "verification_rules": {"accepted_submission_types": ["photo"]},
        "difficulty_level": 3,
        "sort_order": 6,
    },
    {
        "slug": "local_artisan",
        "title": "Support a Local Artisan",
        "description": "Buy something handmade directly from its maker.",
        "category": "social_impact",
        "reward_coins": 35,
        "bonus_coins": 15,
        "requirements": {"min_items": 1},
        "verification_rules": {"accepted_submission_types": ["receipt", "photo"]},
        "difficulty_level": 2,
        "sort_order": 7,
    },
]


async def seed_quests(db: AsyncSession) -> int:
    """Upsert the quest catalog. Returns number of quests seeded."""
    seeded = 0
    for quest_data in QUEST_SEED_DATA:
        # Fail loudly on malformed seed requirements
        parse_requirements(quest_data["category"], quest_data["requirements"])
        parse_verification_rules(quest_data["verification_rules"])

        stmt = dialect_insert(db, Quest).values(**quest_data)
        stmt = stmt.on_conflict_do_update(
            index_elements=["slug"],
            set_={
                "title": stmt.excluded.title,
                "description": stmt.excluded.description,
                "category": stmt.excluded.category,
                "reward_coins": stmt.excluded.reward_coins,
                "bonus_coins": stmt.excluded.bonus_coins,
                "requirements": stmt.excluded.requirements,
                "verification_rules": stmt.excluded.verification_rules,
                "difficulty_level": stmt.excluded.difficulty_level,
                "sort_order": stmt.excluded.sort_order,
            },
        )
        await db.execute(stmt)
        seeded += 1

    await db.commit()
    logger.info("Seeded %d quests", seeded)
    return seeded
