"""Seed data for badges, daily quests, milestones and name cards.

Seeding is idempotent: rows are matched on their natural key and only
missing ones are inserted, so it runs safely at every startup.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from wordduel.db.models import Badge, DailyQuest, NameCard, SeasonMilestone, TeamMilestone

logger = logging.getLogger(__name__)

BADGE_SEED_DATA: list[dict] = [
    # Vocabulary
    {"slug": "first_word", "name": "First Steps", "description": "Study your first word",
     "category": "learning", "rarity": "common", "condition_metric": "words_learned", "condition_threshold": 1},
    {"slug": "words_100", "name": "Rising Wordsmith", "description": "Study 100 words",
     "category": "learning", "rarity": "common", "condition_metric": "words_learned", "condition_threshold": 100},
    {"slug": "words_500", "name": "Word Explorer", "description": "Study 500 words",
     "category": "learning", "rarity": "rare", "condition_metric": "words_learned", "condition_threshold": 500},
    {"slug": "words_1000", "name": "Word Master", "description": "Study 1,000 words",
     "category": "learning", "rarity": "epic", "condition_metric": "words_learned", "condition_threshold": 1000},
    # Math
    {"slug": "math_first", "name": "Math Spark", "description": "Study your first math term",
     "category": "math", "rarity": "common", "condition_metric": "math_words_learned", "condition_threshold": 1},
    {"slug": "math_50", "name": "Math Novice", "description": "Study 50 math terms",
     "category": "math", "rarity": "common", "condition_metric": "math_words_learned", "condition_threshold": 50},
    {"slug": "math_100", "name": "Math Whiz", "description": "Study 100 math terms",
     "category": "math", "rarity": "rare", "condition_metric": "math_words_learned", "condition_threshold": 100},
    {"slug": "math_master", "name": "Math Master", "description": "Study every math term",
     "category": "math", "rarity": "legendary", "condition_metric": "math_completion_pct",
     "condition_threshold": 100},
    # Science
    {"slug": "science_first", "name": "Science Spark", "description": "Study your first science term",
     "category": "science", "rarity": "common", "condition_metric": "science_words_learned", "condition_threshold": 1},
    {"slug": "science_100", "name": "Science Novice", "description": "Study 100 science terms",
     "category": "science", "rarity": "common", "condition_metric": "science_words_learned",
     "condition_threshold": 100},
    {"slug": "science_300", "name": "Science Explorer", "description": "Study 300 science terms",
     "category": "science", "rarity": "rare", "condition_metric": "science_words_learned",
     "condition_threshold": 300},
    {"slug": "science_500", "name": "Science Pioneer", "description": "Study 500 science terms",
     "category": "science", "rarity": "epic", "condition_metric": "science_words_learned",
     "condition_threshold": 500},
    {"slug": "science_master", "name": "Science Master", "description": "Study every science term",
     "category": "science", "rarity": "legendary", "condition_metric": "science_completion_pct",
     "condition_threshold": 100},
    # Battle
    {"slug": "first_win", "name": "First Victory", "description": "Win your first ranked match",
     "category": "battle", "rarity": "common", "condition_metric": "wins", "condition_threshold": 1},
    {"slug": "win_streak_3", "name": "Hot Streak", "description": "Win 3 ranked matches in a row",
     "category": "battle", "rarity": "rare", "condition_metric": "win_streak", "condition_threshold": 3},
    {"slug": "win_streak_10", "name": "Unstoppable", "description": "Win 10 ranked matches in a row",
     "category": "battle", "rarity": "legendary", "condition_metric": "win_streak", "condition_threshold": 10},
    {"slug": "perfect_match", "name": "Flawless", "description": "Win a match while your opponent scores nothing",
     "category": "battle", "rarity": "epic", "condition_metric": "perfect_matches", "condition_threshold": 1},
    {"slug": "diamond_rank", "name": "Diamond Mind", "description": "Reach the diamond tier",
     "category": "battle", "rarity": "legendary", "condition_metric": "rank_tier_index", "condition_threshold": 4},
    # Economy
    {"slug": "coins_1000", "name": "Treasure Keeper", "description": "Hold 1,000 coins",
     "category": "economy", "rarity": "rare", "condition_metric": "coins", "condition_threshold": 1000},
    # Season rewards (awarded by the season job, no automatic condition)
    {"slug": "class_champion", "name": "Class Champion", "description": "Your class finished first in a season",
     "category": "season", "rarity": "legendary", "condition_metric": None, "condition_threshold": 0},
    {"slug": "class_runner_up", "name": "Class Runner-up", "description": "Your class finished second in a season",
     "category": "season", "rarity": "epic", "condition_metric": None, "condition_threshold": 0},
    {"slug": "class_third", "name": "Class Bronze", "description": "Your class finished third in a season",
     "category": "season", "rarity": "rare", "condition_metric": None, "condition_threshold": 0},
    {"slug": "grade_star", "name": "Grade Star", "description": "Your grade finished first in a season",
     "category": "season", "rarity": "legendary", "condition_metric": None, "condition_threshold": 0},
    {"slug": "grade_pioneer", "name": "Grade Pioneer", "description": "Your grade placed in a season's top three",
     "category": "season", "rarity": "epic", "condition_metric": None, "condition_threshold": 0},
]

QUEST_SEED_DATA: list[dict] = [
    {"slug": "study_20_words", "title": "Study 20 words", "metric": "words_studied", "target": 20,
     "reward_type": "xp", "reward_value": 30},
    {"slug": "play_3_battles", "title": "Play 3 battles", "metric": "battles_played", "target": 3,
     "reward_type": "coins", "reward_value": 20},
    {"slug": "win_1_battle", "title": "Win a battle", "metric": "battles_won", "target": 1,
     "reward_type": "energy", "reward_value": 2},
]

TEAM_MILESTONE_SEED_DATA: list[dict] = [
    {"name": "Team XP 1,000", "target_type": "xp", "target_value": 1000, "reward_type": "coins",
     "reward_value": 50, "sort_order": 1},
    {"name": "Team XP 10,000", "target_type": "xp", "target_value": 10000, "reward_type": "coins",
     "reward_value": 200, "sort_order": 2},
    {"name": "25 Team Wins", "target_type": "wins", "target_value": 25, "reward_type": "xp",
     "reward_value": 100, "sort_order": 3},
    {"name": "100 Team Battles", "target_type": "battles", "target_value": 100, "reward_type": "coins",
     "reward_value": 150, "sort_order": 4},
]

SEASON_MILESTONE_SEED_DATA: list[dict] = [
    {"name": "Earn 500 XP", "target_type": "xp", "target_value": 500, "reward_type": "coins",
     "reward_value": 50, "sort_order": 1},
    {"name": "Complete 5 levels", "target_type": "levels", "target_value": 5, "reward_type": "energy",
     "reward_value": 3, "sort_order": 2},
    {"name": "Master 100 words", "target_type": "words", "target_value": 100, "reward_type": "xp",
     "reward_value": 100, "sort_order": 3},
    {"name": "Win 10 battles", "target_type": "battles", "target_value": 10, "reward_type": "coins",
     "reward_value": 100, "sort_order": 4},
    {"name": "80% accuracy", "target_type": "accuracy", "target_value": 80, "reward_type": "coins",
     "reward_value": 150, "sort_order": 5},
]

NAME_CARD_SEED_DATA: list[dict] = [
    {"name": "Coin Magnate", "category": "leaderboard_coins", "rarity": "legendary",
     "background_gradient": "linear-gradient(135deg, #f6d365 0%, #fda085 100%)"},
    {"name": "Battle Legend", "category": "leaderboard_wins", "rarity": "legendary",
     "background_gradient": "linear-gradient(135deg, #ff6a88 0%, #ff99ac 100%)"},
    {"name": "Scholar Supreme", "category": "leaderboard_xp", "rarity": "legendary",
     "background_gradient": "linear-gradient(135deg, #667eea 0%, #764ba2 100%)"},
]


async def _seed(db: AsyncSession, model: type, rows: list[dict], key: str) -> int:
    existing = set((await db.execute(select(getattr(model, key)))).scalars().all())
    added = 0
    for row in rows:
        if row[key] in existing:
            continue
        db.add(model(**row))
        added += 1
    return added


async def seed_all(db: AsyncSession) -> dict[str, int]:
    """Insert any missing seed rows. Returns the number added per table."""
    counts = {
        "badges": await _seed(db, Badge, BADGE_SEED_DATA, "slug"),
        "daily_quests": await _seed(db, DailyQuest, QUEST_SEED_DATA, "slug"),
        "team_milestones": await _seed(db, TeamMilestone, TEAM_MILESTONE_SEED_DATA, "name"),
        "season_milestones": await _seed(db, SeasonMilestone, SEASON_MILESTONE_SEED_DATA, "name"),
        "name_cards": await _seed(db, NameCard, NAME_CARD_SEED_DATA, "category"),
    }
    await db.commit()
    if any(counts.values()):
        logger.info("Seeded reference data: %s", counts)
    return counts
