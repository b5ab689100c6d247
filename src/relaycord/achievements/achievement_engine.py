"""
Milestone achievements for immersion members.

Each achievement compares exactly one stat (translations, streak or
characters) against a threshold. ``check_new_achievements`` is a pure
function: no definition depends on another, so the result does not depend on
the order of the definitions.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Mapping, Sequence


class AchievementAxis(Enum):
    TRANSLATIONS = "translations"
    STREAK = "streak"
    CHARACTERS = "characters"


@dataclass(frozen=True, slots=True)
class Achievement:
    id: str
    name: str
    description: str
    emoji: str
    axis: AchievementAxis
    threshold: int

    def is_met(self, stats: Mapping[str, int]) -> bool:
        return int(stats.get(self.axis.value, 0)) >= self.threshold


@dataclass(frozen=True, slots=True)
class AchievementStats:
    translations: int = 0
    streak: int = 0
    characters: int = 0

    def as_mapping(self) -> Mapping[str, int]:
        return {
            AchievementAxis.TRANSLATIONS.value: self.translations,
            AchievementAxis.STREAK.value: self.streak,
            AchievementAxis.CHARACTERS.value: self.characters,
        }


_T, _S, _C = AchievementAxis.TRANSLATIONS, AchievementAxis.STREAK, AchievementAxis.CHARACTERS

ACHIEVEMENTS: Sequence[Achievement] = (
    Achievement("first_words", "First Words", "Send your first translation", "🎒", _T, 1),
    Achievement("getting_started", "Getting Started", "Send 10 translations", "📝", _T, 10),
    Achievement("conversationalist", "Conversationalist", "Send 50 translations", "💬", _T, 50),
    Achievement("chatterbox", "Chatterbox", "Send 100 translations", "🗣️", _T, 100),
    Achievement("polyglot_apprentice", "Polyglot Apprentice", "Send 500 translations", "📚", _T, 500),
    Achievement("polyglot_master", "Polyglot Master", "Send 1,000 translations", "🎓", _T, 1000),
    Achievement("language_legend", "Language Legend", "Send 5,000 translations", "👑", _T, 5000),
    Achievement("streak_starter", "Streak Starter", "Maintain a 3-day streak", "🔥", _S, 3),
    Achievement("week_warrior", "Week Warrior", "Maintain a 7-day streak", "⚡", _S, 7),
    Achievement("dedicated_learner", "Dedicated Learner", "Maintain a 14-day streak", "💪", _S, 14),
    Achievement("monthly_master", "Monthly Master", "Maintain a 30-day streak", "🌟", _S, 30),
    Achievement("unstoppable", "Unstoppable", "Maintain a 100-day streak", "🏆", _S, 100),
    Achievement("wordsmith", "Wordsmith", "Translate 10,000 characters", "✍️", _C, 10000),
    Achievement("author", "Author", "Translate 50,000 characters", "📖", _C, 50000),
    Achievement("novelist", "Novelist", "Translate 100,000 characters", "📕", _C, 100000),
)

_BY_ID = {achievement.id: achievement for achievement in ACHIEVEMENTS}


def get_achievement_by_id(achievement_id: str) -> Achievement | None:
    return _BY_ID.get(achievement_id)


def check_new_achievements(
    unlocked_ids: Iterable[str],
    stats: AchievementStats | Mapping[str, int],
    definitions: Iterable[Achievement] = ACHIEVEMENTS,
) -> List[Achievement]:
    """
    Return the achievements newly reached by ``stats``.

    An achievement is new when its id is not in ``unlocked_ids`` and its axis
    value meets or exceeds its threshold. The result is sorted by axis,
    threshold and id so it is identical for any ordering of ``definitions``.
    """
    unlocked = set(unlocked_ids)
    values = stats.as_mapping() if isinstance(stats, AchievementStats) else stats

    earned = [a for a in definitions if a.id not in unlocked and a.is_met(values)]
    earned.sort(key=lambda a: (a.axis.value, a.threshold, a.id))
    return earned
