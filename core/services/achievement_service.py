"""Achievement catalog and unlock evaluation.

Progress for each locked achievement is recomputed from the cumulative
`GalleryStats` (and the active session, for per-session goals). Unlocking is
monotonic: an achievement with `unlocked_at` set is returned untouched even if
the metric it tracks later drops.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import replace

from core.clock import Clock, now_ms
from core.models import Achievement, GalleryStats, SessionStats

MIB = 1024 * 1024
GIB = 1024 * MIB

ACHIEVEMENT_DEFINITIONS: tuple[Achievement, ...] = (
    Achievement("first_steps", "First Steps", "Review your first photo", "👶", target=1),
    Achievement("getting_started", "Getting Started", "Review 10 photos", "🚀", target=10),
    Achievement("century_club", "Century Club", "Review 100 photos", "💯", target=100),
    Achievement("declutter_begins", "Declutter Begins", "Delete your first photo", "🗑️", target=1),
    Achievement("space_saver", "Space Saver", "Free up 100MB of storage", "💾", target=100 * MIB),
    Achievement("storage_master", "Storage Master", "Free up 1GB of storage", "🏆", target=GIB),
    Achievement("streak_3", "3-Day Streak", "Clean photos 3 days in a row", "🔥", target=3),
    Achievement("streak_7", "Week Warrior", "Clean photos 7 days in a row", "⚡", target=7),
    Achievement("streak_30", "Monthly Master", "Clean photos 30 days in a row", "🌟", target=30),
    Achievement("speed_demon", "Speed Demon", "Review 50 photos in one session", "⚡", target=50),
    Achievement("completionist", "Completionist", "Delete 500 photos total", "✨", target=500),
)

STORAGE_ACHIEVEMENTS = frozenset({"space_saver", "storage_master"})

Metric = Callable[[GalleryStats, SessionStats | None], int]

# id -> metric compared against the achievement's target
ACHIEVEMENT_METRICS: dict[str, Metric] = {
    "first_steps": lambda s, _: s.processed,
    "getting_started": lambda s, _: s.processed,
    "century_club": lambda s, _: s.lifetime_deleted + s.processed,
    "declutter_begins": lambda s, _: s.to_delete + s.lifetime_deleted,
    "space_saver": lambda s, _: s.lifetime_freed,
    "storage_master": lambda s, _: s.lifetime_freed,
    "streak_3": lambda s, _: s.current_streak,
    "streak_7": lambda s, _: s.current_streak,
    "streak_30": lambda s, _: s.current_streak,
    "speed_demon": lambda _, session: session.photos_reviewed if session else 0,
    "completionist": lambda s, _: s.lifetime_deleted,
}


def initialize_achievements() -> list[Achievement]:
    """Fresh, all-locked copy of the catalog."""
    return list(ACHIEVEMENT_DEFINITIONS)


def check_achievements(
    achievements: Sequence[Achievement],
    stats: GalleryStats,
    session: SessionStats | None,
    clock: Clock = now_ms,
) -> tuple[list[Achievement], list[str]]:
    """Recompute progress and unlock achievements whose target is reached.

    Returns:
        The updated achievement list and the ids unlocked by this call.
    """
    updated: list[Achievement] = []
    newly_unlocked: list[str] = []
    now: int | None = None
    for achievement in achievements:
        metric = ACHIEVEMENT_METRICS.get(achievement.id)
        if achievement.unlocked_at is not None or metric is None:
            updated.append(achievement)
            continue
        progress = metric(stats, session)
        if progress >= achievement.target:
            if now is None:
                now = clock()
            updated.append(replace(achievement, progress=progress, unlocked_at=now))
            newly_unlocked.append(achievement.id)
        else:
            updated.append(replace(achievement, progress=progress))
    return updated, newly_unlocked


def format_progress(achievement: Achievement) -> str:
    """Human readable `progress / target`, in MB or GB for storage goals."""
    if achievement.id in STORAGE_ACHIEVEMENTS:
        progress_mb = achievement.progress / MIB
        target_mb = achievement.target / MIB
        if target_mb >= 1024:
            return f"{progress_mb / 1024:.2f}GB / {target_mb / 1024:.0f}GB"
        return f"{progress_mb:.0f}MB / {target_mb:.0f}MB"
    return f"{achievement.progress} / {achievement.target}"


def get_progress_percentage(achievement: Achievement) -> float:
    if achievement.target <= 0:
        return 100.0
    return min(100.0, achievement.progress / achievement.target * 100)
