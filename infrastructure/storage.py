"""Persistence of stats, achievements, sessions, streak and favorites.

Every operation is best effort: read or write failures are logged and the
caller gets a safe default (None, empty list or 0) instead of an exception.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import asdict, fields
from datetime import date
from typing import Any, TypeVar

from loguru import logger

from core.models import Achievement, GalleryStats, SessionStats
from core.services.interfaces import KeyValueStore

KEYS = {
    "LAST_PHOTO_ID": "@gallery_cleaner:last_photo_id",
    "STATS": "@gallery_cleaner:stats",
    "ACHIEVEMENTS": "@gallery_cleaner:achievements",
    "SESSIONS": "@gallery_cleaner:sessions",
    "STREAK": "@gallery_cleaner:streak",
    "LAST_SESSION_DATE": "@gallery_cleaner:last_session_date",
    "FAVORITES": "@gallery_cleaner:favorites",
}

MAX_SESSIONS = 30

_STORE_ERRORS = (OSError, ValueError, TypeError)

T = TypeVar("T")


def _from_dict(cls: type[T], raw: Any) -> T | None:
    """Build dataclass `cls` from a dict, ignoring unknown keys."""
    if not isinstance(raw, dict):
        return None
    names = {f.name for f in fields(cls)}  # type: ignore[arg-type]
    try:
        return cls(**{k: v for k, v in raw.items() if k in names})
    except TypeError as ex:
        logger.warning("Cannot decode {} from {}: {}", cls.__name__, raw, ex)
        return None


class TriageStorage:
    """Typed persistence gateway over a `KeyValueStore`."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    def _get(self, key: str, what: str) -> Any | None:
        try:
            return self._store.get(key)
        except _STORE_ERRORS as ex:
            logger.error("Failed to get {}: {}", what, ex)
            return None

    def _set(self, key: str, value: Any, what: str) -> bool:
        try:
            self._store.set(key, value)
            return True
        except _STORE_ERRORS as ex:
            logger.error("Failed to save {}: {}", what, ex)
            return False

    # Resume

    def save_last_photo_id(self, photo_id: str) -> None:
        self._set(KEYS["LAST_PHOTO_ID"], photo_id, "last photo id")

    def get_last_photo_id(self) -> str | None:
        value = self._get(KEYS["LAST_PHOTO_ID"], "last photo id")
        return value if isinstance(value, str) else None

    def clear_last_photo_id(self) -> None:
        try:
            self._store.remove(KEYS["LAST_PHOTO_ID"])
        except _STORE_ERRORS as ex:
            logger.error("Failed to clear last photo id: {}", ex)

    # Stats

    def save_stats(self, stats: GalleryStats) -> None:
        self._set(KEYS["STATS"], asdict(stats), "stats")

    def get_stats(self) -> GalleryStats | None:
        return _from_dict(GalleryStats, self._get(KEYS["STATS"], "stats"))

    # Achievements

    def save_achievements(self, achievements: Sequence[Achievement]) -> None:
        self._set(KEYS["ACHIEVEMENTS"], [asdict(a) for a in achievements], "achievements")

    def get_achievements(self) -> list[Achievement] | None:
        raw = self._get(KEYS["ACHIEVEMENTS"], "achievements")
        if not isinstance(raw, list):
            return None
        decoded = [_from_dict(Achievement, item) for item in raw]
        return [a for a in decoded if a is not None]

    # Sessions

    def save_sessions(self, sessions: Sequence[SessionStats]) -> None:
        recent = list(sessions)[-MAX_SESSIONS:]
        self._set(KEYS["SESSIONS"], [asdict(s) for s in recent], "sessions")

    def get_sessions(self) -> list[SessionStats]:
        raw = self._get(KEYS["SESSIONS"], "sessions")
        if not isinstance(raw, list):
            return []
        decoded = [_from_dict(SessionStats, item) for item in raw]
        return [s for s in decoded if s is not None]

    def add_session(self, session: SessionStats) -> None:
        sessions = self.get_sessions()
        sessions.append(session)
        self.save_sessions(sessions)

    # Streak

    def get_current_streak(self) -> int:
        raw = self._get(KEYS["STREAK"], "current streak")
        try:
            return int(raw) if raw is not None else 0
        except (TypeError, ValueError):
            logger.warning("Invalid stored streak: {!r}", raw)
            return 0

    def update_streak(self, today: date | None = None) -> int:
        """Record activity for `today` and return the resulting streak.

        Same day keeps the streak, the next calendar day extends it, and a gap
        (or the first session ever) starts over at 1. Returns 0 when the
        stored state cannot be read or written.
        """
        day = today or date.today()
        try:
            last_raw = self._store.get(KEYS["LAST_SESSION_DATE"])
            current = self.get_current_streak()
            last_day = date.fromisoformat(last_raw) if isinstance(last_raw, str) else None

            if last_day is not None:
                diff_days = (day - last_day).days
                if diff_days == 0:
                    return current
                new_streak = current + 1 if diff_days == 1 else 1
            else:
                new_streak = 1

            self._store.set(KEYS["STREAK"], new_streak)
            self._store.set(KEYS["LAST_SESSION_DATE"], day.isoformat())
            return new_streak
        except _STORE_ERRORS as ex:
            logger.error("Failed to update streak: {}", ex)
            return 0

    # Favorites

    def save_favorites(self, favorite_ids: Sequence[str]) -> None:
        self._set(KEYS["FAVORITES"], list(favorite_ids), "favorites")

    def get_favorites(self) -> list[str] | None:
        raw = self._get(KEYS["FAVORITES"], "favorites")
        if not isinstance(raw, list):
            return None
        return [str(x) for x in raw]

    def clear_all(self) -> None:
        try:
            self._store.multi_remove(list(KEYS.values()))
        except _STORE_ERRORS as ex:
            logger.error("Failed to clear all data: {}", ex)
