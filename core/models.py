"""Core domain models for the photo triage gallery."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

PhotoDecision = Literal["keep", "delete"]
MediaType = Literal["photo", "video"]
PermissionStatus = Literal["undetermined", "granted", "denied"]

KEEP: PhotoDecision = "keep"
DELETE: PhotoDecision = "delete"


@dataclass(frozen=True)
class Photo:
    """A single library asset. Immutable once loaded."""

    id: str
    uri: str
    filename: str
    width: int
    height: int
    creation_time: int  # epoch ms
    file_size: int = 0  # bytes
    media_type: MediaType = "photo"
    duration: float | None = None


@dataclass(frozen=True)
class PhotoAnalysis:
    """Heuristic classification of one photo, recomputed wholesale."""

    photo_id: str
    is_blurry: bool
    blur_score: int  # 0-100, higher = more blurry
    is_screenshot: bool
    is_potential_duplicate: bool
    age_in_days: int
    brightness: int  # 0-100
    analyzed_at: int
    duplicate_group: str | None = None


@dataclass(frozen=True)
class UndoHistoryItem:
    photo_id: str
    decision: PhotoDecision
    timestamp: int


@dataclass(frozen=True)
class GalleryStats:
    """Aggregate counters; storage values are bytes."""

    total_photos: int = 0
    processed: int = 0
    to_delete: int = 0
    to_keep: int = 0
    storage_to_free: int = 0
    current_streak: int = 0
    total_sessions: int = 0
    lifetime_deleted: int = 0
    lifetime_freed: int = 0


@dataclass(frozen=True)
class SessionStats:
    session_id: str
    start_time: int
    end_time: int | None = None
    photos_reviewed: int = 0
    photos_deleted: int = 0
    photos_kept: int = 0
    storage_freed: int = 0


@dataclass(frozen=True)
class Achievement:
    """Catalog entry plus progress. `unlocked_at` is set once and never cleared."""

    id: str
    title: str
    description: str
    icon: str
    target: int
    progress: int = 0
    unlocked_at: int | None = None

    @property
    def is_unlocked(self) -> bool:
        return self.unlocked_at is not None


@dataclass(frozen=True)
class PhotoPage:
    """One page from a media source, newest first."""

    items: list[Photo]
    next_cursor: str | None
    has_more: bool


@dataclass(frozen=True)
class GalleryState:
    """Snapshot of the whole gallery. Transitions return new snapshots."""

    photos: tuple[Photo, ...] = ()
    current_index: int = 0
    stats: GalleryStats = field(default_factory=GalleryStats)
    decisions: dict[str, PhotoDecision] = field(default_factory=dict)
    is_loading: bool = False
    has_more_photos: bool = True
    permission_status: PermissionStatus = "undetermined"
    photo_cursor: str | None = None
    undo_history: tuple[UndoHistoryItem, ...] = ()
    current_session: SessionStats | None = None
    last_resume_photo_id: str | None = None
    analyses: dict[str, PhotoAnalysis] = field(default_factory=dict)
    achievements: tuple[Achievement, ...] = ()
    unlocked_achievements: tuple[str, ...] = ()

    def find_photo(self, photo_id: str) -> Photo | None:
        """Return the loaded photo with `photo_id`, or None."""
        for photo in self.photos:
            if photo.id == photo_id:
                return photo
        return None

    @property
    def current_photo(self) -> Photo | None:
        if 0 <= self.current_index < len(self.photos):
            return self.photos[self.current_index]
        return None
