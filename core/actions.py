"""Actions consumed by the gallery reducer.

Each action is a small frozen dataclass; the reducer dispatches on its type.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Union

from core.models import (
    Achievement,
    PermissionStatus,
    Photo,
    PhotoAnalysis,
    PhotoDecision,
    SessionStats,
)


@dataclass(frozen=True)
class LoadPhotosSuccess:
    photos: Sequence[Photo]
    cursor: str | None
    has_more: bool


@dataclass(frozen=True)
class LoadMorePhotos:
    photos: Sequence[Photo]
    cursor: str | None
    has_more: bool


@dataclass(frozen=True)
class MarkDecision:
    photo_id: str
    decision: PhotoDecision


@dataclass(frozen=True)
class UndoLastDecision:
    pass


@dataclass(frozen=True)
class UndoDecision:
    photo_id: str


@dataclass(frozen=True)
class ClearUndoHistory:
    pass


@dataclass(frozen=True)
class ExecuteDeletionsSuccess:
    deleted_ids: Sequence[str]


@dataclass(frozen=True)
class SetPermissionStatus:
    status: PermissionStatus


@dataclass(frozen=True)
class SetLoading:
    is_loading: bool


@dataclass(frozen=True)
class SetCurrentIndex:
    index: int


@dataclass(frozen=True)
class ResetSession:
    pass


@dataclass(frozen=True)
class StartSession:
    pass


@dataclass(frozen=True)
class EndSession:
    stats: SessionStats


@dataclass(frozen=True)
class SetResumePhoto:
    photo_id: str


@dataclass(frozen=True)
class UpdateStats:
    """Partial stats merge; keys are `GalleryStats` field names."""

    stats: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SetPhotoAnalysis:
    photo_id: str
    analysis: PhotoAnalysis


@dataclass(frozen=True)
class BatchSetAnalyses:
    analyses: Mapping[str, PhotoAnalysis]


@dataclass(frozen=True)
class SetAchievements:
    achievements: Sequence[Achievement]


@dataclass(frozen=True)
class UnlockAchievement:
    achievement_id: str


GalleryAction = Union[
    LoadPhotosSuccess,
    LoadMorePhotos,
    MarkDecision,
    UndoLastDecision,
    UndoDecision,
    ClearUndoHistory,
    ExecuteDeletionsSuccess,
    SetPermissionStatus,
    SetLoading,
    SetCurrentIndex,
    ResetSession,
    StartSession,
    EndSession,
    SetResumePhoto,
    UpdateStats,
    SetPhotoAnalysis,
    BatchSetAnalyses,
    SetAchievements,
    UnlockAchievement,
]
