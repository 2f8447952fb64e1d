"""Photo filtering by analysis tag and by review status.

Filters never mutate their input; they return new lists in input order.
"""

from __future__ import annotations

from collections.abc import Collection, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum

from core.models import DELETE, KEEP, Photo, PhotoAnalysis, PhotoDecision
from core.services.photo_analyzer import OLD_PHOTO_DAYS

LARGE_FILE_BYTES = 5 * 1024 * 1024


class FilterType(str, Enum):
    ALL = "all"
    SUGGESTED = "suggested"
    SCREENSHOTS = "screenshots"
    BLURRY = "blurry"
    OLD = "old"
    DUPLICATES = "duplicates"
    LARGE = "large"


class StatusFilter(str, Enum):
    ALL = "all"
    KEEP = "keep"
    DELETE = "delete"
    PENDING = "pending"


@dataclass(frozen=True)
class PhotoFilter:
    type: FilterType
    label: str
    icon: str


FILTER_PRESETS: tuple[PhotoFilter, ...] = (
    PhotoFilter(FilterType.ALL, "All Photos", "📷"),
    PhotoFilter(FilterType.SUGGESTED, "Smart Suggestions", "✨"),
    PhotoFilter(FilterType.SCREENSHOTS, "Screenshots", "📱"),
    PhotoFilter(FilterType.BLURRY, "Blurry", "😵"),
    PhotoFilter(FilterType.OLD, "Old (2+ years)", "📅"),
    PhotoFilter(FilterType.DUPLICATES, "Duplicates", "👯"),
    PhotoFilter(FilterType.LARGE, "Large Files", "💾"),
)


def _matches(
    photo: Photo,
    filter_type: FilterType,
    analysis: PhotoAnalysis | None,
    suggestions: Collection[str],
) -> bool:
    if filter_type is FilterType.ALL:
        return True
    if filter_type is FilterType.SUGGESTED:
        return photo.id in suggestions
    if filter_type is FilterType.LARGE:
        return (photo.file_size or 0) > LARGE_FILE_BYTES
    # The remaining filters need an analysis; a missing one never matches.
    if analysis is None:
        return False
    if filter_type is FilterType.SCREENSHOTS:
        return analysis.is_screenshot
    if filter_type is FilterType.BLURRY:
        return analysis.is_blurry
    if filter_type is FilterType.OLD:
        return analysis.age_in_days > OLD_PHOTO_DAYS
    if filter_type is FilterType.DUPLICATES:
        return analysis.is_potential_duplicate
    return True


def apply_filter(
    photos: Sequence[Photo],
    filter_type: FilterType | str,
    analyses: Mapping[str, PhotoAnalysis],
    smart_suggestions: Collection[str] = (),
) -> list[Photo]:
    """Return the photos matching `filter_type`.

    Raises:
        ValueError: If `filter_type` is not a known filter name.
    """
    kind = FilterType(filter_type)
    if kind is FilterType.ALL:
        return list(photos)
    suggestions = set(smart_suggestions)
    return [p for p in photos if _matches(p, kind, analyses.get(p.id), suggestions)]


def get_filter_counts(
    photos: Sequence[Photo],
    analyses: Mapping[str, PhotoAnalysis],
    smart_suggestions: Collection[str] = (),
) -> dict[FilterType, int]:
    """Badge counts per filter, using the same predicates as `apply_filter`."""
    suggestions = set(smart_suggestions)
    counts = {kind: 0 for kind in FilterType}
    for photo in photos:
        analysis = analyses.get(photo.id)
        for kind in FilterType:
            if _matches(photo, kind, analysis, suggestions):
                counts[kind] += 1
    return counts


def filter_by_status(
    photos: Sequence[Photo],
    decisions: Mapping[str, PhotoDecision],
    status: StatusFilter | str,
) -> list[Photo]:
    """Select photos by their review decision; `pending` means undecided."""
    kind = StatusFilter(status)
    if kind is StatusFilter.ALL:
        return list(photos)
    if kind is StatusFilter.PENDING:
        return [p for p in photos if p.id not in decisions]
    wanted = KEEP if kind is StatusFilter.KEEP else DELETE
    return [p for p in photos if decisions.get(p.id) == wanted]
