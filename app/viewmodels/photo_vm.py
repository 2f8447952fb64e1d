"""Lightweight view model wrapper around `Photo`."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from core.models import Photo, PhotoAnalysis, PhotoDecision
from core.services.filter_service import LARGE_FILE_BYTES
from core.services.photo_analyzer import OLD_PHOTO_DAYS
from core.services.stats_report import format_storage


@dataclass
class PhotoVM:
    """Expose display-ready properties for one photo."""

    photo: Photo
    analysis: PhotoAnalysis | None = None
    decision: PhotoDecision | None = None

    @property
    def file_name(self) -> str:
        return self.photo.filename

    @property
    def resolution(self) -> str:
        return f"{self.photo.width} × {self.photo.height}"

    @property
    def size_text(self) -> str:
        """File size, or `Unknown size` when the source did not report one."""
        if not self.photo.file_size:
            return "Unknown size"
        return format_storage(self.photo.file_size)

    @property
    def date_text(self) -> str:
        try:
            dt = datetime.fromtimestamp(self.photo.creation_time / 1000)
        except (OverflowError, OSError, ValueError):
            return "Unknown date"
        hour = dt.hour % 12 or 12
        return f"{dt:%b} {dt.day}, {dt.year} • {hour}:{dt:%M %p}"

    @property
    def tags(self) -> list[str]:
        """Short classification labels shown next to the photo."""
        tags: list[str] = []
        if self.analysis is not None:
            if self.analysis.is_screenshot:
                tags.append("screenshot")
            if self.analysis.is_blurry:
                tags.append("blurry")
            if self.analysis.is_potential_duplicate:
                tags.append("duplicate")
            if self.analysis.age_in_days > OLD_PHOTO_DAYS:
                tags.append("old")
        if self.photo.file_size > LARGE_FILE_BYTES:
            tags.append("large")
        return tags

    @property
    def summary(self) -> str:
        """One-line description for listings."""
        parts = [self.file_name, self.resolution, self.size_text, self.date_text]
        if self.tags:
            parts.append("[" + ", ".join(self.tags) + "]")
        if self.decision:
            parts.append(f"-> {self.decision}")
        return " | ".join(parts)
