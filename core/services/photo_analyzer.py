"""Heuristic photo analysis from metadata only.

Screenshot, blur, duplicate and age classification work on `Photo` fields
(filename, dimensions, size, creation time); no pixel data is read. Blur and
brightness are placeholders until real image analysis is wired in.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping, Sequence

from core.clock import MS_PER_DAY, now_ms
from core.models import Photo, PhotoAnalysis

SCREENSHOT_PATTERNS = ("screenshot", "screen_shot", "screen shot", "scrnshot", "scrn")
PORTRAIT_SCREEN_RATIO = (0.45, 0.6)
LANDSCAPE_SCREEN_RATIO = (1.7, 2.2)

BLUR_AGE_DAYS = 1825  # 5 years
BLUR_THRESHOLD = 50
OLD_BLUR_SCORE = 60
DEFAULT_BLUR_SCORE = 20
DEFAULT_BRIGHTNESS = 50

DUPLICATE_WINDOW_MS = 1000

OLD_PHOTO_DAYS = 730  # 2 years
SUGGESTION_THRESHOLD = 3

ProgressCallback = Callable[[int, int], None]


def is_screenshot(photo: Photo) -> bool:
    """True for screenshot-like filenames or phone-screen shaped `img` files."""
    filename = (photo.filename or "").lower()
    if any(pattern in filename for pattern in SCREENSHOT_PATTERNS):
        return True
    if photo.width <= 0 or photo.height <= 0:
        return False
    ratio = photo.width / photo.height
    phone_shaped = (
        PORTRAIT_SCREEN_RATIO[0] <= ratio <= PORTRAIT_SCREEN_RATIO[1]
        or LANDSCAPE_SCREEN_RATIO[0] <= ratio <= LANDSCAPE_SCREEN_RATIO[1]
    )
    return phone_shaped and "img" in filename


def get_photo_age(photo: Photo, now: int | None = None) -> int:
    """Whole days elapsed since the photo was created."""
    current = now_ms() if now is None else now
    return (current - photo.creation_time) // MS_PER_DAY


def detect_blur(photo: Photo, now: int | None = None) -> tuple[bool, int]:
    """Return (is_blurry, score). Photos older than five years score as blurry."""
    score = OLD_BLUR_SCORE if get_photo_age(photo, now) > BLUR_AGE_DAYS else DEFAULT_BLUR_SCORE
    return score > BLUR_THRESHOLD, score


def find_duplicate_group(photo: Photo, all_photos: Sequence[Photo]) -> str | None:
    """Return `dup_<earliest id>` if another photo has the same size within 1s.

    Grouping is computed per query from the photo's own neighbours, so
    overlapping pairs are not merged transitively.
    """
    if not photo.file_size:
        return None
    matches = [
        other
        for other in all_photos
        if other.id != photo.id
        and other.file_size == photo.file_size
        and abs(other.creation_time - photo.creation_time) < DUPLICATE_WINDOW_MS
    ]
    if not matches:
        return None
    earliest = min([photo, *matches], key=lambda p: p.creation_time)
    return f"dup_{earliest.id}"


def analyze_photo(
    photo: Photo, all_photos: Sequence[Photo], now: int | None = None
) -> PhotoAnalysis:
    """Classify `photo` against the full collection `all_photos`."""
    current = now_ms() if now is None else now
    blurry, blur_score = detect_blur(photo, current)
    group = find_duplicate_group(photo, all_photos)
    return PhotoAnalysis(
        photo_id=photo.id,
        is_blurry=blurry,
        blur_score=blur_score,
        is_screenshot=is_screenshot(photo),
        is_potential_duplicate=group is not None,
        duplicate_group=group,
        age_in_days=get_photo_age(photo, current),
        brightness=DEFAULT_BRIGHTNESS,
        analyzed_at=current,
    )


def iter_analysis_batches(
    photos: Sequence[Photo],
    all_photos: Sequence[Photo],
    batch_size: int = 10,
    on_progress: ProgressCallback | None = None,
    now: int | None = None,
) -> Iterator[dict[str, PhotoAnalysis]]:
    """Analyze `photos` in chunks, yielding one `{id: analysis}` dict per chunk.

    Each yield hands control back to the consumer, which can dispatch the
    chunk and do other work before asking for the next one.
    """
    size = max(1, int(batch_size))
    total = len(photos)
    done = 0
    for start in range(0, total, size):
        chunk: dict[str, PhotoAnalysis] = {}
        for photo in photos[start : start + size]:
            chunk[photo.id] = analyze_photo(photo, all_photos, now)
            done += 1
            if on_progress is not None:
                on_progress(done, total)
        yield chunk


def analyze_photo_batch(
    photos: Sequence[Photo],
    all_photos: Sequence[Photo],
    on_progress: ProgressCallback | None = None,
    now: int | None = None,
) -> dict[str, PhotoAnalysis]:
    """Analyze every photo and return the merged `{id: analysis}` map."""
    result: dict[str, PhotoAnalysis] = {}
    for chunk in iter_analysis_batches(photos, all_photos, on_progress=on_progress, now=now):
        result.update(chunk)
    return result


def suggestion_score(analysis: PhotoAnalysis) -> int:
    """Weighted deletion score: screenshot 3, blurry 2, duplicate 2, old 1."""
    score = 0
    if analysis.is_screenshot:
        score += 3
    if analysis.is_blurry:
        score += 2
    if analysis.age_in_days > OLD_PHOTO_DAYS:
        score += 1
    if analysis.is_potential_duplicate:
        score += 2
    return score


def get_smart_suggestions(analyses: Mapping[str, PhotoAnalysis]) -> list[str]:
    """Ids of photos whose `suggestion_score` reaches the threshold."""
    return [
        photo_id
        for photo_id, analysis in analyses.items()
        if suggestion_score(analysis) >= SUGGESTION_THRESHOLD
    ]
