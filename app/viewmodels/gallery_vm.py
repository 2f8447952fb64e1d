"""ViewModel orchestrating the gallery reducer and its collaborators.

`GalleryVM` owns the current `GalleryState` and is its only writer: every
change goes through `dispatch`, one action at a time. I/O (media listing,
deletes, persistence) happens here, never inside the reducer, and the results
are fed back as actions.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import replace
from datetime import datetime

from loguru import logger

from core import actions as act
from core.clock import Clock, now_ms
from core.models import (
    Achievement,
    GalleryState,
    PermissionStatus,
    Photo,
    PhotoDecision,
    SessionStats,
)
from core.services.achievement_service import (
    ACHIEVEMENT_DEFINITIONS,
    check_achievements,
    initialize_achievements,
)
from core.services.filter_service import (
    FilterType,
    StatusFilter,
    apply_filter,
    filter_by_status,
    get_filter_counts,
)
from core.services.gallery_reducer import CommitDeletions, GalleryReducer
from core.services.interfaces import DeleteResult, MediaSource, PermissionGate
from core.services.photo_analyzer import (
    ProgressCallback,
    get_smart_suggestions,
    iter_analysis_batches,
)
from infrastructure.storage import TriageStorage

_MEDIA_ERRORS = (OSError, ValueError, RuntimeError)


class DeletionError(RuntimeError):
    """An explicitly requested delete removed nothing."""


class GalleryVM:
    """Main gallery view-model."""

    def __init__(
        self,
        media: MediaSource,
        storage: TriageStorage,
        permissions: PermissionGate | None = None,
        reducer: GalleryReducer | None = None,
        page_size: int = 20,
        analysis_batch_size: int = 10,
        clock: Clock = now_ms,
        on_deletion_failed: Callable[[list[str]], None] | None = None,
    ) -> None:
        """Create a GalleryVM.

        Args:
            media: Source of photo pages and bulk deletes.
            storage: Persistence gateway for stats, achievements, sessions.
            permissions: Optional library permission gate.
            reducer: State machine (defaults to `GalleryReducer(clock)`).
            page_size: Photos requested per page.
            analysis_batch_size: Photos analyzed per dispatched batch.
            clock: Epoch-ms time source.
            on_deletion_failed: Called with ids whose evicted delete failed.
        """
        self._media = media
        self._storage = storage
        self._permissions = permissions
        self._clock = clock
        self._reducer = reducer or GalleryReducer(clock=clock)
        self._page_size = page_size
        self._analysis_batch_size = analysis_batch_size
        self._on_deletion_failed = on_deletion_failed
        self.state = GalleryState()
        self.pending_deletions: list[str] = []
        self.favorites: list[str] = []

    # Dispatch and effects

    def dispatch(self, action: object) -> GalleryState:
        """Apply one action, persist changed stats, then run its effects."""
        before = self.state
        transition = self._reducer.reduce(before, action)
        self.state = transition.state
        if self.state.stats != before.stats:
            self._storage.save_stats(self.state.stats)
        for effect in transition.effects:
            if isinstance(effect, CommitDeletions):
                self._commit_evicted(list(effect.photo_ids))
        return self.state

    def _commit_evicted(self, photo_ids: list[str]) -> None:
        # The state already treats these photos as gone; failures are tracked
        # for retry rather than rolled back.
        try:
            result = self._media.bulk_delete(photo_ids)
        except _MEDIA_ERRORS as ex:
            logger.error("Auto-delete failed for {}: {}", photo_ids, ex)
            failed = list(photo_ids)
        else:
            if result.ok:
                return
            failed = result.failed_ids
        logger.error("Evicted photos still on device, queued for retry: {}", failed)
        for photo_id in failed:
            if photo_id not in self.pending_deletions:
                self.pending_deletions.append(photo_id)
        if self._on_deletion_failed is not None:
            self._on_deletion_failed(list(failed))

    def retry_pending_deletions(self) -> list[str]:
        """Re-issue failed evicted deletes; returns the ids still pending."""
        if not self.pending_deletions:
            return []
        ids = list(self.pending_deletions)
        try:
            result = self._media.bulk_delete(ids)
            still_failed = set(result.failed_ids)
        except _MEDIA_ERRORS as ex:
            logger.error("Retry of pending deletions failed: {}", ex)
            return list(self.pending_deletions)
        self.pending_deletions = [pid for pid in ids if pid in still_failed]
        logger.info(
            "Retried {} pending deletion(s), {} still pending",
            len(ids),
            len(self.pending_deletions),
        )
        return list(self.pending_deletions)

    # Loading

    def _with_sizes(self, photos: Sequence[Photo]) -> list[Photo]:
        return [
            p if p.file_size else replace(p, file_size=self._media.get_file_size(p.uri))
            for p in photos
        ]

    def load_photos(self) -> bool:
        """Load the first page, replacing the current photo list."""
        self.dispatch(act.SetLoading(True))
        try:
            page = self._media.list_photos(self._page_size)
        except _MEDIA_ERRORS as ex:
            logger.error("Error loading photos: {}", ex)
            self.dispatch(act.SetLoading(False))
            return False
        photos = self._with_sizes(page.items)
        self.dispatch(act.LoadPhotosSuccess(photos, page.next_cursor, page.has_more))
        logger.info("Loaded {} photo(s), has_more={}", len(page.items), page.has_more)
        return True

    def load_more_photos(self) -> bool:
        """Append the next page; no-op while loading or when exhausted."""
        state = self.state
        if not state.has_more_photos or state.is_loading or not state.photo_cursor:
            return False
        self.dispatch(act.SetLoading(True))
        try:
            page = self._media.list_photos(self._page_size, state.photo_cursor)
        except _MEDIA_ERRORS as ex:
            logger.error("Error loading more photos: {}", ex)
            self.dispatch(act.SetLoading(False))
            return False
        photos = self._with_sizes(page.items)
        self.dispatch(act.LoadMorePhotos(photos, page.next_cursor, page.has_more))
        return True

    # Decisions

    def mark_photo(self, photo_id: str, decision: PhotoDecision) -> GalleryState:
        return self.dispatch(act.MarkDecision(photo_id, decision))

    def undo_decision(self, photo_id: str) -> GalleryState:
        return self.dispatch(act.UndoDecision(photo_id))

    def undo_last_decision(self) -> GalleryState:
        return self.dispatch(act.UndoLastDecision())

    def pending_delete_ids(self) -> list[str]:
        """Ids currently marked delete, in photo-list order."""
        decisions = self.state.decisions
        return [p.id for p in self.state.photos if decisions.get(p.id) == "delete"]

    def execute_deletions(self, photo_ids: Sequence[str]) -> DeleteResult:
        """Delete `photo_ids` now and commit the ones that were removed.

        Raises:
            DeletionError: If the media source fails or deletes nothing.
        """
        ids = list(photo_ids)
        if not ids:
            return DeleteResult()
        try:
            result = self._media.bulk_delete(ids)
        except _MEDIA_ERRORS as ex:
            logger.error("Error deleting photos: {}", ex)
            raise DeletionError(str(ex)) from ex
        if result.success_ids:
            self.dispatch(act.ExecuteDeletionsSuccess(list(result.success_ids)))
        if not result.ok:
            logger.warning("Could not delete {} photo(s): {}", len(result.failed), result.failed)
        if not result.success_ids:
            raise DeletionError(f"no photos deleted: {result.failed}")
        return result

    # Permissions

    def check_permissions(self) -> PermissionStatus:
        status: PermissionStatus = "denied"
        if self._permissions is not None:
            try:
                status = self._permissions.get_status()
            except OSError as ex:
                logger.error("Error checking permissions: {}", ex)
        self.dispatch(act.SetPermissionStatus(status))
        return status

    def request_permissions(self) -> bool:
        status: PermissionStatus = "denied"
        if self._permissions is not None:
            try:
                status = "granted" if self._permissions.request() == "granted" else "denied"
            except OSError as ex:
                logger.error("Error requesting permissions: {}", ex)
        self.dispatch(act.SetPermissionStatus(status))
        return status == "granted"

    # Sessions

    def start_session(self) -> SessionStats | None:
        return self.dispatch(act.StartSession()).current_session

    def end_session(self) -> SessionStats | None:
        """Finalize and persist the active session, then refresh the streak."""
        session = self.state.current_session
        if session is None:
            return None
        now = self._clock()
        final = replace(session, end_time=now)
        self._storage.add_session(final)
        streak = self._storage.update_streak(datetime.fromtimestamp(now / 1000).date())
        self.dispatch(act.EndSession(final))
        if streak > 0:
            self.dispatch(act.UpdateStats({"current_streak": streak}))
        logger.info(
            "Session {} ended: reviewed={} deleted={} kept={} streak={}",
            final.session_id,
            final.photos_reviewed,
            final.photos_deleted,
            final.photos_kept,
            streak,
        )
        return final

    def reset_session(self) -> GalleryState:
        return self.dispatch(act.ResetSession())

    # Persistence

    def load_persisted_data(self) -> None:
        """Restore lifetime stats, streak, resume point, achievements, favorites."""
        stats = self._storage.get_stats()
        changes: dict[str, int] = {"current_streak": self._storage.get_current_streak()}
        if stats is not None:
            # Review counters derive from decisions, which are not persisted.
            changes.update(
                total_sessions=stats.total_sessions,
                lifetime_deleted=stats.lifetime_deleted,
                lifetime_freed=stats.lifetime_freed,
            )
        self.dispatch(act.UpdateStats(changes))

        last_photo_id = self._storage.get_last_photo_id()
        if last_photo_id:
            self.dispatch(act.SetResumePhoto(last_photo_id))

        achievements = _merge_with_catalog(self._storage.get_achievements() or [])
        self.dispatch(act.SetAchievements(achievements))
        for achievement in achievements:
            if achievement.unlocked_at is not None:
                self.dispatch(act.UnlockAchievement(achievement.id))

        self.favorites = self._storage.get_favorites() or []

    def set_resume_photo(self, photo_id: str) -> None:
        self.dispatch(act.SetResumePhoto(photo_id))
        self._storage.save_last_photo_id(photo_id)

    def resume(self) -> int:
        """Move to the last viewed photo if it is loaded; returns the index."""
        target = self.state.last_resume_photo_id
        for index, photo in enumerate(self.state.photos):
            if photo.id == target:
                self.dispatch(act.SetCurrentIndex(index))
                return index
        return self.state.current_index

    def toggle_favorite(self, photo_id: str) -> bool:
        """Flip favorite status of `photo_id`; returns True if now a favorite."""
        if photo_id in self.favorites:
            self.favorites = [f for f in self.favorites if f != photo_id]
            is_favorite = False
        else:
            self.favorites = [*self.favorites, photo_id]
            is_favorite = True
        self._storage.save_favorites(self.favorites)
        return is_favorite

    # Achievements

    def check_and_update_achievements(self) -> list[str]:
        """Evaluate achievements against current stats; returns new unlock ids."""
        current = self.state.achievements or tuple(initialize_achievements())
        updated, newly_unlocked = check_achievements(
            current, self.state.stats, self.state.current_session, clock=self._clock
        )
        self.dispatch(act.SetAchievements(updated))
        for achievement_id in newly_unlocked:
            self.dispatch(act.UnlockAchievement(achievement_id))
        self._storage.save_achievements(self.state.achievements)
        return newly_unlocked

    # Analysis and filtering

    def analyze_photos(self, on_progress: ProgressCallback | None = None) -> int:
        """Analyze all loaded photos, dispatching one batch at a time."""
        photos = self.state.photos
        if not photos:
            return 0
        now = self._clock()
        for chunk in iter_analysis_batches(
            photos, photos, self._analysis_batch_size, on_progress, now=now
        ):
            self.dispatch(act.BatchSetAnalyses(chunk))
        logger.info("Analyzed {} photo(s)", len(photos))
        return len(photos)

    def smart_suggestions(self) -> list[str]:
        loaded = {p.id for p in self.state.photos}
        return [pid for pid in get_smart_suggestions(self.state.analyses) if pid in loaded]

    def visible_photos(
        self,
        filter_type: FilterType | str = FilterType.ALL,
        status: StatusFilter | str = StatusFilter.ALL,
    ) -> list[Photo]:
        """Photos matching both an analysis filter and a review-status filter."""
        by_tag = apply_filter(
            self.state.photos, filter_type, self.state.analyses, self.smart_suggestions()
        )
        return filter_by_status(by_tag, self.state.decisions, status)

    def filter_counts(self) -> dict[FilterType, int]:
        return get_filter_counts(self.state.photos, self.state.analyses, self.smart_suggestions())


def _merge_with_catalog(stored: Sequence[Achievement]) -> list[Achievement]:
    """Catalog order and definitions, with stored progress/unlock times."""
    by_id = {a.id: a for a in stored}
    merged: list[Achievement] = []
    for definition in ACHIEVEMENT_DEFINITIONS:
        saved = by_id.get(definition.id)
        if saved is None:
            merged.append(definition)
        else:
            merged.append(
                replace(definition, progress=saved.progress, unlocked_at=saved.unlocked_at)
            )
    return merged
